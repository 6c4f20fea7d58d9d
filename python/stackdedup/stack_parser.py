# Copyright (c) Yugabyte, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except
# in compliance with the License.  You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software distributed under the License
# is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express
# or implied.  See the License for the specific language governing permissions and limitations
# under the License.

"""
Parses Go goroutine dumps, e.g. the output of a SIGQUIT or of runtime.Stack(buf, true).

A dump is a sequence of blocks separated by empty lines. Each block looks like this:

goroutine 18 [chan receive, 5 minutes]:
main.worker(0xc000010000, 0x1)
	/src/main.go:42 +0x45
created by main.start in goroutine 1
	/src/main.go:30 +0x65
"""

import logging
import re

from typing import Iterator, List, Optional, Tuple

from stackdedup.errors import CallError, CreatorError, HeaderError, LocationError
from stackdedup.goroutine_stacks import Call, Creator, Location, Stack


HEADER_PREFIX = 'goroutine '
CREATOR_PREFIX = 'created by '
CREATOR_GOROUTINE_SEPARATOR = ' in goroutine '
REASON_DELAY_SEPARATOR = ', '

# The Go runtime prints this in the middle of a stack when it cannot unwind through an assembly
# function that modifies SP. It is neither a call nor a creator line.
SPWRITE_NOISE_PREFIX = 'traceback: unexpected SPWRITE function'

UNSIGNED_INT_RE = re.compile(r'^[0-9]+$')
MAX_UNSIGNED_INT = 2 ** 64 - 1


def parse_unsigned_int(s: str) -> Optional[int]:
    """
    Parses a base-10 unsigned 64-bit integer. Returns None if the string is not one.

    >>> parse_unsigned_int('42')
    42
    >>> parse_unsigned_int('+42') is None
    True
    >>> parse_unsigned_int('') is None
    True
    """
    if not UNSIGNED_INT_RE.match(s):
        return None
    value = int(s)
    if value > MAX_UNSIGNED_INT:
        return None
    return value


def split_into_blocks(text: str) -> Iterator[List[str]]:
    """
    Splits the text into blocks of consecutive non-empty lines. The lines are returned exactly as
    they appear in the input.
    """
    block: List[str] = []
    for line in text.split('\n'):
        if line:
            block.append(line)
            continue
        if block:
            yield block
            block = []
    if block:
        yield block


def parse_header(line: str) -> Tuple[int, str, Optional[str]]:
    """
    Parses a line like "goroutine 1 [chan receive, 2 minutes]:" into the goroutine id, the wait
    reason and the optional delay.
    """
    if not line.startswith(HEADER_PREFIX):
        raise HeaderError('stack should begin with "%s"' % HEADER_PREFIX.strip(), line)
    rest = line[len(HEADER_PREFIX):]
    goroutine_str, _, rest = rest.partition(' ')

    goroutine_id = parse_unsigned_int(goroutine_str)
    if goroutine_id is None:
        raise HeaderError('could not parse goroutine number "%s"' % goroutine_str, line)

    if rest.startswith('['):
        rest = rest[1:]
    if rest.endswith(']:'):
        rest = rest[:-2]

    reason, separator, delay = rest.partition(REASON_DELAY_SEPARATOR)
    if not separator:
        return goroutine_id, rest, None
    return goroutine_id, reason, delay


def parse_location(line: str) -> Location:
    """
    Parses an indented detail line like "\t/src/main.go:42 +0x45". Anything after the first
    space is ignored.
    """
    if not line.startswith('\t'):
        raise LocationError('location line should be indented', line)

    first_token = line[1:].split(' ', 1)[0]
    filename, separator, line_str = first_token.partition(':')
    if not separator:
        # Unusual detail line without a line number, e.g. "\t?". Not worth failing on.
        return Location(filename='', line=0)

    line_number = parse_unsigned_int(line_str)
    if line_number is None:
        raise LocationError('could not parse line number "%s"' % line_str, line)
    return Location(filename=filename, line=line_number)


def parse_creator(line: str) -> Tuple[str, int]:
    rest = line[len(CREATOR_PREFIX):]
    name, separator, goroutine_str = rest.partition(CREATOR_GOROUTINE_SEPARATOR)
    if not separator:
        raise CreatorError('creator line should have a goroutine', line)

    origin_goroutine = parse_unsigned_int(goroutine_str)
    if origin_goroutine is None:
        raise CreatorError('could not parse goroutine number "%s"' % goroutine_str, line)
    return name, origin_goroutine


def parse_call(line: str) -> Tuple[str, str]:
    name, separator, args = line.partition('(')
    if not separator:
        raise CallError('trace line should have a function', line)
    if args.endswith(')'):
        args = args[:-1]
    return name.strip(), args


class StackParser:
    """
    Parses a single block of lines into a Stack. Call and creator lines may each be followed by
    one indented location line.
    """

    lines: List[str]
    calls: List[Call]
    creator: Optional[Creator]

    # Index of the line being parsed. The header is line 0.
    index: int

    def __init__(self, lines: List[str]) -> None:
        if not lines:
            raise ValueError("Cannot parse an empty block")
        self.lines = lines
        self.calls = []
        self.creator = None
        self.index = 1

    def next_location(self) -> Optional[Location]:
        """
        Consumes the line after the current one as a location, if there is one.
        """
        if self.index + 1 >= len(self.lines):
            return None
        self.index += 1
        return parse_location(self.lines[self.index])

    def parse(self) -> Stack:
        goroutine_id, reason, delay = parse_header(self.lines[0])

        while self.index < len(self.lines):
            line = self.lines[self.index]
            if line.startswith(SPWRITE_NOISE_PREFIX):
                pass
            elif line.startswith(CREATOR_PREFIX):
                name, origin_goroutine = parse_creator(line)
                # A second creator line replaces the first one.
                self.creator = Creator(
                    name=name,
                    origin_goroutine=origin_goroutine,
                    location=self.next_location())
            else:
                name, args = parse_call(line)
                self.calls.append(Call(name=name, args=args, location=self.next_location()))
            self.index += 1

        return Stack(
            goroutine_id=goroutine_id,
            reason=reason,
            delay=delay,
            calls=tuple(self.calls),
            creator=self.creator,
            raw_lines=tuple(self.lines))


def parse_stack(lines: List[str]) -> Stack:
    return StackParser(lines).parse()


def parse_stacks(text: str) -> List[Stack]:
    """
    Parses all goroutine stacks in the given dump. The first malformed line aborts parsing of the
    whole dump.
    """
    stacks = []
    for block in split_into_blocks(text):
        stack = parse_stack(block)
        logging.debug(
            "Parsed goroutine %d [%s] with %d calls",
            stack.goroutine_id, stack.reason, len(stack.calls))
        stacks.append(stack)
    return stacks
