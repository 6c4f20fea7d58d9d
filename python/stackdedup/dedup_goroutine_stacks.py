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
Deduplicates similar goroutine stacks. Stacks are considered the same if they have the same
sequence of functions and source locations, regardless of goroutine ids, wait reasons, argument
values and creators.
"""

import logging

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from stackdedup.goroutine_stacks import Stack, UniqueStack
from stackdedup.stack_filter import StackFilter
from stackdedup.stack_parser import parse_stacks


def get_stack_signature(stack: Stack) -> str:
    signature_parts = []
    for call in stack.calls:
        if call.location is not None:
            filename, line = call.location.filename, call.location.line
        else:
            filename, line = '', 0
        signature_parts.append("%s %s:%d\n" % (call.name, filename, line))
    return ''.join(signature_parts)


class GoroutineStackDeduplicator:

    # Insertion-ordered, so groups can be listed in the order they were first seen.
    groups: Dict[str, UniqueStack]
    num_stacks: int

    def __init__(self) -> None:
        self.groups = {}
        self.num_stacks = 0

    def add_stack(self, stack: Stack) -> None:
        self.num_stacks += 1
        key = get_stack_signature(stack)
        if key not in self.groups:
            self.groups[key] = UniqueStack(representative=stack)
        else:
            self.groups[key].variants.append(stack)

    def add_stacks(self, stacks: Iterable[Stack]) -> None:
        for stack in stacks:
            self.add_stack(stack)

    def unique_stacks(self) -> List[UniqueStack]:
        return sort_unique_stacks(self.groups.values())


def sort_unique_stacks(unique_stacks: Iterable[UniqueStack]) -> List[UniqueStack]:
    """
    Sorts groups by the goroutine id of their representative. The sort is stable, so groups with
    the same id stay in the order they were created in.
    """
    return sorted(unique_stacks, key=lambda unique_stack: unique_stack.goroutine_id)


def dedup_stacks(stacks: Iterable[Stack]) -> List[UniqueStack]:
    deduplicator = GoroutineStackDeduplicator()
    deduplicator.add_stacks(stacks)
    return deduplicator.unique_stacks()


class StackCountReporter:
    """
    Reports how many stacks survive each stage of the pipeline.
    """

    def imported(self, num_stacks: int, source_name: str) -> None:
        logging.info("Imported %d stack traces from %s", num_stacks, source_name)

    def deduplicated(self, num_unique: int, num_removed: int) -> None:
        logging.info("Found %d unique stack traces (removed %d)", num_unique, num_removed)

    def filtered(self, num_important: int, num_removed: int) -> None:
        logging.info("Found %d important stack traces (removed %d)", num_important, num_removed)


def find_important_stacks_in_sources(
        sources: Iterable[Tuple[str, str]],
        reporter: Optional[StackCountReporter] = None,
        stack_filter: Optional[StackFilter] = None) -> List[UniqueStack]:
    """
    Parses, deduplicates and filters goroutine dumps.

    :param sources: (name, text) pairs. The name is only used for reporting.
    :param reporter: receives the stack counts after each stage.
    :param stack_filter: decides which groups to keep. Defaults to dropping idle goroutines.
    :return: the remaining groups, sorted by the goroutine id of their representative.
    """
    if reporter is None:
        reporter = StackCountReporter()
    if stack_filter is None:
        stack_filter = StackFilter()

    deduplicator = GoroutineStackDeduplicator()
    for source_name, text in sources:
        deduplicator.add_stacks(parse_stacks(text))
        reporter.imported(deduplicator.num_stacks, source_name)

    unique_stacks = deduplicator.unique_stacks()
    reporter.deduplicated(len(unique_stacks), deduplicator.num_stacks - len(unique_stacks))

    important_stacks = stack_filter.filter(unique_stacks)
    reporter.filtered(len(important_stacks), len(unique_stacks) - len(important_stacks))
    return important_stacks


def find_important_stacks(
        texts: Iterable[str],
        reporter: Optional[StackCountReporter] = None,
        stack_filter: Optional[StackFilter] = None) -> List[UniqueStack]:
    return find_important_stacks_in_sources(
        (('input #%d' % (i + 1), text) for i, text in enumerate(texts)),
        reporter=reporter,
        stack_filter=stack_filter)


def unique_stacks_line_iterator(unique_stacks: Iterable[UniqueStack]) -> Iterator[str]:
    for unique_stack in unique_stacks:
        yield "(%d copies)" % unique_stack.num_copies
        for line in unique_stack.representative.raw_lines:
            yield line
        # An empty line separator.
        yield ""
