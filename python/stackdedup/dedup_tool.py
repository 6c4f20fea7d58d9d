#!/usr/bin/env python3

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
Reads one or more Go goroutine dumps, groups goroutines with identical stacks, drops idle ones and
prints one representative stack per group along with the number of goroutines in it.
"""

import logging
import os
import sys

from typing import Iterator, List, Optional, Tuple

from overrides import overrides

from stackdedup.common_util import read_file, write_file
from stackdedup.dedup_goroutine_stacks import (
    find_important_stacks_in_sources,
    unique_stacks_line_iterator,
)
from stackdedup.errors import StackParseError
from stackdedup.stack_filter import StackFilter, load_filter_config
from stackdedup.tool_base import StackDedupToolBase


FILTER_CONFIG_ENV_VAR = 'STACKDEDUP_FILTER_CONFIG'


class DedupGoroutineStacksTool(StackDedupToolBase):

    @overrides
    def get_description(self) -> str:
        return __doc__.strip()

    @overrides
    def add_command_line_args(self) -> None:
        assert self.arg_parser is not None
        self.arg_parser.add_argument(
            'input_paths',
            nargs='+',
            metavar='STACK_DUMP',
            help='Goroutine dump files to read, in order. Files ending with .gz are '
                 'decompressed. Use "-" to read standard input.')
        self.arg_parser.add_argument(
            '--output', '-o',
            help='Write the deduplicated stacks to this file instead of standard output.')
        self.arg_parser.add_argument(
            '--filter_config',
            default=os.getenv(FILTER_CONFIG_ENV_VAR),
            help='YAML file with additional wait reasons to ignore. The default value is '
                 'determined by the %s environment variable.' % FILTER_CONFIG_ENV_VAR)
        self.arg_parser.add_argument(
            '--no_filter',
            action='store_true',
            help='Do not drop idle, GC and finalizer goroutines.')

    @overrides
    def validate_and_process_args(self) -> None:
        assert self.args is not None
        if self.args.no_filter and self.args.filter_config:
            logging.info(
                "Ignoring filter configuration %s because --no_filter is specified",
                self.args.filter_config)

    def create_stack_filter(self) -> StackFilter:
        assert self.args is not None
        if self.args.no_filter:
            return StackFilter(rules=[])
        if self.args.filter_config:
            return load_filter_config(self.args.filter_config)
        return StackFilter()

    def read_sources(self) -> Iterator[Tuple[str, str]]:
        assert self.args is not None
        for input_path in self.args.input_paths:
            yield input_path, read_file(input_path)

    @overrides
    def run_impl(self) -> None:
        assert self.args is not None
        important_stacks = find_important_stacks_in_sources(
            self.read_sources(),
            stack_filter=self.create_stack_filter())

        output_lines = list(unique_stacks_line_iterator(important_stacks))
        if self.args.output:
            write_file(output_lines, self.args.output)
            logging.info("Wrote %d stacks to %s", len(important_stacks), self.args.output)
            return
        for line in output_lines:
            print(line)


def main(argv: Optional[List[str]] = None) -> None:
    try:
        DedupGoroutineStacksTool().run(argv)
    except (StackParseError, OSError, ValueError) as ex:
        logging.error("%s", ex)
        sys.exit(1)


if __name__ == '__main__':
    main()
