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

import gzip
import logging
import pathlib
import sys

from typing import List, Union


# The path that stands for standard input on the command line.
STDIN_PATH = '-'

LOG_FORMAT = "[%(filename)s:%(lineno)d] %(asctime)s %(levelname)s: %(message)s"


def init_env(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT)


def path_to_str(path: Union[str, pathlib.Path]) -> str:
    if isinstance(path, str):
        return path
    return str(path)


def read_file(file_path: Union[str, pathlib.Path]) -> str:
    """
    Reads the whole file as UTF-8 text. Transparently decompresses files ending with .gz, and
    reads standard input if the path is "-". Line endings are returned unchanged.
    """
    path_str = path_to_str(file_path)
    if path_str == STDIN_PATH:
        return sys.stdin.buffer.read().decode('utf-8')
    if path_str.endswith('.gz'):
        with gzip.open(path_str, 'rt', encoding='utf-8', newline='') as input_file:
            return input_file.read()
    with open(path_str, encoding='utf-8', newline='') as input_file:
        return input_file.read()


def write_file(
        content: Union[str, List[str]], output_file_path: Union[str, pathlib.Path]) -> None:
    if isinstance(content, list):
        content = ''.join(line + '\n' for line in content)
    with open(path_to_str(output_file_path), 'w', encoding='utf-8') as output_file:
        output_file.write(content)
