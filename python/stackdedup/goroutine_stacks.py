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
Records produced by parsing a goroutine dump. All of them are immutable once parsed.
"""

import dataclasses

from typing import List, Optional, Tuple


@dataclasses.dataclass(frozen=True)
class Location:
    filename: str
    line: int


@dataclasses.dataclass(frozen=True)
class Call:
    name: str

    # Raw argument list, e.g. "0xc000010000, 0x1". Never parsed.
    args: str

    location: Optional[Location] = None


@dataclasses.dataclass(frozen=True)
class Creator:
    name: str
    origin_goroutine: int
    location: Optional[Location] = None


@dataclasses.dataclass(frozen=True)
class Stack:
    """
    One goroutine from a dump: its header fields, its calls (innermost frame first), the
    goroutine that created it, and the exact lines it was parsed from.
    """

    goroutine_id: int
    reason: str
    delay: Optional[str]
    calls: Tuple[Call, ...]
    creator: Optional[Creator]
    raw_lines: Tuple[str, ...]

    def __str__(self) -> str:
        return '\n'.join(self.raw_lines)


@dataclasses.dataclass
class UniqueStack:
    """
    A group of stacks with the same canonical signature. The representative is the first such
    stack encountered; the rest are variants, in the order they were encountered.
    """

    representative: Stack
    variants: List[Stack] = dataclasses.field(default_factory=list)

    @property
    def num_copies(self) -> int:
        return len(self.variants) + 1

    @property
    def goroutine_id(self) -> int:
        return self.representative.goroutine_id

    @property
    def reason(self) -> str:
        return self.representative.reason
