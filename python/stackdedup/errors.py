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


class StackParseError(Exception):
    """
    Base class for errors in the goroutine dump grammar. Carries the raw line that could not be
    parsed so that it can be shown to the user.
    """

    EXCEPTION_TYPE = "Stack parse error"

    def __init__(self, message: str, line: str) -> None:
        """
        Args:
            message (str): what was wrong with the line
            line (str): the offending line, exactly as it appeared in the input
        """
        super().__init__(message)
        self.message = message
        self.line = line

    @property
    def error_type(self) -> str:
        return self.EXCEPTION_TYPE

    def __str__(self) -> str:
        return "{}: {}:\n\t{}".format(self.error_type, self.message, self.line)


class HeaderError(StackParseError):
    EXCEPTION_TYPE = "Invalid goroutine header"


class CallError(StackParseError):
    EXCEPTION_TYPE = "Invalid call line"


class CreatorError(StackParseError):
    EXCEPTION_TYPE = "Invalid creator line"


class LocationError(StackParseError):
    EXCEPTION_TYPE = "Invalid location line"
