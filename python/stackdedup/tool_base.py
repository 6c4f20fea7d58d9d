# Copyright (c) Yugabyte, Inc.

import argparse
import logging

from typing import Any, Dict, List, Optional

from overrides import EnforceOverrides

from stackdedup.common_util import init_env


class StackDedupToolBase(EnforceOverrides):
    """
    A base class for command-line tools that post-process stack dumps.
    """

    arg_parser: Optional[argparse.ArgumentParser]
    args: Optional[argparse.Namespace]

    def get_description(self) -> str:
        raise NotImplementedError()

    def get_arg_parser_kwargs(self) -> Dict[str, Any]:
        return dict(description=self.get_description())

    def __init__(self) -> None:
        self.arg_parser = None
        self.args = None

    def run(self, argv: Optional[List[str]] = None) -> None:
        """
        The top-level function used to run the tool.
        """
        self.create_arg_parser()
        self.parse_args(argv)
        self.validate_and_process_args()
        self.run_impl()

    def run_impl(self) -> None:
        """
        The overridable internal implementation of running the tool.
        """
        raise NotImplementedError()

    def add_command_line_args(self) -> None:
        """
        Can be overridden to add more command-line arguments to the parser.
        """
        pass

    def validate_and_process_args(self) -> None:
        pass

    def create_arg_parser(self) -> None:
        # Don't allow to run this function multiple times.
        if self.arg_parser is not None:
            raise RuntimeError("Cannot create the argument parser multiple times")

        self.arg_parser = argparse.ArgumentParser(**self.get_arg_parser_kwargs())
        self.arg_parser.add_argument(
            '--verbose',
            help='Enable verbose output',
            action='store_true')
        self.add_command_line_args()

    def parse_args(self, argv: Optional[List[str]] = None) -> None:
        assert self.arg_parser is not None
        self.args = self.arg_parser.parse_args(argv)
        init_env(verbose=self.args.verbose)
        logging.debug("Command-line arguments: %s", self.args)
