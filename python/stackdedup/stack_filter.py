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
Drops groups of goroutines that are waiting for a reason nobody cares about when triaging a hang,
e.g. idle GC workers. Extra rules can be loaded from a YAML file like this one:

ignore_reasons:
  - equals: "sleep"
  - prefix: "sync."
replace_default_rules: false
"""

import dataclasses
import logging

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from typing import Any, Dict, Iterable, List, Optional

from stackdedup.goroutine_stacks import UniqueStack


RULE_KIND_EQUALS = 'equals'
RULE_KIND_CONTAINS = 'contains'
RULE_KIND_PREFIX = 'prefix'
RULE_KINDS = [RULE_KIND_EQUALS, RULE_KIND_CONTAINS, RULE_KIND_PREFIX]

CONFIG_KEY_IGNORE_REASONS = 'ignore_reasons'
CONFIG_KEY_REPLACE_DEFAULT_RULES = 'replace_default_rules'
CONFIG_KEYS = [CONFIG_KEY_IGNORE_REASONS, CONFIG_KEY_REPLACE_DEFAULT_RULES]


@dataclasses.dataclass(frozen=True)
class FilterRule:
    kind: str
    pattern: str

    def __post_init__(self) -> None:
        if self.kind not in RULE_KINDS:
            raise ValueError(f"Unknown filter rule kind: {self.kind}, expected one of {RULE_KINDS}")

    def matches(self, reason: str) -> bool:
        if self.kind == RULE_KIND_EQUALS:
            return reason == self.pattern
        if self.kind == RULE_KIND_CONTAINS:
            return self.pattern in reason
        return reason.startswith(self.pattern)


DEFAULT_FILTER_RULES = [
    FilterRule(RULE_KIND_EQUALS, 'idle'),
    FilterRule(RULE_KIND_CONTAINS, '(idle)'),
    FilterRule(RULE_KIND_PREFIX, 'GC '),
    FilterRule(RULE_KIND_EQUALS, 'finalizer wait'),
]


class StackFilter:
    rules: List[FilterRule]

    def __init__(self, rules: Optional[Iterable[FilterRule]] = None) -> None:
        self.rules = list(DEFAULT_FILTER_RULES if rules is None else rules)

    def is_important(self, unique_stack: UniqueStack) -> bool:
        return not any(rule.matches(unique_stack.reason) for rule in self.rules)

    def filter(self, unique_stacks: Iterable[UniqueStack]) -> List[UniqueStack]:
        """
        Returns the groups that are not matched by any rule, preserving their order.
        """
        return [
            unique_stack for unique_stack in unique_stacks if self.is_important(unique_stack)
        ]


def parse_filter_rule(rule_dict: Any, config_path: str) -> FilterRule:
    if not isinstance(rule_dict, dict) or len(rule_dict) != 1:
        raise ValueError(
            f"Each entry of {CONFIG_KEY_IGNORE_REASONS} in {config_path} must be a mapping with "
            f"exactly one of the keys {RULE_KINDS}, found: {rule_dict}")
    kind, pattern = next(iter(rule_dict.items()))
    if kind not in RULE_KINDS:
        raise ValueError(
            f"Unknown filter rule kind in {config_path}: {kind}, expected one of {RULE_KINDS}")
    if not isinstance(pattern, str):
        raise ValueError(
            f"Filter rule pattern in {config_path} must be a string, found: {pattern!r}")
    return FilterRule(kind, str(pattern))


def create_filter_from_config(config: Optional[Dict[str, Any]], config_path: str) -> StackFilter:
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError(f"Expected a mapping at the top level of {config_path}")

    unknown_keys = sorted(set(config.keys()) - set(CONFIG_KEYS))
    if unknown_keys:
        raise ValueError(
            f"Unknown keys in filter configuration {config_path}: {unknown_keys}. "
            f"Expected keys: {CONFIG_KEYS}")

    rule_dicts = config.get(CONFIG_KEY_IGNORE_REASONS) or []
    if not isinstance(rule_dicts, list):
        raise ValueError(f"{CONFIG_KEY_IGNORE_REASONS} in {config_path} must be a list")
    configured_rules = [parse_filter_rule(rule_dict, config_path) for rule_dict in rule_dicts]

    replace_default_rules = config.get(CONFIG_KEY_REPLACE_DEFAULT_RULES, False)
    if not isinstance(replace_default_rules, bool):
        raise ValueError(f"{CONFIG_KEY_REPLACE_DEFAULT_RULES} in {config_path} must be a boolean")

    if replace_default_rules:
        rules = configured_rules
    else:
        rules = DEFAULT_FILTER_RULES + configured_rules
    logging.info(
        "Loaded %d filter rules from %s (%d in effect)",
        len(configured_rules), config_path, len(rules))
    return StackFilter(rules)


def load_filter_config(config_path: str) -> StackFilter:
    yaml = YAML()
    with open(config_path, encoding='utf-8') as config_file:
        try:
            config = yaml.load(config_file)
        except YAMLError as ex:
            raise ValueError(f"Invalid filter configuration {config_path}: {ex}") from ex
    return create_filter_from_config(config, config_path)
