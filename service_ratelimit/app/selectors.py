"""
Kubernetes label selector parsing and matching.

Supports the equality- and set-based grammar accepted by the API server:
``k``, ``!k``, ``k=v``, ``k==v``, ``k!=v``, ``k in (a,b)``, ``k notin (a,b)``,
joined by commas. The API server evaluates selectors server-side; this
module is used where Pods are filtered in-process.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Mapping

from shared.errors import InvalidSelectorError


class SelectorOperator(str, Enum):
    """Label selector operators."""
    EQUALS = "="
    NOT_EQUALS = "!="
    IN = "in"
    NOT_IN = "notin"
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"


_NAME = r"[A-Za-z0-9](?:[-A-Za-z0-9_.]{0,61}[A-Za-z0-9])?"
_KEY_RE = re.compile(rf"^(?:[a-z0-9](?:[-a-z0-9.]{{0,251}}[a-z0-9])?/)?{_NAME}$")
_VALUE_RE = re.compile(rf"^(?:{_NAME})?$")

_SET_RE = re.compile(r"^(\S+)\s+(in|notin)\s*\((.*)\)$")
_NOT_EXISTS_RE = re.compile(r"^!\s*(\S+)$")
_EQUALITY_RE = re.compile(r"^([^=!\s]+)\s*(==|!=|=)\s*(.*)$")


@dataclass(frozen=True)
class Requirement:
    """A single selector requirement."""
    key: str
    operator: SelectorOperator
    values: FrozenSet[str] = field(default_factory=frozenset)

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator == SelectorOperator.EXISTS:
            return self.key in labels
        if self.operator == SelectorOperator.DOES_NOT_EXIST:
            return self.key not in labels
        if self.operator in (SelectorOperator.EQUALS, SelectorOperator.IN):
            return self.key in labels and labels[self.key] in self.values
        # != and notin also match Pods without the label at all.
        return self.key not in labels or labels[self.key] not in self.values


@dataclass(frozen=True)
class Selector:
    """A parsed label selector; every requirement must match."""
    requirements: List[Requirement] = field(default_factory=list)

    def matches(self, labels: Mapping[str, str]) -> bool:
        return all(requirement.matches(labels) for requirement in self.requirements)

    def empty(self) -> bool:
        return not self.requirements


def parse_selector(text: str) -> Selector:
    """Parse a label selector string.

    An empty (or whitespace-only) selector matches everything.

    Raises:
        InvalidSelectorError: the selector does not follow the grammar.
    """
    requirements = [_parse_requirement(text, part.strip()) for part in _split_requirements(text)]
    return Selector(requirements=requirements)


def _split_requirements(text: str) -> List[str]:
    if not text.strip():
        return []

    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise InvalidSelectorError(text, "unbalanced parenthesis")
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)

    if depth != 0:
        raise InvalidSelectorError(text, "unbalanced parenthesis")
    parts.append("".join(current))
    return parts


def _parse_requirement(text: str, part: str) -> Requirement:
    if not part:
        raise InvalidSelectorError(text, "empty requirement")

    set_match = _SET_RE.match(part)
    if set_match:
        key, operator, raw_values = set_match.groups()
        values = [value.strip() for value in raw_values.split(",")]
        if values == [""]:
            raise InvalidSelectorError(text, f"{key}: set must not be empty")
        for value in values:
            _check_value(text, value)
        return Requirement(
            key=_check_key(text, key),
            operator=SelectorOperator.IN if operator == "in" else SelectorOperator.NOT_IN,
            values=frozenset(values),
        )

    not_exists = _NOT_EXISTS_RE.match(part)
    if not_exists:
        return Requirement(key=_check_key(text, not_exists.group(1)), operator=SelectorOperator.DOES_NOT_EXIST)

    equality = _EQUALITY_RE.match(part)
    if equality:
        key, operator, value = equality.groups()
        value = value.strip()
        _check_value(text, value)
        return Requirement(
            key=_check_key(text, key),
            operator=SelectorOperator.NOT_EQUALS if operator == "!=" else SelectorOperator.EQUALS,
            values=frozenset({value}),
        )

    return Requirement(key=_check_key(text, part), operator=SelectorOperator.EXISTS)


def _check_key(text: str, key: str) -> str:
    if not _KEY_RE.match(key):
        raise InvalidSelectorError(text, f"invalid label key {key!r}")
    return key


def _check_value(text: str, value: str) -> str:
    if not _VALUE_RE.match(value):
        raise InvalidSelectorError(text, f"invalid label value {value!r}")
    return value
