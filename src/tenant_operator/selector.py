"""Typed label-selector builder.

Selectors are plain data: they render to the Kubernetes ``label_selector``
query string for list calls and can be matched against a label map without a
live API server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

EQUALS = "="
NOT_EQUALS = "!="
IN = "in"
NOT_IN = "notin"
EXISTS = "exists"
DOES_NOT_EXIST = "!"

OPERATORS = {EQUALS, NOT_EQUALS, IN, NOT_IN, EXISTS, DOES_NOT_EXIST}


@dataclass(frozen=True)
class Requirement:
    """A single key/operator/values condition on labels."""

    key: str
    operator: str
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("requirement key must not be empty")
        if self.operator not in OPERATORS:
            raise ValueError(f"unsupported selector operator '{self.operator}'")
        # Normalise to a sorted tuple so equal requirements compare equal
        object.__setattr__(self, "values", tuple(sorted(set(self.values))))
        if self.operator in (EQUALS, NOT_EQUALS) and len(self.values) != 1:
            raise ValueError(f"operator '{self.operator}' requires exactly one value")
        if self.operator in (IN, NOT_IN) and not self.values:
            raise ValueError(f"operator '{self.operator}' requires at least one value")
        if self.operator in (EXISTS, DOES_NOT_EXIST) and self.values:
            raise ValueError(f"operator '{self.operator}' takes no values")

    def matches(self, labels: dict[str, str] | None) -> bool:
        """Check whether a label map satisfies this requirement."""
        labels = labels or {}
        present = self.key in labels
        value = labels.get(self.key)
        if self.operator == EQUALS:
            return present and value == self.values[0]
        if self.operator == NOT_EQUALS:
            return not present or value != self.values[0]
        if self.operator == IN:
            return present and value in self.values
        if self.operator == NOT_IN:
            return not present or value not in self.values
        if self.operator == EXISTS:
            return present
        return not present

    def __str__(self) -> str:
        if self.operator in (EQUALS, NOT_EQUALS):
            return f"{self.key}{self.operator}{self.values[0]}"
        if self.operator in (IN, NOT_IN):
            return f"{self.key} {self.operator} ({','.join(self.values)})"
        if self.operator == EXISTS:
            return self.key
        return f"!{self.key}"


@dataclass
class Selector:
    """A conjunction of requirements."""

    requirements: list[Requirement] = field(default_factory=list)

    def add(self, *requirements: Requirement) -> Selector:
        """Return a new selector with the extra requirements appended."""
        return Selector(self.requirements + list(requirements))

    def matches(self, labels: dict[str, str] | None) -> bool:
        return all(r.matches(labels) for r in self.requirements)

    def empty(self) -> bool:
        return not self.requirements

    def __str__(self) -> str:
        return ",".join(str(r) for r in self.requirements)


def equals(key: str, value: str) -> Requirement:
    return Requirement(key, EQUALS, (value,))


def is_in(key: str, values: Iterable[str]) -> Requirement:
    return Requirement(key, IN, tuple(values))


def selector_from_labels(labels: dict[str, str]) -> Selector:
    """Build an equality selector from a label map, keys in sorted order."""
    return Selector([equals(k, v) for k, v in sorted(labels.items())])
