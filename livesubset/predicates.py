"""
Membership predicates.

A predicate is a pure, total function Record -> bool deciding whether a
record belongs in a subset. Any callable works as a subset predicate; the
classes here add declarative building blocks that can be combined with
&, | and ~, and that the YAML definition parser produces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, List, Mapping
import fnmatch
import re

from livesubset.models import Record


def resolve_value(record: Any, name: str) -> Any:
    """Read an attribute from a Record, a mapping or a plain object."""
    if isinstance(record, Record):
        return record.get(name)
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


class Predicate(ABC):
    """
    Abstract base for predicates.

    A predicate is a function: Record -> bool
    Predicates can be combined with &, |, ~ operators, and are callable so
    they can be handed straight to a Subset.
    """

    @abstractmethod
    def matches(self, record: Any) -> bool:
        """Test if a record matches this predicate."""
        pass

    def __call__(self, record: Any) -> bool:
        return self.matches(record)

    def __and__(self, other: "Predicate") -> "Predicate":
        """Logical AND: self & other"""
        return CompoundPredicate("all", [self, as_predicate(other)])

    def __or__(self, other: "Predicate") -> "Predicate":
        """Logical OR: self | other"""
        return CompoundPredicate("any", [self, as_predicate(other)])

    def __invert__(self) -> "Predicate":
        """Logical NOT: ~self"""
        return CompoundPredicate("not", [self])


@dataclass
class TruePredicate(Predicate):
    """Always matches."""

    def matches(self, record: Any) -> bool:
        return True


@dataclass
class FalsePredicate(Predicate):
    """Never matches."""

    def matches(self, record: Any) -> bool:
        return False


@dataclass
class FieldPredicate(Predicate):
    """
    Match records by attribute value.

    Operators:
    - 'eq', 'ne': equality
    - 'gt', 'gte', 'lt', 'lte': comparison
    - 'in', 'not_in': membership in a list of values
    - 'truthy', 'falsy': boolean interpretation of the value
    - 'contains': substring match (case-insensitive)
    - 'prefix', 'suffix': string prefix/suffix
    - 'matches': glob pattern
    - 'regex': regular expression
    - 'is_null', 'is_not_null': null checks
    """
    field: str
    operator: str = "eq"
    value: Any = None

    OPERATORS = (
        "eq", "ne", "gt", "gte", "lt", "lte", "in", "not_in", "truthy", "falsy",
        "contains", "prefix", "suffix", "matches", "regex", "is_null", "is_not_null",
    )

    def __post_init__(self):
        if self.operator not in self.OPERATORS:
            raise ValueError(f"Unknown field operator: {self.operator}")

    def matches(self, record: Any) -> bool:
        actual = resolve_value(record, self.field)
        op = self.operator
        expected = self.value

        if op == "eq":
            return actual == expected
        elif op == "ne":
            return actual != expected
        elif op == "gt":
            return actual is not None and actual > expected
        elif op == "gte":
            return actual is not None and actual >= expected
        elif op == "lt":
            return actual is not None and actual < expected
        elif op == "lte":
            return actual is not None and actual <= expected
        elif op == "in":
            return actual in (expected or ())
        elif op == "not_in":
            return actual not in (expected or ())
        elif op == "truthy":
            return bool(actual)
        elif op == "falsy":
            return not actual
        elif op == "contains":
            if actual is None:
                return False
            if isinstance(actual, (list, tuple, set, frozenset)):
                return expected in actual
            return str(expected).lower() in str(actual).lower()
        elif op == "prefix":
            if actual is None:
                return False
            return str(actual).lower().startswith(str(expected).lower())
        elif op == "suffix":
            if actual is None:
                return False
            return str(actual).lower().endswith(str(expected).lower())
        elif op == "matches":
            if actual is None:
                return False
            return fnmatch.fnmatch(str(actual), str(expected))
        elif op == "regex":
            if actual is None:
                return False
            return bool(re.search(str(expected), str(actual)))
        elif op == "is_null":
            return actual is None
        else:  # is_not_null
            return actual is not None


@dataclass
class TagsPredicate(Predicate):
    """
    Match records by a list-valued tags attribute.

    Modes:
    - 'all': record must have ALL specified tags
    - 'any': record must have ANY of the specified tags
    - 'none': record must have NONE of the specified tags
    """
    tags: List[str]
    mode: str = "all"
    attribute: str = "tags"

    def matches(self, record: Any) -> bool:
        record_tags = set(resolve_value(record, self.attribute) or ())

        if self.mode == "all":
            return all(t in record_tags for t in self.tags)
        elif self.mode == "any":
            return any(t in record_tags for t in self.tags)
        elif self.mode == "none":
            if not self.tags:
                return len(record_tags) == 0
            return not any(t in record_tags for t in self.tags)
        else:
            return False


@dataclass
class SearchPredicate(Predicate):
    """Case-insensitive term search over text attributes."""
    query: str
    fields: List[str] = field(default_factory=lambda: ["title", "description"])

    def matches(self, record: Any) -> bool:
        query_terms = self.query.lower().split()

        for field_name in self.fields:
            value = resolve_value(record, field_name)
            if value:
                value_lower = str(value).lower()
                if all(term in value_lower for term in query_terms):
                    return True

        return False


@dataclass
class IdsPredicate(Predicate):
    """Match records by explicit durable id list."""
    ids: List[Hashable]

    def matches(self, record: Any) -> bool:
        record_id = record.id if isinstance(record, Record) else resolve_value(record, "id")
        return record_id in self.ids


@dataclass
class CompoundPredicate(Predicate):
    """
    Logical combination of predicates.

    Operators:
    - 'all': AND (all must match)
    - 'any': OR (at least one must match)
    - 'not': NOT (negate single predicate)
    """
    operator: str
    predicates: List[Predicate]

    def matches(self, record: Any) -> bool:
        if self.operator == "all":
            return all(p.matches(record) for p in self.predicates)
        elif self.operator == "any":
            return any(p.matches(record) for p in self.predicates)
        elif self.operator == "not":
            if self.predicates:
                return not self.predicates[0].matches(record)
            return True
        return False


@dataclass
class CustomPredicate(Predicate):
    """
    Predicate wrapping a plain function.

    Useful for conditions that can't be expressed declaratively.
    """
    func: Callable[[Any], bool]
    description: str = "custom predicate"

    def matches(self, record: Any) -> bool:
        return bool(self.func(record))


def as_predicate(value: Any) -> Predicate:
    """Wrap a plain callable so it composes with the operators."""
    if isinstance(value, Predicate):
        return value
    if callable(value):
        return CustomPredicate(value, getattr(value, "__name__", "custom predicate"))
    raise TypeError(f"Not a predicate: {value!r}")


# Predicate builder helpers
def where(**attrs: Any) -> Predicate:
    """Equality on every given attribute."""
    predicates = [FieldPredicate(name, "eq", value) for name, value in attrs.items()]
    if len(predicates) == 1:
        return predicates[0]
    return CompoundPredicate("all", predicates)


def field_eq(field: str, value: Any) -> FieldPredicate:
    """Create an equality predicate."""
    return FieldPredicate(field, "eq", value)


def field_truthy(field: str) -> FieldPredicate:
    """Create a predicate on the truthiness of an attribute."""
    return FieldPredicate(field, "truthy")


def field_contains(field: str, value: str) -> FieldPredicate:
    """Create a contains predicate."""
    return FieldPredicate(field, "contains", value)


def tags(*tag_list: str, mode: str = "all") -> TagsPredicate:
    """Create a tags predicate."""
    return TagsPredicate(list(tag_list), mode)


def tags_any(*tag_list: str) -> TagsPredicate:
    """Create a tags predicate with 'any' mode."""
    return TagsPredicate(list(tag_list), "any")


def search(query: str) -> SearchPredicate:
    """Create a search predicate."""
    return SearchPredicate(query)


def ids(*id_list: Hashable) -> IdsPredicate:
    """Create an IDs predicate."""
    return IdsPredicate(list(id_list))
