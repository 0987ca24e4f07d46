"""
YAML parser for subset definitions.

Parses named subset definitions into SubsetDefinition objects.

Example YAML:

    archived:
      description: Archived tasks
      where:
        field: archived
        op: truthy
      order: title
      live_update: [archived]

    urgent_archived:
      extends: archived
      where:
        urgent: true
      live_update: all

    open:
      where:
        not:
          field: archived
          op: truthy
      exclusive: true
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

import yaml

from livesubset.collection import make_sort_key
from livesubset.errors import SubsetParseError
from livesubset.liveupdate import LiveUpdate
from livesubset.predicates import (
    CompoundPredicate,
    FieldPredicate,
    IdsPredicate,
    Predicate,
    SearchPredicate,
    TagsPredicate,
    TruePredicate,
    as_predicate,
)
from livesubset.subset import SubsetDefinition

if TYPE_CHECKING:
    from livesubset.registry import SubsetRegistry

# Keys that configure the subset rather than its predicate
DEFINITION_KEYS = {
    "description",
    "where",
    "select",
    "order",
    "live_update",
    "exclusive",
    "no_initial_reset",
    "extends",
}


def parse_definitions_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Parse a YAML file containing subset definitions.

    Args:
        path: Path to YAML file

    Returns:
        Dictionary mapping subset names to raw definitions
    """
    path = Path(path)

    if not path.exists():
        raise SubsetParseError(f"Definitions file not found: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SubsetParseError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise SubsetParseError(f"Definitions file must contain a dictionary, got {type(data).__name__}")

    return data


def parse_definition(
    name: str,
    definition: Dict[str, Any],
    registry: Optional["SubsetRegistry"] = None
) -> SubsetDefinition:
    """
    Parse a single subset definition.

    Args:
        name: Subset name
        definition: Dictionary containing the definition
        registry: Optional registry for resolving `extends`

    Returns:
        Parsed SubsetDefinition
    """
    parser = DefinitionParser(registry)
    return parser.parse(name, definition)


class DefinitionParser:
    """
    Parser for subset definitions.

    Handles:
    - where/select: predicate tree (all/any/not, field, tags, ids, search,
      shorthand equality)
    - order: comparator
    - live_update, exclusive, no_initial_reset: subset options
    - extends: AND with a named base definition, inheriting its options
    """

    def __init__(self, registry: Optional["SubsetRegistry"] = None, default_live_update: Any = None):
        self.registry = registry
        self.default_live_update = default_live_update

    def parse(self, name: str, definition: Dict[str, Any]) -> SubsetDefinition:
        """Parse a definition into a SubsetDefinition."""
        if not isinstance(definition, dict):
            raise SubsetParseError(f"Subset definition must be a dictionary, got {type(definition).__name__}")

        unknown = set(definition) - DEFINITION_KEYS
        if unknown:
            raise SubsetParseError(f"Unknown keys in subset '{name}': {', '.join(sorted(unknown))}")

        base: Optional[SubsetDefinition] = None
        if "extends" in definition:
            base = self._resolve_base(name, definition["extends"])

        where_def = definition.get("where", definition.get("select"))
        if where_def is not None:
            predicate: Predicate = self._parse_where(where_def)
        elif base is None:
            predicate = TruePredicate()
        else:
            predicate = None

        if base is not None:
            base_predicate = as_predicate(base.predicate)
            predicate = base_predicate if predicate is None else base_predicate & predicate

        comparator = base.comparator if base else None
        if "order" in definition:
            comparator = self._parse_order(definition["order"])

        if "live_update" in definition:
            live_update = self._parse_live_update(definition["live_update"])
        elif base is not None:
            live_update = base.live_update
        else:
            live_update = LiveUpdate.coerce(self.default_live_update)

        return SubsetDefinition(
            name=name,
            predicate=predicate,
            comparator=comparator,
            live_update=live_update,
            exclusive=bool(definition.get("exclusive", base.exclusive if base else False)),
            no_initial_reset=bool(definition.get("no_initial_reset", False)),
            description=str(definition.get("description", "")),
        )

    def _resolve_base(self, name: str, base_name: Any) -> SubsetDefinition:
        if self.registry is None:
            raise SubsetParseError(f"Subset '{name}' extends '{base_name}' but no registry is available")
        if base_name == name:
            raise SubsetParseError(f"Subset '{name}' cannot extend itself")
        if not self.registry.has(base_name):
            raise SubsetParseError(f"Subset '{name}' extends unknown subset '{base_name}'")
        return self.registry.get_definition(base_name)

    def _parse_where(self, where_def: Any) -> Predicate:
        """Parse where/select definition into a Predicate."""
        if isinstance(where_def, list):
            # List of conditions - AND them together
            predicates = [self._parse_predicate(p) for p in where_def]
            return CompoundPredicate(operator="all", predicates=predicates)

        if isinstance(where_def, dict):
            return self._parse_predicate(where_def)

        raise SubsetParseError(f"Invalid where definition: {where_def}")

    def _parse_predicate(self, pred_def: Any) -> Predicate:
        """Parse a predicate definition."""
        if not isinstance(pred_def, dict):
            raise SubsetParseError(f"Invalid predicate definition: {pred_def}")

        # Compound predicates
        if "all" in pred_def:
            predicates = [self._parse_predicate(p) for p in pred_def["all"]]
            return CompoundPredicate(operator="all", predicates=predicates)

        if "any" in pred_def:
            predicates = [self._parse_predicate(p) for p in pred_def["any"]]
            return CompoundPredicate(operator="any", predicates=predicates)

        if "not" in pred_def:
            inner = self._parse_predicate(pred_def["not"])
            return CompoundPredicate(operator="not", predicates=[inner])

        # Field predicate
        if "field" in pred_def:
            try:
                return FieldPredicate(
                    field=pred_def["field"],
                    operator=pred_def.get("op", "eq"),
                    value=pred_def.get("value"),
                )
            except ValueError as e:
                raise SubsetParseError(str(e)) from e

        # Tags predicate
        if "tags" in pred_def:
            tags_def = pred_def["tags"]
            if isinstance(tags_def, list):
                return TagsPredicate(tags=tags_def, mode="all")
            if isinstance(tags_def, dict):
                for mode in ("all", "any", "none"):
                    if mode in tags_def:
                        return TagsPredicate(tags=list(tags_def[mode]), mode=mode)
                raise SubsetParseError(f"Invalid tags definition: {tags_def}")
            return TagsPredicate(tags=[str(tags_def)], mode="all")

        # IDs predicate
        if "ids" in pred_def:
            return IdsPredicate(ids=list(pred_def["ids"]))

        # Search predicate
        if "search" in pred_def:
            search_def = pred_def["search"]
            if isinstance(search_def, dict):
                query = search_def.get("query", "")
                fields = search_def.get("fields", ["title", "description"])
                return SearchPredicate(query=query, fields=fields)
            return SearchPredicate(query=str(search_def))

        # Shorthand: {attribute: value} or {attribute: {op:, value:}}
        predicates: List[Predicate] = []
        for field_name, field_def in pred_def.items():
            if isinstance(field_def, dict):
                op = field_def.get("op", "eq")
                value = field_def.get("value")
            else:
                op = "eq"
                value = field_def
            try:
                predicates.append(FieldPredicate(field=field_name, operator=op, value=value))
            except ValueError as e:
                raise SubsetParseError(str(e)) from e

        if not predicates:
            raise SubsetParseError(f"Unknown predicate format: {pred_def}")
        if len(predicates) == 1:
            return predicates[0]
        return CompoundPredicate(operator="all", predicates=predicates)

    def _parse_order(self, order_def: Any) -> str:
        """Parse order definition into a comparator spec string."""
        if isinstance(order_def, dict):
            if "field" not in order_def:
                raise SubsetParseError(f"Order definition must specify 'field': {order_def}")
            order_def = f"{order_def['field']} {order_def.get('direction', 'asc')}"

        if not isinstance(order_def, str):
            raise SubsetParseError(f"Invalid order definition: {order_def}")

        if "," in order_def:
            raise SubsetParseError(f"Subsets sort on a single attribute, got: {order_def}")

        try:
            make_sort_key(order_def)
        except ValueError as e:
            raise SubsetParseError(f"Invalid order definition '{order_def}': {e}") from e

        return order_def.strip()

    def _parse_live_update(self, live_def: Any) -> LiveUpdate:
        if isinstance(live_def, (str, bool, list, tuple)) or live_def is None:
            return LiveUpdate.coerce(live_def)
        raise SubsetParseError(f"Invalid live_update definition: {live_def}")
