"""
Propagation context threaded through every mutation.

A PropagationContext travels with an add/remove/reset/change from the call
that started it, through every event it causes, into the handlers of every
subset observing the mutated collection. It carries the flags that stop
re-entrant propagation:

- silent: the collection performing the mutation does not announce it
- noproxy: subsets of `scope` do not mirror the mutation
- exclusive: only this subset, among its siblings, mirrors the mutation
- origin: the subset whose bulk reset caused the mutation
- changed_ids: identities entering or leaving during a bulk reset
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, FrozenSet, Hashable, Mapping, Optional

if TYPE_CHECKING:
    from livesubset.collection import Collection
    from livesubset.subset import Subset


# Option names accepted from plain mappings, with camelCase aliases.
_FLAG_ALIASES = {
    "silent": "silent",
    "noproxy": "noproxy",
    "exclusive": "exclusive",
    "exclusive_collection": "exclusive",
    "exclusiveCollection": "exclusive",
    "origin": "origin",
    "scope": "scope",
    "changed_ids": "changed_ids",
    "changedIds": "changed_ids",
}


@dataclass(frozen=True)
class PropagationContext:
    """Immutable option set for one mutation and the events it causes."""

    silent: bool = False
    noproxy: bool = False
    exclusive: Optional["Subset"] = None
    origin: Optional["Collection"] = None
    scope: Optional["Collection"] = None
    changed_ids: Optional[FrozenSet[Hashable]] = None

    @classmethod
    def coerce(cls, value: Any = None, **flags: Any) -> "PropagationContext":
        """
        Build a context from None, an existing context or a mapping.

        Keyword flags are applied on top, so `coerce(ctx, silent=True)`
        returns a silent copy of ctx.
        """
        if value is None:
            ctx = cls()
        elif isinstance(value, cls):
            ctx = value
        elif isinstance(value, Mapping):
            ctx = cls()
            flags = {**value, **flags}
        else:
            raise TypeError(f"Cannot build a PropagationContext from {type(value).__name__}")

        if not flags:
            return ctx

        changes = {}
        for key, flag_value in flags.items():
            name = _FLAG_ALIASES.get(key)
            if name is None:
                raise TypeError(f"Unknown propagation flag: {key}")
            if name == "changed_ids" and flag_value is not None:
                flag_value = frozenset(flag_value)
            changes[name] = flag_value
        return replace(ctx, **changes)

    def with_(self, **changes: Any) -> "PropagationContext":
        """Return a copy with some fields replaced."""
        return PropagationContext.coerce(self, **changes)

    def scoped_to(self, collection: "Collection") -> "PropagationContext":
        """Pin noproxy to the subsets of `collection` unless already pinned."""
        if self.noproxy and self.scope is None:
            return replace(self, scope=collection)
        return self

    def blocks(self, subset: "Subset") -> bool:
        """
        Decide whether `subset` must ignore a mutation carrying this context.

        Checked in order:
        1. the subset originated the mutation itself
        2. noproxy was issued on the subset's parent
        3. another subset of the same parent claimed the mutation exclusively
        """
        if self.origin is not None and self.origin is subset:
            return True

        if self.noproxy and self.scope is subset.parent:
            return True

        if (
            self.exclusive is not None
            and self.exclusive is not subset
            and self.exclusive.parent is subset.parent
        ):
            return True

        return False

    def __repr__(self) -> str:
        parts = []
        if self.silent:
            parts.append("silent")
        if self.noproxy:
            parts.append("noproxy")
        if self.exclusive is not None:
            parts.append(f"exclusive={self.exclusive!r}")
        if self.origin is not None:
            parts.append(f"origin={self.origin!r}")
        if self.changed_ids is not None:
            parts.append(f"changed_ids={sorted(map(str, self.changed_ids))}")
        return f"PropagationContext({', '.join(parts)})"
