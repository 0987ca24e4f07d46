"""
Live-filtered subsets of a parent collection.

A Subset is a Collection whose members are exactly the parent's records
that pass a membership predicate. It keeps itself consistent by observing
the parent's event stream:

- add / remove on the parent are mirrored when the record qualifies
- attribute changes trigger a membership re-check, as allowed by the
  subset's live-update setting
- add() calls that update a resident record in place ("merge") are
  re-checked in every subset
- resets of the parent, or of a sibling subset, trigger a full rescan
  unless the reset's change set cannot affect this subset

Mutations issued on a subset are forwarded to the parent; the parent's
events then flow back into every subset, this one included. The
PropagationContext carried by each event decides which subsets ignore it,
which is what keeps parent <-> subset and sibling <-> sibling propagation
from looping.

Example:
    tasks = Collection()
    archived = Subset(parent=tasks, predicate=field_truthy("archived"),
                      live_update=["archived"])
    tasks.add([{"id": 1, "archived": True}, {"id": 2}])
    archived.pluck("id")            # [1]
    tasks.get(1).set(archived=False)
    len(archived)                   # 0
    archived.dispose()
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterable, List, Optional, Type, Union

from livesubset.collection import MERGE_EVENT, Collection, Comparator, as_item_list
from livesubset.context import PropagationContext
from livesubset.errors import SubsetConfigurationError
from livesubset.liveupdate import LiveUpdate
from livesubset.models import Record
from livesubset import reconcile

logger = logging.getLogger(__name__)

ParentRef = Union[Collection, Callable[[], Optional[Collection]]]
MembershipPredicate = Callable[[Record], Any]


def resolve_parent(parent: Optional[ParentRef]) -> Optional[Collection]:
    """Accept a collection, or a zero-argument callable returning one."""
    if parent is None:
        return None
    if isinstance(parent, Collection):
        return parent
    if callable(parent):
        resolved = parent()
        if isinstance(resolved, Collection):
            return resolved
    return None


class Subset(Collection):
    """
    A predicate-filtered, live-synchronized view over a parent collection.

    Args:
        records: Records to reset the subset (and thus the parent) to
        parent: Parent collection, or a callable returning it
        predicate: Membership test, Record -> bool
        comparator: Subset ordering, defaults to the parent's
        live_update: "none", "all" or a list of watched attribute names
        exclusive: Mutations issued here are not mirrored by sibling subsets
        no_initial_reset: Fill silently from the parent instead of resetting
        name: Optional label used in logs and by the registry
    """

    owns_records = False

    def __init__(
        self,
        records: Optional[Iterable[Any]] = None,
        parent: Optional[ParentRef] = None,
        predicate: Optional[MembershipPredicate] = None,
        comparator: Optional[Comparator] = None,
        live_update: Any = None,
        exclusive: bool = False,
        no_initial_reset: bool = False,
        name: Optional[str] = None,
        record_class: Optional[Type[Record]] = None,
    ):
        resolved = resolve_parent(parent)
        if resolved is None:
            raise SubsetConfigurationError("Can't create a subset without a parent collection")
        if predicate is None or not callable(predicate):
            raise SubsetConfigurationError("Can't create a subset without a membership predicate")

        self.parent = resolved
        self.predicate = predicate
        self.live_update = LiveUpdate.coerce(live_update)
        self.exclusive = exclusive
        self.name = name
        self._disposed = False
        self._resetting = False

        super().__init__(
            comparator=comparator if comparator is not None else resolved.comparator,
            record_class=record_class or resolved.record_class,
        )

        resolved.bind("all", self._proxy_event)

        if no_initial_reset:
            self.resync(silent=True)
        else:
            self.resync()
            if records:
                self.reset(records, silent=True)

        logger.debug(f"{self!r} bound to {resolved!r} with {len(self)} members")

    # ------------------------------------------------------------------
    # Membership evaluation
    # ------------------------------------------------------------------

    def contains_member(self, record: Any) -> bool:
        """Membership by cid, or by durable id for a different instance."""
        return self.get(record) is not None

    def evaluate(self, record: Any, ctx: Any = None, **flags: Any) -> bool:
        """
        Bring one record's membership in line with the predicate.

        Only records resident in the parent can become members; a record
        given by durable id alone resolves to the parent's instance.

        Returns:
            True if the record was added or removed
        """
        ctx = PropagationContext.coerce(ctx, **flags)
        member = self.get(record)
        resident = self.parent.get(record)

        should_be_member = resident is not None and bool(self.predicate(resident))

        if should_be_member and member is None:
            self._add_member(resident, ctx)
            return True

        if not should_be_member and member is not None:
            self._remove_member(member, ctx)
            return True

        return False

    def recalculate(self, ctx: Any = None, **flags: Any) -> bool:
        """
        Re-apply the predicate to every parent record.

        Individual adds/removes happen silently; a single "reset" fires if
        anything changed.

        Returns:
            True if membership changed
        """
        self._ensure_alive()
        ctx = PropagationContext.coerce(ctx, **flags)
        quiet = ctx.with_(silent=True)
        changed: set = set()

        for record in self.parent.records:
            if self.evaluate(record, quiet):
                changed.add(record.key)

        # Members the parent dropped without announcing it
        for member in self.records:
            if self.parent.get(member) is None:
                self._remove_member(member, quiet)
                changed.add(member.key)

        if changed and not ctx.silent:
            self.trigger("reset", self, ctx.with_(changed_ids=changed))

        logger.debug(f"{self!r} recalculated: {len(changed)} membership changes")
        return bool(changed)

    def resync(self, ctx: Any = None, **flags: Any) -> frozenset:
        """
        Rebuild membership from the parent's current records.

        Returns:
            Identities that entered or left
        """
        ctx = PropagationContext.coerce(ctx, **flags)
        old_keys = self.ids()
        self._replace([record for record in self.parent.records if self.predicate(record)])
        changed_ids = reconcile.symmetric_difference(old_keys, self.ids())

        if not ctx.silent:
            self.trigger("reset", self, PropagationContext(changed_ids=changed_ids))
        return changed_ids

    def _add_member(self, record: Record, ctx: PropagationContext) -> None:
        self._attach(record)
        self._sort_in_place()
        if not ctx.silent:
            self.trigger("add", record, self, ctx)

    def _remove_member(self, record: Record, ctx: PropagationContext) -> None:
        self._detach(record)
        if not ctx.silent:
            self.trigger("remove", record, self, ctx)

    # ------------------------------------------------------------------
    # Mutations forwarded to the parent
    # ------------------------------------------------------------------

    def add(self, items: Any, ctx: Any = None, **flags: Any) -> List[Record]:
        """
        Add records to the parent on behalf of this subset.

        Qualifying records show up here through the parent's "add" event.
        Records that already existed in the parent are re-checked, so an
        update that makes them qualify takes effect even without live
        updates.
        """
        self._ensure_alive()
        ctx = self._forwarding_context(ctx, flags)
        accepted = self.parent.add(items, ctx)
        for record in accepted:
            self.evaluate(record, ctx)
        return accepted

    def remove(self, items: Any, ctx: Any = None, **flags: Any) -> List[Record]:
        """Remove records from the parent, and so from every subset."""
        self._ensure_alive()
        ctx = self._forwarding_context(ctx, flags)
        removed = self.parent.remove(items, ctx)
        for record in removed:
            if self.contains_member(record):
                self._remove_member(record, ctx)
        return removed

    def reset(self, items: Any = None, ctx: Any = None, **flags: Any) -> frozenset:
        """
        Reset this subset, reaching through to the parent.

        Records land in the parent even when this subset's predicate
        rejects them; the parent decides what exists, the subset only
        filters.

        Returns:
            Identities that entered or left this subset
        """
        self._ensure_alive()
        ctx = PropagationContext.coerce(ctx, **flags)
        self._resetting = True
        try:
            return reconcile.reset_subset(self, as_item_list(items), ctx)
        finally:
            self._resetting = False

    def dispose(self) -> None:
        """Stop observing the parent and the member records."""
        if self._disposed:
            return
        self.parent.unbind("all", self._proxy_event)
        self._replace([])
        self._disposed = True
        logger.debug(f"{self!r} disposed")

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _forwarding_context(self, ctx: Any, flags: dict) -> PropagationContext:
        ctx = PropagationContext.coerce(ctx, **flags).scoped_to(self.parent)
        if self.exclusive and ctx.exclusive is None:
            ctx = ctx.with_(exclusive=self)
        return ctx

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise SubsetConfigurationError(f"{self!r} has been disposed")

    # ------------------------------------------------------------------
    # Event proxy
    # ------------------------------------------------------------------

    def _proxy_event(self, event: str, *args: Any) -> None:
        """Translate a parent event into a subset-local action."""
        if self._disposed or self._resetting:
            return

        if event == "add":
            record, collection, ctx = args
            self._on_parent_add(record, collection, ctx)
        elif event == "remove":
            record, collection, ctx = args
            self._on_parent_remove(record, collection, ctx)
        elif event == MERGE_EVENT:
            record, collection, ctx = args
            self._on_parent_merge(record, collection, ctx)
        elif event in ("reset", reconcile.SUBSET_RESET_EVENT):
            collection, ctx = args
            self._on_parent_reset(collection, ctx)
        elif event == "change" or event.startswith("change:"):
            record, collection = args[0], args[1]
            self._on_parent_change(event, record, collection)

    def _on_parent_add(self, record: Record, collection: Collection, ctx: PropagationContext) -> None:
        if collection is self or ctx.blocks(self):
            return
        if self.contains_member(record):
            return
        if self.predicate(record):
            self._add_member(record, ctx)

    def _on_parent_remove(self, record: Record, collection: Collection, ctx: PropagationContext) -> None:
        # A record the parent dropped leaves every subset, whatever the guards say
        if collection is self:
            return
        member = self.get(record)
        if member is not None:
            self._remove_member(member, ctx)

    def _on_parent_merge(self, record: Record, collection: Collection, ctx: PropagationContext) -> None:
        # Merged attributes are re-checked everywhere, like removals
        if collection is self:
            return
        self.evaluate(record, ctx)
        if self.contains_member(record) and not ctx.silent:
            self.trigger(MERGE_EVENT, record, self, ctx)

    def _on_parent_change(self, event: str, record: Record, collection: Collection) -> None:
        if collection is self:
            return
        if self.live_update.requires_reevaluation(event):
            self.evaluate(record)

    def _on_parent_reset(self, collection: Collection, ctx: PropagationContext) -> None:
        if collection is self or ctx.blocks(self):
            return

        if ctx.changed_ids is not None and not self._affected_by(ctx.changed_ids):
            logger.debug(f"{self!r} skipped rescan: reset of {collection!r} cannot affect it")
            return

        self.resync()

    def _affected_by(self, changed_ids: Iterable[Hashable]) -> bool:
        """Could any of these identities enter or leave this subset?"""
        for key in changed_ids:
            if self.get(key) is not None:
                return True
            record = self.parent.get(key)
            if record is not None and self.predicate(record):
                return True
        return False

    def __repr__(self) -> str:
        label = f"{self.name!r}, " if self.name else ""
        return f"{self.__class__.__name__}({label}len={len(self._records)})"


@dataclass
class SubsetDefinition:
    """
    A named, reusable subset recipe.

    Definitions hold everything a Subset needs except the parent, so one
    definition can be bound to any number of parent collections.
    """
    name: str
    predicate: MembershipPredicate
    comparator: Optional[Comparator] = None
    live_update: LiveUpdate = field(default_factory=LiveUpdate)
    exclusive: bool = False
    no_initial_reset: bool = False
    description: str = ""

    def bind(self, parent: ParentRef, records: Optional[Iterable[Any]] = None) -> Subset:
        """Create a live Subset of `parent` from this definition."""
        return Subset(
            records,
            parent=parent,
            predicate=self.predicate,
            comparator=self.comparator,
            live_update=self.live_update,
            exclusive=self.exclusive,
            no_initial_reset=self.no_initial_reset,
            name=self.name,
        )
