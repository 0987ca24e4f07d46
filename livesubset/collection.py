"""
Ordered record collection.

Collection is the primitive both parents and subsets are built on:
- unique by identity (cid) and by durable id
- optionally kept sorted by a comparator
- announces add/remove/merge/reset/sort and re-emits member record events

Every event a collection emits carries (record_or_collection, collection,
ctx) so observers can tell which collection fired it and with which
PropagationContext.
"""

import logging
from datetime import datetime
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    Union,
)

from livesubset.context import PropagationContext
from livesubset.events import Events
from livesubset.models import Record
from livesubset import reconcile

logger = logging.getLogger(__name__)

# Fired when add() updates a resident record in place
MERGE_EVENT = "merge"

Comparator = Union[str, Callable[[Record], Any]]


def make_sort_key(comparator: Comparator) -> Tuple[Callable[[Record], Any], bool]:
    """
    Turn a comparator into a (key function, reverse) pair.

    A comparator is either a key callable, or an attribute spec string such
    as "title" or "added desc". Records missing the attribute sort last.
    """
    if callable(comparator):
        return comparator, False

    tokens = str(comparator).split()
    if not tokens:
        raise ValueError("Empty comparator")

    field_name = tokens[0]
    direction = tokens[1].lower() if len(tokens) > 1 else "asc"
    if direction not in ("asc", "desc"):
        raise ValueError(f"Invalid sort direction: {direction}")
    reverse = direction == "desc"

    def attribute_key(record: Record) -> tuple:
        value = record.get(field_name)

        # Nulls last in both directions
        if value is None:
            return (0, "") if reverse else (2, "")

        if isinstance(value, str):
            value = value.lower()
        elif isinstance(value, datetime):
            value = value.timestamp()

        return (1, value)

    return attribute_key, reverse


class Collection(Events):
    """
    An ordered set of Records.

    Example:
        tasks = Collection(comparator="title")
        tasks.add([{"id": 1, "title": "b"}, {"id": 2, "title": "a"}])
        tasks.pluck("id")  # [2, 1]
    """

    # Parents own the records they create; subsets only reference them.
    owns_records = True

    def __init__(
        self,
        records: Optional[Iterable[Any]] = None,
        comparator: Optional[Comparator] = None,
        record_class: Type[Record] = Record,
    ):
        self.record_class = record_class
        self.comparator = comparator
        self._records: List[Record] = []
        self._by_cid: Dict[str, Record] = {}
        self._by_id: Dict[Hashable, Record] = {}

        if records:
            self.reset(records, silent=True)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def records(self) -> List[Record]:
        """A copy of the member list, in collection order."""
        return list(self._records)

    def get(self, obj: Any) -> Optional[Record]:
        """
        Look up a member.

        Accepts a Record (matched by cid, then by durable id), an attribute
        mapping (matched by its id attribute), or a raw id or cid.
        """
        if obj is None:
            return None

        if isinstance(obj, Record):
            found = self._by_cid.get(obj.cid)
            if found is None and obj.id is not None:
                found = self._by_id.get(obj.id)
            return found

        if isinstance(obj, Mapping):
            record_id = obj.get(self.record_class.id_attribute)
            if record_id is None:
                return None
            return self._by_id.get(record_id)

        try:
            found = self._by_id.get(obj)
            if found is None:
                found = self._by_cid.get(obj)
        except TypeError:
            # Unhashable lookups can't match anything
            return None
        return found

    def get_by_cid(self, cid: str) -> Optional[Record]:
        return self._by_cid.get(cid)

    def contains(self, record: Any) -> bool:
        return self.get(record) is not None

    def at(self, index: int) -> Record:
        return self._records[index]

    def index_of(self, record: Any) -> int:
        """Position of a member, -1 when absent."""
        resident = self.get(record)
        if resident is None:
            return -1
        for i, candidate in enumerate(self._records):
            if candidate is resident:
                return i
        return -1

    def pluck(self, attr: str) -> List[Any]:
        """Collect one attribute from every member, in order."""
        return [record.get(attr) for record in self._records]

    def ids(self) -> List[Hashable]:
        """Identity keys of every member (durable id, falling back to cid)."""
        return [record.key for record in self._records]

    def where(self, **attrs: Any) -> List[Record]:
        """Members whose attributes equal all the given values."""
        return [
            record for record in self._records
            if all(record.get(k) == v for k, v in attrs.items())
        ]

    def filter(self, predicate: Callable[[Record], bool]) -> List[Record]:
        return [record for record in self._records if predicate(record)]

    def each(self, fn: Callable[[Record], Any]) -> None:
        for record in list(self._records):
            fn(record)

    def to_list(self) -> List[Dict[str, Any]]:
        """Plain dictionaries for every member."""
        return [record.to_dict() for record in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records))

    def __getitem__(self, index: int) -> Record:
        return self._records[index]

    def __contains__(self, obj: Any) -> bool:
        return self.contains(obj)

    def __bool__(self) -> bool:
        # An empty collection is still a collection
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(len={len(self._records)})"

    # ------------------------------------------------------------------
    # Mutation API
    # ------------------------------------------------------------------

    def add(self, items: Any, ctx: Any = None, **flags: Any) -> List[Record]:
        """
        Add one record or a list of records.

        Items may be Records or attribute mappings. An item whose durable id
        matches a member updates that member in place instead of adding a
        second entry, and fires "merge" for it once the new values are in.
        Items failing validation are dropped.

        Args:
            items: Record, mapping, or list of them
            ctx: PropagationContext or options mapping
            **flags: silent, noproxy, exclusive, ...

        Returns:
            The resident records for every accepted item
        """
        ctx = PropagationContext.coerce(ctx, **flags).scoped_to(self)
        accepted: List[Record] = []
        fresh: List[Record] = []
        merged: List[Record] = []

        for item in as_item_list(items):
            existing = self.get(item)
            if existing is not None:
                attrs = reconcile.incoming_attributes(item, existing)
                if attrs and existing.changed_attributes(attrs) and existing.set(attrs, ctx):
                    merged.append(existing)
                if not any(existing is r for r in accepted):
                    accepted.append(existing)
                continue

            record = self._prepare_record(item, ctx)
            if record is False:
                continue

            self._attach(record)
            fresh.append(record)
            accepted.append(record)

        if fresh:
            self._sort_in_place()
            if not ctx.silent:
                for record in fresh:
                    self.trigger("add", record, self, ctx)

        if merged and not ctx.silent:
            for record in merged:
                self.trigger(MERGE_EVENT, record, self, ctx)

        return accepted

    def remove(self, items: Any, ctx: Any = None, **flags: Any) -> List[Record]:
        """
        Remove one record or a list of records.

        Items may be Records, attribute mappings, ids or cids; unknown items
        are ignored.

        Returns:
            The records actually removed
        """
        ctx = PropagationContext.coerce(ctx, **flags).scoped_to(self)
        removed: List[Record] = []

        for item in as_item_list(items):
            record = self.get(item)
            if record is None:
                continue
            self._detach(record)
            removed.append(record)
            if not ctx.silent:
                self.trigger("remove", record, self, ctx)

        return removed

    def reset(self, items: Any = None, ctx: Any = None, **flags: Any) -> frozenset:
        """
        Replace the whole content in one step.

        Fires exactly one "reset" event, whose context carries the
        identities that entered or left (changed_ids).

        Returns:
            The changed identity set
        """
        ctx = PropagationContext.coerce(ctx, **flags).scoped_to(self)
        return reconcile.reset_collection(self, as_item_list(items), ctx)

    def sort(self, ctx: Any = None, **flags: Any) -> "Collection":
        """Re-apply the comparator, e.g. after members changed sort fields."""
        if self.comparator is None:
            raise ValueError("Cannot sort a collection without a comparator")
        ctx = PropagationContext.coerce(ctx, **flags)
        self._sort_in_place()
        if not ctx.silent:
            self.trigger("sort", self, ctx)
        return self

    # ------------------------------------------------------------------
    # Store internals (shared with Subset and the reconciler)
    # ------------------------------------------------------------------

    def _prepare_record(self, item: Any, ctx: PropagationContext) -> Union[Record, bool]:
        """
        Turn an incoming item into a Record.

        Returns False when a new record fails validation; the caller drops
        the item.
        """
        if isinstance(item, Record):
            return item

        if not isinstance(item, Mapping):
            raise TypeError(f"Cannot add {type(item).__name__} to a collection")

        record = self.record_class(item, collection=self)
        if not record.is_valid(ctx=ctx):
            logger.warning(f"Rejected invalid record {dict(item)!r}: {record.validation_error}")
            return False
        return record

    def _attach(self, record: Record) -> None:
        self._records.append(record)
        self._by_cid[record.cid] = record
        if record.id is not None:
            self._by_id[record.id] = record
        if self.owns_records and record.collection is None:
            record.collection = self
        record.bind("all", self._on_record_event)

    def _detach(self, record: Record) -> None:
        record.unbind("all", self._on_record_event)
        self._records = [r for r in self._records if r is not record]
        self._by_cid.pop(record.cid, None)
        if record.id is not None and self._by_id.get(record.id) is record:
            del self._by_id[record.id]
        if record.collection is self:
            record.collection = None

    def _replace(self, records: Iterable[Record]) -> None:
        """Swap the member list without announcing anything."""
        incoming = list(records)
        keep = {record.cid for record in incoming}
        for record in self._records:
            record.unbind("all", self._on_record_event)
            if record.cid not in keep and record.collection is self:
                record.collection = None

        self._records = []
        self._by_cid = {}
        self._by_id = {}
        for record in incoming:
            if record.cid not in self._by_cid:
                self._attach(record)
        self._sort_in_place()

    def _sort_in_place(self) -> None:
        if self.comparator is None:
            return
        key, reverse = make_sort_key(self.comparator)
        self._records.sort(key=key, reverse=reverse)

    def _on_record_event(self, event: str, record: Record, *args: Any) -> None:
        # Handlers snapshot their subscriber lists, so a record detached
        # during dispatch may still call in; ignore it.
        if self._by_cid.get(record.cid) is not record:
            return

        if event == f"change:{record.id_attribute}":
            self._reindex(record)

        ctx = args[-1] if args and isinstance(args[-1], PropagationContext) else PropagationContext()
        self.trigger(event, record, self, ctx)

    def _reindex(self, record: Record) -> None:
        for key, resident in list(self._by_id.items()):
            if resident is record:
                del self._by_id[key]
        if record.id is not None:
            self._by_id[record.id] = record


def as_item_list(items: Any) -> List[Any]:
    if items is None:
        return []
    if isinstance(items, (list, tuple)):
        return list(items)
    if isinstance(items, Collection):
        return items.records
    return [items]
