"""
Bulk reset reconciliation.

A reset replaces a collection's content in one step and reports the
symmetric difference of identities between the old and new content. That
change set is what lets subsets skip a full rescan when a reset elsewhere
could not have touched them.

Two entry points:
- reset_collection: reset of a collection that owns its records (a parent)
- reset_subset: reset issued on a subset, which reaches through to the
  parent before replacing the subset's own members
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Hashable, Iterable, List, Mapping, Set

from livesubset.context import PropagationContext
from livesubset.models import Record

if TYPE_CHECKING:
    from livesubset.collection import Collection
    from livesubset.subset import Subset

logger = logging.getLogger(__name__)

SUBSET_RESET_EVENT = "subset:reset"


def symmetric_difference(
    old_ids: Iterable[Hashable],
    new_ids: Iterable[Hashable]
) -> FrozenSet[Hashable]:
    """Identities present in exactly one of the two states."""
    return frozenset(old_ids) ^ frozenset(new_ids)


def incoming_attributes(item: Any, resident: Record) -> Dict[str, Any]:
    """Attributes an incoming item carries for an already-resident record."""
    if item is resident:
        return {}
    if isinstance(item, Record):
        return item.attributes
    if isinstance(item, Mapping):
        return dict(item)
    return {}


def incoming_identities(items: Iterable[Any], id_attribute: str) -> Set[Hashable]:
    """Every cid and durable id named by a list of incoming items."""
    identities: Set[Hashable] = set()
    for item in items:
        if isinstance(item, Record):
            identities.add(item.cid)
            if item.id is not None:
                identities.add(item.id)
        elif isinstance(item, Mapping):
            if item.get(id_attribute) is not None:
                identities.add(item[id_attribute])
        elif item is not None:
            identities.add(item)
    return identities


def reset_collection(
    collection: "Collection",
    items: List[Any],
    ctx: PropagationContext
) -> FrozenSet[Hashable]:
    """
    Replace a parent collection's records.

    Records already resident (matched by cid or durable id) are kept and
    have the incoming attributes merged in silently; their identities join
    the change set when an attribute actually changed, so subsets watching
    them still re-check membership.
    """
    old_keys = collection.ids()
    id_attribute = collection.record_class.id_attribute

    resolved: List[Record] = []
    pending: Dict[Hashable, Record] = {}
    rewritten: Set[Hashable] = set()

    for item in items:
        resident = collection.get(item)
        if resident is None and isinstance(item, Mapping):
            resident = pending.get(item.get(id_attribute))

        if resident is not None:
            attrs = incoming_attributes(item, resident)
            if attrs and resident.changed_attributes(attrs):
                resident.set(attrs, silent=True)
                rewritten.add(resident.key)
            record = resident
        else:
            record = collection._prepare_record(item, ctx)
            if record is False:
                continue

        if any(record is r for r in resolved):
            continue
        resolved.append(record)
        if record.id is not None:
            pending[record.id] = record

    collection._replace(resolved)

    changed_ids = symmetric_difference(old_keys, collection.ids()) | rewritten
    logger.debug(
        f"{collection!r} reset: {len(old_keys)} -> {len(collection)} records, "
        f"{len(changed_ids)} changed"
    )

    if not ctx.silent:
        collection.trigger("reset", collection, ctx.with_(changed_ids=changed_ids))
    return changed_ids


def reset_subset(
    subset: "Subset",
    items: List[Any],
    ctx: PropagationContext
) -> FrozenSet[Hashable]:
    """
    Reset a subset, reaching through to its parent.

    1. members not named by the incoming items leave the parent
    2. incoming items the parent lacks are added to it; resident ones are
       kept, not replaced
    3. the subset takes the incoming records that pass its predicate
    4. one "reset" fires on the subset and the parent relays the change
       set to sibling subsets

    Parent add/remove events still fire with noproxy scoped to the parent.
    Sibling subsets ignore the adds and pick them up from the relayed
    change set; removals and in-place merges reach them regardless.
    """
    parent = subset.parent
    id_attribute = parent.record_class.id_attribute

    old_keys = subset.ids()
    named = incoming_identities(items, id_attribute)
    stale = [
        member for member in subset.records
        if member.cid not in named and (member.id is None or member.id not in named)
    ]

    forward = PropagationContext(
        noproxy=True,
        scope=parent,
        origin=subset,
        exclusive=subset if subset.exclusive else None,
    )
    if stale:
        parent.remove(stale, forward)
    accepted = parent.add(items, forward)

    members = [record for record in accepted if subset.predicate(record)]
    subset._replace(members)

    changed_ids = symmetric_difference(old_keys, [record.key for record in accepted])
    logger.debug(
        f"{subset!r} reset through {parent!r}: {len(stale)} removed, "
        f"{len(accepted)} incoming, {len(subset)} members"
    )

    if not ctx.silent:
        subset.trigger("reset", subset, ctx.with_(changed_ids=changed_ids))

    if not ctx.noproxy:
        relay = PropagationContext(
            origin=subset,
            exclusive=subset if subset.exclusive else None,
            changed_ids=changed_ids,
        )
        parent.trigger(SUBSET_RESET_EVENT, subset, relay)

    return changed_ids
