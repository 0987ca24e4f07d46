"""
Record model.

A Record is a bag of attributes with two identities:
- cid: an ephemeral client token, assigned at construction, always present
- id: the durable identifier, present once an external authority assigned one

Records announce attribute changes through their own event bus. The
collection that owns a record (its parent) and every subset holding it
subscribe to those events and re-emit them at collection level.
"""

import itertools
import logging
from typing import TYPE_CHECKING, Any, Dict, Hashable, Iterator, Mapping, Optional

from livesubset.context import PropagationContext
from livesubset.events import Events

if TYPE_CHECKING:
    from livesubset.collection import Collection

logger = logging.getLogger(__name__)

_cid_counter = itertools.count()


def next_cid() -> str:
    """Generate the next ephemeral client id ("c0", "c1", ...)."""
    return f"c{next(_cid_counter)}"


class Record(Events):
    """
    A mutable attribute set with change notification.

    Subclasses may override `validate` and `id_attribute`:

        class Task(Record):
            id_attribute = "task_id"

            def validate(self, attrs):
                if not attrs.get("title"):
                    return "title is required"
    """

    id_attribute = "id"

    def __init__(
        self,
        attributes: Optional[Mapping[str, Any]] = None,
        collection: Optional["Collection"] = None,
    ):
        self.cid = next_cid()
        self.collection = collection
        self.validation_error: Any = None
        self._attributes: Dict[str, Any] = dict(attributes or {})

    @property
    def id(self) -> Optional[Hashable]:
        """Durable identifier, None until assigned."""
        return self._attributes.get(self.id_attribute)

    @property
    def key(self) -> Hashable:
        """Identity used in change sets: the durable id when known, else the cid."""
        record_id = self.id
        return record_id if record_id is not None else self.cid

    @property
    def attributes(self) -> Dict[str, Any]:
        """A copy of the current attributes."""
        return dict(self._attributes)

    def is_new(self) -> bool:
        """True when no durable identifier has been assigned yet."""
        return self.id is None

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._attributes.get(key, default)

    def has(self, key: str) -> bool:
        return self._attributes.get(key) is not None

    def changed_attributes(self, attrs: Mapping[str, Any]) -> Dict[str, Any]:
        """The subset of `attrs` that differs from the current values."""
        return {
            key: value for key, value in attrs.items()
            if key not in self._attributes or self._attributes[key] != value
        }

    def validate(self, attrs: Dict[str, Any]) -> Any:
        """
        Validation hook.

        Receives the full candidate attribute set and returns None when it
        is acceptable, or any error value otherwise.
        """
        return None

    def is_valid(self, attrs: Optional[Mapping[str, Any]] = None, ctx: Any = None) -> bool:
        """Run validation against candidate attributes (current ones by default)."""
        candidate = dict(self._attributes)
        if attrs:
            candidate.update(attrs)

        error = self.validate(candidate)
        if error is None:
            self.validation_error = None
            return True

        self.validation_error = error
        logger.debug(f"Record {self.cid} failed validation: {error}")
        self.trigger("invalid", self, error, PropagationContext.coerce(ctx))
        return False

    def set(
        self,
        attrs: Optional[Mapping[str, Any]] = None,
        ctx: Any = None,
        **kwargs: Any,
    ) -> bool:
        """
        Update attributes.

        Fires "change:<key>" for each attribute whose value actually changed,
        then a single "change", unless the context is silent.

        Args:
            attrs: Attributes to apply
            ctx: PropagationContext or options mapping
            **kwargs: Extra attributes, merged over attrs

        Returns:
            False if validation rejected the update, True otherwise
        """
        ctx = PropagationContext.coerce(ctx)
        updates = dict(attrs or {})
        updates.update(kwargs)
        if not updates:
            return True

        if not self.is_valid(updates, ctx):
            return False

        changed = self.changed_attributes(updates)
        self._attributes.update(updates)

        if changed and not ctx.silent:
            self._announce(changed, ctx)
        return True

    def unset(self, key: str, ctx: Any = None) -> bool:
        """Remove an attribute, announcing it as a change to None."""
        ctx = PropagationContext.coerce(ctx)
        if key not in self._attributes:
            return True

        candidate = dict(self._attributes)
        del candidate[key]
        error = self.validate(candidate)
        if error is not None:
            self.validation_error = error
            self.trigger("invalid", self, error, ctx)
            return False

        del self._attributes[key]
        if not ctx.silent:
            self._announce({key: None}, ctx)
        return True

    def _announce(self, changed: Dict[str, Any], ctx: PropagationContext) -> None:
        for key, value in changed.items():
            self.trigger(f"change:{key}", self, value, ctx)
        self.trigger("change", self, ctx)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary."""
        return dict(self._attributes)

    def __getitem__(self, key: str) -> Any:
        return self._attributes[key]

    def __contains__(self, key: str) -> bool:
        return key in self._attributes

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(cid={self.cid!r}, id={self.id!r})"
