"""
Live-update configuration.

Decides, for an attribute-change event, whether a subset must re-check a
record's membership:

- none: never
- all: on every generic "change" event (once per update, however many
  attributes changed), never on the per-attribute events
- a set of attribute names: only on "change:<name>" for a listed name
"""

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Union

CHANGE_EVENT = "change"
CHANGE_PREFIX = "change:"

MODE_NONE = "none"
MODE_ALL = "all"
MODE_KEYS = "keys"


@dataclass(frozen=True)
class LiveUpdate:
    """A subset's live-update setting."""
    mode: str = MODE_NONE
    keys: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def coerce(cls, value: Union[None, bool, str, Iterable[str], "LiveUpdate"]) -> "LiveUpdate":
        """
        Build a setting from the loose forms accepted by constructors.

        None/False/"none" -> none, True/"all" -> all, any other string is a
        single watched attribute, an iterable of strings is a watched set.
        """
        if isinstance(value, LiveUpdate):
            return value
        if value is None or value is False:
            return cls(MODE_NONE)
        if value is True:
            return cls(MODE_ALL)
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == MODE_NONE:
                return cls(MODE_NONE)
            if lowered == MODE_ALL:
                return cls(MODE_ALL)
            return cls(MODE_KEYS, frozenset([value.strip()]))

        keys = frozenset(str(key) for key in value)
        if not keys:
            return cls(MODE_NONE)
        return cls(MODE_KEYS, keys)

    def requires_reevaluation(self, event_name: str) -> bool:
        return requires_reevaluation(self, event_name)

    def __str__(self) -> str:
        if self.mode == MODE_KEYS:
            return ", ".join(sorted(self.keys))
        return self.mode


def requires_reevaluation(setting: LiveUpdate, event_name: str) -> bool:
    """Pure lookup: does this change event require a membership re-check?"""
    if setting.mode == MODE_ALL:
        return event_name == CHANGE_EVENT

    if setting.mode == MODE_KEYS and event_name.startswith(CHANGE_PREFIX):
        return event_name[len(CHANGE_PREFIX):] in setting.keys

    return False
