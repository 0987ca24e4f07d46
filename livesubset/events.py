"""
Synchronous publish/subscribe mixin.

Records, collections and subsets all inherit from Events. Handlers are
invoked synchronously, in registration order, before trigger() returns.
Handlers bound to the special "all" event receive the event name as their
first argument and run after the handlers bound to the specific name.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

ALL_EVENTS = "all"

Handler = Callable[..., Any]


class Events:
    """Mixin providing bind/unbind/trigger."""

    def _handlers(self) -> Dict[str, List[Handler]]:
        # Created lazily so subclasses don't have to call a mixin __init__
        try:
            return self.__dict__["_event_handlers"]
        except KeyError:
            handlers: Dict[str, List[Handler]] = {}
            self.__dict__["_event_handlers"] = handlers
            return handlers

    def bind(self, name: str, handler: Handler) -> "Events":
        """
        Subscribe a handler to an event.

        Args:
            name: Event name, or "all" to receive every event
            handler: Callable invoked with the event arguments

        Returns:
            self, so calls can be chained
        """
        self._handlers().setdefault(name, []).append(handler)
        return self

    def unbind(
        self,
        name: Optional[str] = None,
        handler: Optional[Handler] = None
    ) -> "Events":
        """
        Remove handlers.

        unbind() removes everything, unbind(name) removes every handler of
        that event and unbind(name, handler) removes a single subscription.
        """
        handlers = self._handlers()

        if name is None:
            handlers.clear()
            return self

        if handler is None:
            handlers.pop(name, None)
            return self

        bound = handlers.get(name)
        if bound:
            # Remove a single registration so double binds need double unbinds
            for i, existing in enumerate(bound):
                if existing == handler:
                    del bound[i]
                    break
            if not bound:
                del handlers[name]
        return self

    def trigger(self, name: str, *args: Any) -> "Events":
        """
        Fire an event.

        Dispatch iterates over a snapshot of the subscriber lists, so
        handlers added or removed while the event is in flight only take
        effect for the next trigger().
        """
        handlers = self._handlers()

        specific = list(handlers.get(name, ()))
        wildcard = list(handlers.get(ALL_EVENTS, ())) if name != ALL_EVENTS else []

        for handler in specific:
            handler(*args)
        for handler in wildcard:
            handler(name, *args)

        return self

    def has_listeners(self, name: Optional[str] = None) -> bool:
        """Check whether anything is subscribed (to a given event)."""
        handlers = self._handlers()
        if name is None:
            return any(handlers.values())
        return bool(handlers.get(name)) or bool(handlers.get(ALL_EVENTS))
