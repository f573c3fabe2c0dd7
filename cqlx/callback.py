"""Callbacks that run code before, after or in the middle of a migration."""

from __future__ import annotations

import enum
from typing import Any, Callable, Dict, Optional, Tuple

CallbackFunc = Callable[[Any, "CallbackEvent", str], Any]
"""Signature of a callback: ``(session, event, name)``; raising aborts the migration."""


class CallbackEvent(enum.IntEnum):
    """Kind of event a callback is invoked for.

    BEFORE_MIGRATION and AFTER_MIGRATION fire around each migration file;
    CALL_COMMENT fires for each ``-- CALL <name>;`` comment in a file.
    """

    BEFORE_MIGRATION = 0
    AFTER_MIGRATION = 1
    CALL_COMMENT = 2


class CallbackRegister:
    """Dispatches callback calls to handlers registered by event and name.

    A missing handler is ignored, except for CALL_COMMENT events, for which
    a LookupError is raised.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Tuple[str, CallbackEvent], CallbackFunc] = {}

    def __len__(self) -> int:
        return len(self._handlers)

    def add(self, ev: CallbackEvent, name: str, f: CallbackFunc) -> None:
        """Register ``f`` as the handler for event ``ev`` and ``name``."""
        self._handlers[(name, CallbackEvent(ev))] = f

    def find(self, ev: CallbackEvent, name: str) -> Optional[CallbackFunc]:
        """Return the handler registered for ``ev`` and ``name``, or None."""
        return self._handlers.get((name, CallbackEvent(ev)))

    def callback(self, session: Any, ev: CallbackEvent, name: str) -> Any:
        """Call the handler registered for ``ev`` and ``name``."""
        handler = self.find(ev, name)
        if handler is None:
            if ev == CallbackEvent.CALL_COMMENT:
                raise LookupError("missing handler")
            return None
        return handler(session, ev, name)

    __call__ = callback