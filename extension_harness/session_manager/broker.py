"""Completion broker: single-shot result slots keyed by session id."""

from __future__ import annotations

import asyncio
import logging

from ..errors import SessionNotFound
from ..models import CompletionResult

log = logging.getLogger(__name__)


class CompletionBroker:
    """Connects whoever learns a session ended to whoever is waiting on it.

    A slot is opened when the session launches and dropped when its result
    is published.  Publishing to a slot nobody awaits is fine: the future is
    resolved and forgotten.
    """

    def __init__(self) -> None:
        self._slots: dict[str, asyncio.Future[CompletionResult]] = {}

    def open(self, session_id: str) -> None:
        if session_id in self._slots:
            return
        self._slots[session_id] = asyncio.get_running_loop().create_future()

    def is_open(self, session_id: str) -> bool:
        return session_id in self._slots

    async def wait(self, session_id: str) -> CompletionResult:
        """Suspend until `session_id` has a result.

        Raises SessionNotFound if the session has no open slot right now.
        """
        slot = self._slots.get(session_id)
        if slot is None:
            raise SessionNotFound(session_id)
        log.info("Waiting for session %s to complete", session_id)
        # Shield so a cancelled waiter leaves the slot intact for others
        return await asyncio.shield(slot)

    def publish(self, session_id: str, result: CompletionResult) -> bool:
        """Resolve and drop the slot. Returns False if there was none."""
        slot = self._slots.pop(session_id, None)
        if slot is None or slot.done():
            return False
        slot.set_result(result)
        return True

    def discard_all(self) -> None:
        for slot in self._slots.values():
            if not slot.done():
                slot.cancel()
        self._slots.clear()
