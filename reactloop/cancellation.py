"""Cooperative cancellation token shared by the loop and tool calls."""

import asyncio

from reactloop.exceptions import OperationCancelledError


class CancellationToken:
    """One-shot cancellation signal backed by an asyncio event.

    Cancelling never interrupts running code. Long-running tools are expected
    to poll ``cancelled`` or await ``wait()`` themselves.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "cancelled")
