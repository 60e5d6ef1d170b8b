"""Single active relay slot.

Only one relay may forward audio at a time. Each accepted connection gets a
``SessionHandle``; installing it in the ``ActiveSessionSlot`` displaces the
previous one, which the caller then cancels.

Both ``exchange`` and ``release`` run without awaiting, so on the event loop
they are indivisible with respect to other connections.
"""

import asyncio
from typing import Optional


class SessionHandle:
    """Cancellation token for one relay session."""

    def __init__(self, task: Optional[asyncio.Task] = None, label: str = ""):
        """Initialize handle.

        Args:
            task: Task running the session (cancelled on displacement).
            label: Client description for log lines.
        """
        self.task = task
        self.label = label
        self._cancel_requested = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> bool:
        """Request cancellation of the session.

        Returns:
            bool: True on the first call, False if already requested.
        """
        if self._cancel_requested:
            return False
        self._cancel_requested = True
        if self.task is not None and not self.task.done():
            self.task.cancel()
        return True

    def __repr__(self) -> str:
        return f"SessionHandle({self.label!r}, cancel_requested={self._cancel_requested})"


class ActiveSessionSlot:
    """Holds the handle of the relay currently allowed to forward."""

    def __init__(self):
        self._handle: Optional[SessionHandle] = None

    @property
    def current(self) -> Optional[SessionHandle]:
        return self._handle

    def exchange(self, handle: Optional[SessionHandle]) -> Optional[SessionHandle]:
        """Install ``handle`` and return the displaced one."""
        previous, self._handle = self._handle, handle
        return previous

    def release(self, handle: SessionHandle) -> bool:
        """Clear the slot if ``handle`` still owns it.

        Returns:
            bool: True if the slot was cleared.
        """
        if self._handle is handle:
            self._handle = None
            return True
        return False
