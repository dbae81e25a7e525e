import asyncio
from typing import Callable, Dict, Optional

TICK = "tick"
ACQUIRE = "acquire"
NOTICE = "notice"
SHAKE = "shake"


class AsyncioScheduler:
    """Named single-slot timers on the running event loop.

    Arming a slot cancels whatever is pending in that slot, so each slot has
    at most one timer at any time.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, name: str, delay: float, callback: Callable[[], None]) -> None:
        self.cancel(name)

        def fire() -> None:
            self._handles.pop(name, None)
            callback()

        self._handles[name] = self._get_loop().call_later(max(0.0, delay), fire)

    def every(self, name: str, interval: float, callback: Callable[[], None]) -> None:
        self.cancel(name)
        loop = self._get_loop()

        def fire() -> None:
            # re-arm first so the callback may cancel its own slot
            self._handles[name] = loop.call_later(interval, fire)
            callback()

        self._handles[name] = loop.call_later(interval, fire)

    def cancel(self, name: str) -> None:
        handle = self._handles.pop(name, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        for name in list(self._handles):
            self.cancel(name)

    def pending(self, name: str) -> bool:
        return name in self._handles
