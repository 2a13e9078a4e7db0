import logging
from enum import Enum

logger = logging.getLogger(__name__)


class LifecycleEvent(str, Enum):
    FOREGROUND = "foreground"
    BACKGROUND = "background"


_APP_STATES = {
    "active": LifecycleEvent.FOREGROUND,
    "background": LifecycleEvent.BACKGROUND,
    "inactive": LifecycleEvent.BACKGROUND,
}


class LifecycleChannel:
    """
    Fans app lifecycle events out to async handlers.

    Platform app-state strings go through ``app_state_changed``; FOREGROUND is
    only published when the app actually comes back from the background.
    """

    def __init__(self):
        self._handlers = []
        self._last = LifecycleEvent.FOREGROUND

    def subscribe(self, handler):
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def publish(self, event: LifecycleEvent):
        self._last = event
        for handler in list(self._handlers):
            await handler(event)

    async def app_state_changed(self, app_state: str):
        event = _APP_STATES.get((app_state or "").strip().lower())
        if event is None:
            logger.debug("Ignoring unknown app state %r", app_state)
            return
        if event == self._last:
            return
        await self.publish(event)
