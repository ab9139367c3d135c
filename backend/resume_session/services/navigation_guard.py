"""
Navigation guard - detects departure from the editor so stale autosave
results are never written back.
"""
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

ROUTE_CHANGE_START = 'routeChangeStart'
ROUTE_CHANGE_COMPLETE = 'routeChangeComplete'


class RouterEvents:
    """Minimal pub/sub for router-level navigation events."""

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event: str, handler: Callable) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Callable) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, *args) -> None:
        # Copy so handlers may unsubscribe while being called
        for handler in list(self._handlers.get(event, [])):
            handler(*args)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))


class NavigationGuard:
    """
    One synchronous "leaving the editor" flag, scoped to a single page mount.

    The flag is set before any listener runs, so a save continuation that
    resumes after a navigation event always sees it. Listeners are the
    reactive side (UI that wants to know) and never the source of truth.
    """

    def __init__(self, events: RouterEvents):
        self.events = events
        self._navigating_away = False
        self._mounted = False
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def is_navigating_away(self) -> bool:
        return self._navigating_away

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Register a reactive listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def mount(self) -> None:
        if self._mounted:
            return
        self._mounted = True
        self._navigating_away = False
        self.events.on(ROUTE_CHANGE_START, self._on_route_change_start)

    def unmount(self) -> None:
        """Unmounting is itself a departure."""
        if not self._mounted:
            return
        self.events.off(ROUTE_CHANGE_START, self._on_route_change_start)
        self._mounted = False
        self._set_departing(True)
        logger.info("Editor unmounted, autosave disabled")

    def reset(self) -> None:
        """Re-enable autosave once the page has loaded its data."""
        if not self._mounted:
            logger.warning("Ignoring navigation guard reset on an unmounted editor")
            return
        self._set_departing(False)

    def _on_route_change_start(self, *args) -> None:
        logger.info("Navigation started, autosave disabled", extra={'route': args[0] if args else None})
        self._set_departing(True)

    def _set_departing(self, value: bool) -> None:
        self._navigating_away = value
        for listener in list(self._listeners):
            listener(value)
