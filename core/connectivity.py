import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Tracks whether the backend is reachable.

    `probe` is any zero-argument callable returning True when online.
    Listeners get the new state on every offline/online transition.
    """

    def __init__(self, probe: Callable[[], bool] = None, online: bool = True):
        self.probe = probe
        self._online = online
        self._listeners: List[Callable[[bool], None]] = []
        self._lock = threading.Lock()

    def is_online(self) -> bool:
        return self._online

    def add_listener(self, callback: Callable[[bool], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[bool], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def set_online(self, online: bool) -> None:
        with self._lock:
            changed = online != self._online
            self._online = online
        if not changed:
            return
        if online:
            logger.info("Back online, syncing pending operations")
        else:
            logger.warning("Gone offline, operations will be queued")
        for callback in list(self._listeners):
            try:
                callback(online)
            except Exception:
                logger.exception("Connectivity listener failed")

    def check(self) -> bool:
        """Run the probe and update the state. Without a probe the state is unchanged."""
        if self.probe is None:
            return self._online
        try:
            online = bool(self.probe())
        except Exception:
            logger.exception("Connectivity probe raised")
            online = False
        self.set_online(online)
        return online
