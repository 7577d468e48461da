import logging
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class TimerHandle:
    """A scheduled callback that can be cancelled until it fires."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class SocketIOScheduler:
    """Runs delayed callbacks as Socket.IO background tasks.

    Works with every async mode Flask-SocketIO supports because it only uses
    ``socketio.sleep`` and ``socketio.start_background_task``.
    """

    def __init__(self, socketio):
        self.socketio = socketio

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.now() + delay, callback)

        def _worker():
            sleep_for = max(0.0, handle.when - self.now())
            if sleep_for:
                self.socketio.sleep(sleep_for)
            if handle.cancelled:
                return
            try:
                handle.callback()
            except Exception:
                logger.exception('[timer-error] callback raised')

        self.socketio.start_background_task(_worker)
        return handle


class TimerSlots:
    """Named timer slots for one room.

    Each slot holds at most one pending task. Arming a slot cancels whatever
    it held before, and a task that fires after being superseded is dropped.
    Firing happens under ``lock`` so it cannot interleave with a handler
    mutating the same room.
    """

    def __init__(self, scheduler, lock=None, label: str = ''):
        self._scheduler = scheduler
        self._lock = lock
        self._label = label
        self._slots: Dict[str, TimerHandle] = {}

    def arm(self, name: str, delay: float, callback: Callable[[], None]) -> TimerHandle:
        self.cancel(name)
        holder = {}

        def _fire():
            if self._lock is not None:
                with self._lock:
                    _run()
            else:
                _run()

        def _run():
            handle = holder.get('handle')
            if self._slots.get(name) is not handle:
                logger.info(f"[timer-abort] room={self._label} slot={name} superseded")
                return
            del self._slots[name]
            logger.info(f"[timer-fire] room={self._label} slot={name}")
            callback()

        handle = self._scheduler.call_later(delay, _fire)
        holder['handle'] = handle
        self._slots[name] = handle
        logger.info(f"[timer-set] room={self._label} slot={name} duration={delay}s")
        return handle

    def cancel(self, name: str) -> bool:
        handle = self._slots.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for name in list(self._slots):
            self.cancel(name)

    def is_armed(self, name: str) -> bool:
        return name in self._slots

    def remaining(self, name: str) -> Optional[float]:
        handle = self._slots.get(name)
        if handle is None:
            return None
        return max(0.0, handle.when - self._scheduler.now())

    def __len__(self) -> int:
        return len(self._slots)
