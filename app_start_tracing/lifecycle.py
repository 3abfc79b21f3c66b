"""
Host-side plumbing the tracker plugs into: lifecycle observers, the subscription handle returned
from `StartupTraceTracker.begin`, and the "next frame rendered" scheduler.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional


DEFAULT_FRAME_INTERVAL_S = 1 / 60


class StartupSubscription:
    """Handle for one registration of lifecycle observers. Disposing it more than once is a no-op."""

    def __init__(self, on_dispose: Optional[Callable[[], None]] = None):
        self._on_dispose = on_dispose
        self._disposed = False
        self._lock = threading.Lock()

    @classmethod
    def already_disposed(cls) -> "StartupSubscription":
        subscription = cls()
        subscription._disposed = True
        return subscription

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            on_dispose, self._on_dispose = self._on_dispose, None
        if on_dispose is not None:
            on_dispose()

    def __enter__(self) -> "StartupSubscription":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.dispose()


class LifecycleObserver:
    def on_first_screen_created(self, screen: str) -> None:
        pass

    def on_first_screen_visible(self, screen: str) -> None:
        pass


class LifecycleRegistry:
    """
    Fans host screen lifecycle events out to registered observers.

    The host calls `dispatch_*` from its own screen-creation and screen-visible hooks. Observers may
    unregister while being notified; dispatch works on a snapshot.
    """

    def __init__(self):
        self._observers: List[LifecycleObserver] = []
        self._lock = threading.Lock()

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def register(self, observer: LifecycleObserver) -> StartupSubscription:
        with self._lock:
            self._observers.append(observer)
        return StartupSubscription(lambda: self.unregister(observer))

    def unregister(self, observer: LifecycleObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _snapshot(self) -> List[LifecycleObserver]:
        with self._lock:
            return list(self._observers)

    def dispatch_screen_created(self, screen: str) -> None:
        for observer in self._snapshot():
            observer.on_first_screen_created(screen)

    def dispatch_screen_visible(self, screen: str) -> None:
        for observer in self._snapshot():
            observer.on_first_screen_visible(screen)


class FrameScheduler(ABC):
    @abstractmethod
    def schedule_on_next_frame_rendered(self, callback: Callable[[], None]) -> None:
        """
        Run `callback` once, after the next frame is rendered, on the host's main context.
        """


class ManualFrameScheduler(FrameScheduler):
    """Frames render when the host says so, by calling `render_frame`."""

    def __init__(self):
        self._pending: List[Callable[[], None]] = []

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule_on_next_frame_rendered(self, callback: Callable[[], None]) -> None:
        self._pending.append(callback)

    def render_frame(self) -> int:
        """Run every callback waiting for this frame. Callbacks scheduled meanwhile wait for the next one."""
        callbacks, self._pending = self._pending, []
        for callback in callbacks:
            callback()
        return len(callbacks)


class AsyncioFrameScheduler(FrameScheduler):
    """Approximates the next display refresh with one frame interval on the host event loop."""

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        frame_interval_s: float = DEFAULT_FRAME_INTERVAL_S,
    ):
        self._loop = loop
        self._frame_interval_s = frame_interval_s

    def schedule_on_next_frame_rendered(self, callback: Callable[[], None]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(self._frame_interval_s, callback)
