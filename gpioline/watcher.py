"""Background delivery of edge events from a line request to a handler."""

from __future__ import annotations

import os
import selectors
import threading
from dataclasses import dataclass
from typing import Callable

from .uapi_v2 import LineEvent, LineEventID, read_line_event


@dataclass(frozen=True)
class EdgeEvent:
    """An edge detected on a requested line.

    The timestamp is in nanoseconds, taken from the clock the line was
    configured with.
    """

    offset: int
    timestamp: int
    type: LineEventID | int
    seqno: int = 0
    line_seqno: int = 0

    @classmethod
    def from_line_event(cls, event: LineEvent) -> "EdgeEvent":
        return cls(
            offset=event.offset,
            timestamp=event.timestamp,
            type=event.id,
            seqno=event.seqno,
            line_seqno=event.line_seqno,
        )


EventHandler = Callable[[EdgeEvent], object]


def _fileno(fd) -> int:
    return fd if isinstance(fd, int) else fd.fileno()


class Watcher:
    """Reads edge events from a line request fd on a background thread.

    Each event is passed to the handler, in the order read. The line request
    fd itself is left open when the watcher is closed.
    """

    def __init__(self, fd, handler: EventHandler) -> None:
        self._fd = _fileno(fd)
        self._handler = handler
        self._closed = False
        self._done_r, self._done_w = os.pipe()
        self._selector = selectors.DefaultSelector()
        try:
            self._selector.register(self._done_r, selectors.EVENT_READ)
            self._selector.register(self._fd, selectors.EVENT_READ)
        except BaseException:
            self._selector.close()
            os.close(self._done_r)
            os.close(self._done_w)
            raise
        self._thread = threading.Thread(
            target=self._watch, name=f"gpio-watcher-{self._fd}", daemon=True
        )
        self._thread.start()

    def _watch(self) -> None:
        try:
            while True:
                try:
                    ready = self._selector.select()
                except (OSError, ValueError):
                    # the selector or a watched fd has gone away
                    return
                for key, _ in ready:
                    if key.fd == self._done_r:
                        return
                    try:
                        event = read_line_event(key.fd)
                    except EOFError:
                        self._selector.unregister(key.fd)
                        continue
                    except OSError:
                        continue
                    self._handler(EdgeEvent.from_line_event(event))
        finally:
            self._selector.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop watching and wait for the background thread to finish."""
        if self._closed:
            return
        self._closed = True
        os.write(self._done_w, b"\x01")
        self._thread.join()
        os.close(self._done_r)
        os.close(self._done_w)

    def __enter__(self) -> "Watcher":
        return self

    def __exit__(self, *args) -> None:
        self.close()