"""Helper threads moving bytes into and out of a task subprocess.

Both helpers poll their pipe through a ``selectors`` selector so that a shared
stop event is observed within one poll interval, even when the pipe never
reaches EOF (for example when a grandchild process keeps it open).
"""

from __future__ import annotations

import codecs
import logging
import os
import select
import selectors
import threading
from typing import BinaryIO, TextIO

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


class StdoutDrainer:
    """Copies a subprocess output pipe into a file, optionally echoing it."""

    def __init__(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        *,
        name: str,
        stop: threading.Event,
        echo_stream: TextIO | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self._source = source
        self._sink = sink
        self._stop = stop
        self._echo_stream = echo_stream
        self._poll_interval = poll_interval
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._thread = threading.Thread(target=self._run, name=f"dumper-{name}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    @property
    def finished(self) -> bool:
        return not self._thread.is_alive()

    def await_eof(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for the source to be fully drained."""

        self._thread.join(timeout)
        return self.finished

    def stop(self) -> None:
        """Signal the drainer to stop and wait for it. Idempotent."""

        self._stop.set()
        if self._thread.ident is not None:
            self._thread.join()

    def _run(self) -> None:
        selector = selectors.DefaultSelector()
        try:
            fd = self._source.fileno()
            selector.register(fd, selectors.EVENT_READ)
            while not self._stop.is_set():
                if not selector.select(self._poll_interval):
                    continue
                chunk = os.read(fd, CHUNK_SIZE)
                if not chunk:
                    break
                self._handle(chunk)
        except (OSError, ValueError):
            logger.warning("Task output capture interrupted", exc_info=True)
        finally:
            selector.close()
            if self._echo_stream is not None:
                tail = self._decoder.decode(b"", final=True)
                if tail:
                    self._echo_stream.write(tail)
                    self._echo_stream.flush()

    def _handle(self, chunk: bytes) -> None:
        self._sink.write(chunk)
        if self._echo_stream is not None:
            self._echo_stream.write(self._decoder.decode(chunk))
            self._echo_stream.flush()


class StdinFeeder:
    """Writes a payload to a subprocess input pipe, then closes it.

    Errors are logged and never propagated: a task that does not read its
    input must not fail because of it.
    """

    def __init__(
        self,
        sink: BinaryIO,
        payload: bytes | str,
        *,
        name: str,
        stop: threading.Event,
        poll_interval: float = 0.1,
    ) -> None:
        self._sink = sink
        self._payload = payload.encode("utf-8") if isinstance(payload, str) else payload
        self._name = name
        self._stop = stop
        self._poll_interval = poll_interval
        self._thread = threading.Thread(target=self._run, name=f"feeder-{name}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    @property
    def finished(self) -> bool:
        return not self._thread.is_alive()

    def stop(self) -> None:
        self._stop.set()
        if self._thread.ident is not None:
            self._thread.join()

    def _run(self) -> None:
        view = memoryview(self._payload)
        offset = 0
        selector = selectors.DefaultSelector()
        try:
            fd = self._sink.fileno()
            selector.register(fd, selectors.EVENT_WRITE)
            while offset < len(view) and not self._stop.is_set():
                if not selector.select(self._poll_interval):
                    continue
                offset += os.write(fd, view[offset : offset + select.PIPE_BUF])
        except (OSError, ValueError):
            logger.warning(
                "Unable to pipe input data for task",
                exc_info=True,
                extra={"task": self._name, "written": offset, "size": len(view)},
            )
        finally:
            selector.close()
            try:
                self._sink.close()
            except OSError:
                logger.debug("Closing task stdin failed", extra={"task": self._name})
