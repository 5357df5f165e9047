"""Live session plumbing: stream ingestion, keyboard cancel and the render loop.

All session state is touched only from the asyncio event loop. The Docker SDK
streams are blocking iterators, so each one is pumped by a daemon thread that
hands raw chunks to the loop; parsing and metric updates happen on the loop.

Lifecycle of a session::

    IDLE → STARTING → STREAMING → STOPPING → IDLE

Teardown always runs in the same order (stop rendering, show cursor, reset
renderer, close streams, restore the terminal) and runs once, however many
times ``cancel`` is called or streams fail.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import signal
import sys
import termios
import threading
import tty
from collections.abc import Callable, Iterable
from typing import Any, Generic, Protocol, TextIO, TypeVar

from dockerdash.docker_api import DockerError
from dockerdash.metrics import DASHBOARD_HISTORY, SessionContext, parse_stats_chunk
from dockerdash.renderer import Renderer, hide_cursor, show_cursor, terminal_size

log = logging.getLogger(__name__)

T = TypeVar("T")

CANCEL_KEYS = frozenset(b"qQ\x03")
FIRST_PAINT_DELAY = 0.5  # seconds; lets the first stats frame arrive


class StreamHandle(Protocol):
    """What the session needs from a collaborator stream."""

    def __iter__(self) -> Any: ...

    def close(self) -> None: ...


class SessionState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPING = "stopping"


# ── Stream ingestion ───────────────────────────────────────────────────────

_END = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException) -> None:
        self.error = error


class StreamIngestor(Generic[T]):
    """Async iterator over a blocking chunk stream.

    A daemon thread drains *handle* and posts each chunk to the event loop.
    Chunks that *parse* rejects (ValueError, TypeError, KeyError or an
    ArithmeticError) are dropped without interrupting the stream. Iteration
    stops when the stream ends or raises; in the latter case the exception is
    kept in ``error``.
    """

    def __init__(
        self, handle: Iterable[bytes], parse: Callable[[bytes], T], name: str = "stream"
    ) -> None:
        self._handle = handle
        self._parse = parse
        self._name = name
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._finished = False
        self.error: BaseException | None = None
        self.dropped = 0

    def __aiter__(self) -> StreamIngestor[T]:
        if self._thread is None:
            self._loop = asyncio.get_running_loop()
            self._thread = threading.Thread(
                target=self._pump, daemon=True, name=f"StreamIngestor-{self._name}"
            )
            self._thread.start()
        return self

    async def __anext__(self) -> T:
        while not self._finished:
            item = await self._queue.get()
            if item is _END:
                self._finished = True
                break
            if isinstance(item, _Failure):
                self.error = item.error
                continue
            try:
                return self._parse(item)  # type: ignore[arg-type]
            except (ValueError, TypeError, KeyError, ArithmeticError):
                self.dropped += 1
        raise StopAsyncIteration

    def _pump(self) -> None:
        """Background thread: forward every chunk, then an end marker."""
        try:
            for chunk in self._handle:
                self._post(chunk)
        except Exception as e:  # handed to the consumer, which ends the session
            self._post(_Failure(e))
        finally:
            self._post(_END)

    def _post(self, item: object) -> None:
        assert self._loop is not None
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            pass  # loop closed: the session that wanted this is gone


# ── Keyboard cancel ────────────────────────────────────────────────────────


class InputListener:
    """Watches stdin in cbreak mode for ``q``/``Q``/Ctrl+C and handles SIGINT.

    ``arm`` must be called from inside the running loop; ``disarm`` restores
    the saved terminal mode and is safe to call more than once.
    """

    def __init__(self, stdin: TextIO | None = None) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_cancel: Callable[[], None] | None = None
        self._fd: int | None = None
        self._saved: list[Any] | None = None
        self._sigint = False
        self.armed = False

    def arm(self, on_cancel: Callable[[], None]) -> None:
        if self.armed:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._on_cancel = on_cancel

        try:
            loop.add_signal_handler(signal.SIGINT, on_cancel)
            self._sigint = True
        except (NotImplementedError, RuntimeError, ValueError):
            self._sigint = False  # not the main thread, or no signal support

        if self._stdin.isatty():
            fd = self._stdin.fileno()
            self._saved = termios.tcgetattr(fd)
            tty.setcbreak(fd)
            loop.add_reader(fd, self._on_readable)
            self._fd = fd
        self.armed = True

    def _on_readable(self) -> None:
        assert self._fd is not None and self._loop is not None
        try:
            data = os.read(self._fd, 64)
        except OSError:
            return
        if not data:
            # EOF: stop polling or the reader fires forever
            self._loop.remove_reader(self._fd)
            return
        if any(b in CANCEL_KEYS for b in data) and self._on_cancel is not None:
            self._on_cancel()

    def disarm(self) -> None:
        if not self.armed:
            return
        self.armed = False
        assert self._loop is not None
        if self._fd is not None:
            self._loop.remove_reader(self._fd)
            if self._saved is not None:
                termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
            self._fd = None
            self._saved = None
        if self._sigint:
            self._loop.remove_signal_handler(signal.SIGINT)
            self._sigint = False


# ── Sessions ───────────────────────────────────────────────────────────────


class LiveSession:
    """Shared lifecycle for sessions that follow one or more streams."""

    def __init__(
        self,
        listener: InputListener | None = None,
        out: TextIO | None = None,
        renderer: Renderer | None = None,
    ) -> None:
        self.state = SessionState.IDLE
        self.error: BaseException | None = None
        self._listener = listener if listener is not None else InputListener()
        self._out = out if out is not None else sys.stdout
        self._renderer = renderer
        self._handles: list[StreamHandle] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._stop: asyncio.Event | None = None
        self._pending = 0
        self._cancelled = False
        self._torn_down = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Ask the session to stop. Idempotent; safe from any loop callback."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._stop is not None:
            self._stop.set()

    def _start(self) -> None:
        if self.state is not SessionState.IDLE or self._torn_down:
            raise RuntimeError("a session can only be run once")
        self.state = SessionState.STARTING
        self._stop = asyncio.Event()
        if self._cancelled:
            self._stop.set()
        if self._renderer is not None:
            self._renderer.reset()
            hide_cursor(self._out)
        self._listener.arm(self.cancel)

    async def _acquire(
        self, open_stream: Callable[[str], StreamHandle], ref: str
    ) -> StreamHandle | None:
        """Open a stream in a worker thread; None if it failed or we were cancelled."""
        # A bare executor future, not a task: asyncio.run's shutdown leaves it
        # alone, so a late handle still reaches _discard_late_handle
        fut = asyncio.get_running_loop().run_in_executor(None, open_stream, ref)
        try:
            handle = await asyncio.shield(fut)
        except asyncio.CancelledError:
            fut.add_done_callback(self._discard_late_handle)
            raise
        except DockerError as e:
            log.debug("could not open stream for %s: %s", ref, e)
            self.error = e
            return None
        if self._cancelled:
            self._close_handle(handle)
            return None
        self._handles.append(handle)
        return handle

    def _discard_late_handle(self, fut: asyncio.Future[StreamHandle]) -> None:
        if not fut.cancelled() and fut.exception() is None:
            self._close_handle(fut.result())

    @staticmethod
    def _close_handle(handle: StreamHandle) -> None:
        try:
            handle.close()
        except OSError as e:
            log.debug("error closing stream: %s", e)

    def _stream_finished(self) -> None:
        self._pending -= 1
        if self._pending <= 0 and self._stop is not None:
            self._stop.set()

    async def _wait(self) -> None:
        assert self._stop is not None
        self.state = SessionState.STREAMING
        if self._pending <= 0:
            self._stop.set()
        await self._stop.wait()

    async def _teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        self.state = SessionState.STOPPING
        self._cancelled = True

        # Consumers and the ticker stop first so nothing paints after this point
        for task in self._tasks:
            task.cancel()
        if self._renderer is not None:
            show_cursor(self._out)
            self._renderer.reset()
        for handle in self._handles:
            self._close_handle(handle)
        self._handles.clear()
        self._listener.disarm()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self.state = SessionState.IDLE


class StatsSession(LiveSession):
    """Follows the stats stream of each target and repaints on a fixed timer.

    Stream callbacks only update the :class:`SessionContext`; the ticker reads
    whatever is latest and renders it, so a slow stream shows stale numbers
    and a burst of frames collapses into one paint.

    Args:
        targets: ``(key, ref)`` pairs; *key* names the history series, *ref*
            is handed to *open_stream*.
        open_stream: Blocking callable returning a closable chunk iterator.
        compose: ``compose(context, cols) -> str`` builds one frame.
        interval: Seconds between paints.
    """

    def __init__(
        self,
        targets: list[tuple[str, str]],
        open_stream: Callable[[str], StreamHandle],
        compose: Callable[[SessionContext, int], str],
        renderer: Renderer | None = None,
        interval: float = 2.0,
        history_size: int = DASHBOARD_HISTORY,
        listener: InputListener | None = None,
        out: TextIO | None = None,
        first_paint: float = FIRST_PAINT_DELAY,
        columns: Callable[[], int] | None = None,
    ) -> None:
        super().__init__(
            listener=listener,
            out=out,
            renderer=renderer if renderer is not None else Renderer(out),
        )
        self.targets = list(targets)
        self.context = SessionContext(history_size)
        self.interval = interval
        self._open_stream = open_stream
        self._compose = compose
        self._first_paint = first_paint
        self._columns = columns or (lambda: terminal_size()[1])

    async def run(self) -> None:
        """Stream until cancelled or every stream has ended, then tear down."""
        self._start()
        self.context.clear()
        try:
            self._pending = len(self.targets)
            for key, ref in self.targets:
                self._tasks.append(asyncio.create_task(self._consume(key, ref)))
            self._tasks.append(asyncio.create_task(self._tick()))
            await self._wait()
        finally:
            await self._teardown()

    async def _consume(self, key: str, ref: str) -> None:
        try:
            handle = await self._acquire(self._open_stream, ref)
            if handle is None:
                return
            ingestor = StreamIngestor(handle, parse_stats_chunk, name=key)
            async for frame in ingestor:
                if self._cancelled:
                    break
                self.context.update(key, frame)
            if ingestor.error is not None:
                log.debug("stats stream for %s failed: %s", key, ingestor.error)
                self.error = ingestor.error
        finally:
            self._stream_finished()

    async def _tick(self) -> None:
        await asyncio.sleep(self._first_paint)
        while not self._cancelled:
            self.paint()
            await asyncio.sleep(self.interval)

    def paint(self) -> None:
        if self._cancelled:
            return
        assert self._renderer is not None
        self._renderer.render(self._compose(self.context, self._columns()))


class LogSession(LiveSession):
    """Follows one log stream, handing each raw chunk to *on_chunk*."""

    def __init__(
        self,
        ref: str,
        open_stream: Callable[[str], StreamHandle],
        on_chunk: Callable[[bytes], None],
        listener: InputListener | None = None,
        out: TextIO | None = None,
    ) -> None:
        super().__init__(listener=listener, out=out)
        self.ref = ref
        self._open_stream = open_stream
        self._on_chunk = on_chunk

    async def run(self) -> None:
        self._start()
        try:
            self._pending = 1
            self._tasks.append(asyncio.create_task(self._consume()))
            await self._wait()
        finally:
            await self._teardown()

    async def _consume(self) -> None:
        try:
            handle = await self._acquire(self._open_stream, self.ref)
            if handle is None:
                return
            ingestor: StreamIngestor[bytes] = StreamIngestor(handle, bytes, name=self.ref)
            async for chunk in ingestor:
                if self._cancelled:
                    break
                self._on_chunk(chunk)
            if ingestor.error is not None:
                self.error = ingestor.error
        finally:
            self._stream_finished()
