"""
Stream gateway: one provider process per chat turn.

The gateway validates a chat request, resolves the provider, spawns its CLI
and turns the process's stdout into a live stream of canonical events.

Frame protocol:
    Every canonical event becomes one frame whose payload is the event's JSON.
    The stream always ends with exactly one DONE_SENTINEL frame, however the
    turn ended (completion, spawn failure, non-zero exit, timeout). The only
    exception is caller-initiated cancellation: the caller has stopped
    listening, so no further frames are written at all.

Usage:
    gateway = StreamGateway(registry, settings)
    turn = await gateway.open_turn(ChatRequest(message="hello"))
    async for payload in turn.frames():
        ...
"""

import asyncio
import json
import logging
import subprocess
import uuid
from typing import AsyncIterator, List, Optional

from domain.events import DONE_SENTINEL, CanonicalEvent, ErrorEvent
from providers.base import CliProvider, PermissionMode, SpawnOptions, SpawnSpec, check_session_id
from providers.discovery import IS_WINDOWS
from providers.registry import ProviderRegistry
from schemas.chat import ChatRequest

from .exceptions import (
    ProviderRuntimeError,
    ProviderUnavailableError,
    SilentSuccessAnomaly,
    SpawnError,
    ValidationError,
)
from .settings import Settings
from .workspace import resolve_working_dir

logger = logging.getLogger("StreamGateway")

# stdout is read in chunks rather than readline() so long lines never hit the reader limit
READ_CHUNK_SIZE = 64 * 1024


class LineBuffer:
    """Splits a byte stream into complete lines.

    The trailing fragment after the last newline is held back until the next
    chunk completes it, so a JSON object split across chunks is only ever
    seen whole.
    """

    def __init__(self):
        # Fragments of the unfinished line, joined only once its newline arrives
        self._parts: List[bytes] = []
        self._pending = 0

    def feed(self, chunk: bytes) -> List[str]:
        """Add a chunk and return every line it completed."""
        if b"\n" not in chunk:
            if chunk:
                self._parts.append(chunk)
                self._pending += len(chunk)
            return []
        *complete, tail = chunk.split(b"\n")
        if self._parts:
            complete[0] = b"".join([*self._parts, complete[0]])
        self._parts = [tail] if tail else []
        self._pending = len(tail)
        return [line.decode("utf-8", errors="replace") for line in complete]

    def flush(self) -> Optional[str]:
        """Return the unterminated remainder once the stream has ended."""
        remainder = b"".join(self._parts)
        self._parts = []
        self._pending = 0
        if not remainder.strip():
            return None
        return remainder.decode("utf-8", errors="replace")

    @property
    def pending(self) -> int:
        return self._pending


class ChatTurn:
    """A single running provider process and its frame stream.

    Lifecycle:
        start() spawns the process in a supervisor task. Readers for stdout and
        stderr run concurrently; stdout lines are parsed by the provider and
        queued as frames. When both streams close, the exit code decides
        whether an error event is synthesized, then the sentinel is queued.
    """

    def __init__(
        self,
        provider: CliProvider,
        spec: SpawnSpec,
        *,
        session_id: Optional[str] = None,
        grace_seconds: float = 5.0,
        max_seconds: float = 300.0,
        stderr_tail_chars: int = 2000,
        chunk_size: int = READ_CHUNK_SIZE,
    ):
        self.turn_id = uuid.uuid4().hex[:8]
        self.provider = provider
        self.spec = spec
        self.session_id = session_id

        self._grace_seconds = grace_seconds
        self._max_seconds = max_seconds
        self._stderr_tail_chars = stderr_tail_chars
        self._chunk_size = chunk_size

        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._spawned = asyncio.Event()
        self._process: Optional[asyncio.subprocess.Process] = None
        self._task: Optional[asyncio.Task] = None
        self._stderr = b""
        self._event_count = 0
        self._error_reported = False
        self._closed = False
        self._finished = False
        self._cancelled = False
        self._reaped = False

    @property
    def process(self) -> Optional[asyncio.subprocess.Process]:
        return self._process

    @property
    def closed(self) -> bool:
        """True once no further frames will be written."""
        return self._closed

    @property
    def finished(self) -> bool:
        """True once the frame stream has ended."""
        return self._finished

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reaped(self) -> bool:
        """True once the process's exit status has been collected."""
        return self._reaped

    @property
    def event_count(self) -> int:
        return self._event_count

    @property
    def diagnostics(self) -> str:
        """Tail of the captured stderr text."""
        text = self._stderr.decode("utf-8", errors="replace").strip()
        if len(text) > self._stderr_tail_chars:
            text = text[-self._stderr_tail_chars :]
        return text

    def start(self) -> "ChatTurn":
        """Spawn the provider process in the background."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        return self

    async def wait(self) -> None:
        """Wait until the supervisor task has finished."""
        if self._task is not None:
            await self._task

    async def frames(self) -> AsyncIterator[str]:
        """Yield frame payloads until the stream ends."""
        while True:
            payload = await self._queue.get()
            if payload is None:
                return
            yield payload

    def emit(self, event: CanonicalEvent) -> bool:
        """Queue one canonical event as a frame.

        Returns:
            False if the stream is already closed and the event was dropped
        """
        return self._write(json.dumps(event.to_dict(), ensure_ascii=False))

    def _write(self, payload: str) -> bool:
        if self._closed:
            logger.debug(f"[Turn {self.turn_id}] Dropping write after close: {payload[:80]}")
            return False
        self._queue.put_nowait(payload)
        return True

    def _finish(self) -> None:
        """Queue the sentinel (unless cancelled) and end the frame stream. Idempotent."""
        if self._finished:
            return
        if not self._closed:
            self._queue.put_nowait(DONE_SENTINEL)
            self._closed = True
        self._finished = True
        self._queue.put_nowait(None)

    async def _run(self) -> None:
        name = self.provider.name
        try:
            if self._cancelled:
                return

            try:
                self._process = await self._spawn()
            except OSError as e:
                error = SpawnError(self.spec.binary, e.strerror or str(e))
                logger.error(f"[Turn {self.turn_id}] {error.message}")
                self.emit(ErrorEvent(message=error.message))
                return
            finally:
                self._spawned.set()

            logger.info(f"[Turn {self.turn_id}] Started {name} (PID: {self._process.pid})")

            if self._cancelled:
                await self._terminate()
                return

            try:
                await asyncio.wait_for(self._supervise(), timeout=self._max_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"[Turn {self.turn_id}] {name} exceeded {self._max_seconds}s, terminating")
                self.emit(ErrorEvent(message=f"{name} did not finish within {self._max_seconds:g} seconds"))
                await self._terminate()
        except Exception as e:
            logger.error(f"[Turn {self.turn_id}] Stream error: {e}", exc_info=True)
            self.emit(ErrorEvent(message=f"Stream error: {e}"))
            await self._terminate()
        finally:
            self._spawned.set()
            try:
                if self._process is not None and not self._reaped:
                    # Supervisor was cancelled from outside; never leave the child behind
                    await self._kill_and_reap(self._process)
            finally:
                self._finish()

    async def _spawn(self) -> asyncio.subprocess.Process:
        logger.info(f"[Turn {self.turn_id}] Spawning: {self.spec.binary} {' '.join(self.spec.args[:-1])} <prompt>")
        kwargs = {}
        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

        # stdin is closed immediately: the CLIs run non-interactively
        return await asyncio.create_subprocess_exec(
            self.spec.binary,
            *self.spec.args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self.spec.env,
            cwd=self.spec.cwd,
            **kwargs,
        )

    async def _supervise(self) -> None:
        """Drain both output streams, reap the process, report abnormal exits."""
        await asyncio.gather(self._read_stdout(), self._read_stderr())
        returncode = await self._process.wait()
        self._reaped = True
        logger.info(
            f"[Turn {self.turn_id}] {self.provider.name} exited with code {returncode} "
            f"({self._event_count} events)"
        )

        if self._cancelled:
            return

        if returncode != 0:
            error = ProviderRuntimeError(self.provider.name, returncode, self.diagnostics)
            if self._error_reported:
                # The CLI already explained the failure in-band
                logger.warning(f"[Turn {self.turn_id}] {error.message}")
                return
            self.emit(ErrorEvent(message=error.message))
        elif self._event_count == 0:
            anomaly = SilentSuccessAnomaly(self.provider.name, self.session_id)
            logger.warning(f"[Turn {self.turn_id}] {anomaly.message}")
            self.emit(ErrorEvent(message=anomaly.message))

    async def _read_stdout(self) -> None:
        stream = self._process.stdout
        if stream is None:
            return

        buffer = LineBuffer()
        while True:
            chunk = await stream.read(self._chunk_size)
            if not chunk:
                break
            for line in buffer.feed(chunk):
                self._handle_line(line)

        # The process has closed stdout, so the remainder is a complete final line
        tail = buffer.flush()
        if tail is not None:
            self._handle_line(tail)

    async def _read_stderr(self) -> None:
        stream = self._process.stderr
        if stream is None:
            return

        limit = self._stderr_tail_chars * 4
        while True:
            chunk = await stream.read(self._chunk_size)
            if not chunk:
                break
            logger.debug(f"[Turn {self.turn_id}] stderr: {chunk[:200]!r}")
            self._stderr = (self._stderr + chunk)[-limit:]

    def _handle_line(self, line: str) -> None:
        event = self.provider.parse_event(line)
        if event is None:
            return
        self._event_count += 1
        if isinstance(event, ErrorEvent):
            self._error_reported = True
        self.emit(event)

    async def cancel(self) -> None:
        """Stop the turn: no more frames, SIGTERM, then SIGKILL after the grace period."""
        if self._cancelled or self._finished:
            return
        self._cancelled = True
        self._closed = True
        logger.info(f"[Turn {self.turn_id}] Cancelling {self.provider.name}")

        if self._task is not None and not self._task.done() and not self._spawned.is_set():
            # Still spawning: wait for the process to exist so it can be terminated
            try:
                await asyncio.wait_for(self._spawned.wait(), timeout=self._grace_seconds)
            except asyncio.TimeoutError:
                pass

        await self._terminate()

        if self._task is not None and not self._task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=self._grace_seconds)
            except asyncio.TimeoutError:
                # A grandchild may still hold the pipes open
                self._task.cancel()

        if not self._finished:
            self._finished = True
            self._queue.put_nowait(None)

    async def _terminate(self) -> None:
        """Two-phase termination: graceful signal, forced kill after the grace window."""
        process = self._process
        if process is None or process.returncode is not None:
            return

        try:
            process.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self._grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"[Turn {self.turn_id}] {self.provider.name} ignored SIGTERM for {self._grace_seconds}s, killing"
            )
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
        self._reaped = True

    async def _kill_and_reap(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        try:
            # Shielded so a second cancellation cannot abandon the wait half way
            await asyncio.wait_for(asyncio.shield(process.wait()), timeout=self._grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"[Turn {self.turn_id}] {self.provider.name} (PID: {process.pid}) not reaped after kill")
            return
        self._reaped = True


class StreamGateway:
    """Validates chat requests and starts one ChatTurn per request."""

    def __init__(self, registry: ProviderRegistry, settings: Settings):
        self._registry = registry
        self._settings = settings

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def resolve_provider(self, name: Optional[str]) -> CliProvider:
        """Look up a provider by name (default provider when name is empty).

        Raises:
            ValidationError: If the name is unknown
            ProviderUnavailableError: If the provider's binary cannot be resolved
        """
        if name:
            provider = self._registry.get(name)
            if provider is None:
                known = [p.name for p in self._registry.list()]
                raise ValidationError(f"Unknown provider: {name}. Supported providers: {known}")
        else:
            try:
                provider = self._registry.get_default()
            except LookupError:
                raise ProviderUnavailableError("default", "No providers are registered")

        if not provider.is_available():
            raise ProviderUnavailableError(provider.name)
        return provider

    def prepare(self, request: ChatRequest) -> tuple[CliProvider, SpawnSpec]:
        """Validate a request and build its spawn specification.

        Everything here happens before a process exists, so failures are raised.

        Raises:
            ValidationError: Malformed request fields
            ProviderUnavailableError: Provider binary cannot be resolved
        """
        prompt = request.message.strip() if isinstance(request.message, str) else ""
        if not prompt:
            raise ValidationError("Message is required")

        try:
            mode = PermissionMode(request.permission_mode) if request.permission_mode else PermissionMode.DEFAULT
        except ValueError:
            allowed = [m.value for m in PermissionMode]
            raise ValidationError(f"Invalid permission mode: {request.permission_mode}. Expected one of {allowed}")

        session_id = check_session_id(request.session_id or None)
        cwd = resolve_working_dir(request.cwd, self._settings.get_allowed_roots())
        provider = self.resolve_provider(request.provider)

        options = SpawnOptions(
            permission_mode=mode,
            session_id=session_id,
            model=request.model or None,
            allowed_tools=list(request.allowed_tools or []),
            cwd=cwd,
        )
        return provider, provider.build_command(prompt, options)

    async def open_turn(self, request: ChatRequest) -> ChatTurn:
        """Validate the request and start its provider process.

        Returns:
            A started ChatTurn whose frames() stream delivers the events
        """
        provider, spec = self.prepare(request)
        turn = ChatTurn(
            provider,
            spec,
            session_id=request.session_id or None,
            grace_seconds=self._settings.termination_grace_seconds,
            max_seconds=self._settings.max_turn_seconds,
            stderr_tail_chars=self._settings.stderr_tail_chars,
        )
        return turn.start()
