"""Lifecycle and request/response handling for the face worker process.

The manager owns exactly one worker subprocess. Requests are written as JSON
lines to its stdin; a reader task consumes its stdout and resolves the future
registered for each response. Detection requests are keyed by photo id, model
loading and startup by a fixed key, so a response can only ever complete the
call that is waiting for it. Every registered future is resolved exactly once:
by its response, by its caller's timeout, or by the exit handler when the
process goes away.
"""

import asyncio
import logging
import sys
from enum import StrEnum

from photo_curator.config import (
    DETECT_TIMEOUT,
    FACE_MODEL_NAME,
    MODEL_LOAD_TIMEOUT,
    WORKER_SHUTDOWN_TIMEOUT,
    WORKER_STARTUP_TIMEOUT,
)
from photo_curator.exceptions import (
    DetectionError,
    DetectionTimeoutError,
    FaceWorkerError,
    ModelLoadError,
    ProtocolError,
    WorkerCrashedError,
    WorkerNotReadyError,
    WorkerStartupError,
)
from photo_curator.faces.protocol import (
    Detect,
    DetectResult,
    ErrorMessage,
    LoadModels,
    LoadModelsResult,
    Message,
    Ready,
    Shutdown,
    decode,
    encode,
)
from photo_curator.models import Detection, DetectorConfig

logger = logging.getLogger(__name__)

WORKER_COMMAND = [sys.executable, "-m", "photo_curator.faces.worker"]

# Descriptor payloads for a crowded photo easily exceed asyncio's 64 KiB default.
STREAM_LIMIT = 16 * 1024 * 1024

_READY = ("ready", None)
_LOAD = ("load_models", None)


class WorkerState(StrEnum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    MODELS_LOADING = "models_loading"
    MODELS_LOADED = "models_loaded"


class FaceWorkerManager:
    """Run descriptor extraction in an isolated worker process."""

    def __init__(
        self,
        command: list[str] | None = None,
        model_name: str = FACE_MODEL_NAME,
        startup_timeout: float = WORKER_STARTUP_TIMEOUT,
        load_timeout: float = MODEL_LOAD_TIMEOUT,
        detect_timeout: float = DETECT_TIMEOUT,
        shutdown_timeout: float = WORKER_SHUTDOWN_TIMEOUT,
    ) -> None:
        self.command = command or WORKER_COMMAND
        self.model_name = model_name
        self.startup_timeout = startup_timeout
        self.load_timeout = load_timeout
        self.detect_timeout = detect_timeout
        self.shutdown_timeout = shutdown_timeout

        self._state = WorkerState.NOT_STARTED
        self._process: asyncio.subprocess.Process | None = None
        self._reader: asyncio.Task | None = None
        self._pending: dict[tuple[str, int | None], asyncio.Future] = {}
        self._lock = asyncio.Lock()
        self._stopping = False

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def models_loaded(self) -> bool:
        return self._state is WorkerState.MODELS_LOADED

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def start(self) -> None:
        """Spawn the worker and wait for its ready signal. No-op if already running."""
        async with self._lock:
            if self._state is not WorkerState.NOT_STARTED:
                return
            await self._spawn()

    async def load_models(self, asset_path: str) -> None:
        """Load model assets in the worker, starting it first if needed.

        Idempotent: returns immediately once models are loaded.
        """
        async with self._lock:
            if self.models_loaded:
                return
            if self._state is WorkerState.NOT_STARTED:
                await self._spawn()

            self._state = WorkerState.MODELS_LOADING
            logger.info("Loading face models from %s", asset_path)
            try:
                await self._request(
                    _LOAD,
                    LoadModels(asset_path=str(asset_path), model_name=self.model_name),
                    self.load_timeout,
                )
            except TimeoutError:
                self._fall_back_to_ready()
                raise ModelLoadError(
                    f"Model loading timed out after {self.load_timeout:g}s",
                    details={"asset_path": str(asset_path)},
                ) from None
            except FaceWorkerError as e:
                self._fall_back_to_ready()
                raise ModelLoadError(
                    f"Model loading failed: {e}", details={"asset_path": str(asset_path)}
                ) from e

            self._state = WorkerState.MODELS_LOADED
            logger.info("Face models loaded")

    async def detect(
        self,
        photo_id: int,
        image_path: str,
        config: DetectorConfig,
    ) -> list[Detection]:
        """Run detection for one photo and return its raw detections.

        The request is correlated by ``photo_id``; only a response carrying the
        same id completes this call.
        """
        if not self.models_loaded:
            raise WorkerNotReadyError(
                f"Face worker is not ready (state: {self._state}); load models first"
            )
        key = ("detect", photo_id)
        if key in self._pending:
            raise DetectionError(
                f"Detection for photo {photo_id} is already in flight",
                details={"photo_id": photo_id},
            )

        request = Detect(
            photo_id=photo_id,
            image_path=str(image_path),
            input_size=config.input_size,
            score_threshold=config.score_threshold,
        )
        try:
            response = await self._request(key, request, self.detect_timeout)
        except TimeoutError:
            raise DetectionTimeoutError(
                f"No detection response within {self.detect_timeout:g}s",
                details={"photo_id": photo_id, "image_path": str(image_path)},
            ) from None
        return response.detections

    async def shutdown(self) -> None:
        """Ask the worker to exit, killing it if it does not within the shutdown timeout."""
        async with self._lock:
            process = self._process
            if process is None:
                return
            self._stopping = True
            try:
                if process.returncode is None:
                    try:
                        await self._send(Shutdown())
                    except WorkerCrashedError:
                        pass
                    try:
                        await asyncio.wait_for(process.wait(), self.shutdown_timeout)
                    except TimeoutError:
                        logger.warning("Worker %d ignored shutdown, killing it", process.pid)
                        process.kill()
                        await process.wait()
                if self._reader is not None:
                    await self._reader
            finally:
                self._stopping = False
                self._on_exit(process)

    async def _spawn(self) -> None:
        self._state = WorkerState.STARTING
        logger.info("Starting face worker: %s", " ".join(self.command))
        ready = self._register(_READY)
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            self._pending.pop(_READY, None)
            self._state = WorkerState.NOT_STARTED
            raise WorkerStartupError(f"Cannot spawn face worker: {e}") from e

        self._process = process
        self._reader = asyncio.create_task(self._read_loop(process))
        try:
            await asyncio.wait_for(ready, self.startup_timeout)
        except TimeoutError:
            logger.error("Worker %d sent no ready signal, killing it", process.pid)
            await self._kill(process)
            raise WorkerStartupError(
                f"Face worker did not signal ready within {self.startup_timeout:g}s"
            ) from None
        except WorkerCrashedError as e:
            raise WorkerStartupError(f"Face worker exited during startup: {e}") from e
        finally:
            self._pending.pop(_READY, None)

        self._state = WorkerState.READY
        logger.info("Face worker %d ready", process.pid)

    async def _request(self, key: tuple[str, int | None], message: Message, timeout: float):
        future = self._register(key)
        try:
            await self._send(message)
            return await asyncio.wait_for(future, timeout)
        finally:
            if self._pending.get(key) is future:
                del self._pending[key]

    def _register(self, key: tuple[str, int | None]) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        return future

    async def _send(self, message: Message) -> None:
        process = self._process
        if process is None or process.stdin is None or process.returncode is not None:
            raise WorkerCrashedError("Face worker is not running")
        try:
            process.stdin.write(encode(message).encode())
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise WorkerCrashedError(f"Face worker pipe closed: {e}") from e

    async def _read_loop(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                try:
                    message = decode(line)
                except ProtocolError as e:
                    logger.warning("Ignoring malformed worker output: %s", e)
                    continue
                self._dispatch(message)
        except (ValueError, asyncio.LimitOverrunError) as e:
            logger.error("Worker output exceeded %d bytes: %s", STREAM_LIMIT, e)
            process.kill()
        finally:
            returncode = await process.wait()
            if self._stopping:
                logger.info("Face worker %d exited with code %s", process.pid, returncode)
            else:
                logger.error("Face worker %d exited unexpectedly with code %s", process.pid, returncode)
            self._on_exit(process)

    def _dispatch(self, message: Message) -> None:
        match message:
            case Ready():
                self._resolve(_READY, message)
            case LoadModelsResult():
                self._resolve(_LOAD, message)
            case DetectResult(photo_id=photo_id):
                if not self._resolve(("detect", photo_id), message):
                    logger.warning("Dropping stale detection response for photo %d", photo_id)
            case ErrorMessage(request="detect", photo_id=photo_id) if photo_id is not None:
                error = DetectionError(message.message, details={"photo_id": photo_id})
                if not self._fail(("detect", photo_id), error):
                    logger.warning("Dropping stale detection error for photo %d", photo_id)
            case ErrorMessage(request="load_models"):
                self._fail(_LOAD, ModelLoadError(message.message))
            case ErrorMessage():
                logger.warning("Worker reported an error: %s", message.message)
            case _:
                logger.warning("Unexpected message from worker: %r", message)

    def _resolve(self, key: tuple[str, int | None], message: Message) -> bool:
        future = self._pending.get(key)
        if future is None or future.done():
            return False
        future.set_result(message)
        return True

    def _fail(self, key: tuple[str, int | None], error: Exception) -> bool:
        future = self._pending.get(key)
        if future is None or future.done():
            return False
        future.set_exception(error)
        return True

    def _on_exit(self, process: asyncio.subprocess.Process) -> None:
        """Return to NOT_STARTED and fail everything still waiting on this process."""
        if self._process is not process:
            return
        self._process = None
        self._reader = None
        self._state = WorkerState.NOT_STARTED

        reason = "shut down" if self._stopping else "crashed"
        for key, future in list(self._pending.items()):
            if not future.done():
                future.set_exception(
                    WorkerCrashedError(
                        f"Face worker {reason} (exit code {process.returncode})",
                        details={"request": key[0], "photo_id": key[1]},
                    )
                )
        self._pending.clear()

    def _fall_back_to_ready(self) -> None:
        if self._process is not None and self._state is WorkerState.MODELS_LOADING:
            self._state = WorkerState.READY

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            process.kill()
        await process.wait()
        if self._reader is not None:
            await self._reader
        self._on_exit(process)
