"""
Engine Supervisor
Launches the workflow engine container once at startup and polls its health
endpoint until it is ready or the attempt budget runs out.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Protocol

import httpx

from app.config import EngineConfig, StderrPolicy

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    NOT_STARTED = "not_started"
    LAUNCHING = "launching"
    POLLING = "polling"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class EngineProcessHandle:
    port: int
    resources_path: str
    image: str
    state: EngineState = EngineState.NOT_STARTED
    attempts: int = 0
    pid: int | None = None

    @property
    def ready(self) -> bool:
        return self.state == EngineState.READY


@dataclass
class LaunchResult:
    started: bool
    pid: int | None = None
    returncode: int | None = None
    stderr: str = ""
    error: str | None = None
    running: bool = False


class ProcessLauncher(Protocol):
    async def launch(self, command: list[str]) -> LaunchResult:
        ...


def build_launch_command(config: EngineConfig) -> list[str]:
    resources = config.resources_path.resolve()
    return [
        "docker",
        "run",
        "--add-host",
        "host.docker.internal:host-gateway",
        "--rm",
        "-p",
        f"{config.port}:8080",
        "-v",
        f"{resources}:{config.container_resources_path}",
        config.image,
    ]


class SubprocessLauncher:
    """Starts a detached child process and reports how its first seconds went."""

    def __init__(self, grace_seconds: float = 2.0):
        self.grace_seconds = grace_seconds
        self._drain_tasks: set[asyncio.Task] = set()

    async def launch(self, command: list[str]) -> LaunchResult:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return LaunchResult(started=False, error=str(exc))

        stderr_lines: list[str] = []
        self._drain(process.stdout, logging.INFO, None)
        self._drain(process.stderr, logging.WARNING, stderr_lines)

        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=self.grace_seconds)
        except asyncio.TimeoutError:
            return LaunchResult(
                started=True,
                pid=process.pid,
                stderr="\n".join(stderr_lines),
                running=True,
            )

        # Let the drain tasks pick up whatever the exited process left in its pipes.
        await asyncio.sleep(0)
        return LaunchResult(
            started=returncode == 0,
            pid=process.pid,
            returncode=returncode,
            stderr="\n".join(stderr_lines),
            error=None if returncode == 0 else f"exited with code {returncode}",
        )

    def _drain(self, stream: asyncio.StreamReader | None, level: int, sink: list[str] | None) -> None:
        if stream is None:
            return
        task = asyncio.create_task(self._pump(stream, level, sink))
        self._drain_tasks.add(task)
        task.add_done_callback(self._drain_tasks.discard)

    @staticmethod
    async def _pump(stream: asyncio.StreamReader, level: int, sink: list[str] | None) -> None:
        while True:
            line = await stream.readline()
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if sink is not None:
                sink.append(text)
            logger.log(level, "engine: %s", text)


async def poll_until_ready(
    check: Callable[[], Awaitable[bool]],
    max_attempts: int = 10,
    interval: float = 5.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[bool, int]:
    """Run `check` until it returns True or `max_attempts` checks have failed.

    Returns (ready, attempts made).
    """
    for attempt in range(1, max_attempts + 1):
        try:
            if await check():
                return True, attempt
        except Exception as exc:
            logger.debug("Health check attempt %s raised: %s", attempt, exc)
        logger.debug("Health check attempt %s/%s failed", attempt, max_attempts)
        if attempt < max_attempts:
            await sleep(interval)
    return False, max_attempts


class EngineSupervisor:
    """One-shot supervisor: launch, poll, report. It never restarts the engine."""

    def __init__(
        self,
        config: EngineConfig,
        http_client: httpx.AsyncClient,
        launcher: ProcessLauncher | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.http_client = http_client
        self.launcher = launcher or SubprocessLauncher(config.launch_grace_seconds)
        self.sleep = sleep
        self.state = EngineState.NOT_STARTED

    def _handle(self, attempts: int = 0, pid: int | None = None) -> EngineProcessHandle:
        return EngineProcessHandle(
            port=self.config.port,
            resources_path=str(self.config.resources_path),
            image=self.config.image,
            state=self.state,
            attempts=attempts,
            pid=pid,
        )

    async def check_health(self) -> bool:
        try:
            response = await self.http_client.get(self.config.health_url)
        except httpx.HTTPError as exc:
            logger.debug("Engine health check failed: %s", exc)
            return False
        return response.is_success

    async def start(self) -> EngineProcessHandle:
        if self.state != EngineState.NOT_STARTED:
            raise RuntimeError(f"Engine supervisor already ran (state={self.state.value})")
        logger.info("Using workflow engine URL %s", self.config.url)

        if not self.config.autostart:
            logger.info("Engine autostart disabled, not launching %s", self.config.image)
            return self._handle()

        self.state = EngineState.LAUNCHING
        command = build_launch_command(self.config)
        logger.info("Launching workflow engine: %s", " ".join(command))
        result = await self.launcher.launch(command)

        if not result.started:
            self.state = EngineState.FAILED
            logger.error(
                "Workflow engine failed to launch: %s %s",
                result.error or "",
                result.stderr,
            )
            return self._handle(pid=result.pid)

        if result.stderr:
            if self.config.stderr_policy == StderrPolicy.FATAL:
                self.state = EngineState.FAILED
                logger.error("Workflow engine wrote to stderr during launch: %s", result.stderr)
                return self._handle(pid=result.pid)
            logger.warning("Workflow engine stderr during launch: %s", result.stderr)

        self.state = EngineState.POLLING
        ready, attempts = await poll_until_ready(
            self.check_health,
            max_attempts=self.config.max_attempts,
            interval=self.config.poll_interval,
            sleep=self.sleep,
        )
        if ready:
            self.state = EngineState.READY
            logger.info("Workflow engine ready after %s health check(s)", attempts)
        else:
            self.state = EngineState.FAILED
            logger.critical(
                "Workflow engine failed to start after %s health checks. "
                "Serverless workflow templates could not be loaded.",
                attempts,
            )
        return self._handle(attempts=attempts, pid=result.pid)
