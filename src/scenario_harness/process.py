"""
External process gateway.

Runs the system under test synchronously (capturing stdout, stderr and the
exit status) and tracks named background processes, such as a started
daemon, for the lifetime of a scenario.

A non-zero exit status is a normal result; only failing to launch the
command raises. Every command runs in its own session so that a timeout or
a termination also reaches the workers it spawned.
"""

import logging
import os
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .errors import ProcessLaunchFailed

logger = logging.getLogger(__name__)

Arguments = Union[str, Sequence[str]]


def split_arguments(args: Optional[Arguments]) -> List[str]:
    """Split a shell-quoted argument string; sequences are copied as-is."""
    if args is None:
        return []
    if isinstance(args, str):
        return shlex.split(args)
    return list(args)


@dataclass(frozen=True)
class ProcessResult:
    """
    Outcome of one synchronous command.

    Attributes:
        command: The command line as it was run (shell-quoted)
        stdout: Everything written to standard output
        stderr: Everything written to standard error
        exit_status: Process exit status (-1 when killed on timeout)
        duration_ms: Wall-clock duration in milliseconds
        pid: Process id the command ran as
    """
    command: str
    stdout: str
    stderr: str
    exit_status: int
    duration_ms: int = 0
    pid: Optional[int] = None

    def lines(self, stream: str) -> List[str]:
        """Lines of 'stdout' or 'stderr'."""
        if stream == "stdout":
            return self.stdout.splitlines()
        if stream == "stderr":
            return self.stderr.splitlines()
        raise ValueError(f"Unknown stream: {stream!r}")


class BackgroundProcess:
    """A named long-lived process started by the gateway."""

    def __init__(self, name: str, argv: List[str], popen: subprocess.Popen, log_path: Path):
        self.name = name
        self.argv = argv
        self.popen = popen
        self.log_path = log_path

    @property
    def pid(self) -> int:
        return self.popen.pid

    def is_running(self) -> bool:
        return self.popen.poll() is None

    def __repr__(self) -> str:
        state = "running" if self.is_running() else f"exited {self.popen.returncode}"
        return f"BackgroundProcess({self.name!r}, pid={self.pid}, {state})"


class ProcessGateway:
    """
    Runs commands on behalf of one scenario.

    Example:
        gateway = ProcessGateway(cwd=tmp_dir, env=dict(os.environ))
        result = gateway.execute("ramen", ["compile", "foo.ramen"])
        daemon = gateway.spawn_background("ramen", ["ramen", "start"])
        ...
        gateway.terminate_all()
    """

    def __init__(
        self,
        cwd: Union[str, Path],
        env: Optional[Mapping[str, str]] = None,
        command_timeout: float = 60,
        terminate_timeout: float = 5,
    ):
        """
        Initialize the gateway.

        Args:
            cwd: Working directory of every command
            env: Environment mapping; read at each launch, so later mutations apply
            command_timeout: Seconds before a synchronous command is killed
            terminate_timeout: Seconds to wait after SIGTERM before SIGKILL
        """
        self.cwd = Path(cwd)
        self.env = env
        self.command_timeout = command_timeout
        self.terminate_timeout = terminate_timeout
        self._background: Dict[str, BackgroundProcess] = {}

    def _environment(self) -> Optional[Dict[str, str]]:
        return dict(self.env) if self.env is not None else None

    def execute(self, command: str, args: Optional[Arguments] = None) -> ProcessResult:
        """
        Run a command to completion.

        Args:
            command: Executable name or path
            args: Argument list, or a shell-quoted argument string

        Returns:
            ProcessResult

        Raises:
            ProcessLaunchFailed: If the executable cannot be found or spawned
        """
        argv = [command] + split_arguments(args)
        command_line = shlex.join(argv)
        logger.debug("Running %s in %s", command_line, self.cwd)

        start = time.time()
        try:
            proc = subprocess.Popen(
                argv,
                cwd=self.cwd,
                env=self._environment(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=True,
            )
        except OSError as e:
            raise ProcessLaunchFailed(command_line, e.strerror or str(e)) from e

        try:
            stdout, stderr = proc.communicate(timeout=self.command_timeout)
            exit_status = proc.returncode
        except subprocess.TimeoutExpired:
            # The command may have exited while a child it left behind holds the pipes.
            finished = proc.poll() is not None
            _signal_group(proc, signal.SIGKILL)
            stdout, stderr = proc.communicate()
            if finished:
                logger.warning("%s left processes holding its output; killed them", command_line)
                exit_status = proc.returncode
            else:
                logger.warning("%s timed out after %ss", command_line, self.command_timeout)
                if stderr and not stderr.endswith("\n"):
                    stderr += "\n"
                stderr += f"Timeout after {self.command_timeout}s\n"
                exit_status = -1

        duration = int((time.time() - start) * 1000)
        logger.info("%s exited with status %d (%dms)", command_line, exit_status, duration)
        return ProcessResult(
            command=command_line,
            stdout=stdout,
            stderr=stderr,
            exit_status=exit_status,
            duration_ms=duration,
            pid=proc.pid,
        )

    def spawn_background(self, name: str, command: Arguments) -> BackgroundProcess:
        """
        Start a named background process unless one is already running.

        Output goes to <cwd>/.harness/<name>.log. A tracked process that has
        exited is replaced by a fresh one.

        Raises:
            ProcessLaunchFailed: If the executable cannot be found or spawned
        """
        existing = self._background.get(name)
        if existing is not None:
            if existing.is_running():
                logger.debug("%r already running (pid %d)", name, existing.pid)
                return existing
            logger.info(
                "%r exited with status %s; starting it again",
                name, existing.popen.returncode,
            )
            # Workers of the old session must not outlive their leader.
            _signal_group(existing.popen, signal.SIGTERM)

        argv = split_arguments(command)
        if not argv:
            raise ValueError("Background command is required")
        log_dir = self.cwd / ".harness"
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"{_safe_name(name)}.log"

        with open(log_path, "ab") as log:
            try:
                popen = subprocess.Popen(
                    argv,
                    cwd=self.cwd,
                    env=self._environment(),
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
            except OSError as e:
                raise ProcessLaunchFailed(shlex.join(argv), e.strerror or str(e)) from e

        process = BackgroundProcess(name, argv, popen, log_path)
        self._background[name] = process
        logger.info("Started %r as pid %d: %s", name, popen.pid, shlex.join(argv))
        return process

    def get_background(self, name: str) -> Optional[BackgroundProcess]:
        return self._background.get(name)

    def background_names(self) -> List[str]:
        return list(self._background)

    def terminate(self, process: Union[str, BackgroundProcess]) -> None:
        """
        Stop a background process and its session; a no-op if already gone.

        SIGTERM first, SIGKILL after terminate_timeout seconds. The session is
        signalled even when its leader has exited, since workers it started
        may still be running.
        """
        if isinstance(process, str):
            tracked = self._background.get(process)
            if tracked is None:
                logger.debug("No background process named %r", process)
                return
            process = tracked

        if self._background.get(process.name) is process:
            del self._background[process.name]

        if not process.is_running():
            logger.debug("%r already exited; signalling its session", process.name)
            _signal_group(process.popen, signal.SIGTERM)
            return

        logger.info("Terminating %r (pid %d)", process.name, process.pid)
        _signal_group(process.popen, signal.SIGTERM)
        try:
            process.popen.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("%r ignored SIGTERM; killing it", process.name)
            _signal_group(process.popen, signal.SIGKILL)
            process.popen.wait()

    def terminate_all(self) -> None:
        """Terminate every tracked background process."""
        for name in list(self._background):
            self.terminate(name)


def _signal_group(popen: subprocess.Popen, sig: int) -> None:
    try:
        os.killpg(popen.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        # The group leader may have been reaped and its id reused.
        popen.send_signal(sig)


def _safe_name(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in name)
