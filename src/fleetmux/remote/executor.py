"""Remote command executor.

The remote-shell transport is opaque to the rest of the system: everything
goes through ``Executor.execute(target, remote_cmd)`` which returns the raw
stdout and exit status. ``SshExecutor`` is the production implementation that
shells out to the local ``ssh`` binary.
"""

import asyncio
import shlex
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..errors import RemoteExecError, TransportError
from ..models import SshOptions
from ..telemetry import get_logger
from .. import config

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExecResult:
    """Outcome of one remote command."""

    stdout: str
    exit_status: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


@runtime_checkable
class Executor(Protocol):
    """Runs a command string on a remote target."""

    async def execute(self, target: str, remote_cmd: str) -> ExecResult:
        """Execute ``remote_cmd`` on ``target``.

        Raises:
            TransportError: if the transport itself could not run.
        """
        ...


def build_ssh_args(options: SshOptions) -> list[str]:
    """Build the ``-o`` option list passed to every ssh invocation."""
    args = [
        "-o", f"ConnectTimeout={options.connect_timeout}",
        "-o", "BatchMode=yes",
        "-o", "StrictHostKeyChecking=accept-new",
        "-o", "LogLevel=ERROR",
    ]
    if options.control_master:
        args.extend([
            "-o", "ControlMaster=auto",
            "-o", f"ControlPersist={options.control_persist}",
            "-o", f"ControlPath={config.CONTROL_PATH}",
        ])
    return args


def wrap_remote_cmd(options: SshOptions, remote_cmd: str) -> str:
    """Prefix the remote command with extra PATH entries.

    Non-interactive ssh shells often miss Homebrew or /usr/local paths where
    tmux lives.
    """
    if not options.path_extra:
        return remote_cmd
    extra = ":".join(shlex.quote(p) for p in options.path_extra)
    return f"PATH={extra}:$PATH; {remote_cmd}"


class SshExecutor:
    """Executor backed by the local ``ssh`` client.

    stdin is closed so ssh never waits for a password prompt; BatchMode makes
    authentication failures exit immediately instead.
    """

    def __init__(self, options: SshOptions | None = None, ssh_binary: str = "ssh"):
        self._options = options or SshOptions()
        self._ssh_binary = ssh_binary

    @property
    def options(self) -> SshOptions:
        return self._options

    def build_command(self, target: str, remote_cmd: str, interactive: bool = False) -> list[str]:
        """Full argv for one remote invocation.

        ``interactive`` forces a tty (``-t``) for attach-style commands.
        """
        return [
            self._ssh_binary,
            *(["-t"] if interactive else []),
            *build_ssh_args(self._options),
            target,
            wrap_remote_cmd(self._options, remote_cmd),
        ]

    async def execute(self, target: str, remote_cmd: str) -> ExecResult:
        cmd = self.build_command(target, remote_cmd)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError(f"ssh launch failed for {target}: {e}", target=target) from e

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            # wait_for 超时会取消这里，确保 ssh 子进程不残留
            if proc.returncode is None:
                proc.kill()
                # 回收子进程后再向上传播取消
                await asyncio.shield(proc.wait())
            raise

        return ExecResult(
            stdout=stdout.decode(errors="replace"),
            exit_status=proc.returncode if proc.returncode is not None else -1,
            stderr=stderr.decode(errors="replace"),
        )


async def run_remote(
    executor: Executor,
    target: str,
    remote_cmd: str,
    timeout: float | None = None,
) -> str:
    """Run a remote command and return its stdout minus the final newline.

    Args:
        executor: Transport used for the call.
        target: Resolved target string.
        remote_cmd: Command string run by the remote shell.
        timeout: Optional bound in seconds.

    Raises:
        TransportError: transport failure or timeout.
        RemoteExecError: nonzero exit status.
    """
    try:
        if timeout is None:
            result = await executor.execute(target, remote_cmd)
        else:
            result = await asyncio.wait_for(executor.execute(target, remote_cmd), timeout)
    except asyncio.TimeoutError as e:
        raise TransportError(
            f"ssh command timed out after {timeout:g}s for {target}", target=target
        ) from e

    if not result.ok:
        stderr = result.stderr.rstrip()
        logger.debug(f"[Executor] {target} exit={result.exit_status}: {stderr}")
        raise RemoteExecError(
            f"ssh command failed for {target}: {stderr}",
            target=target,
            exit_status=result.exit_status,
            stderr=stderr,
        )
    return strip_terminator(result.stdout)


def strip_terminator(output: str) -> str:
    """Drop one trailing line terminator, keep everything else verbatim."""
    if output.endswith("\r\n"):
        return output[:-2]
    if output.endswith("\n"):
        return output[:-1]
    return output
