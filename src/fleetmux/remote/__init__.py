"""Remote access layer: executor, host resolution and tmux capture."""

from .executor import ExecResult, Executor, SshExecutor, build_ssh_args, run_remote, wrap_remote_cmd
from .resolver import CacheEntry, HostResolver
from .tmux import (
    RemoteCaptureClient,
    build_attach_command,
    build_capture_command,
    parse_capture,
    parse_pane_list,
    parse_window_list,
)

__all__ = [
    "ExecResult",
    "Executor",
    "SshExecutor",
    "build_ssh_args",
    "run_remote",
    "wrap_remote_cmd",
    "CacheEntry",
    "HostResolver",
    "RemoteCaptureClient",
    "build_attach_command",
    "build_capture_command",
    "parse_capture",
    "parse_pane_list",
    "parse_window_list",
]
