"""Remote tmux client: capture panes and list panes/windows over the executor.

Wire formats (all tab-separated):
- capture: line 1 is ``<current command>\\t<title>``, following lines are
  the raw pane text, oldest to newest, blank lines preserved.
- list-panes: ``<session>\\t<window index>\\t<pane id>\\t<command>\\t<title>``
- list-windows: ``<session>\\t<window index>\\t<name>``

List parsing drops malformed lines individually instead of failing the
whole call.
"""

import shlex

from .. import config
from ..errors import ParseError
from ..models import CaptureOptions, PaneCapture, PaneInfo, TrackedPane, WindowInfo
from ..telemetry import get_logger
from .executor import Executor, run_remote

logger = get_logger(__name__)

# Use tab as delimiter to avoid conflicts with colons in data (paths, titles)
_FIELD_SEP = "\t"

_PANE_FORMAT = _FIELD_SEP.join([
    "#{session_name}", "#{window_index}", "#{pane_id}",
    "#{pane_current_command}", "#{pane_title}",
])
_WINDOW_FORMAT = _FIELD_SEP.join(["#{session_name}", "#{window_index}", "#{window_name}"])
_HEADER_FORMAT = _FIELD_SEP.join(["#{pane_current_command}", "#{pane_title}"])


def build_capture_command(pane_id: str, lines: int, options: CaptureOptions) -> str:
    """Compose the header query and capture-pane into one remote command."""
    pane = shlex.quote(pane_id)
    flags = ["-p"]
    if options.ansi:
        flags.append("-e")
    if options.join_lines:
        flags.append("-J")
    capture = f"tmux capture-pane {' '.join(flags)} -t {pane} -S -{int(lines)}"
    header = f"tmux display-message -p -t {pane} {shlex.quote(_HEADER_FORMAT)}"
    return f"{header} && {capture}"


def build_attach_command(tracked: TrackedPane) -> str:
    """Remote command that attaches to the tracked pane (used for take-control)."""
    session = shlex.quote(tracked.session)
    window = shlex.quote(f"{tracked.session}:{tracked.window}")
    pane = shlex.quote(tracked.pane_id)
    return (
        f"tmux attach -t {session} \\; "
        f"select-window -t {window} \\; "
        f"select-pane -t {pane}"
    )


def parse_capture(output: str) -> PaneCapture:
    """Parse capture output; the header fields default to empty strings."""
    header, sep, body = output.partition("\n")
    parts = header.split(_FIELD_SEP, 2)
    command = parts[0]
    title = parts[1] if len(parts) > 1 else ""
    lines = tuple(body.split("\n")) if sep else ()
    return PaneCapture(command=command, title=title, lines=lines)


def _parse_window_index(line: str, value: str) -> int:
    try:
        window = int(value)
    except ValueError:
        raise ParseError(line, "invalid window index") from None
    if window < 0:
        raise ParseError(line, "invalid window index")
    return window


def parse_pane_line(line: str) -> PaneInfo:
    """Parse one list-panes line.

    Raises:
        ParseError: missing session, window index or pane id.
    """
    parts = line.split(_FIELD_SEP)
    if len(parts) < 3 or not parts[0]:
        raise ParseError(line, "missing session")
    window = _parse_window_index(line, parts[1])
    if not parts[2]:
        raise ParseError(line, "missing pane id")
    return PaneInfo(
        session=parts[0],
        window=window,
        pane_id=parts[2],
        command=parts[3] if len(parts) > 3 else "",
        title=parts[4] if len(parts) > 4 else "",
    )


def parse_window_line(line: str) -> WindowInfo:
    """Parse one list-windows line.

    Raises:
        ParseError: missing session or window index.
    """
    parts = line.split(_FIELD_SEP)
    if len(parts) < 2 or not parts[0]:
        raise ParseError(line, "missing session")
    window = _parse_window_index(line, parts[1])
    return WindowInfo(session=parts[0], window=window, name=parts[2] if len(parts) > 2 else "")


def parse_pane_list(output: str) -> list[PaneInfo]:
    panes = []
    for line in output.splitlines():
        if not line:
            continue
        try:
            panes.append(parse_pane_line(line))
        except ParseError as e:
            logger.warning(f"Failed to parse pane line: {e}")
    return panes


def parse_window_list(output: str) -> list[WindowInfo]:
    windows = []
    for line in output.splitlines():
        if not line:
            continue
        try:
            windows.append(parse_window_line(line))
        except ParseError as e:
            logger.warning(f"Failed to parse window line: {e}")
    return windows


class RemoteCaptureClient:
    """Client for remote tmux interaction through an executor.

    Provides async methods for:
    - Capturing a pane with its current command and title
    - Listing panes and windows on a target
    """

    def __init__(self, executor: Executor):
        self._executor = executor

    async def capture(
        self,
        target: str,
        pane_id: str,
        lines: int = config.CAPTURE_LINES,
        options: CaptureOptions | None = None,
    ) -> PaneCapture:
        """Capture the trailing ``lines`` of a pane plus its metadata.

        Args:
            target: Resolved target.
            pane_id: tmux pane identifier (e.g. "%3").
            lines: Number of trailing lines to capture.
            options: join/ANSI flags and the call timeout.

        Raises:
            RemoteExecError: nonzero exit, transport failure or timeout.
        """
        options = options or CaptureOptions()
        cmd = build_capture_command(pane_id, lines, options)
        output = await run_remote(self._executor, target, cmd, timeout=options.timeout)
        return parse_capture(output)

    async def list_panes(self, target: str, timeout: float = config.CAPTURE_TIMEOUT_SECONDS) -> list[PaneInfo]:
        """List all panes across all sessions on ``target``."""
        cmd = f"tmux list-panes -a -F {shlex.quote(_PANE_FORMAT)}"
        output = await run_remote(self._executor, target, cmd, timeout=timeout)
        return parse_pane_list(output)

    async def list_windows(self, target: str, timeout: float = config.CAPTURE_TIMEOUT_SECONDS) -> list[WindowInfo]:
        """List all windows across all sessions on ``target``."""
        cmd = f"tmux list-windows -a -F {shlex.quote(_WINDOW_FORMAT)}"
        output = await run_remote(self._executor, target, cmd, timeout=timeout)
        return parse_window_list(output)

    async def version(self, target: str, timeout: float = config.CAPTURE_TIMEOUT_SECONDS) -> str:
        """Remote tmux version string (``tmux -V``)."""
        output = await run_remote(self._executor, target, config.PROBE_COMMAND, timeout=timeout)
        return output.strip()
