"""Connectivity diagnostics for configured hosts using Rich output.

For every host: resolve a target, report the remote tmux version, list
windows and panes, and show a short capture of the first pane. A failing
step is reported and the report moves on to the next host.
"""

from rich.console import Console
from rich.text import Text

from .errors import FleetmuxError
from .models import CaptureOptions, HostConfig, SshOptions
from .remote.executor import Executor
from .remote.resolver import HostResolver
from .remote.tmux import RemoteCaptureClient
from .telemetry import get_logger

logger = get_logger(__name__)

SAMPLE_LINES = 10


class Doctor:
    """Host diagnostics report."""

    def __init__(self, executor: Executor, console: Console | None = None):
        self._resolver = HostResolver(executor)
        self._client = RemoteCaptureClient(executor)
        self._console = console or Console()

    async def run(self, hosts: list[HostConfig], options: SshOptions) -> dict[str, bool]:
        """Run the report.

        Returns:
            Mapping of host name to whether it resolved and answered list-panes.
        """
        console = self._console
        console.print("[bold]FleetMux doctor[/bold]")
        console.print(f"Hosts: {len(hosts)}")

        results = {}
        for host in hosts:
            results[host.name] = await self.check_host(host, options)
        return results

    async def check_host(self, host: HostConfig, options: SshOptions) -> bool:
        console = self._console
        console.print()
        console.print(f"[bold]Host:[/bold] {host.name}")
        console.print(f"Targets: {', '.join(host.targets)}")
        if host.color:
            console.print(f"Color: {host.color}")

        try:
            target = await self._resolver.resolve(host, options)
        except FleetmuxError as e:
            console.print(f"[red]Resolve error:[/red] {e}")
            return False
        console.print(f"Resolved target: [green]{target}[/green]")

        try:
            console.print(f"tmux: {await self._client.version(target)}")
        except FleetmuxError as e:
            console.print(f"[red]tmux error:[/red] {e}")
            return False

        try:
            windows = await self._client.list_windows(target)
            console.print(f"Windows: {len(windows)}")
            for window in windows:
                name = window.name or "(unnamed)"
                console.print(f"  {window.session}:{window.window} {name}", markup=False)
        except FleetmuxError as e:
            console.print(f"[red]Windows error:[/red] {e}")

        try:
            panes = await self._client.list_panes(target)
        except FleetmuxError as e:
            console.print(f"[red]Panes error:[/red] {e}")
            return False
        console.print(f"Panes: {len(panes)}")
        for pane in panes:
            console.print(
                f"  {pane.session}:{pane.window} {pane.pane_id} {pane.command} {pane.title}".rstrip(),
                markup=False,
            )

        if panes:
            first = panes[0]
            console.print(f"Capture sample: {first.session}:{first.window} {first.pane_id}", markup=False)
            try:
                capture = await self._client.capture(target, first.pane_id, SAMPLE_LINES, CaptureOptions())
            except FleetmuxError as e:
                console.print(f"[red]Capture error:[/red] {e}")
            else:
                for line in capture.lines:
                    console.print(Text("  ") + Text.from_ansi(line))
        return True
