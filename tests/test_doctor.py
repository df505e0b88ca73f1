"""Doctor 报告测试"""

import io

import pytest
from rich.console import Console

from fleetmux.doctor import Doctor
from fleetmux.models import HostConfig, SshOptions

from conftest import FakeExecutor

RESPONSES = {
    "list-windows": "main\t0\tshell\nmain\t1\t\n",
    "list-panes": "main\t0\t%0\tbash\tuser@db1\nmain\t1\t%1\tvim\tnotes\n",
    "capture-pane": "bash\tuser@db1\n\x1b[32m$ ls\x1b[0m\nREADME\n",
}


def _doctor(executor: FakeExecutor) -> tuple[Doctor, io.StringIO]:
    output = io.StringIO()
    console = Console(file=output, force_terminal=False, width=120)
    return Doctor(executor, console=console), output


class TestDoctor:
    """逐 host 诊断"""

    @pytest.mark.asyncio
    async def test_healthy_host(self):
        doctor, output = _doctor(FakeExecutor(reachable={"b"}, responses=RESPONSES))
        host = HostConfig(name="db1", targets=("a", "b"), color="Green")

        results = await doctor.run([host], SshOptions(path_extra=()))
        text = output.getvalue()

        assert results == {"db1": True}
        assert "Resolved target: b" in text
        assert "tmux: tmux 3.4" in text
        assert "Windows: 2" in text
        assert "main:1 (unnamed)" in text
        assert "Panes: 2" in text
        assert "main:1 %1 vim notes" in text
        assert "$ ls" in text
        assert "\x1b[32m" not in text

    @pytest.mark.asyncio
    async def test_unreachable_host_does_not_stop_report(self):
        doctor, output = _doctor(FakeExecutor(reachable={"b"}, responses=RESPONSES))
        hosts = [
            HostConfig(name="dead", targets=("x", "y")),
            HostConfig(name="db1", targets=("b",)),
        ]

        results = await doctor.run(hosts, SshOptions(path_extra=()))
        text = output.getvalue()

        assert results == {"dead": False, "db1": True}
        assert "Resolve error: no reachable target for host dead" in text
        assert "Host: db1" in text

    @pytest.mark.asyncio
    async def test_list_panes_failure(self):
        doctor, output = _doctor(FakeExecutor(reachable={"b"}, responses={}))

        results = await doctor.run([HostConfig(name="db1", targets=("b",))], SshOptions(path_extra=()))
        text = output.getvalue()

        assert results == {"db1": False}
        assert "Windows error:" in text
        assert "Panes error:" in text
