"""Pytest 配置"""

import asyncio

import pytest

from fleetmux.remote.executor import ExecResult
from fleetmux.telemetry import metrics


@pytest.fixture
def anyio_backend():
    """指定 anyio 只使用 asyncio backend"""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics():
    """每次测试前重置指标"""
    metrics.reset()
    yield
    metrics.reset()


class FakeClock:
    """可手动推进的 monotonic 时钟"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeExecutor:
    """按 target 模拟远端的 executor

    - reachable 之外的 target 返回 ssh 连接失败（exit 255）
    - "tmux -V" 返回版本号
    - 其它命令按 responses 中第一个出现在命令里的 key 返回输出
    """

    def __init__(self, reachable=(), responses=None, delay: float = 0.0):
        self.reachable = set(reachable)
        self.responses: dict[str, str] = dict(responses or {})
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    def probes(self) -> list[str]:
        return [target for target, cmd in self.calls if cmd == "tmux -V"]

    async def execute(self, target: str, remote_cmd: str) -> ExecResult:
        self.calls.append((target, remote_cmd))
        if self.delay:
            await asyncio.sleep(self.delay)
        if target not in self.reachable:
            return ExecResult("", 255, f"ssh: connect to host {target} port 22: Connection refused\n")
        if remote_cmd == "tmux -V":
            return ExecResult("tmux 3.4\n", 0)
        for key, output in self.responses.items():
            if key in remote_cmd:
                return ExecResult(output, 0)
        return ExecResult("", 1, "can't find pane\n")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_executor():
    return FakeExecutor(reachable={"b"}, responses={"capture-pane": "bash\tuser@db1\nline 1\n\nline 3\n"})
