"""FleetMux 数据模型

包含：
- HostConfig / SshOptions / CaptureOptions: 配置输入（只读）
- TrackedPane: 被监控的远端 pane
- PaneCapture: 单次抓取结果
- PaneStatus / ActivityState: 状态枚举
- PaneUpdate: 轮询循环 → 状态存储的唯一消息
- PaneInfo / WindowInfo: list-panes / list-windows 解析结果

时间戳统一使用 time.monotonic() 秒数（float）。
"""

from dataclasses import dataclass, field
from enum import Enum

from . import config


class PaneStatus(Enum):
    """Pane 连接状态

    - OK: 最近一次轮询成功且未过期
    - DOWN: 最近一次轮询失败（解析/执行/未知 host）
    - STALE: 尚未收到更新，或更新落后超过 2 个刷新周期
    """
    OK = "ok"
    DOWN = "down"
    STALE = "stale"

    @property
    def color(self) -> str:
        """状态对应的颜色"""
        colors = {
            PaneStatus.OK: "green",
            PaneStatus.DOWN: "red",
            PaneStatus.STALE: "yellow",
        }
        return colors.get(self, "gray")


class ActivityState(Enum):
    """输出活跃度（读取时计算，不存储）"""
    ACTIVE = "active"
    IDLE = "idle"
    QUIET = "quiet"


@dataclass(frozen=True)
class SshOptions:
    """SSH 连接参数"""
    connect_timeout: int = config.CONNECT_TIMEOUT_SECONDS
    control_master: bool = config.CONTROL_MASTER
    control_persist: int = config.CONTROL_PERSIST_SECONDS
    path_extra: tuple[str, ...] = tuple(config.PATH_EXTRA)

    @property
    def probe_timeout(self) -> float:
        """探测超时，最小 1 秒"""
        return float(max(self.connect_timeout, 1))


@dataclass(frozen=True)
class CaptureOptions:
    """capture-pane 格式参数，只影响远端 flag，不影响解析"""
    join_lines: bool = config.CAPTURE_JOIN_LINES
    ansi: bool = config.CAPTURE_ANSI
    timeout: float = config.CAPTURE_TIMEOUT_SECONDS


@dataclass(frozen=True)
class HostConfig:
    """远端 host 配置

    Attributes:
        name: 唯一名称
        targets: 候选 target（按声明顺序 failover）
        strategy: failover 策略，目前只有 "ordered"
        color: 可选显示颜色
        tags: 可选标签
    """
    name: str
    targets: tuple[str, ...]
    strategy: str = "ordered"
    color: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class TrackedPane:
    """被监控的远端 pane，索引由其在列表中的位置决定"""
    host: str
    session: str
    window: int
    pane_id: str
    label: str | None = None

    @property
    def display_name(self) -> str:
        """显示名称：有 label 用 label，否则 host:session:window"""
        if self.label:
            return self.label
        return f"{self.host}:{self.session}:{self.window}"

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "session": self.session,
            "window": self.window,
            "pane_id": self.pane_id,
            "label": self.label,
        }


@dataclass(frozen=True)
class PaneCapture:
    """单次抓取结果：前台命令、标题、可见输出（从旧到新）"""
    command: str
    title: str
    lines: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "title": self.title,
            "lines": list(self.lines),
        }


@dataclass(frozen=True)
class PaneUpdate:
    """轮询结果事件

    Attributes:
        index: pane 在 tracked 列表中的索引
        status: OK 或 DOWN
        timestamp: 事件时间（monotonic 秒）
        capture: 抓取结果，失败时为 None
        error: 错误描述，成功时为 None
    """
    index: int
    status: PaneStatus
    timestamp: float
    capture: PaneCapture | None = None
    error: str | None = None


@dataclass(frozen=True)
class PaneInfo:
    """list-panes 单行"""
    session: str
    window: int
    pane_id: str
    command: str = ""
    title: str = ""


@dataclass(frozen=True)
class WindowInfo:
    """list-windows 单行"""
    session: str
    window: int
    name: str = ""


@dataclass
class PollOptions:
    """轮询参数"""
    refresh_interval: float = config.REFRESH_INTERVAL
    lines: int = config.CAPTURE_LINES
    ssh: SshOptions = field(default_factory=SshOptions)
    capture: CaptureOptions = field(default_factory=CaptureOptions)
