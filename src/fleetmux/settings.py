"""运行时配置模型（只读）

用 pydantic 校验外部传入的配置（dict 或 TOML 文件），并转换为核心使用的
不可变数据类。配置文件的写入/持久化不在本模块范围内。

TOML 示例::

    [ui]
    refresh_ms = 750
    lines = 40

    [ssh]
    connect_timeout_sec = 2

    [[hosts]]
    name = "db1"
    targets = ["db1.lan", "db1.vpn"]

    [[tracked]]
    host = "db1"
    session = "main"
    window = 0
    pane_id = "%1"
"""

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from . import config
from .errors import ConfigError
from .models import CaptureOptions, HostConfig, PollOptions, SshOptions, TrackedPane
from .state import fnv1a
from .telemetry import get_logger

logger = get_logger(__name__)


class UiSettings(BaseModel):
    """轮询/显示相关配置"""

    refresh_ms: int = Field(default=int(config.REFRESH_INTERVAL * 1000), ge=50)
    lines: int = Field(default=config.CAPTURE_LINES, ge=1)
    ansi: bool = config.CAPTURE_ANSI
    join_lines: bool = config.CAPTURE_JOIN_LINES
    capture_timeout_sec: float | None = Field(default=None, gt=0)


class SshSettings(BaseModel):
    """SSH 配置"""

    connect_timeout_sec: int = Field(default=config.CONNECT_TIMEOUT_SECONDS, ge=0)
    control_master: bool = config.CONTROL_MASTER
    control_persist_sec: int = Field(default=config.CONTROL_PERSIST_SECONDS, ge=0)
    path_extra: list[str] = Field(default_factory=lambda: list(config.PATH_EXTRA))


class ColorSettings(BaseModel):
    """颜色配置"""

    default_host_palette: list[str] = Field(default_factory=lambda: list(config.DEFAULT_HOST_PALETTE))


class HostSettings(BaseModel):
    """单个 host"""

    name: str = Field(min_length=1)
    targets: list[str] = Field(min_length=1)
    strategy: str = "ordered"
    color: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("strategy")
    @classmethod
    def _check_strategy(cls, value: str) -> str:
        if value != "ordered":
            raise ValueError(f"unsupported failover strategy: {value!r}")
        return value


class TrackedSettings(BaseModel):
    """单个 tracked pane"""

    host: str = Field(min_length=1)
    session: str
    window: int = Field(ge=0)
    pane_id: str = Field(min_length=1)
    label: str | None = None


class FleetSettings(BaseModel):
    """完整配置"""

    ui: UiSettings = Field(default_factory=UiSettings)
    ssh: SshSettings = Field(default_factory=SshSettings)
    colors: ColorSettings = Field(default_factory=ColorSettings)
    hosts: list[HostSettings] = Field(default_factory=list)
    tracked: list[TrackedSettings] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_hosts(self) -> "FleetSettings":
        names = [host.name for host in self.hosts]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"duplicate host names: {', '.join(sorted(duplicates))}")
        return self

    @property
    def refresh_interval(self) -> float:
        return self.ui.refresh_ms / 1000.0

    def host_configs(self) -> list[HostConfig]:
        return [
            HostConfig(
                name=host.name,
                targets=tuple(host.targets),
                strategy=host.strategy,
                color=host.color or host_color(host.name, self.colors.default_host_palette),
                tags=tuple(host.tags),
            )
            for host in self.hosts
        ]

    def tracked_panes(self) -> list[TrackedPane]:
        return [
            TrackedPane(
                host=pane.host,
                session=pane.session,
                window=pane.window,
                pane_id=pane.pane_id,
                label=pane.label,
            )
            for pane in self.tracked
        ]

    def ssh_options(self) -> SshOptions:
        return SshOptions(
            connect_timeout=self.ssh.connect_timeout_sec,
            control_master=self.ssh.control_master,
            control_persist=self.ssh.control_persist_sec,
            path_extra=tuple(self.ssh.path_extra),
        )

    def poll_options(self) -> PollOptions:
        ssh = self.ssh_options()
        timeout = self.ui.capture_timeout_sec or max(5.0, 2.0 * ssh.probe_timeout)
        return PollOptions(
            refresh_interval=self.refresh_interval,
            lines=self.ui.lines,
            ssh=ssh,
            capture=CaptureOptions(
                join_lines=self.ui.join_lines,
                ansi=self.ui.ansi,
                timeout=timeout,
            ),
        )

    def activity_windows(self) -> tuple[float, float]:
        """(active_window, idle_after)，单位秒"""
        active_window = max(config.MIN_ACTIVE_WINDOW_SECONDS, 2 * self.refresh_interval)
        idle_after = max(config.MIN_IDLE_AFTER_SECONDS, 4 * active_window)
        return active_window, idle_after


def host_color(name: str, palette: list[str]) -> str:
    """未配置颜色的 host：按名字 FNV-1a 哈希稳定地选一个调色板颜色"""
    if not palette:
        return config.FALLBACK_HOST_COLOR
    return palette[fnv1a(name.encode("utf-8")) % len(palette)]


def parse_settings(data: dict) -> FleetSettings:
    """从 dict 构造配置

    Raises:
        ConfigError: 校验失败
    """
    try:
        return FleetSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def load_settings(path: str | Path | None = None) -> FleetSettings:
    """读取 TOML 配置文件

    Raises:
        ConfigError: 文件不存在、无法解析或校验失败
    """
    path = Path(path or config.CONFIG_PATH)
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Unable to read config file: {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Unable to parse config file: {path}: {e}") from e

    settings = parse_settings(data)
    logger.info(f"[Config] Loaded {len(settings.hosts)} hosts, {len(settings.tracked)} tracked panes from {path}")
    return settings
