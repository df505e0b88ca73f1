"""PaneStateStore - pane 状态存储与活跃度模型

状态机：
- 初始 STALE
- apply_update: 按事件自身的 status 设置 OK / DOWN（覆盖 STALE）
- refresh_stale: 只在 OK ↔ STALE 之间切换，不碰 DOWN，也不会设置 DOWN

活跃度（ACTIVE / IDLE / QUIET）是读取时根据 last_change 计算的纯函数，不存储。

所有状态按 tracked 列表索引存放，长度与顺序固定；重新配置时整体替换。
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from . import config
from .models import ActivityState, PaneCapture, PaneStatus, PaneUpdate, TrackedPane
from .telemetry import get_logger, metrics

logger = get_logger(__name__)

FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK_64 = 0xFFFFFFFFFFFFFFFF


def fnv1a(data: bytes, hash_value: int = FNV_OFFSET) -> int:
    """64 位 FNV-1a，可从上一段的结果继续累加"""
    for byte in data:
        hash_value ^= byte
        hash_value = (hash_value * _FNV_PRIME) & _MASK_64
    return hash_value


def fingerprint(capture: PaneCapture) -> int:
    """内容指纹：64 位 FNV-1a，依次覆盖每行（行尾隐含换行）和前台命令

    纯函数，相同 command + lines 得到相同结果。
    """
    hash_value = FNV_OFFSET
    for line in capture.lines:
        hash_value = fnv1a(line.encode("utf-8", errors="surrogateescape"), hash_value)
        hash_value = fnv1a(b"\n", hash_value)
    return fnv1a(capture.command.encode("utf-8", errors="surrogateescape"), hash_value)


def activity_state(
    last_change: float | None,
    now: float,
    active_window: float,
    idle_after: float,
) -> ActivityState:
    """根据最后变化时间计算活跃度

    - age <= active_window: ACTIVE
    - age >= idle_after: IDLE
    - 中间区间（迟滞）: QUIET
    - 从未变化: QUIET
    """
    if last_change is None:
        return ActivityState.QUIET
    age = now - last_change
    if age <= active_window:
        return ActivityState.ACTIVE
    if age >= idle_after:
        return ActivityState.IDLE
    return ActivityState.QUIET


@dataclass
class PaneState:
    """单个 pane 的状态

    Attributes:
        tracked: 对应的 tracked pane
        status: OK / DOWN / STALE
        last_capture: 最近一次抓取（DOWN 时保留旧值用于显示）
        last_update: 最近一次收到更新的时间
        last_change: 最近一次内容指纹变化的时间
        last_fingerprint: 最近一次内容指纹
        error: 最近一次错误
    """
    tracked: TrackedPane
    status: PaneStatus = PaneStatus.STALE
    last_capture: PaneCapture | None = None
    last_update: float | None = None
    last_change: float | None = None
    last_fingerprint: int | None = None
    error: str | None = None

    def activity(self, now: float, active_window: float, idle_after: float) -> ActivityState:
        if self.status != PaneStatus.OK:
            return ActivityState.QUIET
        return activity_state(self.last_change, now, active_window, idle_after)

    def to_dict(self, now: float, active_window: float, idle_after: float) -> dict:
        """转换为可序列化的字典"""
        return {
            "pane": self.tracked.to_dict(),
            "name": self.tracked.display_name,
            "status": self.status.value,
            "status_color": self.status.color,
            "activity": self.activity(now, active_window, idle_after).value,
            "error": self.error,
            "capture": self.last_capture.to_dict() if self.last_capture else None,
            "last_update_age": None if self.last_update is None else now - self.last_update,
            "last_change_age": None if self.last_change is None else now - self.last_change,
        }


@dataclass
class ActivityTransitions:
    """一次 update_activity_states 检测到的 ACTIVE 边沿"""
    stopped: list[int] = field(default_factory=list)
    active: list[int] = field(default_factory=list)


class PaneStateStore:
    """pane 状态存储

    只有 apply_update / refresh_stale / update_activity_states 修改状态，
    均由单一消费者调用。
    """

    def __init__(self, tracked: Sequence[TrackedPane]):
        self._panes: list[PaneState] = [PaneState(tracked=pane) for pane in tracked]
        self._activity: list[ActivityState] = [ActivityState.QUIET] * len(self._panes)

    def __len__(self) -> int:
        return len(self._panes)

    @property
    def panes(self) -> list[PaneState]:
        return list(self._panes)

    def get(self, index: int) -> PaneState | None:
        if 0 <= index < len(self._panes):
            return self._panes[index]
        return None

    def apply_update(self, update: PaneUpdate) -> None:
        """应用一次轮询结果

        索引越界（重新配置竞争）时忽略。
        """
        pane = self.get(update.index)
        if pane is None:
            logger.debug(f"[State] Ignoring update for unknown index {update.index}")
            return

        pane.status = update.status
        pane.error = update.error
        pane.last_update = update.timestamp

        if update.capture is not None:
            new_fingerprint = fingerprint(update.capture)
            if pane.last_fingerprint != new_fingerprint:
                pane.last_change = update.timestamp
            pane.last_fingerprint = new_fingerprint
            pane.last_capture = update.capture

    def refresh_stale(
        self,
        now: float | None = None,
        refresh_interval: float = config.REFRESH_INTERVAL,
    ) -> list[int]:
        """staleness sweep

        非 DOWN 的 pane：超过 2 个刷新周期没有更新（或从未更新）→ STALE，否则 → OK。

        Returns:
            状态发生变化的 pane 索引
        """
        now = time.monotonic() if now is None else now
        stale_after = 2 * refresh_interval
        changed = []
        for index, pane in enumerate(self._panes):
            if pane.status == PaneStatus.DOWN:
                continue
            if pane.last_update is None or now - pane.last_update > stale_after:
                next_status = PaneStatus.STALE
            else:
                next_status = PaneStatus.OK
            if next_status == pane.status:
                continue
            if next_status == PaneStatus.STALE:
                logger.info(f"[State] #{index} {pane.tracked.display_name} went stale")
                if config.METRICS_ENABLED:
                    metrics.inc("state.stale")
            pane.status = next_status
            changed.append(index)
        return changed

    def activity_state(
        self,
        index: int,
        active_window: float,
        idle_after: float,
        now: float | None = None,
    ) -> ActivityState:
        """读取 pane 的活跃度；非 OK 或越界一律 QUIET"""
        pane = self.get(index)
        if pane is None:
            return ActivityState.QUIET
        now = time.monotonic() if now is None else now
        return pane.activity(now, active_window, idle_after)

    def update_activity_states(
        self,
        active_window: float,
        idle_after: float,
        now: float | None = None,
    ) -> ActivityTransitions:
        """重新计算所有 pane 的活跃度，返回进入/离开 ACTIVE 的 pane 索引"""
        now = time.monotonic() if now is None else now
        transitions = ActivityTransitions()
        for index, pane in enumerate(self._panes):
            next_state = pane.activity(now, active_window, idle_after)
            prev_state = self._activity[index]
            if prev_state == ActivityState.ACTIVE and next_state != ActivityState.ACTIVE:
                transitions.stopped.append(index)
            elif prev_state != ActivityState.ACTIVE and next_state == ActivityState.ACTIVE:
                transitions.active.append(index)
            self._activity[index] = next_state
        return transitions

    def to_list(self, active_window: float, idle_after: float, now: float | None = None) -> list[dict]:
        now = time.monotonic() if now is None else now
        return [
            {"index": index, **pane.to_dict(now, active_window, idle_after)}
            for index, pane in enumerate(self._panes)
        ]
