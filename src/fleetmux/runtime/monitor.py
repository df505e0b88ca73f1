"""FleetMonitor - 中心消费者循环

职责：
- 构造 executor / resolver / capture client / PollSupervisor / PaneStateStore
- 在同一个等待点上合并三类输入：轮询更新、外部动作、周期 tick
- 所有状态修改都在这个循环里发生（单线程语义）
- reload: 停止旧轮询 → 整体替换状态存储 → 启动新轮询

不负责：
- 渲染 / 交互（由 UI 层通过回调和只读查询获取状态）
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any

from .. import config
from ..models import PaneUpdate
from ..poller import PollerHandle, PollSupervisor
from ..remote.executor import Executor, SshExecutor
from ..remote.resolver import HostResolver
from ..remote.tmux import RemoteCaptureClient
from ..settings import FleetSettings
from ..state import ActivityTransitions, PaneStateStore
from ..telemetry import get_logger

logger = get_logger(__name__)

# 状态变化回调：参数为发生变化的 pane 索引
ChangeCallback = Callable[[list[int]], Any | Awaitable[Any]]
# 活跃度边沿回调
ActivityCallback = Callable[[ActivityTransitions], Any | Awaitable[Any]]
# 外部动作：在消费者循环内执行
MonitorAction = Callable[["FleetMonitor"], Any | Awaitable[Any]]


class FleetMonitor:
    """中心消费者

    Attributes:
        settings: 当前配置
        store: 当前状态存储（reload 时整体替换）
        resolver: 共享 resolver（reload 后保留缓存）
        updates: 轮询事件队列（有界）
    """

    def __init__(
        self,
        settings: FleetSettings,
        executor: Executor | None = None,
        clock: Callable[[], float] = time.monotonic,
        tick_interval: float = config.STALE_TICK_INTERVAL,
        queue_size: int = config.UPDATE_QUEUE_MAX_SIZE,
    ):
        self.settings = settings
        self._clock = clock
        self._tick_interval = tick_interval
        self.executor = executor or SshExecutor(settings.ssh_options())
        self.resolver = HostResolver(self.executor, clock=clock)
        self.client = RemoteCaptureClient(self.executor)
        self.updates: asyncio.Queue[PaneUpdate] = asyncio.Queue(maxsize=queue_size)
        self._actions: asyncio.Queue[MonitorAction] = asyncio.Queue()
        self.supervisor = PollSupervisor(self.client, self.updates, clock=clock)
        self.store = PaneStateStore(settings.tracked_panes())
        self._handle: PollerHandle | None = None
        self._running = False
        self._stop_requested = False
        self._change_callbacks: list[ChangeCallback] = []
        self._activity_callbacks: list[ActivityCallback] = []

    # === 回调注册 ===

    def on_change(self, callback: ChangeCallback) -> None:
        """注册状态变化回调"""
        self._change_callbacks.append(callback)

    def on_activity(self, callback: ActivityCallback) -> None:
        """注册活跃度边沿回调"""
        self._activity_callbacks.append(callback)

    # === 生命周期 ===

    @property
    def is_running(self) -> bool:
        return self._running

    def start_pollers(self) -> None:
        if self._handle is not None:
            return
        self._handle = self.supervisor.start(
            self.settings.tracked_panes(),
            self.settings.host_configs(),
            self.resolver,
            self.settings.poll_options(),
        )

    async def stop_pollers(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        await handle.stop()

    async def reload(self, settings: FleetSettings) -> None:
        """替换配置：停止轮询 → 丢弃旧事件 → 新状态存储 → 启动轮询"""
        await self.stop_pollers()
        dropped = 0
        while not self.updates.empty():
            self.updates.get_nowait()
            dropped += 1
        self.settings = settings
        self.store = PaneStateStore(settings.tracked_panes())
        self.start_pollers()
        logger.info(f"[Monitor] Reloaded: {len(self.store)} panes (dropped {dropped} stale events)")
        await self._notify_change(list(range(len(self.store))))

    async def submit(self, action: MonitorAction) -> None:
        """提交一个在消费者循环内执行的动作"""
        await self._actions.put(action)

    def stop(self) -> None:
        """请求停止 run()（异步生效；在 run() 开始前调用同样有效）"""
        self._stop_requested = True
        self._running = False
        self._actions.put_nowait(lambda monitor: None)

    # === 状态修改 ===

    def handle_update(self, update: PaneUpdate) -> None:
        self.store.apply_update(update)

    def tick(self, now: float | None = None) -> tuple[list[int], ActivityTransitions]:
        """周期 tick：staleness sweep + 活跃度重算"""
        now = self._clock() if now is None else now
        changed = self.store.refresh_stale(now, self.settings.refresh_interval)
        active_window, idle_after = self.settings.activity_windows()
        transitions = self.store.update_activity_states(active_window, idle_after, now)
        return changed, transitions

    # === 主循环 ===

    async def run(self) -> None:
        """运行消费者循环直到 stop()"""
        if self._running:
            logger.warning("[Monitor] Already running")
            return
        if self._stop_requested:
            logger.info("[Monitor] Stop requested before start")
            return

        self._running = True
        self.start_pollers()
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._tick_interval
        update_get: asyncio.Future | None = None
        action_get: asyncio.Future | None = None
        logger.info(f"[Monitor] Started (tick={self._tick_interval}s)")

        try:
            while not self._stop_requested:
                if update_get is None:
                    update_get = asyncio.ensure_future(self.updates.get())
                if action_get is None:
                    action_get = asyncio.ensure_future(self._actions.get())

                timeout = max(0.0, next_tick - loop.time())
                done, _ = await asyncio.wait(
                    {update_get, action_get},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if update_get in done:
                    update = update_get.result()
                    update_get = None
                    self.handle_update(update)
                    await self._notify_change([update.index])

                if action_get in done:
                    action = action_get.result()
                    action_get = None
                    await self._run_action(action)

                if loop.time() >= next_tick:
                    next_tick = loop.time() + self._tick_interval
                    changed, transitions = self.tick()
                    if changed:
                        await self._notify_change(changed)
                    if transitions.active or transitions.stopped:
                        await self._notify_activity(transitions)
        finally:
            self._running = False
            for pending in (update_get, action_get):
                if pending is not None and not pending.done():
                    pending.cancel()
            await self.stop_pollers()
            logger.info("[Monitor] Stopped")

    async def _run_action(self, action: MonitorAction) -> None:
        try:
            result = action(self)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"[Monitor] Action failed: {e}")

    async def _notify_change(self, indexes: list[int]) -> None:
        for callback in self._change_callbacks:
            await _invoke(callback, indexes)

    async def _notify_activity(self, transitions: ActivityTransitions) -> None:
        for callback in self._activity_callbacks:
            await _invoke(callback, transitions)

    # === 只读查询 ===

    def snapshot(self, now: float | None = None) -> list[dict]:
        """当前所有 pane 状态（可序列化）"""
        active_window, idle_after = self.settings.activity_windows()
        now = self._clock() if now is None else now
        return self.store.to_list(active_window, idle_after, now)


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    """执行回调（同步/异步，异常隔离）"""
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"[Monitor] Callback error: {e}")
