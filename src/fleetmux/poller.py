"""PollSupervisor - 每个 tracked pane 一个独立轮询循环

每个循环：
1. 查找 pane 所属 host（每轮重新查找，host 消失不会终止循环）
2. HostResolver.resolve（共享实例，按 host 串行）
3. RemoteCaptureClient.capture
4. 包装成 PaneUpdate 写入单一事件队列
5. 等待刷新间隔或 shutdown 信号，先到者为准

关闭语义：
- stop() 广播 shutdown 信号，然后等待所有循环退出才返回
- 正在进行的远端调用不会被中断，只会跳过下一次 sleep
- 队列满时的发送与 shutdown 信号竞争，消费者停滞不会让 stop() 卡死
"""

import asyncio
import time
from collections.abc import Callable, Sequence

from . import config
from .errors import FleetmuxError, UnknownHostError
from .models import HostConfig, PaneStatus, PaneUpdate, PollOptions, TrackedPane
from .remote.resolver import HostResolver
from .remote.tmux import RemoteCaptureClient
from .telemetry import format_pane_log, get_logger, metrics

logger = get_logger(__name__)

__all__ = ["PollOptions", "PollSupervisor", "PollerHandle"]


class PollerHandle:
    """一组轮询循环的句柄"""

    def __init__(self, shutdown: asyncio.Event, tasks: list[asyncio.Task]):
        self._shutdown = shutdown
        self._tasks = tasks

    @property
    def task_count(self) -> int:
        return len(self._tasks)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def stop(self) -> None:
        """广播 shutdown 并等待所有循环退出

        返回后不会再有任何 PaneUpdate 写入队列。
        """
        self._shutdown.set()
        tasks, self._tasks = self._tasks, []
        if not tasks:
            return
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                logger.error(f"[Poller] Loop exited with error: {result!r}")
        logger.info(f"[Poller] Stopped {len(tasks)} loops")


class PollSupervisor:
    """轮询监督器

    Attributes:
        sink: 所有循环共享的有界事件队列（多生产者/单消费者）
    """

    def __init__(
        self,
        client: RemoteCaptureClient,
        sink: "asyncio.Queue[PaneUpdate]",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self.sink = sink
        self._clock = clock

    def start(
        self,
        tracked: Sequence[TrackedPane],
        hosts: Sequence[HostConfig],
        resolver: HostResolver,
        options: PollOptions | None = None,
    ) -> PollerHandle:
        """为每个 tracked pane 启动一个轮询循环

        Args:
            tracked: 被监控的 pane 列表，位置即索引
            hosts: host 配置（每轮按名称查找）
            resolver: 共享 resolver
            options: 轮询参数

        Returns:
            PollerHandle，用于 stop()
        """
        options = options or PollOptions()
        shutdown = asyncio.Event()
        tasks = [
            asyncio.create_task(
                self._poll_loop(index, pane, hosts, resolver, options, shutdown),
                name=f"fleetmux-poll-{index}",
            )
            for index, pane in enumerate(tracked)
        ]
        logger.info(
            f"[Poller] Started {len(tasks)} loops (refresh={options.refresh_interval}s, lines={options.lines})"
        )
        return PollerHandle(shutdown, tasks)

    async def _poll_loop(
        self,
        index: int,
        pane: TrackedPane,
        hosts: Sequence[HostConfig],
        resolver: HostResolver,
        options: PollOptions,
        shutdown: asyncio.Event,
    ) -> None:
        last_status: PaneStatus | None = None
        while True:
            update = await self.poll_once(index, pane, hosts, resolver, options)

            if update.status != last_status:
                msg = f"{last_status.value if last_status else '-'} -> {update.status.value}"
                if update.error:
                    msg += f" ({update.error})"
                logger.info(format_pane_log("Poller", index, pane.display_name, msg))
                last_status = update.status

            if not await self._emit(update, shutdown):
                break

            # 唯一的取消检查点
            try:
                await asyncio.wait_for(shutdown.wait(), timeout=options.refresh_interval)
                break
            except asyncio.TimeoutError:
                pass

    async def poll_once(
        self,
        index: int,
        pane: TrackedPane,
        hosts: Sequence[HostConfig],
        resolver: HostResolver,
        options: PollOptions,
    ) -> PaneUpdate:
        """执行一次轮询，所有错误都转换为 DOWN 更新"""
        try:
            host = _find_host(hosts, pane.host)
            target = await resolver.resolve(host, options.ssh)
            capture = await self._client.capture(target, pane.pane_id, options.lines, options.capture)
        except FleetmuxError as e:
            return self._down(index, str(e))
        except Exception as e:
            logger.exception(format_pane_log("Poller", index, pane.display_name, f"Unexpected error: {e}"))
            return self._down(index, str(e) or type(e).__name__)

        if config.METRICS_ENABLED:
            metrics.inc("poll.ok")
        return PaneUpdate(
            index=index,
            status=PaneStatus.OK,
            timestamp=self._clock(),
            capture=capture,
        )

    def _down(self, index: int, error: str) -> PaneUpdate:
        if config.METRICS_ENABLED:
            metrics.inc("poll.down")
        return PaneUpdate(
            index=index,
            status=PaneStatus.DOWN,
            timestamp=self._clock(),
            error=error,
        )

    async def _emit(self, update: PaneUpdate, shutdown: asyncio.Event) -> bool:
        """写入事件队列

        队列满时阻塞（背压），但与 shutdown 信号竞争。

        Returns:
            是否写入成功；False 表示 shutdown 期间放弃
        """
        try:
            self.sink.put_nowait(update)
            self._record_depth()
            return True
        except asyncio.QueueFull:
            pass

        logger.debug(f"[Poller] Sink full, pane #{update.index} waiting")
        put_task = asyncio.ensure_future(self.sink.put(update))
        stop_task = asyncio.ensure_future(shutdown.wait())
        try:
            done, _ = await asyncio.wait({put_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (put_task, stop_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(put_task, stop_task, return_exceptions=True)

        if put_task in done and not put_task.cancelled():
            self._record_depth()
            return True
        logger.debug(f"[Poller] Dropped update for pane #{update.index} during shutdown")
        return False

    def _record_depth(self) -> None:
        if config.METRICS_ENABLED:
            metrics.gauge("queue.depth", self.sink.qsize())


def _find_host(hosts: Sequence[HostConfig], name: str) -> HostConfig:
    for host in hosts:
        if host.name == name:
            return host
    raise UnknownHostError(name)
