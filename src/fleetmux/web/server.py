"""Web 服务器 - 只读状态接口 + WebSocket 推送"""

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from fleetmux.errors import FleetmuxError
from fleetmux.remote.executor import SshExecutor
from fleetmux.remote.tmux import build_attach_command
from fleetmux.runtime import FleetMonitor
from fleetmux.telemetry import get_logger, metrics

logger = get_logger(__name__)


class ActionResponse(BaseModel):
    """动作响应"""

    success: bool
    message: str


class WebServer:
    """WebSocket 服务器

    UI 层通过这里读取 pane 状态；状态变化时推送完整快照。
    """

    def __init__(self, monitor: FleetMonitor):
        self.app = FastAPI(title="FleetMux")
        self.monitor = monitor
        self.clients: list[WebSocket] = []
        self._setup_routes()
        monitor.on_change(self._on_change)

    async def _on_change(self, indexes: list[int]):
        """状态变化回调"""
        if self.clients:
            await self.broadcast({"type": "panes", "changed": indexes, "panes": self.monitor.snapshot()})

    def _host_list(self) -> list[dict]:
        resolver = self.monitor.resolver
        return [
            {
                "name": host.name,
                "targets": list(host.targets),
                "color": host.color,
                "tags": list(host.tags),
                "resolved": resolver.cached_target(host.name),
            }
            for host in self.monitor.settings.host_configs()
        ]

    def _setup_routes(self):
        @self.app.get("/api/panes")
        async def list_panes():
            return {"panes": self.monitor.snapshot()}

        @self.app.get("/api/panes/{index}")
        async def get_pane(index: int):
            panes = self.monitor.snapshot()
            if not 0 <= index < len(panes):
                raise HTTPException(status_code=404, detail="Pane not found")
            return panes[index]

        @self.app.get("/api/panes/{index}/attach")
        async def attach_command(index: int):
            """返回接管该 pane 的 ssh 命令（由外部启动）"""
            pane = self.monitor.store.get(index)
            if pane is None:
                raise HTTPException(status_code=404, detail="Pane not found")
            hosts = {host.name: host for host in self.monitor.settings.host_configs()}
            host = hosts.get(pane.tracked.host)
            if host is None:
                raise HTTPException(status_code=404, detail=f"Unknown host: {pane.tracked.host}")
            ssh = self.monitor.settings.ssh_options()
            try:
                target = await self.monitor.resolver.resolve(host, ssh)
            except FleetmuxError as e:
                raise HTTPException(status_code=503, detail=str(e))
            argv = SshExecutor(ssh).build_command(
                target, build_attach_command(pane.tracked), interactive=True
            )
            return {"target": target, "argv": argv}

        @self.app.get("/api/hosts")
        async def list_hosts():
            return {"hosts": self._host_list()}

        @self.app.post("/api/hosts/{name}/invalidate", response_model=ActionResponse)
        async def invalidate_host(name: str):
            """丢弃 host 的 target 缓存，下次轮询重新探测"""
            names = {host.name for host in self.monitor.settings.hosts}
            if name not in names:
                return ActionResponse(success=False, message=f"Unknown host: {name}")
            await self.monitor.submit(lambda monitor: monitor.resolver.invalidate(name))
            return ActionResponse(success=True, message="Invalidation queued")

        @self.app.get("/api/metrics")
        async def get_metrics():
            return metrics.snapshot()

        @self.app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            await websocket.accept()
            self.clients.append(websocket)
            try:
                await websocket.send_json({"type": "panes", "changed": [], "panes": self.monitor.snapshot()})
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                logger.debug("[Web] Client disconnected")
            finally:
                # broadcast 可能已经移除了发送失败的连接
                if websocket in self.clients:
                    self.clients.remove(websocket)

    async def broadcast(self, data: dict):
        """广播消息给所有客户端"""
        for client in list(self.clients):
            try:
                await client.send_json(data)
            except Exception as e:
                logger.debug(f"[Web] Dropping client: {e}")
                if client in self.clients:
                    self.clients.remove(client)
