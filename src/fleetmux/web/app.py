"""FastAPI 应用初始化"""

import asyncio

import uvicorn

from fleetmux import config
from fleetmux.runtime import FleetMonitor
from fleetmux.settings import FleetSettings
from fleetmux.telemetry import get_logger
from fleetmux.web.server import WebServer

logger = get_logger(__name__)


def create_app(monitor: FleetMonitor) -> WebServer:
    """创建 Web 应用"""
    return WebServer(monitor)


async def start_server(
    settings: FleetSettings,
    host: str = config.WEB_HOST,
    port: int = config.WEB_PORT,
) -> None:
    """启动监控循环和 Web 服务器"""
    monitor = FleetMonitor(settings)
    server = create_app(monitor)

    monitor_task = asyncio.create_task(monitor.run())

    uvicorn_config = uvicorn.Config(server.app, host=host, port=port, log_level="info")
    uvicorn_server = uvicorn.Server(uvicorn_config)

    logger.info(f"[Web] FleetMux serving {len(settings.tracked)} panes at http://{host}:{port}")

    try:
        await uvicorn_server.serve()
    finally:
        monitor.stop()
        await monitor_task
