"""Web 模块：只读状态 API"""

from .app import create_app, start_server
from .server import WebServer

__all__ = ["WebServer", "create_app", "start_server"]
