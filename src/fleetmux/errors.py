"""FleetMux 错误类型

除 ParseError 外，所有错误最终都会变成对应 pane 的 Down 状态 + 错误文本，
不会中断其它 pane 的轮询。ParseError 在解析边界被吸收（丢弃该行）。
"""


class FleetmuxError(Exception):
    """所有 FleetMux 错误的基类"""


class ResolutionError(FleetmuxError):
    """host 没有任何可达的 target"""

    def __init__(self, host_name: str):
        super().__init__(f"no reachable target for host {host_name}")
        self.host_name = host_name


class RemoteExecError(FleetmuxError):
    """远端命令返回非零，或传输层失败"""

    def __init__(
        self,
        message: str,
        target: str = "",
        exit_status: int | None = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.target = target
        self.exit_status = exit_status
        self.stderr = stderr


class TransportError(RemoteExecError):
    """ssh 进程无法启动或调用超时"""


class ParseError(FleetmuxError):
    """列表输出中的单行格式错误"""

    def __init__(self, line: str, reason: str):
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class UnknownHostError(FleetmuxError):
    """tracked pane 引用的 host 不在当前配置中"""

    def __init__(self, host_name: str):
        super().__init__("unknown host")
        self.host_name = host_name


class ConfigError(FleetmuxError):
    """配置无法读取或校验失败"""
