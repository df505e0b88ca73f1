"""Telemetry - 统一日志和指标入口

提供统一的日志工厂和指标 facade，便于观测性追踪。

日志格式: [module] msg
指标示例: resolver.probe, resolver.cache_hit, poll.ok/down, queue.depth
"""

import logging

# 全局日志配置
_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """获取带模块前缀的 logger

    Args:
        name: 模块名（通常使用 __name__）

    Returns:
        配置好的 Logger 实例
    """
    return logging.getLogger(name)


def setup_logging(level: str | None = None) -> None:
    """配置根 logger（仅入口调用一次）"""
    from . import config

    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        format=_LOG_FORMAT,
    )


def format_pane_log(module: str, index: int, label: str, msg: str) -> str:
    """格式化带 pane 标识的日志消息

    Returns:
        格式化的消息: [module:#index label] msg
    """
    return f"[{module}:#{index} {label}] {msg}"


class Metrics:
    """进程内指标

    resolver / poller / state 在各自的关键路径上打点，web 层通过
    snapshot() 暴露给外部。键格式为 ``name{k=v,...}``，标签按键名排序。
    """

    def __init__(self):
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}

    def inc(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """计数器 +value

        Args:
            name: 指标名，如 "resolver.probe"
            labels: 可选标签，如 {"target": "db1.lan"}
            value: 增量
        """
        key = _metric_key(name, labels)
        self._counters[key] = self._counters.get(key, 0) + value

    def gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """记录瞬时值（如 queue.depth）"""
        self._gauges[_metric_key(name, labels)] = value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        return self._counters.get(_metric_key(name, labels), 0)

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        return self._gauges.get(_metric_key(name, labels), 0.0)

    def get_all_counters(self) -> dict[str, int]:
        """全部计数器的拷贝"""
        return dict(self._counters)

    def get_all_gauges(self) -> dict[str, float]:
        """全部 gauge 的拷贝"""
        return dict(self._gauges)

    def snapshot(self) -> dict[str, dict]:
        """/api/metrics 的返回体: {"counters": {...}, "gauges": {...}}"""
        return {"counters": self.get_all_counters(), "gauges": self.get_all_gauges()}

    def reset(self) -> None:
        self._counters.clear()
        self._gauges.clear()


def _metric_key(name: str, labels: dict[str, str] | None) -> str:
    if not labels:
        return name
    label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
    return f"{name}{{{label_str}}}"


# 全局指标实例
metrics = Metrics()
