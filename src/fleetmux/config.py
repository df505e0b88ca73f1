"""FleetMux 配置

配置分为以下几类：
- 轮询配置：刷新间隔、抓取行数
- SSH 配置：连接超时、ControlMaster
- 解析缓存配置：target 缓存 TTL
- 队列配置：更新事件队列容量
- 活跃度配置：Active/Idle 阈值
"""

import os

# === 轮询配置 ===
REFRESH_INTERVAL = 0.75  # 每个 pane 的轮询间隔（秒）
CAPTURE_LINES = 40  # 每次抓取的行数
CAPTURE_ANSI = True  # 保留 ANSI 样式（capture-pane -e）
CAPTURE_JOIN_LINES = False  # 合并自动换行（capture-pane -J）

# === SSH 配置 ===
CONNECT_TIMEOUT_SECONDS = 2  # 探测超时（秒），最小 1 秒
CONTROL_MASTER = True  # 复用 ssh 连接
CONTROL_PERSIST_SECONDS = 600
CONTROL_PATH = "/tmp/fleetmux-%r@%h:%p"
PATH_EXTRA = ["/usr/local/bin", "/opt/homebrew/bin"]  # 远端 PATH 追加目录

# capture 调用没有天然上限，这里显式加一个
CAPTURE_TIMEOUT_SECONDS = max(5.0, 2.0 * CONNECT_TIMEOUT_SECONDS)

# === 显示配置 ===
# 未指定 color 的 host 按名字哈希从调色板中取色
DEFAULT_HOST_PALETTE = ["Blue", "Cyan", "Green", "Magenta", "Yellow", "LightBlue", "LightGreen"]
FALLBACK_HOST_COLOR = "Blue"

# === 解析缓存配置 ===
CACHE_TTL_SECONDS = 60.0  # target 缓存有效期（秒）
PROBE_COMMAND = "tmux -V"  # 可达性探测命令

# === 队列配置 ===
UPDATE_QUEUE_MAX_SIZE = 100  # 更新事件队列容量（背压）

# === Tick 配置 ===
STALE_TICK_INTERVAL = 0.2  # staleness sweep 间隔（秒）

# === 活跃度配置 ===
MIN_ACTIVE_WINDOW_SECONDS = 2.0  # Active 窗口下限
MIN_IDLE_AFTER_SECONDS = 10.0  # Idle 阈值下限

# === 日志配置 ===
LOG_LEVEL = os.environ.get("FLEETMUX_LOG_LEVEL", "INFO")  # 日志级别

# === 指标配置 ===
METRICS_ENABLED = True  # 是否启用指标收集

# === Web 配置 ===
WEB_HOST = "127.0.0.1"
WEB_PORT = 8765

# === 配置文件 ===
CONFIG_PATH = os.path.join(
    os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config"),
    "fleetmux",
    "config.toml",
)
