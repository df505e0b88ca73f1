"""Runtime module - central consumer loop and lifecycle management"""

from .monitor import FleetMonitor

__all__ = [
    "FleetMonitor",
]
