from pulsekit.heartbeat.manager import (
    HEARTBEAT_OK,
    CheckConfig,
    HeartbeatManager,
    format_report,
)

__all__ = ["HEARTBEAT_OK", "CheckConfig", "HeartbeatManager", "format_report"]
