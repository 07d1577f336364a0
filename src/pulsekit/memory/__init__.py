from pulsekit.memory.daily_log import DailyLog

__all__ = ["DailyLog"]
