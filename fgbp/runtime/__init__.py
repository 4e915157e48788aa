"""
Runtime module: message scheduling.
"""

from fgbp.runtime.schedule import MPScheduler, schedule

__all__ = [
    "MPScheduler",
    "schedule",
]
