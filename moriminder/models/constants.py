"""Constants for Moriminder.

This module centralizes the magic numbers of the reminder engine.
"""

import os

from moriminder.models.task import Priority


# Platform ceiling on pending notifications
NOTIFICATION_LIMIT = int(os.getenv("NOTIFICATION_LIMIT", "64"))

# Interval used when no staged interval applies
FALLBACK_INTERVAL_MIN = 60

# Per-task notification caps, before budget clipping
INSTANCE_NOTIFICATION_CAPS = {
    Priority.HIGH: 5,
    Priority.MEDIUM: 3,
    Priority.LOW: 2,
}
INSTANCE_NOTIFICATION_CAP_DEFAULT = 2

OPEN_ENDED_NOTIFICATION_CAPS = {
    Priority.HIGH: 30,
    Priority.MEDIUM: 20,
    Priority.LOW: 10,
}
OPEN_ENDED_NOTIFICATION_CAP_DEFAULT = 10

BOUNDED_NOTIFICATION_CAPS = {
    Priority.HIGH: 15,
    Priority.MEDIUM: 10,
    Priority.LOW: 5,
}
BOUNDED_NOTIFICATION_CAP_DEFAULT = 5
