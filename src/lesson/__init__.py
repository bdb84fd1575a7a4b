"""
Daily lesson workflow: settings, generation, notification and the Lambda entry.
"""

__all__ = [
    "config",
    "generator",
    "handler",
    "notifier",
]
