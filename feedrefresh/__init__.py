"""
Feed Refresh Backend

Adaptive feed refreshing for a multi-user RSS reader: fetches feeds on a
per-feed schedule, merges new entries and keeps unread counts in step.
"""

__version__ = "1.0.0"
