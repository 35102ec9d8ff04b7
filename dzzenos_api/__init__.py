"""DzzenOS local API: task runs, approvals and realtime change events."""

__version__ = "0.1.0"
