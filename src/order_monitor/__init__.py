"""Open-order monitoring and maintenance-mode orchestration."""

__version__ = "0.3.0"
