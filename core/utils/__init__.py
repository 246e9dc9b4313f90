"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Timestamp conversion utilities and the injectable Clock
"""

from core.utils.time import Clock, SystemClock, system_clock, to_utc_datetime

__all__ = ["Clock", "SystemClock", "system_clock", "to_utc_datetime"]
