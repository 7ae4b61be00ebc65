"""Utility helpers"""
from .time_helper import datetime_to_ms, elapsed_seconds, format_time, ms_to_datetime

__all__ = ['datetime_to_ms', 'elapsed_seconds', 'format_time', 'ms_to_datetime']
