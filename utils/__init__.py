
"""
utils
=====

Small helpers shared by the provider client, calculations and server layers.

Public API (re-exports):
- chunk_list (chunk)
- to_datetime, utc_now, iso (timeutil)
"""
from .chunk import chunk_list
from .timeutil import to_datetime, utc_now, iso

__all__ = ["chunk_list", "to_datetime", "utc_now", "iso"]
