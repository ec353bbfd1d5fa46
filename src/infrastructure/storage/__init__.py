"""
File-backed persistence for the video registry.

The JSON store is the always-available tier of the registry.
"""

from .json_store import JsonRecordStore

__all__ = ["JsonRecordStore"]
