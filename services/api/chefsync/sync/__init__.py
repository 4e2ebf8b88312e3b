"""Sync engine core: cursors, ledger, conflict resolution, collections, KV sections, quota."""

from .cursor import encode_cursor, decode_cursor, Cursor
from .conflict import Resolution, effective_incoming_time, resolve_write, next_stamp
from .ledger import ALL_SECTIONS, bump, get_state, changed_since
from .collections import COLLECTIONS, SyncedCollection, get_collection
from .kv import KV_SECTIONS, LOG_SECTIONS

__all__ = [
    "encode_cursor",
    "decode_cursor",
    "Cursor",
    "Resolution",
    "effective_incoming_time",
    "resolve_write",
    "next_stamp",
    "ALL_SECTIONS",
    "bump",
    "get_state",
    "changed_since",
    "COLLECTIONS",
    "SyncedCollection",
    "get_collection",
    "KV_SECTIONS",
    "LOG_SECTIONS",
]
