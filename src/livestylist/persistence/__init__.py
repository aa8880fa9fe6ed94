"""Persistence — SQLite store for users, session records and memories."""

from livestylist.persistence.store import StylistStore

__all__ = ["StylistStore"]
