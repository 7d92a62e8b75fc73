"""
Note store adapters.
"""

from cortex.store.base import NoteStore
from cortex.store.memory import InMemoryNoteStore
from cortex.store.sqlite import SQLiteNoteStore

__all__ = ["NoteStore", "InMemoryNoteStore", "SQLiteNoteStore"]
