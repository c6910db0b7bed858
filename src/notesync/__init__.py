"""notesync - observable note store with background sync to a notes backend."""

__version__ = "0.1.0"
