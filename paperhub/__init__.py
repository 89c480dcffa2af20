"""Revision-aware GitHub document synchronization and rendering."""

__version__ = "0.1.0"
