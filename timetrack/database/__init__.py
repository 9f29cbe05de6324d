"""
Storage layer for the time tracker.

Provides the repository contract, the SQLAlchemy tables backing it and the
store handle shared by every component.
"""
