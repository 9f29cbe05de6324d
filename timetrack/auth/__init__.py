"""
Authentication and authorization for the time tracker.

Resolves API keys to callers and decides which actions a caller may perform.
"""
