"""
Time tracking core.

Tracks time users spend on projects: projects, per user-project timers and
role-based user management on top of a shared backing store.
"""
__version__ = "1.0.0"
