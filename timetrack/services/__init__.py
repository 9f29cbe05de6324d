"""
Time tracker services.

Business operations on users, projects and time entries, authorized per
caller and executed through the repository.
"""
