"""
Core plumbing shared by the library: settings, logging set-up, error
kinds and the SQLite helpers used by the persistence adapter.
"""
