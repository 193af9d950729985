"""state/ -- Persisted navigation state (SQLite).

Layer rule: state/ imports from core/ only (for the default database path).
"""
