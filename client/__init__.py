"""client/ -- Concrete collaborators: HTTP adapters and terminal UI.

Layer rule: client/ imports from core/ only; workflow/ contracts are
imported for type checking alone.
"""
