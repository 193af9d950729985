"""workflow/ -- The login session state machine and its failure routing.

Layer rule: workflow/ imports from core/ only. It never imports client/,
state/, or sandbox/ -- concrete collaborators are injected by the caller.
"""
