"""sandbox/ -- Local reference API for exercising the login workflow.

Layer rule: sandbox/ imports from core/ only. Nothing outside sandbox/ and
asgi.py imports from it, except tests.
"""
