"""
asgi.py -- ASGI entry point for the sandbox API.

Run with:  SANDBOX_DEBUG=true SANDBOX_ADMIN_USERNAME=admin SANDBOX_ADMIN_PASSWORD=secret \
           uvicorn asgi:app --reload --port 8043
"""

import logging

from sandbox.main import create_app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = create_app()
