"""
asgi.py -- ASGI entry point for authgate.

Run with:  uvicorn asgi:app
           python main.py serve
"""

from api.main import app  # noqa: F401
