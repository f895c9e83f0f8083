"""
asgi.py -- ASGI entry point for Cinebase.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
