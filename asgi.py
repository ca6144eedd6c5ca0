"""
asgi.py -- ASGI entry point for SecretKeeper.

Run with:  uvicorn asgi:app --reload
           secretkeeper run
"""

from api.main import app

__all__ = ["app"]
