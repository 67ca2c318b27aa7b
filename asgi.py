"""
asgi.py -- Application assembly for ModelGate.

The single import point for ASGI servers. api/main.py owns the app; keeping
this module separate lets deployment config name "asgi:app" without knowing
the package layout.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
