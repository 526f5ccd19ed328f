"""
sandterm HTTP API Server.

Usage:
    # Start server
    uvicorn sandterm.server:app --reload

    # Or programmatically
    from sandterm.server import app, create_app

    # Custom manager (e.g. a different sandbox adapter)
    app = create_app(TerminalSessionManager(adapter))
"""

from sandterm.server.app import app, create_app

__all__ = ["app", "create_app"]
