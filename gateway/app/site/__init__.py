"""
Site Package
============

Gates and serves the static site tree.

Main Components:
----------------
- classifier.py: Sorts request paths into pages, assets and control endpoints
- resolver.py: Maps URL paths to files under the site root, with cache headers
- dispatcher.py: Transition table and request execution
- routes.py: Catch-all FastAPI router

Usage:
------
    from gateway.app.site import site_router
    app.include_router(site_router)
"""

from .routes import site_router

__all__ = ["site_router"]
