"""
Static Site Gateway
===================

Authenticating gateway in front of a prebuilt static site tree.

Every request is classified and gated:
    - protected pages require a session, otherwise redirect to the provider
    - static assets require a session, otherwise plain 401 (never redirected)
    - allow-listed paths are served without a session
    - /callback and /logout drive the OAuth authorization-code flow

Packages:
    - auth: session marker, credential parsing, identity provider client
    - site: path classifier, path resolver, dispatcher, routes
"""

__version__ = "1.0.0"
