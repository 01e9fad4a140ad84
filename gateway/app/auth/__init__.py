"""
Authentication Package

This package handles authentication state for the gateway.

Modules:
- session: Signed, stateless session marker and its cookies
- credentials: Decoding the provider credential into a display identity
- provider: Authorization redirect, code-for-token exchange, logout URL

The authentication flow:
1. An unauthenticated page request is redirected to the provider
2. The provider redirects back to the callback path with a code
3. The gateway exchanges the code for a credential and reads the name
4. The gateway issues a session marker cookie and redirects to /
"""

from .credentials import (
    CodeRejectedError,
    ExchangeFailure,
    MalformedCredentialError,
    ProviderUnavailableError,
    parse_display_identity,
)
from .provider import IdentityProviderClient
from .session import SessionError, SessionStore

__all__ = [
    "IdentityProviderClient",
    "SessionStore",
    "SessionError",
    "ExchangeFailure",
    "ProviderUnavailableError",
    "CodeRejectedError",
    "MalformedCredentialError",
    "parse_display_identity",
]
