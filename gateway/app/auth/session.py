"""
Session Marker Module
=====================

Handles issuing, validating and revoking the client-held session marker.

The marker is a signed JWT stored in an HttpOnly cookie. Its validity is
decided from the token alone (signature, issuer, expiry), so no server-side
session storage exists. A second, script-readable cookie carries the
display name for UI personalization.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from starlette.requests import Request
from starlette.responses import Response

from ..config import Settings
from ..models import DisplayIdentity

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class SessionError(Exception):
    """Base exception for session marker errors"""
    pass


# =============================================================================
# Session Store
# =============================================================================

class SessionStore:
    """
    Issue, validate and revoke stateless session markers.

    Args:
        settings: Gateway settings (secret, algorithm, lifetime, cookie names)
    """

    def __init__(self, settings: Settings):
        self._secret = settings.SESSION_SECRET
        self._algorithm = settings.SESSION_ALGORITHM
        self._issuer = settings.APP_NAME
        self._max_age = settings.SESSION_MAX_AGE_SECONDS
        self._secure = settings.SESSION_COOKIE_SECURE
        self.cookie_name = settings.SESSION_COOKIE_NAME
        self.identity_cookie_name = settings.IDENTITY_COOKIE_NAME

    # -------------------------------------------------------------------------
    # Token creation / verification
    # -------------------------------------------------------------------------

    def issue(self, identity: DisplayIdentity, now: Optional[datetime] = None) -> str:
        """
        Create a session marker for an authenticated client.

        Args:
            identity: Display identity obtained from the provider
            now: Issuance time (defaults to the current UTC time)

        Returns:
            Encoded JWT string

        Raises:
            SessionError: If encoding fails
        """
        now = now or datetime.now(timezone.utc)
        payload = {
            "sub": identity.name,
            "iss": self._issuer,
            "iat": now,
            "exp": now + timedelta(seconds=self._max_age),
        }

        try:
            token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        except Exception as e:
            logger.error(f"Failed to create session marker: {e}", exc_info=True)
            raise SessionError(f"Failed to create session marker: {e}") from e

        logger.debug(
            "Issued session marker",
            extra={"identity": identity.name, "expires_in_seconds": self._max_age},
        )
        return token

    def read(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Verify a session marker and return its claims.

        Returns:
            Decoded claims if the marker is valid, None otherwise
        """
        if not token:
            return None

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "iss", "sub"]},
            )
        except ExpiredSignatureError:
            logger.debug("Session marker expired")
            return None
        except InvalidTokenError as e:
            logger.info(f"Rejected invalid session marker: {e}")
            return None

    def is_valid(self, token: Optional[str]) -> bool:
        return self.read(token) is not None

    def token_from_request(self, request: Request) -> Optional[str]:
        return request.cookies.get(self.cookie_name)

    # -------------------------------------------------------------------------
    # Cookies
    # -------------------------------------------------------------------------

    def set_cookies(self, response: Response, token: str, identity: DisplayIdentity) -> None:
        """
        Attach the session marker and display-identity cookies to a response.

        The identity value is percent-encoded so non-ASCII names survive.
        """
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            max_age=self._max_age,
            path="/",
            httponly=True,
            secure=self._secure,
            samesite="lax",
        )
        response.set_cookie(
            key=self.identity_cookie_name,
            value=quote(identity.name, safe=""),
            max_age=self._max_age,
            path="/",
            httponly=False,
            secure=self._secure,
            samesite="lax",
        )

    def revoke(self, response: Response) -> None:
        """Expire both session cookies on the client immediately."""
        for name in (self.cookie_name, self.identity_cookie_name):
            response.delete_cookie(
                key=name,
                path="/",
                secure=self._secure,
                samesite="lax",
            )


__all__ = [
    "SessionStore",
    "SessionError",
]
