"""
Credential parsing utilities.

This module handles:
- Splitting the provider's dot-delimited token credential
- Decoding its claim payload (middle segment)
- Choosing a display name from the claims

The credential signature is NOT verified here. The token comes straight from
the provider's token endpoint over a configured channel, and the name it
carries is used for display only.
"""

import json
from typing import Any, Dict

from jose.utils import base64url_decode

from ..models import DisplayIdentity


# =============================================================================
# Exceptions
# =============================================================================

class ExchangeFailure(Exception):
    """Base exception for a failed code-for-identity exchange."""
    pass


class ProviderUnavailableError(ExchangeFailure):
    """The provider could not be reached or did not answer in time."""
    pass


class CodeRejectedError(ExchangeFailure):
    """The provider refused the code: non-2xx status, or no access_token in the answer."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message or f"Token request rejected with status {status_code}")


class MalformedCredentialError(ExchangeFailure):
    """The provider accepted the code but its credential could not be read."""
    pass


# =============================================================================
# Claim decoding
# =============================================================================

def decode_claims(token: str) -> Dict[str, Any]:
    """
    Decode the claim payload of a dot-delimited credential without verification.

    Args:
        token: Credential string (``header.payload.signature``)

    Returns:
        Claims dictionary

    Raises:
        MalformedCredentialError: If the token has fewer than two segments or
            the payload is not base64url-encoded JSON object
    """
    parts = token.split(".") if token else []
    if len(parts) < 2:
        raise MalformedCredentialError(
            f"Credential has {len(parts)} segment(s), expected at least 2"
        )

    try:
        payload = base64url_decode(parts[1].encode("ascii"))
        claims = json.loads(payload)
    except (UnicodeEncodeError, ValueError) as e:
        raise MalformedCredentialError(f"Credential payload is not decodable: {e}") from e

    if not isinstance(claims, dict):
        raise MalformedCredentialError("Credential payload is not a JSON object")

    return claims


def _claim_text(claims: Dict[str, Any], name: str) -> str:
    value = claims.get(name)
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return ""


def display_name_from_claims(claims: Dict[str, Any], placeholder: str) -> DisplayIdentity:
    """
    Pick a display name: ``name``, then ``id``, then the placeholder.
    """
    for claim in ("name", "id"):
        text = _claim_text(claims, claim)
        if text:
            return DisplayIdentity(name=text)
    return DisplayIdentity(name=placeholder, placeholder=True)


def parse_display_identity(token: str, placeholder: str = "Guest") -> DisplayIdentity:
    """
    Extract the display identity from a provider credential.

    Raises:
        MalformedCredentialError: See ``decode_claims``
    """
    return display_name_from_claims(decode_claims(token), placeholder)
