"""
Data Models Module

This module defines the Pydantic models and plain value types shared
across the gateway.

Models are organized by functional area:
- Identity provider models (token endpoint response)
- Identity models (display identity carried in cookies)
- Health check models
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Identity Provider Models
# ============================================================================

class ProviderTokenResponse(BaseModel):
    """Body returned by the provider's access_token endpoint."""
    model_config = ConfigDict(extra="allow")

    access_token: str = Field(..., min_length=1, description="Signed token credential")
    token_type: Optional[str] = Field(None, description="Token type, usually Bearer")
    expires_in: Optional[int] = Field(None, description="Token lifetime in seconds")


# ============================================================================
# Identity Models
# ============================================================================

@dataclass(frozen=True)
class DisplayIdentity:
    """
    Human-readable name of an authenticated client.

    Used only for UI personalization; never for authorization decisions.
    ``placeholder`` is set when the provider credential carried no usable
    name and a generic one was substituted.
    """
    name: str
    placeholder: bool = False


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
