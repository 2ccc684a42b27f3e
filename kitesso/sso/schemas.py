"""
Identity data handed from Kite back to the forum.
"""

from pydantic import BaseModel, ConfigDict


class IdentityClaims(BaseModel):
    """Verified user attributes, alive only while the outbound payload is built."""

    model_config = ConfigDict(frozen=True)

    external_id: str
    email: str
    display_name: str
    avatar_url: str = ""
