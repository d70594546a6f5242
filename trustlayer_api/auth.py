"""
API token for the endpoints that spend a server-held key.

Two secrets live in this process:
- ALEO_PRIVATE_KEY: snarkos signs issue/revoke/add_issuer/remove_issuer and
  prove_tier executions with it, and the view key decrypts records
  (/api/aleo/* writes).
- RELAYER_PRIVATE_KEY: the only account the hook accepts registerTrader /
  revokeTrader from (/api/eth/register-trader, /api/eth/revoke-trader).

Anyone who can reach those endpoints acts as the admin/issuer on Aleo and as
the relayer on the hook, so they take `Depends(verify_api_token)`.

- If API_TOKEN is not set, the check is disabled (local development only)
- The token is accepted via the X-API-Key header only; query params leak into
  logs and referrers
- Explorer proxies, hook views and /health stay open
"""

import hmac
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from .config import Settings
from .services import get_app_settings

API_KEY_HEADER = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": API_KEY_HEADER},
    )


def token_matches(presented: str, expected: str) -> bool:
    """Constant-time comparison of the presented and configured tokens."""
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


async def verify_api_token(
    api_key: Optional[str] = Depends(api_key_header),
    settings: Settings = Depends(get_app_settings),
) -> bool:
    """
    Gate a key-spending endpoint behind API_TOKEN.

    Raises:
        HTTPException: 401 when a token is configured and the request
            carries none or a different one
    """
    # WARNING: with HOST=0.0.0.0 and no API_TOKEN, anyone can issue credentials
    if not settings.api_token:
        return True

    if not api_key:
        raise _unauthorized(f"API token required. Provide via {API_KEY_HEADER} header.")

    if not token_matches(api_key, settings.api_token):
        raise _unauthorized("Invalid API token")

    return True
