import secrets

from fastapi import Depends, Header, HTTPException

from newsfeed.core.config import Settings, get_settings


AUTH_HEADER = "X-API-Key"


def require_operator(
    api_key: str | None = Header(default=None, alias=AUTH_HEADER),
    settings: Settings = Depends(get_settings),
) -> None:
    """Guards operator-only endpoints such as a forced refresh."""
    if not settings.api_auth_enabled:
        return
    if not api_key or not settings.api_auth_token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not secrets.compare_digest(api_key, settings.api_auth_token):
        raise HTTPException(status_code=401, detail="Unauthorized")
