"""API key authentication for the admin routes."""
import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config import settings

# auto_error=False so a missing header gets the same 401 as a wrong one
api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


async def require_api_key(api_key: str = Security(api_key_header)) -> str:
    """Reject the request unless ``x-api-key`` matches the configured key."""
    if not api_key or not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - invalid API key",
        )
    return api_key
