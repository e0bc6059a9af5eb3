"""Bearer token authentication."""
from __future__ import annotations

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

security = HTTPBearer()


async def verify_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Security(security),
) -> int:
    """Validate the Bearer token and return the caller's console authority."""
    settings = request.app.state.console.engine.settings
    if credentials.credentials != settings.admin_token:
        raise HTTPException(status_code=401, detail="Invalid token")
    return settings.admin_authority
