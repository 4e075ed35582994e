"""API key authentication dependency."""

from __future__ import annotations

from fastapi import HTTPException, Security, WebSocket, WebSocketException, status
from fastapi.security import APIKeyHeader

from borgbridge.config import settings

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_api_key(
    api_key: str | None = Security(_api_key_header),
) -> str:
    """FastAPI dependency that enforces X-API-Key header.

    If BORGBRIDGE_API_KEY is blank the check is skipped (local desktop use).
    """
    if not settings.api_key:
        return "no-key-configured"
    if api_key is None or api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


async def require_ws_api_key(websocket: WebSocket) -> str:
    """WebSocket variant: header or ``?api_key=`` query parameter."""
    if not settings.api_key:
        return "no-key-configured"
    api_key = websocket.headers.get("x-api-key") or websocket.query_params.get(
        "api_key",
    )
    if api_key != settings.api_key:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION)
    return api_key
