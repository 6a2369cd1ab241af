"""
Module: auth.py
Description: Session authentication against the external users service.

Provides:
    - OAuth redirect URL lookup and code-for-session exchange
    - get_current_user dependency for FastAPI (session cookie)
    - Session deletion on logout

The OAuth protocol itself lives in the users service; this module only
forwards codes and session tokens to it.

Usage:
    @app.get("/protected")
    async def protected_route(user: dict = Depends(get_current_user)):
        ...

Author: Finance Tracker Team
"""

import os
from typing import Optional

import httpx
from fastapi import Depends, HTTPException, Request, status
from dotenv import load_dotenv

from services.observability import logger, metrics

load_dotenv()


# =============================================================================
# Configuration
# =============================================================================

USERS_SERVICE_API_URL = os.getenv("USERS_SERVICE_API_URL", "").rstrip("/")
USERS_SERVICE_API_KEY = os.getenv("USERS_SERVICE_API_KEY", "")

SESSION_COOKIE_NAME = "mocha_session_token"
SESSION_MAX_AGE = 60 * 24 * 60 * 60  # 60 days

# For development/demo, we can bypass auth
AUTH_BYPASS = os.getenv("AUTH_BYPASS", "false").lower() == "true"
AUTH_BYPASS_USER_ID = os.getenv("AUTH_BYPASS_USER_ID", "demo_user_123")

REQUEST_TIMEOUT = 10.0


class IdentityServiceError(Exception):
    """The users service could not be reached or rejected the request."""


# =============================================================================
# Users Service Client
# =============================================================================

class IdentityGateway:
    """Async client for the users service HTTP API."""

    def __init__(self, api_url: str = USERS_SERVICE_API_URL, api_key: str = USERS_SERVICE_API_KEY,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url
        self.api_key = api_key
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.api_url:
            raise IdentityServiceError("USERS_SERVICE_API_URL is not configured")
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers={"x-api-key": self.api_key},
            timeout=REQUEST_TIMEOUT,
            transport=self.transport,
        )

    async def get_oauth_redirect_url(self, provider: str) -> str:
        async with self._client() as client:
            try:
                response = await client.get(f"/oauth/{provider}/redirect_url")
                response.raise_for_status()
                return response.json()["redirect_url"]
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                raise IdentityServiceError(f"redirect url lookup failed: {e!r}") from e

    async def exchange_code_for_session_token(self, code: str) -> str:
        async with self._client() as client:
            try:
                response = await client.post("/sessions", json={"code": code})
                response.raise_for_status()
                return response.json()["session_token"]
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                raise IdentityServiceError(f"code exchange failed: {e!r}") from e

    async def get_user(self, session_token: str) -> Optional[dict]:
        """
        Resolve a session token to the user record.

        Returns:
            The user dict, or None when the service rejects the token.

        Raises:
            IdentityServiceError: unreachable service, 5xx, or a body that
                is not a JSON object.
        """
        async with self._client() as client:
            try:
                response = await client.get(
                    "/users/me", headers={"Authorization": f"Bearer {session_token}"}
                )
            except httpx.HTTPError as e:
                raise IdentityServiceError(f"session lookup failed: {e}") from e

        if response.status_code in (401, 403, 404):
            return None
        if response.is_error:
            raise IdentityServiceError(f"session lookup returned {response.status_code}")

        try:
            user = response.json()
        except ValueError as e:
            raise IdentityServiceError("session lookup returned invalid JSON") from e
        if not isinstance(user, dict):
            raise IdentityServiceError("session lookup returned a non-object body")
        return user

    async def delete_session(self, session_token: str) -> None:
        async with self._client() as client:
            try:
                response = await client.delete(
                    "/sessions", headers={"Authorization": f"Bearer {session_token}"}
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise IdentityServiceError(f"session delete failed: {e}") from e


def get_identity_gateway() -> IdentityGateway:
    """Dependency: users service client."""
    return IdentityGateway()


# =============================================================================
# FastAPI Dependencies
# =============================================================================

async def get_current_user(
    request: Request,
    gateway: IdentityGateway = Depends(get_identity_gateway),
) -> dict:
    """
    FastAPI dependency to get the current authenticated user.

    Reads the session cookie and resolves it through the users service.

    Returns:
        The user dict; always has an "id" key.

    Raises:
        HTTPException: 401 if not authenticated or the session is invalid,
            502 if the users service is down or answers garbage.
    """
    if AUTH_BYPASS:
        return {"id": AUTH_BYPASS_USER_ID}

    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
        )
    try:
        user = await gateway.get_user(token)
    except IdentityServiceError as e:
        logger.error("Session validation failed", error=str(e))
        metrics.increment("auth.errors")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Sign-in service unavailable",
        )

    if not user or not user.get("id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session. Please sign in again.",
        )

    return user
