"""Request authentication against Supabase Auth."""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from fastapi import HTTPException, Request

logger = structlog.get_logger()

ACCESS_TOKEN_COOKIE = "sb-access-token"


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None


def extract_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    header = request.headers.get("authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


class SupabaseAuth:
    """Resolves access tokens to users via ``GET /auth/v1/user``."""

    def __init__(self, url: str, anon_key: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def get_user(self, token: str) -> Optional[AuthUser]:
        try:
            response = await self._client.get(
                f"{self.url}/auth/v1/user",
                headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.error("auth_request_failed", error=str(e))
            return None
        if response.status_code != 200:
            logger.warning("auth_token_rejected", status=response.status_code)
            return None
        data = response.json()
        if not data.get("id"):
            return None
        return AuthUser(id=data["id"], email=data.get("email"))

    async def authenticate(self, request: Request) -> AuthUser:
        token = extract_token(request)
        if not token:
            raise HTTPException(status_code=401, detail="Unauthorized")
        user = await self.get_user(token)
        if user is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return user

    async def close(self) -> None:
        await self._client.aclose()
