"""当前用户会话解析。

ChatFacade 每次调用都通过 SessionProvider 解析当前用户：

- StaticSession: 本地单用户模式，用户ID 来自配置。
- SupabaseSession: 用 access token 请求 {supabase_url}/auth/v1/user。

解析不到用户时返回 None，由 ChatFacade 抛出 UnauthenticatedError。
"""

from typing import Optional, Protocol

import httpx

from genesis_ai.config.settings import settings
from genesis_ai.domain.models import SessionUser
from genesis_ai.infrastructure.logging.logger import logger


class SessionProvider(Protocol):
    def get_user(self) -> Optional[SessionUser]:
        ...


class StaticSession:
    def __init__(self, user_id: Optional[str], email: Optional[str] = None):
        self._user = SessionUser(id=user_id, email=email) if user_id else None

    def get_user(self) -> Optional[SessionUser]:
        return self._user


class SupabaseSession:
    def __init__(self, cfg=settings, access_token: Optional[str] = None):
        self._settings = cfg
        self._access_token = access_token or getattr(cfg, "supabase_access_token", None)

    def get_user(self) -> Optional[SessionUser]:
        url = getattr(self._settings, "supabase_url", None)
        if not url or not self._access_token:
            return None
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.get(
                    f"{url.rstrip('/')}/auth/v1/user",
                    headers={
                        "apikey": getattr(self._settings, "supabase_anon_key", None) or "",
                        "Authorization": f"Bearer {self._access_token}",
                    },
                )
        except httpx.RequestError as e:
            logger.warning("Supabase auth lookup failed", extra={"extra": {"error": str(e)}})
            return None
        if resp.status_code >= 400:
            logger.info("Supabase session rejected", extra={"extra": {"http_status": resp.status_code}})
            return None
        try:
            data = resp.json()
        except ValueError:
            return None
        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            return None
        return SessionUser(id=str(user_id), email=data.get("email"))


def create_session(cfg=None) -> SessionProvider:
    """配置了 Supabase access token 时走 Supabase 会话，否则用本地用户ID。"""

    cfg = cfg or settings
    if getattr(cfg, "supabase_url", None) and getattr(cfg, "supabase_access_token", None):
        return SupabaseSession(cfg)
    return StaticSession(getattr(cfg, "user_id", None))
