"""Supabase (PostgREST) 消息表。

通过 REST 接口访问 {supabase_url}/rest/v1/{table}：
- select: GET，过滤条件写成 `col=eq.value`，`order=created_at.asc`。
- insert: POST，`Prefer: return=representation` 取回写入的行。
- delete: DELETE，同样的等值过滤，返回被删除的行数。

行级权限由 Supabase RLS 保证，请求携带登录用户的 access token。
"""

from typing import Any, Dict, List, Mapping

import httpx

from genesis_ai.domain.exceptions import StoreError, ValidationError


class SupabaseMessageTable:
    def __init__(self, cfg):
        url = getattr(cfg, "supabase_url", None)
        anon_key = getattr(cfg, "supabase_anon_key", None)
        if not url or not anon_key:
            raise ValidationError(
                code="SUPABASE_NOT_CONFIGURED",
                message="SUPABASE_URL and SUPABASE_ANON_KEY are required for the supabase backend",
            )
        self._settings = cfg
        table = getattr(cfg, "conversation_table", "ai_conversation_history")
        self._url = f"{url.rstrip('/')}/rest/v1/{table}"
        self._anon_key = anon_key

    def select(self, filters: Mapping[str, str], order_by: str = "created_at") -> List[Dict[str, Any]]:
        params = {"select": "*", "order": f"{order_by}.asc", **self._eq(filters)}
        data = self._request("GET", params=params)
        return data if isinstance(data, list) else []

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request(
            "POST",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        if isinstance(data, list) and data:
            return data[0]
        return dict(row)

    def delete(self, filters: Mapping[str, str]) -> int:
        if not filters:
            # PostgREST 拒绝无条件删除，这里提前拦截
            raise ValidationError(code="UNSAFE_DELETE", message="delete requires at least one filter")
        data = self._request(
            "DELETE",
            params=self._eq(filters),
            headers={"Prefer": "return=representation"},
        )
        return len(data) if isinstance(data, list) else 0

    def _request(self, method: str, **kwargs) -> Any:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {getattr(self._settings, 'supabase_access_token', None) or self._anon_key}",
            "Content-Type": "application/json",
            **kwargs.pop("headers", {}),
        }
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.request(method, self._url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise StoreError(code="STORE_NETWORK_ERROR", message=str(e))
        if resp.status_code >= 400:
            raise StoreError(
                code="STORE_API_ERROR",
                message=resp.text[:200],
                http_status=resp.status_code,
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            raise StoreError(code="STORE_API_ERROR", message="Supabase response is not JSON")

    @staticmethod
    def _eq(filters: Mapping[str, str]) -> Dict[str, str]:
        return {k: f"eq.{v}" for k, v in filters.items()}
