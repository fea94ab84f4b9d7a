import logging
from typing import Any

import httpx

from app.core.config import settings
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class SupabaseClient:
    """
    Thin async client for the Supabase REST API (PostgREST).

    Unlike a best-effort client, every failure is raised as ``StorageError``:
    the search pipeline decides per stage whether an error is fatal.
    """

    def __init__(self, url: str, key: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self.client = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            headers=self.headers,
            timeout=timeout,
            transport=transport,
        )

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        """Call a Postgres function exposed through PostgREST."""
        return await self._request("POST", f"/rest/v1/rpc/{function}", json=params, label=f"rpc {function}")

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Query a table.

        Args:
            table: Table name
            columns: PostgREST select expression
            filters: Column -> PostgREST operator expression, e.g. {"user_id": "eq.42"}
            order: Order expression, e.g. "created_at.desc"
            limit: Maximum number of rows
        """
        params: dict[str, str] = {"select": columns}
        if filters:
            params.update(filters)
        if order:
            params["order"] = order
        if limit:
            params["limit"] = str(limit)

        data = await self._request("GET", f"/rest/v1/{table}", params=params, label=f"select {table}")
        return data or []

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        """Insert a single row without reading it back."""
        await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=minimal"},
            label=f"insert {table}",
        )

    async def ping(self) -> bool:
        try:
            response = await self.client.get("/rest/v1/")
            return response.status_code < 500
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, path: str, label: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StorageError(f"Supabase {label} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            raise StorageError(f"Supabase {label} failed: {message}", status_code=response.status_code)

        if not response.content:
            return None
        return response.json()


def _error_message(response: httpx.Response) -> str:
    """PostgREST returns {"message", "details", "hint", "code"} on errors."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return str(body)


supabase_client: SupabaseClient | None = None


async def connect_supabase():
    global supabase_client
    supabase_client = SupabaseClient(
        url=settings.SUPABASE_URL,
        key=settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=settings.SUPABASE_TIMEOUT_SECONDS,
    )
    logger.info(f"Supabase client ready: {settings.SUPABASE_URL}")


async def close_supabase():
    global supabase_client
    if supabase_client:
        await supabase_client.close()
        supabase_client = None
        logger.info("Supabase client closed")


def get_supabase() -> SupabaseClient:
    if supabase_client is None:
        raise RuntimeError("Supabase not connected. Ensure connect_supabase() was called.")
    return supabase_client
