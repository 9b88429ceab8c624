from __future__ import annotations

import logging
from typing import Annotated, Any

import httpx
from fastapi import Depends, Request
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = logging.getLogger(__name__)

_RETRYABLE_STATUSES = {502, 503, 504}


class SupabaseRestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: str | None = None,
        hint: str | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.hint = hint
        self.details = details


def build_http(timeout_seconds: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))


def _is_retryable_exception(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exc, SupabaseRestError):
        return exc.status_code in _RETRYABLE_STATUSES
    return False


def _before_sleep_log(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(exc, SupabaseRestError):
        logger.warning(
            "Supabase select retrying due to status %s (attempt %s)",
            exc.status_code,
            retry_state.attempt_number,
        )
    else:
        logger.warning(
            "Supabase select retrying due to transport error (attempt %s)",
            retry_state.attempt_number,
        )


class SupabaseRest:
    """Thin PostgREST client bound to one shared ``httpx.AsyncClient``.

    The HTTP client is owned by the application lifespan; this class never
    creates or closes it.
    """

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        *,
        http: httpx.AsyncClient,
        max_attempts: int = 3,
    ):
        self._rest_base = supabase_url.rstrip("/") + "/rest/v1"
        self._api_key = api_key
        self._http = http
        self._max_attempts = max_attempts

    def _headers(self, *, prefer: str | None = None) -> dict[str, str]:
        h = {
            "apikey": self._api_key,
            "authorization": f"Bearer {self._api_key}",
            "accept": "application/json",
        }
        if prefer:
            h["prefer"] = prefer
        return h

    def _raise_for_error(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        code: str | None = None
        message: str | None = None
        hint: str | None = None
        details: Any | None = None

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            raw_code = payload.get("code")
            code = raw_code if isinstance(raw_code, str) else None
            raw_message = payload.get("message")
            message = raw_message if isinstance(raw_message, str) else None
            raw_hint = payload.get("hint")
            hint = raw_hint if isinstance(raw_hint, str) else None
            details = payload.get("details")
        elif isinstance(payload, str):
            message = payload

        if not message:
            message = resp.text.strip() or None

        raise SupabaseRestError(
            status_code=resp.status_code,
            code=code,
            message=message or f"Supabase request failed ({resp.status_code})",
            hint=hint,
            details=details,
        )

    @staticmethod
    def _as_rows(data: Any) -> list[dict[str, Any]]:
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return [data]
        return []

    async def select(
        self,
        table: str,
        *,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        url = f"{self._rest_base}/{table}"
        data: Any = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential_jitter(initial=0.2, max=2.0),
            retry=retry_if_exception(_is_retryable_exception),
            reraise=True,
            before_sleep=_before_sleep_log,
        ):
            with attempt:
                resp = await self._http.get(url, headers=self._headers(), params=params)
                self._raise_for_error(resp)
                data = resp.json()
        return self._as_rows(data)

    async def insert_one(
        self,
        table: str,
        *,
        row: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"{self._rest_base}/{table}"
        headers = self._headers(prefer="return=representation")
        resp = await self._http.post(url, headers=headers, json=row)
        self._raise_for_error(resp)
        rows = self._as_rows(resp.json())
        return rows[0] if rows else {}

    async def patch(
        self,
        table: str,
        *,
        params: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        url = f"{self._rest_base}/{table}"
        headers = self._headers(prefer="return=representation")
        resp = await self._http.patch(url, headers=headers, params=params, json=payload)
        self._raise_for_error(resp)
        return self._as_rows(resp.json())

    async def delete(
        self,
        table: str,
        *,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        url = f"{self._rest_base}/{table}"
        headers = self._headers(prefer="return=representation")
        resp = await self._http.delete(url, headers=headers, params=params)
        self._raise_for_error(resp)
        if not resp.content:
            return []
        return self._as_rows(resp.json())


def get_store(request: Request) -> SupabaseRest:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise RuntimeError("Storage client is not initialized")
    return store


StoreDep = Annotated[SupabaseRest, Depends(get_store)]
