"""
HTTP client for the WorkflowMax (WFM) job-management API.

Calls are bearer-token authenticated and scoped by the configured account id.
The access token is rotated by an external process; on a 401 or 403 the client
re-reads the current token from its ConfigProvider and retries exactly once.
A second auth failure is fatal. Rate limiting (429) and availability errors
(5xx, transport failures) are retried with bounded backoff.
"""
import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from inventory_app.core.config import (
    WFM_ACCOUNT_ID,
    WFM_BASE_URL,
    WFM_MAX_RETRIES,
    WFM_RETRY_BASE_DELAY,
    WFM_TIMEOUT,
)
from inventory_app.core.errors import AuthExpired, ExternalRejected, ExternalUnavailable
from inventory_app.core.retry import backoff_delay
from inventory_app.integrations.config_provider import ConfigProvider

log = logging.getLogger(__name__)

CREATE_JOB_PATH = "job.api/add"
LIST_JOBS_PATH = "job.api/current"

AUTH_FAILURE_STATUSES = (401, 403)

# WFM job identifiers: "J000123" style numbers or UUIDs
EXTERNAL_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]{0,63}$")


def is_valid_external_id(value: Any) -> bool:
    return isinstance(value, str) and bool(EXTERNAL_ID_PATTERN.match(value))


def extract_external_id(response: Any) -> Optional[str]:
    """
    Pulls the created job's identifier out of a create-job response.

    Returns None when the response carries no well-formed identifier, so a
    malformed value is never written to a job record.
    """
    if not isinstance(response, dict):
        return None
    job = response.get("Job") or response.get("job") or response
    if not isinstance(job, dict):
        return None
    for field in ("UUID", "ID", "uuid", "id"):
        value = job.get(field)
        if is_valid_external_id(value):
            return value
    return None


def _error_detail(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, dict):
        return body.get("ErrorDescription") or body.get("error") or body.get("message") or body
    return body


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class WfmClient:
    def __init__(
        self,
        provider: ConfigProvider,
        base_url: str = WFM_BASE_URL,
        account_id: str = WFM_ACCOUNT_ID,
        timeout: float = WFM_TIMEOUT,
        max_retries: int = WFM_MAX_RETRIES,
        retry_base_delay: float = WFM_RETRY_BASE_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.account_id = account_id
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._sleep = sleep
        self._http: Optional[httpx.AsyncClient] = None
        self._token: Optional[str] = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "account_id": self.account_id,
            "Accept": "application/json",
        }

    async def _current_token(self) -> str:
        if self._token is None:
            self._token = await self.provider.get_access_token()
        return self._token

    async def _reload_token(self) -> str:
        # The provider's value is rotated out-of-band; we only pick it up
        self._token = await self.provider.get_access_token()
        return self._token

    async def _backoff(self, attempt: int, response: Optional[httpx.Response] = None) -> None:
        delay = _retry_after(response) if response is not None else None
        if delay is None:
            delay = backoff_delay(attempt, self.retry_base_delay)
        await self._sleep(delay)

    async def _request(self, method: str, path: str, *, json: Any = None, params: Optional[Dict] = None) -> Any:
        token = await self._current_token()
        token_reloaded = False
        attempt = 0

        while True:
            try:
                response = await self.http.request(method, path, json=json, params=params, headers=self._headers(token))
            except httpx.TransportError as exc:
                if attempt < self.max_retries:
                    log.warning(f"WFM {method} {path} transport error (attempt {attempt + 1}): {exc}")
                    await self._backoff(attempt)
                    attempt += 1
                    continue
                raise ExternalUnavailable(f"WFM unreachable: {exc}") from exc

            if response.status_code in AUTH_FAILURE_STATUSES:
                if token_reloaded:
                    raise AuthExpired("WFM rejected the refreshed access token", status=response.status_code,
                                      details=_error_detail(response))
                log.info("WFM token rejected, re-reading the current token and retrying once")
                token = await self._reload_token()
                token_reloaded = True
                continue

            if response.status_code == 429 or response.status_code >= 500:
                if attempt < self.max_retries:
                    log.warning(f"WFM {method} {path} returned {response.status_code} (attempt {attempt + 1}), backing off")
                    await self._backoff(attempt, response)
                    attempt += 1
                    continue
                reason = "rate limited" if response.status_code == 429 else "unavailable"
                raise ExternalUnavailable(f"WFM {reason} after {attempt + 1} attempts",
                                          status=response.status_code, details=_error_detail(response))

            if response.status_code >= 400:
                raise ExternalRejected(f"WFM rejected {method} {path}", status=response.status_code,
                                       details=_error_detail(response))

            if not response.content:
                return {}
            try:
                body = response.json()
            except ValueError as exc:
                raise ExternalRejected(f"WFM returned a non-JSON response to {method} {path}",
                                       status=response.status_code, details=response.text[:500]) from exc
            if isinstance(body, dict) and str(body.get("Status", "OK")).upper() == "ERROR":
                raise ExternalRejected(f"WFM rejected {method} {path}", status=response.status_code,
                                       details=body.get("ErrorDescription") or body)
            return body

    async def create_job(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Creates a job in WFM and returns the raw response body."""
        log.info(f"Creating WFM job '{payload.get('Name')}'")
        return await self._request("POST", CREATE_JOB_PATH, json=payload)

    async def list_jobs(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Lists current WFM jobs."""
        body = await self._request("GET", LIST_JOBS_PATH, params=params)
        if isinstance(body, list):
            return body
        jobs = body.get("Jobs") or body.get("jobs") or []
        if isinstance(jobs, dict):
            # {"Jobs": {"Job": [...]}} shape
            jobs = jobs.get("Job") or []
        return jobs if isinstance(jobs, list) else [jobs]
