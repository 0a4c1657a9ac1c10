"""Meta Graph API client with governed wrappers.

``MetaGraphClient`` is a thin HTTP client: it sends requests and turns Graph
error payloads into ``MetaApiError``, whose ``is_rate_limit`` predicate is
what the governor's classifier reads. ``GovernedMetaClient`` routes calls
through a CallGovernor, caching reads under stable keys.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx

from apigovernor.core.config import settings
from apigovernor.services.call_governor import CallGovernor
from apigovernor.services.classifier import parse_retry_after

# Graph API error codes that mean "slow down"
# 4: app-level, 17: user-level, 32: page-level, 613: custom rate limit
RATE_LIMIT_CODES = frozenset({4, 17, 32, 613})
# Business use case limits (80004 is ads management)
BUSINESS_USE_CASE_CODES = range(80000, 80015)

AD_ACCOUNT_FIELDS = "id,name,account_id,account_status,currency,timezone_name"
CAMPAIGN_FIELDS = "id,name,status,objective,daily_budget,lifetime_budget,created_time,updated_time"
AD_SET_FIELDS = (
    "id,name,campaign_id,status,daily_budget,lifetime_budget,targeting,"
    "created_time,updated_time"
)
AD_FIELDS = "id,name,adset_id,status,creative,created_time,updated_time"
INSIGHT_FIELDS = "impressions,clicks,spend,cpm,cpc,ctr,reach,frequency,actions,cost_per_action_type"

INSIGHT_LEVELS = ("account", "campaign", "adset", "ad")


class MetaApiError(Exception):
    """Error payload returned by the Graph API.

    Attributes:
        code: Graph error code, if any
        subcode: Graph error subcode, if any
        status_code: HTTP status of the response
        retry_after: Seconds to wait, when the response said so
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        subcode: Optional[int] = None,
        status_code: int = 400,
        retry_after: Optional[float] = None,
    ):
        self.message = message
        self.code = code
        self.subcode = subcode
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def is_rate_limit(self) -> bool:
        """True when the upstream rejected the call for call volume."""
        if self.status_code == 429:
            return True
        if self.code is None:
            return False
        return self.code in RATE_LIMIT_CODES or self.code in BUSINESS_USE_CASE_CODES

    @classmethod
    def from_response(cls, response: httpx.Response) -> "MetaApiError":
        """Build an error from a failed Graph API response."""
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        try:
            body = response.json()
        except ValueError:
            body = None

        error = body.get("error") if isinstance(body, dict) else None
        if not isinstance(error, dict):
            return cls(
                message=response.text or f"HTTP {response.status_code}",
                status_code=response.status_code,
                retry_after=retry_after,
            )
        return cls(
            message=str(error.get("message", "Unknown Graph API error")),
            code=error.get("code"),
            subcode=error.get("error_subcode"),
            status_code=response.status_code,
            retry_after=retry_after,
        )


class MetaGraphClient:
    """Minimal async Graph API client.

    Accepts an external httpx.AsyncClient for connection pooling, or
    creates a short-lived one per request.
    """

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.access_token = access_token
        self.base_url = (base_url or settings.meta_graph_base_url).rstrip("/")
        self._http_client = http_client
        self.timeout = httpx.Timeout(
            timeout or settings.httpx_timeout, connect=settings.httpx_connect_timeout
        )

    @asynccontextmanager
    async def _client_context(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Yield the shared client, or a per-request one that is closed after."""
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    @staticmethod
    def _parse(response: httpx.Response) -> Dict[str, Any]:
        if response.is_error:
            raise MetaApiError.from_response(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise MetaApiError(
                message=f"Unparseable Graph API response: {response.text[:200]}",
                status_code=response.status_code,
            ) from exc
        if isinstance(data, dict) and "error" in data:
            raise MetaApiError.from_response(response)
        return data

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a Graph API object or edge.

        Raises:
            MetaApiError: The Graph API returned an error.
        """
        query = dict(params or {})
        query["access_token"] = self.access_token
        async with self._client_context() as client:
            response = await client.get(self._url(path), params=query)
        return self._parse(response)

    async def post(self, path: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST form data to a Graph API object or edge.

        Raises:
            MetaApiError: The Graph API returned an error.
        """
        form = {k: str(v) for k, v in (data or {}).items() if v is not None}
        form["access_token"] = self.access_token
        async with self._client_context() as client:
            response = await client.post(self._url(path), data=form)
        return self._parse(response)


class GovernedMetaClient:
    """Graph API calls routed through a CallGovernor.

    Reads are cached under keys derived from their arguments; updates are
    throttled but never cached.
    """

    def __init__(self, client: MetaGraphClient, governor: CallGovernor):
        self.client = client
        self.governor = governor

    async def _list_edge(self, path: str, fields: str, cache_key: str) -> List[Dict[str, Any]]:
        async def fetch() -> List[Dict[str, Any]]:
            data = await self.client.get(path, params={"fields": fields})
            return data.get("data") or []

        return await self.governor.execute(fetch, cache_key=cache_key)

    async def get_ad_accounts(self) -> List[Dict[str, Any]]:
        token_tail = self.client.access_token[-8:]
        return await self._list_edge(
            "me/adaccounts", AD_ACCOUNT_FIELDS, f"ad_accounts_{token_tail}"
        )

    async def get_campaigns(self, ad_account_id: str) -> List[Dict[str, Any]]:
        return await self._list_edge(
            f"{ad_account_id}/campaigns", CAMPAIGN_FIELDS, f"campaigns_{ad_account_id}"
        )

    async def get_ad_sets(self, ad_account_id: str) -> List[Dict[str, Any]]:
        return await self._list_edge(
            f"{ad_account_id}/adsets", AD_SET_FIELDS, f"adsets_{ad_account_id}"
        )

    async def get_ads(self, ad_account_id: str) -> List[Dict[str, Any]]:
        return await self._list_edge(f"{ad_account_id}/ads", AD_FIELDS, f"ads_{ad_account_id}")

    async def get_insights(
        self, level: str, object_id: str, since: str, until: str
    ) -> List[Dict[str, Any]]:
        """Fetch insights for an account, campaign, ad set or ad.

        Args:
            level: One of "account", "campaign", "adset", "ad"
            object_id: Graph id of the object
            since: Start date, YYYY-MM-DD
            until: End date, YYYY-MM-DD
        """
        if level not in INSIGHT_LEVELS:
            raise ValueError(f"level must be one of {INSIGHT_LEVELS}")
        params = {
            "fields": INSIGHT_FIELDS,
            "time_range": json.dumps({"since": since, "until": until}),
        }

        async def fetch() -> List[Dict[str, Any]]:
            data = await self.client.get(f"{object_id}/insights", params=params)
            return data.get("data") or []

        cache_key = f"{level}_insights_{object_id}_{since}_{until}"
        return await self.governor.execute(fetch, cache_key=cache_key)

    async def update_object(self, object_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Update a campaign, ad set or ad. Never cached."""
        return await self.governor.execute(lambda: self.client.post(object_id, data=updates))
