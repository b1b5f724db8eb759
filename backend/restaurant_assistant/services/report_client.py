"""
Report Client

Async HTTP client for the restaurant report API: the aggregation endpoints
(orders, campaigns, feedback, menu events, consumers, store) that the
dashboard reads from. The analysis tool uses it to pull the data a question
needs.

Responses are reduced before they reach the model: bookkeeping keys are
dropped, long opaque ids removed, wrapped timestamps flattened and long
arrays truncated. Failures never raise; they come back as inline
"Error: ..." text so the model can tell the manager what was unavailable.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from restaurant_assistant.config import settings
from restaurant_assistant.models import TimeFilter, ToolAnalysisResult
from restaurant_assistant.services.cache_service import CacheService, cache_service

logger = logging.getLogger(__name__)


REPORT_ENDPOINTS: Dict[str, List[str]] = {
    "campaign": [
        "/api/campaigns/summary",
        "/api/campaigns/performance",
        "/api/campaigns/conversion",
        "/api/campaigns/revenue",
        "/api/campaigns/vouchers",
        "/api/campaigns/status",
        "/api/campaigns/custom-analysis",
        "/api/campaigns/top-performing",
    ],
    "menu": [
        "/api/menu-events/insights",
    ],
    "orders": [
        "/api/orders/total",
        "/api/orders/revenue",
        "/api/orders/most-ordered",
        "/api/orders",
        "/api/orders/payment-types",
        "/api/orders/delivery",
        "/api/orders/motoboys",
    ],
    "consumers": [
        "/api/consumers/stats",
        "/api/consumers/new",
        "/api/consumers/new-zero-orders",
        "/api/consumer-preferences/stats",
    ],
    "feedbacks": [
        "/api/feedbacks/average",
        "/api/feedbacks/analysis",
    ],
    "store": [
        "/api/store",
    ],
}

# Endpoints accepting startDate / endDate query parameters
TIME_FILTERABLE_ENDPOINTS = frozenset({
    "/api/orders/total",
    "/api/orders/revenue",
    "/api/orders/most-ordered",
    "/api/orders/payment-types",
    "/api/orders/delivery",
    "/api/orders/motoboys",
    "/api/feedbacks/average",
})

FILTER_DAYS = {"1d": 1, "7d": 7, "30d": 30}

NO_DOMAINS_SELECTED = "No APIs were selected for data retrieval."

_DROPPED_KEYS = {"success", "cached", "_date"}
_TIMESTAMP_KEYS = {"timestamp", "created_at", "updated_at"}
_MAX_ID_LENGTH = 30


def should_apply_time_filter(endpoint: str) -> bool:
    return endpoint in TIME_FILTERABLE_ENDPOINTS


def _to_iso(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_date_range_from_filter(
    time_filter: Optional[TimeFilter],
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Resolve a time filter to startDate / endDate query parameters.

    Relative periods end at the last millisecond of today (local time) and
    reach back the given number of days. "all" and a missing filter give no
    parameters; "custom" passes the supplied dates through.
    """
    if time_filter is None or time_filter.type == "all":
        return {}

    if time_filter.type == "custom":
        params = {}
        if time_filter.start_date:
            params["startDate"] = time_filter.start_date
        if time_filter.end_date:
            params["endDate"] = time_filter.end_date
        return params

    days = FILTER_DAYS.get(time_filter.type)
    if days is None:
        return {}

    now = (now or datetime.now()).astimezone()
    end = now.replace(hour=23, minute=59, second=59, microsecond=999000)
    start = end - timedelta(days=days)
    return {"startDate": _to_iso(start), "endDate": _to_iso(end)}


def clean_for_llm(data: Any, max_array_items: Optional[int] = None) -> Any:
    """Reduce a report response body to what is worth spending tokens on."""
    limit = max_array_items if max_array_items is not None else settings.report_max_array_items

    if data is None:
        return None

    if isinstance(data, list):
        cleaned = [clean_for_llm(item, limit) for item in data[:limit]]
        if len(data) > limit:
            cleaned.append(f"... ({len(data) - limit} more items)")
        return cleaned

    if not isinstance(data, dict):
        return data

    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if key in _DROPPED_KEYS:
            continue

        if key == "data" and isinstance(value, (dict, list)):
            inner = clean_for_llm(value, limit)
            if isinstance(inner, list):
                cleaned[key] = inner
            else:
                cleaned.update(inner)
            continue

        if key == "error":
            cleaned[key] = value
            continue

        if ("_id" in key or key == "id") and isinstance(value, str) and len(value) > _MAX_ID_LENGTH:
            continue

        if key in _TIMESTAMP_KEYS:
            if isinstance(value, dict) and "iso" in value:
                cleaned[key] = value["iso"]
            elif isinstance(value, str):
                cleaned[key] = value
            continue

        if isinstance(value, dict):
            if not value:
                continue
            inner = clean_for_llm(value, limit)
            if inner:
                cleaned[key] = inner
            continue

        cleaned[key] = clean_for_llm(value, limit)

    return cleaned


class ReportClient:
    """Fetches and formats report data for the analysis tool."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[CacheService] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._cache = cache if cache is not None else cache_service

    @property
    def base_url(self) -> str:
        return (self._base_url or settings.get_report_api_base_url()).rstrip("/")

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout if self._timeout is not None else settings.report_request_timeout,
            transport=self._transport,
        )

    async def fetch_endpoint(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        time_filter: Optional[TimeFilter] = None,
    ) -> str:
        """Fetch one endpoint and return its reduced body as indented JSON."""
        params = {}
        if time_filter is not None and should_apply_time_filter(endpoint):
            params = get_date_range_from_filter(time_filter)

        cache_key = f"{self.base_url}{endpoint}"
        if params:
            cache_key += f"?{httpx.QueryParams(params)}"

        body = self._cache.get_report(cache_key)
        if body is None:
            try:
                response = await client.get(endpoint, params=params or None)
            except httpx.HTTPError as e:
                logger.warning(f"[REPORTS] {endpoint} unreachable: {e}")
                return f"Error fetching {endpoint}: {e}"

            if not response.is_success:
                logger.warning(f"[REPORTS] {endpoint} returned {response.status_code}")
                return f"Error: {response.status_code} {response.reason_phrase}"

            try:
                body = response.json()
            except ValueError as e:
                return f"Error fetching {endpoint}: {e}"

            self._cache.set_report(cache_key, body)
        else:
            logger.debug(f"[REPORTS] Cache hit for {cache_key}")

        return json.dumps(clean_for_llm(body), indent=2, ensure_ascii=False)

    async def fetch_domain(
        self,
        client: httpx.AsyncClient,
        domain: str,
        time_filter: Optional[TimeFilter] = None,
    ) -> str:
        """Fetch every endpoint of a domain concurrently, one labelled block each."""
        endpoints = REPORT_ENDPOINTS[domain]
        bodies = await asyncio.gather(
            *(self.fetch_endpoint(client, endpoint, time_filter) for endpoint in endpoints)
        )

        blocks = []
        for endpoint, body in zip(endpoints, bodies):
            label = endpoint
            if time_filter is not None and should_apply_time_filter(endpoint):
                label += f" ({time_filter.type})"
            blocks.append(f"\n--- {label} ---\n{body}")
        return "\n".join(blocks)

    async def execute_analysis(self, analysis: ToolAnalysisResult) -> str:
        """Fetch the data for every domain the analysis selected."""
        domains = analysis.selected_domains()
        if not domains:
            return NO_DOMAINS_SELECTED

        time_filter = analysis.time_filter
        logger.info(
            f"[REPORTS] Fetching {', '.join(domains)}"
            + (f" (filter={time_filter.type})" if time_filter else "")
        )

        async with self._new_client() as client:
            sections = await asyncio.gather(
                *(self.fetch_domain(client, domain, time_filter) for domain in domains)
            )

        return "\n\n".join(
            f"\n=== {domain.upper()} DATA ===\n{section}"
            for domain, section in zip(domains, sections)
        )


# Singleton instance
report_client = ReportClient()
