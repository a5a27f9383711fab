"""
Marketplace Integration Service

HTTP clients for the marketplaces whose orders we reconcile:
- Coupang Open API (seller-shipped orders, Rocket Growth orders and stock, revenue)
- Naver Commerce API (SmartStore product orders)

Clients only fetch. They sign requests, retry rate-limited and timed-out calls
with exponential backoff, and hand back one page at a time as a FetchPage.
Callers drive pagination by feeding next_cursor back (see iterate_pages).
Nothing here touches the database.

Both marketplaces allow-list caller IPs, so production traffic goes through
PROXY_URL.
"""

import asyncio
import base64
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlencode

import bcrypt
import httpx

from sellerops.config import settings, Settings
from sellerops.models.product import Marketplace
from sellerops.services.window_partitioner import (
    DateWindow,
    WindowPolicy,
    filter_to_window,
    request_bounds,
)

logger = logging.getLogger(__name__)


# ==================== Errors ====================

class MarketplaceError(Exception):
    """Custom exception for marketplace errors."""
    def __init__(self, message: str, marketplace: str = None, error_code: str = None, details: Dict = None):
        self.message = message
        self.marketplace = marketplace
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class MarketplaceConfigError(MarketplaceError):
    """No usable credentials for the requested marketplace."""


class MarketplaceAuthError(MarketplaceError):
    """Token issuance or request signing was rejected."""


class MarketplaceFetchError(MarketplaceError):
    """Non-2xx response or transport failure."""


class RateLimitError(MarketplaceFetchError):
    """HTTP 429 persisted through every retry."""


class MarketplaceTimeoutError(MarketplaceFetchError):
    """Request timed out on every retry."""


# ==================== Accounts ====================

@dataclass(frozen=True)
class CoupangAccount:
    name: str
    vendor_id: str
    access_key: str
    secret_key: str = field(repr=False)


@dataclass(frozen=True)
class NaverAccount:
    name: str
    client_id: str
    client_secret: str = field(repr=False)


def get_coupang_accounts(config: Settings = settings) -> List[CoupangAccount]:
    """Configured Coupang accounts; incomplete credential sets are ignored."""
    candidates = [
        (config.COUPANG_ACCOUNT_NAME, config.COUPANG_VENDOR_ID, config.COUPANG_ACCESS_KEY, config.COUPANG_SECRET_KEY),
        (config.COUPANG_ACCOUNT_NAME_2, config.COUPANG_VENDOR_ID_2, config.COUPANG_ACCESS_KEY_2, config.COUPANG_SECRET_KEY_2),
    ]
    return [
        CoupangAccount(name=name, vendor_id=vendor_id, access_key=access_key, secret_key=secret_key)
        for name, vendor_id, access_key, secret_key in candidates
        if vendor_id and access_key and secret_key
    ]


def get_naver_accounts(config: Settings = settings) -> List[NaverAccount]:
    """Configured Naver Commerce accounts."""
    candidates = [
        (config.NAVER_ACCOUNT_NAME, config.NAVER_CLIENT_ID, config.NAVER_CLIENT_SECRET),
        (config.NAVER_ACCOUNT_NAME_2, config.NAVER_CLIENT_ID_2, config.NAVER_CLIENT_SECRET_2),
    ]
    return [
        NaverAccount(name=name, client_id=client_id, client_secret=client_secret)
        for name, client_id, client_secret in candidates
        if client_id and client_secret
    ]


def create_http_client(config: Settings = settings) -> httpx.AsyncClient:
    """Process-wide HTTP client, routed through the fixed-IP proxy when configured."""
    return httpx.AsyncClient(
        timeout=config.MARKETPLACE_HTTP_TIMEOUT_SECONDS,
        proxy=config.PROXY_URL or None,
    )


# ==================== Paging ====================

@dataclass
class FetchPage:
    """One page of raw marketplace records."""
    records: List[Dict[str, Any]]
    next_cursor: Optional[str] = None


PageFetcher = Callable[[DateWindow, Optional[str]], Awaitable[FetchPage]]


class PageIterator:
    """
    Async iterator over pages, following next_cursor until the marketplace
    stops returning one.

    Stops early (between pages) when the budget is exhausted or max_pages is
    reached; `truncated` is then True because pages were left unread. The
    sequence is restartable: iterate again with the same fetch.
    """

    def __init__(
        self,
        fetch: Callable[[Optional[str]], Awaitable[FetchPage]],
        budget: Any = None,
        max_pages: Optional[int] = None,
    ):
        self.fetch = fetch
        self.budget = budget
        self.max_pages = max_pages or settings.MARKETPLACE_MAX_PAGES
        self.pages = 0
        self.truncated = False

    async def __aiter__(self) -> AsyncIterator[FetchPage]:
        self.pages = 0
        self.truncated = False
        cursor = None
        seen_cursors = set()

        while True:
            page = await self.fetch(cursor)
            self.pages += 1
            yield page

            cursor = page.next_cursor
            if not cursor:
                return
            if cursor in seen_cursors:
                logger.warning(f"Pagination cursor repeated after page {self.pages}, stopping")
                return
            seen_cursors.add(cursor)

            if self.budget is not None and self.budget.exhausted:
                logger.warning(f"Time budget exhausted after page {self.pages}, remaining pages deferred")
                self.truncated = True
                return
            if self.pages >= self.max_pages:
                logger.warning(f"Stopped paging after {self.max_pages} pages")
                self.truncated = True
                return


def iterate_pages(
    fetch: Callable[[Optional[str]], Awaitable[FetchPage]],
    budget: Any = None,
    max_pages: Optional[int] = None,
) -> PageIterator:
    return PageIterator(fetch, budget, max_pages)


@dataclass
class CollectedWindow:
    """Records of one window; truncated when paging stopped before the last page."""
    window: DateWindow
    records: List[Dict[str, Any]]
    truncated: bool = False
    pages: int = 0


async def collect_window(
    fetch_page: PageFetcher,
    window: DateWindow,
    policy: WindowPolicy,
    timestamp_fn: Optional[Callable[[Dict[str, Any]], Any]] = None,
    budget: Any = None,
    max_pages: Optional[int] = None,
) -> CollectedWindow:
    """
    Fetch every record for a window, honouring the endpoint's boundary policy.

    The request is widened per policy. When the policy filters by record time,
    records are trimmed back to the intended window by their own timestamp.
    A truncated result means pages were left unread.
    """
    request_start, request_end = request_bounds(window, policy)
    request_window = DateWindow(request_start, request_end, window.status)

    records: List[Dict[str, Any]] = []
    pages = iterate_pages(lambda cursor: fetch_page(request_window, cursor), budget, max_pages)
    async for page in pages:
        records.extend(page.records)

    if policy.filter_by_record_time and timestamp_fn is not None:
        records = filter_to_window(records, window, timestamp_fn)
    return CollectedWindow(window=window, records=records, truncated=pages.truncated, pages=pages.pages)


# ==================== Base client ====================

class MarketplaceClient:
    """Shared request plumbing: retries on 429 and timeouts, typed errors otherwise."""

    marketplace: str = ""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._http_client = http_client
        self.max_retries = settings.MARKETPLACE_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.MARKETPLACE_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self.timeout = timeout or settings.MARKETPLACE_HTTP_TIMEOUT_SECONDS
        self._sleep = sleep

    async def _dispatch(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout, proxy=settings.PROXY_URL or None) as client:
            return await client.request(method, url, **kwargs)

    def _backoff(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** attempt)

    @staticmethod
    def _retry_after(response: httpx.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if value and value.strip().isdigit():
            return float(value)
        return None

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, retrying rate limits and timeouts with backoff."""
        attempt = 0
        while True:
            try:
                response = await self._dispatch(method, url, **kwargs)
            except httpx.TimeoutException as e:
                if attempt >= self.max_retries:
                    raise MarketplaceTimeoutError(
                        message=f"{self.marketplace} request timed out after {attempt + 1} attempts",
                        marketplace=self.marketplace,
                        error_code="TIMEOUT",
                        details={"url": url},
                    ) from e
                delay = self._backoff(attempt)
                logger.warning(f"[{self.marketplace}] timeout, retrying in {delay:.1f}s ({attempt + 1}/{self.max_retries})")
            except httpx.HTTPError as e:
                raise MarketplaceFetchError(
                    message=f"{self.marketplace} request failed: {e}",
                    marketplace=self.marketplace,
                    error_code="TRANSPORT",
                    details={"url": url},
                ) from e
            else:
                if response.status_code != 429:
                    return response
                if attempt >= self.max_retries:
                    raise RateLimitError(
                        message=f"{self.marketplace} rate limit persisted after {attempt + 1} attempts",
                        marketplace=self.marketplace,
                        error_code="429",
                        details={"url": url},
                    )
                delay = self._retry_after(response) or self._backoff(attempt)
                logger.warning(f"[{self.marketplace}] rate limited, retrying in {delay:.1f}s ({attempt + 1}/{self.max_retries})")

            attempt += 1
            await self._sleep(delay)

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            raise MarketplaceFetchError(
                message=f"{self.marketplace} API error {response.status_code}: {response.text[:500]}",
                marketplace=self.marketplace,
                error_code=str(response.status_code),
                details={"response": response.text[:2000]},
            )


# ==================== Coupang ====================

def coupang_signed_date(now: Optional[datetime] = None) -> str:
    """UTC timestamp in the YYMMDDTHHMMSSZ form CEA expects."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%y%m%dT%H%M%SZ")


def coupang_signature(secret_key: str, signed_date: str, method: str, path: str, query: str) -> str:
    """HMAC-SHA256 over signed-date + method + path + query (no '?')."""
    message = f"{signed_date}{method}{path}{query}"
    return hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


class CoupangClient(MarketplaceClient):
    """
    Coupang Open API client for a single vendor account.

    Documentation: https://developers.coupangcorp.com/
    Limits: about 50 calls per minute per API, 30 day maximum range.
    """

    marketplace = Marketplace.COUPANG.value

    SELLER_ORDERS_PATH = "/v2/providers/openapi/apis/api/v4/vendors/{vendor_id}/ordersheets"
    ROCKET_ORDERS_PATH = "/v2/providers/rg_open_api/apis/api/v1/vendors/{vendor_id}/rg/orders"
    ROCKET_INVENTORY_PATH = "/v2/providers/rg_open_api/apis/api/v1/vendors/{vendor_id}/rg/inventory/summaries"
    REVENUE_PATH = "/v2/providers/openapi/apis/api/v1/revenue-history"

    SELLER_PAGE_SIZE = 50
    REVENUE_PAGE_SIZE = 50

    def __init__(self, account: CoupangAccount, base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.account = account
        self.base_url = (base_url or settings.COUPANG_API_URL).rstrip("/")

    def authorization_header(self, method: str, path: str, query: str, now: Optional[datetime] = None) -> str:
        signed_date = coupang_signed_date(now)
        signature = coupang_signature(self.account.secret_key, signed_date, method, path, query)
        return (
            f"CEA algorithm=HmacSHA256, access-key={self.account.access_key}, "
            f"signed-date={signed_date}, signature={signature}"
        )

    async def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict:
        """Signed request; the query string is built once so the signature matches the wire."""
        query = urlencode({k: v for k, v in (params or {}).items() if v is not None})
        url = f"{self.base_url}{path}" + (f"?{query}" if query else "")
        headers = {
            "Authorization": self.authorization_header(method, path, query),
            "Content-Type": "application/json;charset=UTF-8",
            "X-Requested-By": self.account.vendor_id,
        }

        response = await self._send(method, url, headers=headers)
        if response.status_code in (401, 403):
            raise MarketplaceAuthError(
                message=f"Coupang rejected credentials for {self.account.name}: {response.text[:300]}",
                marketplace=self.marketplace,
                error_code=str(response.status_code),
            )
        self._raise_for_status(response)

        data = response.json()
        if isinstance(data, dict) and str(data.get("code", "")).upper() == "ERROR":
            raise MarketplaceFetchError(
                message=f"Coupang API error: {data.get('message')}",
                marketplace=self.marketplace,
                error_code="ERROR",
                details={"response": data},
            )
        return data

    @staticmethod
    def _page(data: Dict) -> FetchPage:
        return FetchPage(records=list(data.get("data") or []), next_cursor=data.get("nextToken") or None)

    async def fetch_seller_orders(self, window: DateWindow, cursor: Optional[str] = None) -> FetchPage:
        """Seller-shipped ordersheets for one status; dates are YYYY-MM-DD."""
        if not window.status:
            raise ValueError("Seller ordersheets must be queried per status")
        data = await self._request(
            "GET",
            self.SELLER_ORDERS_PATH.format(vendor_id=self.account.vendor_id),
            {
                "createdAtFrom": window.start.isoformat(),
                "createdAtTo": window.end.isoformat(),
                "status": window.status,
                "maxPerPage": self.SELLER_PAGE_SIZE,
                "nextToken": cursor,
            },
        )
        return self._page(data)

    async def fetch_rocket_orders(self, window: DateWindow, cursor: Optional[str] = None) -> FetchPage:
        """Rocket Growth orders by paid date; dates are yyyymmdd."""
        data = await self._request(
            "GET",
            self.ROCKET_ORDERS_PATH.format(vendor_id=self.account.vendor_id),
            {
                "paidDateFrom": window.start.strftime("%Y%m%d"),
                "paidDateTo": window.end.strftime("%Y%m%d"),
                "nextToken": cursor,
            },
        )
        return self._page(data)

    async def fetch_revenue(self, window: DateWindow, cursor: Optional[str] = None) -> FetchPage:
        """Recognised revenue lines for both Coupang channels."""
        data = await self._request(
            "GET",
            self.REVENUE_PATH,
            {
                "vendorId": self.account.vendor_id,
                "recognitionDateFrom": window.start.isoformat(),
                "recognitionDateTo": window.end.isoformat(),
                "maxPerPage": self.REVENUE_PAGE_SIZE,
                "token": cursor or "",
            },
        )
        return self._page(data)

    async def fetch_rocket_inventory(self, cursor: Optional[str] = None) -> FetchPage:
        """Fulfillment-center stock summaries (only items with stock are returned)."""
        data = await self._request(
            "GET",
            self.ROCKET_INVENTORY_PATH.format(vendor_id=self.account.vendor_id),
            {"nextToken": cursor},
        )
        return self._page(data)


# ==================== Naver Commerce ====================

def naver_signature(client_id: str, client_secret: str, timestamp_ms: int) -> str:
    """base64(bcrypt(client_id + '_' + timestamp, salt=client_secret))."""
    password = f"{client_id}_{timestamp_ms}".encode("utf-8")
    hashed = bcrypt.hashpw(password, client_secret.encode("utf-8"))
    return base64.b64encode(hashed).decode("utf-8")


class NaverCommerceClient(MarketplaceClient):
    """
    Naver Commerce API client for a single SmartStore account.

    Documentation: https://apicenter.commerce.naver.com/
    """

    marketplace = Marketplace.NAVER.value

    TOKEN_PATH = "/external/v1/oauth2/token"
    PRODUCT_ORDERS_PATH = "/external/v1/pay-order/seller/product-orders"
    PAGE_SIZE = 300
    RANGE_TYPE = "PAYED_DATETIME"

    def __init__(self, account: NaverAccount, base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.account = account
        self.base_url = (base_url or settings.NAVER_API_URL).rstrip("/")
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None

    async def _get_access_token(self, force_refresh: bool = False) -> str:
        """Client-credentials token, cached until a minute before expiry."""
        if (
            not force_refresh
            and self._access_token
            and self._token_expiry
            and datetime.now(timezone.utc) < self._token_expiry
        ):
            return self._access_token

        timestamp = int(time.time() * 1000)
        response = await self._send(
            "POST",
            f"{self.base_url}{self.TOKEN_PATH}",
            data={
                "client_id": self.account.client_id,
                "timestamp": str(timestamp),
                "client_secret_sign": naver_signature(self.account.client_id, self.account.client_secret, timestamp),
                "grant_type": "client_credentials",
                "type": "SELF",
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if response.status_code >= 400:
            raise MarketplaceAuthError(
                message=f"Naver token request failed for {self.account.name}: {response.text[:300]}",
                marketplace=self.marketplace,
                error_code=str(response.status_code),
            )

        data = response.json()
        self._access_token = data["access_token"]
        self._token_expiry = datetime.now(timezone.utc) + timedelta(seconds=int(data.get("expires_in", 3600)) - 60)
        return self._access_token

    async def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict:
        """Authenticated request; a 401 refreshes the token once."""
        for refresh in (False, True):
            token = await self._get_access_token(force_refresh=refresh)
            response = await self._send(
                method,
                f"{self.base_url}{path}",
                params=params,
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            )
            if response.status_code != 401:
                break
            logger.info(f"[naver] token rejected for {self.account.name}, refreshing")

        if response.status_code == 401:
            raise MarketplaceAuthError(
                message=f"Naver rejected a fresh token for {self.account.name}",
                marketplace=self.marketplace,
                error_code="401",
            )
        self._raise_for_status(response)
        return response.json()

    async def fetch_product_orders(self, window: DateWindow, cursor: Optional[str] = None) -> FetchPage:
        """Product orders paid inside the window (KST day bounds)."""
        page = int(cursor or 1)
        data = await self._request(
            "GET",
            self.PRODUCT_ORDERS_PATH,
            {
                "from": f"{window.start.isoformat()}T00:00:00.000+09:00",
                "to": f"{window.end.isoformat()}T23:59:59.999+09:00",
                "rangeType": self.RANGE_TYPE,
                "pageSize": self.PAGE_SIZE,
                "page": page,
            },
        )
        body = data.get("data") or {}
        pagination = body.get("pagination") or {}
        next_cursor = str(page + 1) if pagination.get("hasNext") else None
        return FetchPage(records=list(body.get("contents") or []), next_cursor=next_cursor)
