"""
Dropshipzone HTTP client — token management and REST API calls.

All supplier I/O goes through request(), which applies the rate limiter,
attaches the jwt header and retries transport failures, 401s (after a
transparent re-authentication) and 429s under one bounded RetryPolicy.
Version: 1.0.0
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx

from dsz_sync.core.config import Settings
from dsz_sync.core.constants.sync import (
    DEFAULT_TOKEN_LIFETIME_SECONDS,
    MAX_PRODUCTS_PER_PAGE,
    MAX_SKUS_PER_API_CALL,
    MAX_STOCK_PER_PAGE,
    OPTION_API_EMAIL,
    OPTION_API_PASSWORD,
    OPTION_API_TOKEN,
    OPTION_TOKEN_EXPIRY,
    STOCK_WINDOW_DAYS,
    TOKEN_BUFFER_SECONDS,
)
from dsz_sync.core.exceptions import (
    ApiError,
    AuthenticationFailed,
    DszSyncException,
    InvalidResponse,
    MissingCredentials,
    RateLimited,
    TransportError,
    Unauthorized,
)
from dsz_sync.schemas.state import AuthToken
from dsz_sync.utils.retry_policy import (
    DEFAULT_RETRY_POLICY,
    RATE_LIMIT,
    TRANSPORT,
    UNAUTHORIZED,
    RetryPolicy,
)

logger = logging.getLogger("dsz_client")

AUTH_PATH = "/auth"
PRODUCTS_PATH = "/v2/products"
STOCK_PATH = "/stock"
ORDER_PATH = "/order"


class DszClient:
    def __init__(
        self,
        settings: Settings,
        store,
        rate_limiter,
        retry_policy: Optional[RetryPolicy] = None,
        http: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = settings.dsz_api_base_url.rstrip("/")
        self._default_email = settings.dsz_api_email
        self._default_password = settings.dsz_api_password
        self._store = store
        self._rate_limiter = rate_limiter
        self._retry_policy = retry_policy or DEFAULT_RETRY_POLICY
        self._http = http or httpx.Client(timeout=httpx.Timeout(settings.dsz_http_timeout))
        self._sleep = sleep
        self._clock = clock

        self._token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._load_token()

    # ------------------------------------------------------------------
    # Token manager
    # ------------------------------------------------------------------

    def _load_token(self) -> None:
        self._token = self._store.get(OPTION_API_TOKEN) or None
        try:
            self._token_expiry = float(self._store.get(OPTION_TOKEN_EXPIRY, 0) or 0)
        except (TypeError, ValueError):
            self._token_expiry = 0.0

    def is_token_valid(self) -> bool:
        if not self._token:
            return False
        return self._token_expiry - self._clock() > TOKEN_BUFFER_SECONDS

    def get_token_status(self) -> Dict[str, Any]:
        return {
            "has_token": bool(self._token),
            "is_valid": self.is_token_valid(),
            "expires_at": self._token_expiry,
            "expires_in": max(0, int(self._token_expiry - self._clock())),
        }

    def _resolve_credentials(self, email: Optional[str], password: Optional[str]):
        email = email or self._store.get(OPTION_API_EMAIL) or self._default_email
        password = password or self._store.get(OPTION_API_PASSWORD) or self._default_password
        return email, password

    def save_credentials(self, email: str, password: str) -> None:
        """Persist API credentials for later (unattended) authentication."""
        self._store.set(OPTION_API_EMAIL, email)
        self._store.set(OPTION_API_PASSWORD, password)
        logger.info("dsz credentials saved email=%s", email)

    def authenticate(self, email: Optional[str] = None, password: Optional[str] = None) -> AuthToken:
        """
        Obtain a fresh token.

        Credentials fall back to the stored ones, then to environment settings.

        Raises:
            MissingCredentials: no email/password available
            AuthenticationFailed: supplier rejected the request
            InvalidResponse: response carried no token
        """
        email, password = self._resolve_credentials(email, password)
        if not email or not password:
            logger.error("Authentication failed: missing credentials")
            raise MissingCredentials()

        try:
            response = self.request(
                "POST", AUTH_PATH, {"email": email, "password": password}, use_auth=False
            )
        except (ApiError, Unauthorized) as exc:
            logger.error("Authentication failed error=%s", exc.message)
            raise AuthenticationFailed(exc.message) from exc

        token = response.get("token") if isinstance(response, dict) else None
        if not token:
            logger.error("Authentication failed: invalid response keys=%s", list(response or {}))
            raise InvalidResponse("Invalid API response. Please check your credentials.")

        try:
            expiry = float(response.get("exp") or 0)
        except (TypeError, ValueError):
            expiry = 0.0
        if expiry <= 0:
            expiry = self._clock() + DEFAULT_TOKEN_LIFETIME_SECONDS

        self._token = token
        self._token_expiry = expiry
        self._store.set(OPTION_API_TOKEN, token)
        self._store.set(OPTION_TOKEN_EXPIRY, expiry)

        logger.info(
            "Authentication successful expires_at=%s",
            datetime.fromtimestamp(expiry).strftime("%Y-%m-%d %H:%M:%S"),
        )
        return AuthToken(value=token, expiry=expiry)

    def ensure_valid_token(self) -> bool:
        """No-op while the token has more than the buffer left; otherwise re-authenticate."""
        # Another worker may have refreshed the token since we loaded it
        self._load_token()

        if self.is_token_valid():
            logger.debug("Token valid expires_in=%s", int(self._token_expiry - self._clock()))
            return True

        logger.info("Token expired or missing, refreshing had_token=%s", bool(self._token))
        self.authenticate()
        return True

    def clear_token(self) -> None:
        self._token = None
        self._token_expiry = 0.0
        self._store.delete(OPTION_API_TOKEN)
        self._store.delete(OPTION_TOKEN_EXPIRY)
        logger.info("dsz token cleared")

    # ------------------------------------------------------------------
    # Request primitive
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_body(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return None

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        use_auth: bool = True,
    ) -> Any:
        """
        Issue one logical API call.

        Returns the parsed JSON body of a 2xx response as-is.

        Raises:
            TransportError: network failure after retries
            Unauthorized: 401 after re-authentication retries
            RateLimited: 429 after retries
            ApiError: any other status >= 400
            InvalidResponse: 2xx response that is not JSON
        """
        method = method.upper()
        url = f"{self._base_url}{path}"
        retries = 0

        while True:
            self._rate_limiter.smart_wait()
            self._rate_limiter.record_request()

            headers = {"Content-Type": "application/json", "Accept": "application/json"}
            if use_auth and self._token:
                headers["Authorization"] = f"jwt {self._token}"

            kwargs: Dict[str, Any] = {"headers": headers}
            if method == "GET":
                if params:
                    kwargs["params"] = params
            else:
                kwargs["json"] = params or {}

            logger.debug("dsz request method=%s path=%s attempt=%s", method, path, retries + 1)

            try:
                resp = self._http.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                if self._retry_policy.allows_retry(retries):
                    retries += 1
                    wait = self._retry_policy.backoff_for(TRANSPORT)
                    logger.warning(
                        "dsz request failed, retrying path=%s retry=%s wait=%ss error=%r",
                        path, retries, wait, exc,
                    )
                    self._sleep(wait)
                    continue
                logger.error("dsz request failed path=%s error=%r", path, exc)
                raise TransportError(f"Request to {path} failed: {exc}") from exc

            status = resp.status_code

            if status == 401:
                if (
                    use_auth
                    and self._retry_policy.is_retryable_status(status)
                    and self._retry_policy.allows_retry(retries)
                ):
                    retries += 1
                    logger.info("Token rejected (401), re-authenticating path=%s retry=%s", path, retries)
                    try:
                        self.authenticate()
                    except DszSyncException as exc:
                        logger.error("Token refresh failed during retry error=%s", exc.message)
                        raise Unauthorized(f"Token refresh failed: {exc.message}") from exc
                    wait = self._retry_policy.backoff_for(UNAUTHORIZED)
                    if wait:
                        self._sleep(wait)
                    continue
                raise Unauthorized()

            if status == 429:
                if self._retry_policy.is_retryable_status(status) and self._retry_policy.allows_retry(retries):
                    retries += 1
                    wait = self._retry_policy.backoff_for(RATE_LIMIT)
                    logger.warning("Rate limited (429), waiting path=%s retry=%s wait=%ss", path, retries, wait)
                    self._sleep(wait)
                    continue
                raise RateLimited()

            body = self._parse_body(resp)

            if status >= 400:
                message = "API request failed."
                if isinstance(body, dict) and body.get("message"):
                    message = str(body["message"])
                logger.info("dsz api error status=%s path=%s message=%s", status, path, message)
                raise ApiError(status, message, body)

            if body is None:
                raise InvalidResponse(f"Non-JSON response from {path} (status {status})")

            return body

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_products(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET /v2/products with supplier defaults (page 1, limit 200, enabled-only)."""
        self.ensure_valid_token()

        params = dict(params or {})
        query: Dict[str, Any] = {"page_no": 1, "limit": MAX_PRODUCTS_PER_PAGE}
        # enabled filter is left off SKU lookups so disabled SKUs still resolve
        if not params.get("skus"):
            query["enabled"] = True
        query.update(params)
        query["limit"] = min(int(query["limit"]), MAX_PRODUCTS_PER_PAGE)

        logger.debug("Fetching products params=%s", query)
        response = self.request("GET", PRODUCTS_PATH, query)

        if isinstance(response, dict):
            logger.debug(
                "Products fetched page=%s total=%s count=%s",
                query["page_no"], response.get("total", 0), len(response.get("result") or []),
            )
        return response

    def get_all_products(
        self, page_no: int = 1, limit: int = MAX_PRODUCTS_PER_PAGE, filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        params = {"page_no": page_no, "limit": min(limit, MAX_PRODUCTS_PER_PAGE)}
        params.update(filters or {})
        return self.get_products(params)

    def get_products_by_skus(self, skus: List[str]) -> Dict[str, Any]:
        """
        Look up at most 100 SKUs in one call.

        Larger inputs are truncated; callers must chunk themselves.
        """
        if not skus:
            return {"result": []}

        if len(skus) > MAX_SKUS_PER_API_CALL:
            logger.warning(
                "get_products_by_skus truncating %s SKUs to %s", len(skus), MAX_SKUS_PER_API_CALL
            )
        skus = list(skus)[:MAX_SKUS_PER_API_CALL]

        response = self.get_products({"skus": ",".join(skus), "limit": MAX_PRODUCTS_PER_PAGE})

        result_count = len(response.get("result") or []) if isinstance(response, dict) else 0
        logger.debug("SKU lookup requested=%s returned=%s", len(skus), result_count)
        if result_count == 0:
            logger.warning("No products found in API for requested SKUs sample=%s", skus[:10])
        return response

    def get_stock(
        self,
        skus: Optional[List[str]] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        page_no: int = 1,
        limit: int = MAX_STOCK_PER_PAGE,
    ) -> Dict[str, Any]:
        """POST /stock for stock changes inside a time window (API max ~10 days)."""
        self.ensure_valid_token()

        now = datetime.fromtimestamp(self._clock())
        body: Dict[str, Any] = {
            "start_time": start_time or (now - timedelta(days=STOCK_WINDOW_DAYS)).strftime("%Y-%m-%d %H:%M:%S"),
            "end_time": end_time or now.strftime("%Y-%m-%d %H:%M:%S"),
            "page_no": page_no,
            "limit": min(limit, MAX_STOCK_PER_PAGE),
        }
        if skus:
            body["skus"] = ",".join(list(skus)[:MAX_SKUS_PER_API_CALL])

        return self.request("POST", STOCK_PATH, body)

    def place_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST /order; returns the supplier response carrying serial_number."""
        self.ensure_valid_token()
        logger.info(
            "Placing supplier order your_order_no=%s items=%s",
            payload.get("your_order_no"), len(payload.get("order_items") or []),
        )
        return self.request("POST", ORDER_PATH, payload)

    def test_connection(self, email: str, password: str) -> Dict[str, Any]:
        """Authenticate with the given credentials and fetch one page."""
        self.authenticate(email, password)
        products = self.get_products({"limit": 40, "page_no": 1})
        return {
            "success": True,
            "message": "Connection successful!",
            "products_available": products.get("total", 0) if isinstance(products, dict) else 0,
        }

    def get_stats(self) -> Dict[str, Any]:
        try:
            products = self.get_products({"limit": 40, "page_no": 1})
        except DszSyncException as exc:
            logger.warning("Could not fetch supplier stats error=%s", exc.message)
            return {"total_products": 0, "error": exc.message}

        return {
            "total_products": products.get("total", 0),
            "total_pages": products.get("total_pages", 0),
        }

    def close(self) -> None:
        self._http.close()
