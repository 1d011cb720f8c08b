"""
Shopify Admin GraphQL API client with rate limiting and retries.

This module provides a retrying request executor that classifies failures
into throttled, transient and terminal classes, and a thin GraphQL client
built on ``httpx`` that routes every call through it.
"""

import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
import logging

import httpx

from .rate_limiter import RateLimiter, RateLimitConfig
from .logger import APICallLogger

SHOPIFY_API_VERSION = "2024-01"
THROTTLED_CODE = "THROTTLED"
DEFAULT_QUERY_COST = 100.0

_OPERATION_NAME = re.compile(r"^\s*(?:query|mutation)\s+(\w+)")


class TerminalRequestError(Exception):
    """A request failed and will not be retried."""
    pass


class GraphQLError(TerminalRequestError):
    """Raised when the response carries non-throttling GraphQL errors."""

    def __init__(self, errors: List[Dict[str, Any]]):
        self.errors = errors
        messages = ", ".join(str(e.get("message", "Unknown error")) for e in errors)
        super().__init__(f"GraphQL Error: {messages}")


class MissingDataError(TerminalRequestError):
    """Raised when a response without errors also has no data."""
    pass


class RetriesExhaustedError(TerminalRequestError):
    """Raised after the last allowed attempt failed with a transient error."""

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation or 'request'} failed after {attempts} attempts: {last_error}"
        )


class RequestCancelledError(TerminalRequestError):
    """Raised when the cancellation signal is set before an attempt."""
    pass


class TransientRequestError(Exception):
    """A failure below the GraphQL layer that is worth retrying."""
    pass


RETRYABLE_EXCEPTIONS = (httpx.HTTPStatusError, httpx.TransportError, TransientRequestError)


@dataclass
class RequestAttempt:
    """Bookkeeping for a single attempt of a logical request."""
    attempt_number: int
    cost_estimate: float
    outcome: str = "pending"  # success, throttled, retryable, terminal
    backoff_ms: int = 0


def is_throttling_error(error: Mapping[str, Any]) -> bool:
    """Check whether a GraphQL error entry signals throttling."""
    extensions = error.get("extensions") or {}
    return extensions.get("code") == THROTTLED_CODE


def operation_name(query: str) -> str:
    """Extract the operation name from a GraphQL document, if it has one."""
    match = _OPERATION_NAME.match(query)
    return match.group(1) if match else "graphql"


class RetryingRequestExecutor:
    """
    Issues one logical request with rate limiting and retries.

    Throttling responses are retried after a fixed delay and never count
    against ``max_attempts``. Transport and HTTP failures are retried with
    exponential backoff (1s, 2s, 4s, ...) until ``max_attempts`` tries have
    been made. GraphQL errors and empty payloads fail immediately.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        throttle_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[threading.Event] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize request executor.

        Args:
            rate_limiter: Cost budget estimator consulted before each attempt
            max_attempts: Default number of tries for transient failures
            backoff_base: Base delay in seconds for exponential backoff
            throttle_delay: Fixed delay in seconds after a throttling response
            sleep: Function used to suspend between attempts
            cancel_event: Optional event that aborts retrying when set
            logger: Logger instance
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.rate_limiter = rate_limiter
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.throttle_delay = throttle_delay
        self.cancel_event = cancel_event
        self._sleep = sleep
        self.api_logger = APICallLogger(logger)

        self._request_count = 0
        self._error_count = 0
        self._retry_count = 0
        self._throttle_count = 0
        self.last_attempt: Optional[RequestAttempt] = None

    def execute(
        self,
        request_fn: Callable[[], Mapping[str, Any]],
        cost_estimate: float = DEFAULT_QUERY_COST,
        max_attempts: Optional[int] = None,
        operation: str = ""
    ) -> Any:
        """
        Execute a request until it succeeds or fails terminally.

        Args:
            request_fn: Callable issuing the request and returning the decoded body
            cost_estimate: Estimated query cost in points
            max_attempts: Override for the number of tries on transient failures
            operation: Description of the operation for logging

        Returns:
            The ``data`` member of the successful response

        Raises:
            GraphQLError: Non-throttling GraphQL errors were returned
            MissingDataError: The response had neither errors nor data
            RetriesExhaustedError: Transient failures used up every attempt
            RequestCancelledError: The cancellation signal was set
        """
        max_attempts = max_attempts or self.max_attempts
        failures = 0
        attempt_number = 0

        while True:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise RequestCancelledError(f"{operation or 'request'} cancelled")

            attempt_number += 1
            attempt = RequestAttempt(attempt_number=attempt_number, cost_estimate=cost_estimate)
            self.last_attempt = attempt

            wait_time = self.rate_limiter.wait_if_needed(cost_estimate)
            if wait_time > 0:
                self.api_logger.log_rate_limit(wait_time, cost_estimate, operation)

            self.api_logger.log_request(operation, cost_estimate, attempt_number)
            start_time = time.monotonic()

            try:
                response = request_fn()
            except RETRYABLE_EXCEPTIONS as e:
                failures += 1
                self._error_count += 1
                attempt.outcome = "retryable"

                if failures >= max_attempts:
                    self.api_logger.log_error(e, f"Max retries exceeded for {operation}")
                    raise RetriesExhaustedError(operation, failures, e) from e

                delay = (2 ** (failures - 1)) * self.backoff_base
                attempt.backoff_ms = int(delay * 1000)
                self._retry_count += 1
                self.api_logger.log_retry(
                    attempt=failures,
                    max_attempts=max_attempts,
                    delay=delay,
                    error=str(e),
                    operation=operation
                )
                self._sleep(delay)
                continue

            throttle_status = ((response.get("extensions") or {}).get("cost") or {}).get("throttleStatus")
            observed = self.rate_limiter.observe_throttle_status(throttle_status)

            errors = response.get("errors") or []
            if errors:
                if any(is_throttling_error(error) for error in errors):
                    attempt.outcome = "throttled"
                    attempt.backoff_ms = int(self.throttle_delay * 1000)
                    self._throttle_count += 1
                    self.api_logger.log_throttled(self.throttle_delay, operation)
                    self._sleep(self.throttle_delay)
                    continue

                attempt.outcome = "terminal"
                self._error_count += 1
                error = GraphQLError(errors)
                self.api_logger.log_error(error, f"in {operation}")
                raise error

            data = response.get("data")
            if data is None:
                attempt.outcome = "terminal"
                self._error_count += 1
                raise MissingDataError(f"No data in response for {operation or 'request'}")

            attempt.outcome = "success"
            self._request_count += 1
            self.api_logger.log_response(
                operation,
                time.monotonic() - start_time,
                available=throttle_status.get("currentlyAvailable") if observed else None,
                attempts=attempt_number
            )
            return data

    def get_stats(self) -> Dict[str, Any]:
        """
        Get executor statistics.

        Returns:
            Dictionary with request, error, retry and throttle counts
        """
        return {
            "total_requests": self._request_count,
            "total_errors": self._error_count,
            "total_retries": self._retry_count,
            "total_throttled": self._throttle_count,
            "error_rate": self._error_count / max(1, self._request_count + self._error_count),
        }

    def reset_stats(self) -> None:
        self._request_count = 0
        self._error_count = 0
        self._retry_count = 0
        self._throttle_count = 0


class ShopifyAPIClient:
    """
    Shopify Admin GraphQL client.

    Construct one instance per process (see ``create_shopify_client``) and
    pass it to whatever needs it; the rate budget lives on the instance.
    """

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = SHOPIFY_API_VERSION,
        rate_limit_config: Optional[RateLimitConfig] = None,
        max_attempts: int = 3,
        estimated_cost: float = DEFAULT_QUERY_COST,
        throttle_delay: float = 2.0,
        timeout: float = 30.0,
        cancel_event: Optional[threading.Event] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize Shopify API client.

        Args:
            store_domain: Store domain, e.g. ``example.myshopify.com``
            access_token: Admin API access token
            api_version: Admin API version
            rate_limit_config: Cost bucket configuration
            max_attempts: Tries per request for transient failures
            estimated_cost: Default cost estimate per query
            throttle_delay: Seconds to wait after a throttling response
            timeout: HTTP timeout in seconds
            cancel_event: Optional event that aborts retrying when set
            http_client: Preconfigured ``httpx.Client`` (mainly for tests)
            sleep: Function used to suspend between attempts
            clock: Monotonic clock used by the rate limiter
            logger: Logger instance
        """
        self.store_domain = store_domain
        self.api_version = api_version
        self.estimated_cost = estimated_cost
        self.logger = logger or logging.getLogger(__name__)

        self.http = http_client or httpx.Client(
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Access-Token": access_token,
            },
            timeout=timeout
        )
        self.rate_limiter = RateLimiter(rate_limit_config, clock=clock, sleep=sleep)
        self.executor = RetryingRequestExecutor(
            self.rate_limiter,
            max_attempts=max_attempts,
            throttle_delay=throttle_delay,
            sleep=sleep,
            cancel_event=cancel_event,
            logger=self.logger
        )

    @property
    def endpoint(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"

    def _post(self, query: str, variables: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        response = self.http.post(
            self.endpoint,
            json={"query": query, "variables": variables or {}}
        )
        response.raise_for_status()

        try:
            body = response.json()
        except ValueError as e:
            raise TransientRequestError(f"Invalid JSON from Shopify: {e}") from e

        if not isinstance(body, dict):
            raise TransientRequestError(f"Unexpected response body type: {type(body).__name__}")

        return body

    def query(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        estimated_cost: Optional[float] = None,
        max_attempts: Optional[int] = None
    ) -> Any:
        """
        Run a GraphQL query or mutation.

        Args:
            query: GraphQL document
            variables: Query variables
            estimated_cost: Cost estimate used for rate limiting
            max_attempts: Override for transient-failure tries

        Returns:
            The response ``data`` mapping
        """
        return self.executor.execute(
            lambda: self._post(query, variables),
            cost_estimate=estimated_cost or self.estimated_cost,
            max_attempts=max_attempts,
            operation=operation_name(query)
        )

    def paginate(
        self,
        query: str,
        variables: Optional[Dict[str, Any]],
        get_page_info: Callable[[Any], Mapping[str, Any]],
        get_nodes: Callable[[Any], Iterable[Any]],
        page_size: int = 50,
        estimated_cost: Optional[float] = None
    ):
        """
        Build a lazy page sequence over a cursor-paginated connection.

        Returns:
            PagedFetcher yielding ``Page`` objects
        """
        from .pagination import PagedFetcher

        return PagedFetcher(
            self,
            query,
            variables=variables,
            get_page_info=get_page_info,
            get_nodes=get_nodes,
            page_size=page_size,
            estimated_cost=estimated_cost,
            logger=self.logger
        )

    def get_stats(self) -> Dict[str, Any]:
        stats = self.executor.get_stats()
        stats["rate_limiter"] = self.rate_limiter.get_stats()
        return stats

    def reset_stats(self) -> None:
        self.executor.reset_stats()
        self.rate_limiter.reset()

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "ShopifyAPIClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def create_shopify_client(
    config,
    cancel_event: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None
) -> ShopifyAPIClient:
    """
    Create a configured Shopify API client.

    Args:
        config: ``ProductImportConfig`` carrying credentials and retry settings
        cancel_event: Optional event that aborts retrying when set
        logger: Logger instance

    Returns:
        Configured ShopifyAPIClient instance
    """
    return ShopifyAPIClient(
        store_domain=config.shopify_store_domain,
        access_token=config.shopify_access_token,
        api_version=config.shopify_api_version,
        max_attempts=config.max_retries,
        estimated_cost=config.estimated_query_cost,
        throttle_delay=config.throttle_retry_delay,
        timeout=config.http_timeout,
        cancel_event=cancel_event,
        logger=logger
    )
