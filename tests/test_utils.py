"""
Test suite for utility functions.

Tests the cost-based rate limiter, the retrying request executor, the
Shopify GraphQL client and cursor pagination with fake clocks and sleeps.
"""

import json
import logging
import threading
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

import httpx
import pytest

# Add src to path for imports
import sys
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from pim_sync.utils.rate_limiter import RateLimiter, RateLimitConfig
from pim_sync.utils.api_client import (
    GraphQLError,
    MissingDataError,
    RequestCancelledError,
    RetriesExhaustedError,
    RetryingRequestExecutor,
    ShopifyAPIClient,
    TerminalRequestError,
    is_throttling_error,
    operation_name,
)
from pim_sync.utils.pagination import PagedFetcher, PaginationError
from pim_sync.utils.logger import get_logger, log_file_for, setup_logger
from pim_sync.imports.product_import import get_product_nodes, get_products_page_info


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


THROTTLED = {"errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]}


def ok(data=None, available=None, restore_rate=50.0):
    body = {"data": data if data is not None else {"ok": True}}
    if available is not None:
        body["extensions"] = {
            "cost": {
                "throttleStatus": {
                    "maximumAvailable": 1000.0,
                    "currentlyAvailable": available,
                    "restoreRate": restore_rate,
                }
            }
        }
    return body


class TestRateLimiter:
    """Test cost-based rate limiting."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def limiter(self, clock, sleeps):
        return RateLimiter(clock=clock, sleep=sleeps.append)

    def test_full_budget_needs_no_wait(self, limiter):
        """Costs within the estimated budget are free to go."""
        assert limiter.reserve(1) == 0
        assert limiter.reserve(100) == 0
        assert limiter.reserve(1000) == 0

    def test_reserve_does_not_decrement_budget(self, limiter):
        for _ in range(20):
            assert limiter.reserve(100) == 0

    def test_deficit_wait_includes_safety_margin(self, limiter):
        limiter.observe(currently_available=0, restore_rate=50)

        # 100 points at 50/s is 2000ms, plus the 100ms margin
        assert limiter.reserve(100) == 2100

    def test_wait_decreases_as_time_passes(self, limiter, clock):
        limiter.observe(currently_available=0, restore_rate=50)

        waits = []
        for _ in range(3):
            waits.append(limiter.reserve(100))
            clock.advance(0.5)

        assert waits == [2100, 1600, 1100]

    def test_wait_reaches_zero_once_restored(self, limiter, clock):
        limiter.observe(currently_available=0, restore_rate=50)
        clock.advance(2.0)

        assert limiter.reserve(100) == 0

    def test_estimate_is_capped_at_maximum(self, limiter, clock):
        limiter.observe(currently_available=900, restore_rate=50)
        clock.advance(60)

        assert limiter.estimate_available() == 1000

    def test_wait_if_needed_sleeps(self, limiter, sleeps):
        limiter.observe(currently_available=0, restore_rate=50)

        waited = limiter.wait_if_needed(100)

        assert waited == pytest.approx(2.1)
        assert sleeps == [pytest.approx(2.1)]
        assert limiter.get_stats()["wait_count"] == 1

    def test_wait_if_needed_without_deficit(self, limiter, sleeps):
        assert limiter.wait_if_needed(100) == 0.0
        assert sleeps == []

    def test_observe_throttle_status(self, limiter):
        observed = limiter.observe_throttle_status({
            "maximumAvailable": 2000.0,
            "currentlyAvailable": 10.0,
            "restoreRate": 100.0,
        })

        assert observed is True
        budget = limiter.budget
        assert budget.max_points == 2000.0
        assert budget.available_points == 10.0
        assert budget.restore_rate_per_second == 100.0

    def test_observe_throttle_status_ignores_incomplete(self, limiter):
        assert limiter.observe_throttle_status(None) is False
        assert limiter.observe_throttle_status({"currentlyAvailable": 5}) is False
        assert limiter.estimate_available() == 1000

    def test_custom_config(self, clock):
        config = RateLimitConfig(max_points=2000, restore_rate=100, safety_margin_ms=0)
        limiter = RateLimiter(config, clock=clock)
        limiter.observe(currently_available=0, restore_rate=100)

        assert limiter.reserve(50) == 500

    def test_reset(self, limiter):
        limiter.observe(currently_available=0, restore_rate=50)
        limiter.reset()

        assert limiter.reserve(1000) == 0
        assert limiter.get_stats()["total_wait_time"] == 0.0


class TestRetryingRequestExecutor:
    """Test failure classification, backoff and retries."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def limiter(self, clock, sleeps):
        return RateLimiter(clock=clock, sleep=sleeps.append)

    @pytest.fixture
    def executor(self, limiter, sleeps):
        return RetryingRequestExecutor(limiter, max_attempts=3, sleep=sleeps.append)

    def test_success_returns_data(self, executor):
        request_fn = Mock(return_value=ok({"shop": {"name": "Test"}}))

        assert executor.execute(request_fn) == {"shop": {"name": "Test"}}
        assert request_fn.call_count == 1
        assert executor.last_attempt.outcome == "success"

    def test_two_transient_failures_then_success(self, executor, sleeps):
        """Backoff doubles: 1s after the first failure, 2s after the second."""
        request_fn = Mock(side_effect=[
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
            ok({"value": 42}),
        ])

        result = executor.execute(request_fn, max_attempts=3)

        assert result == {"value": 42}
        assert request_fn.call_count == 3
        assert sleeps == [1.0, 2.0]
        assert executor.get_stats()["total_retries"] == 2

    def test_retries_exhausted(self, executor, sleeps):
        last_error = httpx.ConnectError("still down")
        request_fn = Mock(side_effect=[
            httpx.ConnectError("down"),
            httpx.ConnectError("down"),
            last_error,
        ])

        with pytest.raises(RetriesExhaustedError) as exc_info:
            executor.execute(request_fn, operation="ImportProducts")

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is last_error
        assert isinstance(exc_info.value, TerminalRequestError)
        assert sleeps == [1.0, 2.0]

    def test_single_attempt_does_not_sleep(self, executor, sleeps):
        request_fn = Mock(side_effect=httpx.ConnectError("down"))

        with pytest.raises(RetriesExhaustedError):
            executor.execute(request_fn, max_attempts=1)

        assert sleeps == []

    def test_throttling_never_consumes_attempts(self, executor, sleeps):
        request_fn = Mock(side_effect=[THROTTLED] * 5 + [ok({"done": True})])

        result = executor.execute(request_fn, max_attempts=1)

        assert result == {"done": True}
        assert request_fn.call_count == 6
        assert sleeps == [2.0] * 5
        assert executor.get_stats()["total_throttled"] == 5

    def test_throttling_mixed_with_transient_failures(self, executor, sleeps):
        request_fn = Mock(side_effect=[
            THROTTLED,
            httpx.ConnectError("down"),
            THROTTLED,
            ok(),
        ])

        executor.execute(request_fn, max_attempts=2)

        assert sleeps == [2.0, 1.0, 2.0]

    def test_graphql_error_is_terminal(self, executor, sleeps):
        request_fn = Mock(return_value={"errors": [
            {"message": "Field 'nope' doesn't exist"},
            {"message": "Second problem"},
        ]})

        with pytest.raises(GraphQLError, match="GraphQL Error: Field 'nope' doesn't exist, Second problem"):
            executor.execute(request_fn)

        assert request_fn.call_count == 1
        assert sleeps == []

    def test_missing_data_is_terminal(self, executor):
        request_fn = Mock(return_value={"data": None})

        with pytest.raises(MissingDataError):
            executor.execute(request_fn)

        assert request_fn.call_count == 1

    def test_cancellation_before_attempt(self, limiter, sleeps):
        cancel_event = threading.Event()
        cancel_event.set()
        executor = RetryingRequestExecutor(limiter, sleep=sleeps.append, cancel_event=cancel_event)
        request_fn = Mock(return_value=ok())

        with pytest.raises(RequestCancelledError):
            executor.execute(request_fn)

        request_fn.assert_not_called()

    def test_cancellation_stops_retrying(self, limiter, sleeps):
        cancel_event = threading.Event()
        executor = RetryingRequestExecutor(limiter, sleep=sleeps.append, cancel_event=cancel_event)

        def failing():
            cancel_event.set()
            raise httpx.ConnectError("down")

        with pytest.raises(RequestCancelledError):
            executor.execute(failing, max_attempts=3)

        assert sleeps == [1.0]

    def test_success_updates_budget(self, executor, limiter):
        executor.execute(Mock(return_value=ok(available=0.0, restore_rate=50.0)))

        assert limiter.reserve(100) == 2100

    def test_rate_limit_wait_before_attempt(self, executor, limiter, sleeps):
        limiter.observe(currently_available=0, restore_rate=50)

        executor.execute(Mock(return_value=ok()), cost_estimate=100)

        assert sleeps == [pytest.approx(2.1)]

    def test_helpers(self):
        assert is_throttling_error(THROTTLED["errors"][0])
        assert not is_throttling_error({"message": "x"})
        assert operation_name("query ImportProducts($first: Int!) { x }") == "ImportProducts"
        assert operation_name("{ shop { name } }") == "graphql"


class TestShopifyAPIClient:
    """Test the GraphQL client over a mocked HTTP transport."""

    @pytest.fixture
    def sleeps(self):
        return []

    def make_client(self, handler, sleeps, **kwargs):
        http_client = httpx.Client(transport=httpx.MockTransport(handler))
        return ShopifyAPIClient(
            store_domain="example.myshopify.com",
            access_token="shpat_test",
            http_client=http_client,
            sleep=sleeps.append,
            clock=FakeClock(),
            **kwargs
        )

    def test_query_posts_graphql_body(self, sleeps):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=ok({"shop": {"name": "Example"}}))

        client = self.make_client(handler, sleeps)
        data = client.query("query ShopName { shop { name } }", {"a": 1})

        assert data == {"shop": {"name": "Example"}}
        assert str(requests[0].url) == "https://example.myshopify.com/admin/api/2024-01/graphql.json"
        assert json.loads(requests[0].content) == {
            "query": "query ShopName { shop { name } }",
            "variables": {"a": 1},
        }

    def test_http_error_is_retried(self, sleeps):
        responses = iter([
            httpx.Response(502, text="bad gateway"),
            httpx.Response(200, json=ok({"n": 1})),
        ])

        client = self.make_client(lambda request: next(responses), sleeps)

        assert client.query("query N { n }") == {"n": 1}
        assert sleeps == [1.0]
        assert client.get_stats()["total_retries"] == 1

    def test_invalid_json_is_retried_until_exhausted(self, sleeps):
        client = self.make_client(
            lambda request: httpx.Response(200, content=b"<html>oops</html>"),
            sleeps,
            max_attempts=2
        )

        with pytest.raises(RetriesExhaustedError):
            client.query("query N { n }")

        assert sleeps == [1.0]

    def test_paginate_builds_fetcher(self, sleeps):
        client = self.make_client(lambda request: httpx.Response(200, json=ok()), sleeps)

        fetcher = client.paginate(
            "query P($first: Int!, $after: String) { x }",
            {},
            get_page_info=get_products_page_info,
            get_nodes=get_product_nodes,
            page_size=10,
            estimated_cost=5
        )

        assert isinstance(fetcher, PagedFetcher)
        assert fetcher.page_size == 10
        assert fetcher.estimated_cost == 5


def products_page(count, has_next, cursor, start=0):
    return {
        "products": {
            "nodes": [{"id": f"gid://shopify/Product/{start + i}"} for i in range(count)],
            "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
        }
    }


class TestPagedFetcher:
    """Test cursor pagination."""

    def make_fetcher(self, responses, **kwargs):
        client = Mock()
        client.query.side_effect = responses
        fetcher = PagedFetcher(
            client,
            "query ImportProducts { x }",
            {"query": "status:active"},
            get_page_info=get_products_page_info,
            get_nodes=get_product_nodes,
            **kwargs
        )
        return fetcher, client

    def test_three_pages_replay_cursors(self):
        fetcher, client = self.make_fetcher([
            products_page(50, True, "cursor-1"),
            products_page(50, True, "cursor-2", start=50),
            products_page(20, False, "cursor-3", start=100),
        ], page_size=50, estimated_cost=112)

        pages = list(fetcher)

        assert [len(page.items) for page in pages] == [50, 50, 20]
        assert [page.number for page in pages] == [1, 2, 3]
        assert pages[-1].has_more is False
        assert client.query.call_count == 3

        sent = [call.args[1] for call in client.query.call_args_list]
        assert [variables["after"] for variables in sent] == [None, "cursor-1", "cursor-2"]
        assert all(variables["first"] == 50 for variables in sent)
        assert all(variables["query"] == "status:active" for variables in sent)
        assert all(call.kwargs["estimated_cost"] == 112 for call in client.query.call_args_list)

    def test_empty_page_is_skipped(self):
        fetcher, client = self.make_fetcher([
            products_page(0, True, "cursor-1"),
            products_page(3, False, "cursor-2"),
        ])

        pages = list(fetcher)

        assert len(pages) == 1
        assert pages[0].number == 1
        assert len(pages[0].items) == 3
        assert client.query.call_count == 2

    def test_empty_connection(self):
        fetcher, _ = self.make_fetcher([products_page(0, False, None)])

        assert list(fetcher) == []

    def test_missing_cursor_raises(self):
        fetcher, _ = self.make_fetcher([products_page(2, True, None)])

        with pytest.raises(PaginationError):
            list(fetcher)

    def test_iter_items_flattens(self):
        fetcher, _ = self.make_fetcher([
            products_page(2, True, "c1"),
            products_page(1, False, "c2", start=2),
        ])

        ids = [item["id"] for item in fetcher.iter_items()]

        assert ids == [
            "gid://shopify/Product/0",
            "gid://shopify/Product/1",
            "gid://shopify/Product/2",
        ]

    def test_fetch_is_lazy(self):
        fetcher, client = self.make_fetcher([
            products_page(1, True, "c1"),
            products_page(1, False, "c2"),
        ])

        pages = iter(fetcher)
        next(pages)

        assert client.query.call_count == 1

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            PagedFetcher(Mock(), "q", {}, get_products_page_info, get_product_nodes, page_size=0)


class TestLogger:
    """Test per-command logging setup."""

    @pytest.fixture(autouse=True)
    def restore_package_logger(self):
        package_logger = logging.getLogger("pim_sync")
        handlers = list(package_logger.handlers)
        yield
        for handler in package_logger.handlers:
            handler.close()
        package_logger.handlers = handlers
        package_logger.propagate = True
        package_logger.setLevel(logging.NOTSET)

    def log_config(self, **overrides):
        values = dict(
            log_level="INFO", log_file=None, log_max_size=1024, log_backup_count=1,
            verbose=False, debug=False
        )
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_handlers_named_per_command(self, tmp_path):
        config = self.log_config(log_file=str(tmp_path / "logs" / "{command}.log"))

        logger = setup_logger(config, "media")

        package_logger = logging.getLogger("pim_sync")
        assert logger.name == "pim_sync.media"
        assert [handler.get_name() for handler in package_logger.handlers] == ["media-console", "media-file"]
        assert (tmp_path / "logs").is_dir()

        logger.info("imported")
        package_logger.handlers[1].flush()
        assert "imported" in (tmp_path / "logs" / "media.log").read_text()

    def test_repeated_setup_replaces_handlers(self):
        setup_logger(self.log_config(), "products")
        setup_logger(self.log_config(debug=True), "products")

        package_logger = logging.getLogger("pim_sync")
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG

    def test_log_file_for(self):
        assert log_file_for(None, "media") is None
        assert log_file_for("logs/{command}.log", "products") == "logs/products.log"
        assert log_file_for("logs/import.log", "products") == "logs/import.log"

    def test_get_logger_is_below_package(self):
        assert get_logger("api").name == "pim_sync.api"
        assert get_logger("pim_sync.progress").name == "pim_sync.progress"
