"""
Cursor-based pagination over GraphQL connections.

Shopify connections return ``pageInfo { hasNextPage endCursor }``. The cursor
is opaque: it is stored and replayed as the next request's ``after`` value,
never parsed.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional
import logging

from .api_client import TerminalRequestError


class PaginationError(TerminalRequestError):
    """Raised when a connection claims more pages but gives no cursor."""
    pass


@dataclass
class Page:
    """One page of results from a paginated query."""
    items: List[Any]
    cursor: Optional[str]
    has_more: bool
    number: int = 1
    variables: Dict[str, Any] = field(default_factory=dict)


class PagedFetcher:
    """
    Lazy, forward-only sequence of result pages.

    Each iteration starts a fresh walk from the first page. Pages that come
    back empty while ``hasNextPage`` is still true are skipped rather than
    treated as the end of the connection.
    """

    def __init__(
        self,
        client,
        query: str,
        variables: Optional[Dict[str, Any]],
        get_page_info: Callable[[Any], Mapping[str, Any]],
        get_nodes: Callable[[Any], Iterable[Any]],
        page_size: int = 50,
        estimated_cost: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize paged fetcher.

        Args:
            client: Object exposing ``query(query, variables, estimated_cost=...)``
            query: GraphQL document taking ``$first`` and ``$after``
            variables: Extra variables merged into every request
            get_page_info: Extracts ``{hasNextPage, endCursor}`` from response data
            get_nodes: Extracts the page's items from response data
            page_size: Number of items requested per page
            estimated_cost: Cost estimate passed to the client
            logger: Logger instance
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")

        self.client = client
        self.query = query
        self.variables = dict(variables or {})
        self.get_page_info = get_page_info
        self.get_nodes = get_nodes
        self.page_size = page_size
        self.estimated_cost = estimated_cost
        self.logger = logger or logging.getLogger(__name__)

    def __iter__(self) -> Iterator[Page]:
        cursor: Optional[str] = None
        requested = 0
        yielded = 0

        while True:
            variables = {**self.variables, "first": self.page_size, "after": cursor}
            data = self.client.query(
                self.query,
                variables,
                estimated_cost=self.estimated_cost
            )
            requested += 1

            nodes = list(self.get_nodes(data) or [])
            page_info = self.get_page_info(data) or {}
            has_more = bool(page_info.get("hasNextPage"))
            end_cursor = page_info.get("endCursor")

            if nodes:
                yielded += 1
                yield Page(
                    items=nodes,
                    cursor=end_cursor,
                    has_more=has_more,
                    number=yielded,
                    variables=variables
                )
            else:
                self.logger.debug(f"Skipping empty page {requested} (has_more={has_more})")

            if not has_more:
                break

            if not end_cursor:
                raise PaginationError(
                    f"Page {requested} reported more results without an end cursor"
                )

            cursor = end_cursor

        self.logger.debug(f"Pagination finished after {requested} requests ({yielded} pages)")

    def iter_items(self) -> Iterator[Any]:
        """Flatten the page sequence into individual items."""
        for page in self:
            yield from page.items
