"""Link-header pagination for GitHub list endpoints."""

import re
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .client import GitHubClient

_LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')


class LinkHeader:
    """Parser for ``Link: <url>; rel="next", <url>; rel="last"`` headers."""

    def __init__(self, link_header: str | None = None):
        self.links: dict[str, str] = {}
        if link_header:
            for match in _LINK_PATTERN.finditer(link_header):
                url, rel = match.groups()
                self.links[rel] = url

    @property
    def next_url(self) -> str | None:
        return self.links.get("next")

    @property
    def has_next(self) -> bool:
        return "next" in self.links


class PaginatedResponse:
    """One page of a list endpoint together with its headers."""

    def __init__(self, data: list[dict[str, Any]], headers: dict[str, str], url: str):
        self.data = data
        self.headers = headers
        self.url = url
        self.link_header = LinkHeader(headers.get("Link"))

    @property
    def has_next_page(self) -> bool:
        return self.link_header.has_next

    @property
    def next_page_url(self) -> str | None:
        return self.link_header.next_url


class AsyncPaginator:
    """Async iterator over the items of a paginated endpoint.

    Follows ``rel="next"`` links until the pages run out, ``max_pages`` pages
    were fetched, or ``max_items`` items were yielded.
    """

    def __init__(
        self,
        client: "GitHubClient",
        initial_url: str,
        params: dict[str, Any] | None = None,
        per_page: int = 100,
        max_pages: int | None = None,
        max_items: int | None = None,
    ):
        self.client = client
        self.initial_url = initial_url
        self.per_page = min(per_page, 100)  # GitHub max is 100
        self.params = {**(params or {}), "per_page": self.per_page}
        self.max_pages = max_pages
        self.max_items = max_items

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        next_url: str | None = self.initial_url
        # The next link already carries the query string
        params: dict[str, Any] | None = self.params
        pages = 0
        yielded = 0

        while next_url:
            if self.max_pages and pages >= self.max_pages:
                return

            response = await self.client._fetch_paginated(next_url, params)
            pages += 1
            params = None
            next_url = response.next_page_url if response.has_next_page else None

            for item in response.data:
                if self.max_items is not None and yielded >= self.max_items:
                    return
                yield item
                yielded += 1
