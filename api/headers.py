"""
Response header helpers for the FastAPI API.

Pagination metadata goes into ``X-Total-Count`` and an RFC 5988 ``Link``
header; entity changes are announced through alert headers.
"""

from typing import Dict, Optional
from urllib.parse import urlencode

from catalog.models import BookPage

APPLICATION_NAME = "bookCatalog"


def _page_url(base_url: str, page: int, per_page: int, query: Optional[str]) -> str:
    params = {"page": page, "per_page": per_page}
    if query is not None:
        params = {"query": query, **params}
    return f"{base_url}?{urlencode(params)}"


def pagination_headers(page: BookPage, base_url: str, query: Optional[str] = None) -> Dict[str, str]:
    """
    Build pagination headers for a page of results.

    Args:
        page: Page returned by the book service
        base_url: Path of the listing endpoint
        query: Search query to carry over into the links, if any

    Returns:
        Dictionary with ``X-Total-Count`` and ``Link`` headers
    """
    last_page = max(page.total_pages, 1)
    links = []
    if page.has_next:
        links.append(f'<{_page_url(base_url, page.page + 1, page.per_page, query)}>; rel="next"')
    if page.has_prev:
        links.append(f'<{_page_url(base_url, page.page - 1, page.per_page, query)}>; rel="prev"')
    links.append(f'<{_page_url(base_url, last_page, page.per_page, query)}>; rel="last"')
    links.append(f'<{_page_url(base_url, 1, page.per_page, query)}>; rel="first"')

    return {
        "X-Total-Count": str(page.total),
        "Link": ",".join(links),
    }


def alert_headers(message: str, param: str) -> Dict[str, str]:
    return {
        f"X-{APPLICATION_NAME}-alert": message,
        f"X-{APPLICATION_NAME}-params": param,
    }


def entity_creation_headers(entity_name: str, entity_id: str) -> Dict[str, str]:
    return alert_headers(f"A new {entity_name} is created with identifier {entity_id}", entity_id)


def entity_update_headers(entity_name: str, entity_id: str) -> Dict[str, str]:
    return alert_headers(f"A {entity_name} is updated with identifier {entity_id}", entity_id)


def entity_deletion_headers(entity_name: str, entity_id: str) -> Dict[str, str]:
    return alert_headers(f"A {entity_name} is deleted with identifier {entity_id}", entity_id)


def failure_headers(entity_name: str, error_key: str) -> Dict[str, str]:
    return {
        f"X-{APPLICATION_NAME}-error": f"error.{error_key}",
        f"X-{APPLICATION_NAME}-params": entity_name,
    }
