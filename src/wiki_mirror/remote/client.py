"""Confluence REST client (``/wiki/rest/api/content`` endpoints).

Every public method raises ``ApiError`` (or ``RateLimitError`` /
``PageNotFoundError``).  HTTP 429 answers are retried with exponential
backoff, honouring ``Retry-After``, before ``RateLimitError`` is raised.

One ``requests.Session`` is kept per thread so the sync engine can fetch
pages from a thread pool.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any

import requests

from wiki_mirror.config_schema import WikiConfig
from wiki_mirror.errors import ApiError, PageNotFoundError, RateLimitError
from wiki_mirror.sync.models import PageSummary, PageVersion, RemotePage

logger = logging.getLogger(__name__)

_TIMEOUT = (10, 60)
_PAGE_SIZE = 100
# Guard against endless pagination
_MAX_PAGES = 100
_MAX_BACKOFF = 30.0


def _parse_when(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None


class ConfluenceClient:
    def __init__(self, config: WikiConfig, sleep=time.sleep):
        self.config = config
        self.base_url = f"{(config.url or '').rstrip('/')}/wiki/rest/api"
        self._thread_local = threading.local()
        self._sleep = sleep
        self._space_keys: dict[str, str] = {}

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.auth = (self.config.username or "", self.config.api_token or "")
        session.verify = not self.config.insecure
        session.headers.update({"Accept": "application/json"})
        return session

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        page_id: str | None = None,
    ) -> Any:
        """Send one request and decode the JSON answer.

        Returns ``None`` for empty (204) answers.
        """
        url = f"{self.base_url}{endpoint}"
        attempt = 0
        while True:
            try:
                response = self._get_session().request(
                    method, url, params=params, json=json, timeout=_TIMEOUT
                )
            except requests.RequestException as exc:
                raise ApiError(
                    f"Request failed: {exc}", endpoint=endpoint, page_id=page_id
                ) from exc

            if response.status_code != 429:
                break
            retry_after = _retry_after(response)
            if attempt >= self.config.max_retries:
                raise RateLimitError(endpoint=endpoint, retry_after=retry_after)
            delay = retry_after if retry_after is not None else 2.0**attempt
            delay = min(delay, _MAX_BACKOFF)
            logger.warning(
                "Rate limited on %s %s, retrying in %.1fs", method, endpoint, delay
            )
            self._sleep(delay)
            attempt += 1

        if response.status_code == 404 and page_id is not None:
            raise PageNotFoundError(page_id, endpoint=endpoint)
        if response.status_code >= 400:
            raise ApiError(
                _error_message(response),
                status=response.status_code,
                endpoint=endpoint,
                page_id=page_id,
            )
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"Invalid JSON in response: {exc}",
                status=response.status_code,
                endpoint=endpoint,
                page_id=page_id,
            ) from exc

    def _paginate(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        page_id: str | None = None,
    ) -> list[dict]:
        results: list[dict] = []
        start = 0
        for _ in range(_MAX_PAGES):
            query = {**(params or {}), "start": start, "limit": _PAGE_SIZE}
            data = self._request("GET", endpoint, params=query, page_id=page_id)
            batch = data.get("results", []) if data else []
            results.extend(batch)
            if not batch or not (data.get("_links") or {}).get("next"):
                return results
            start += len(batch)
        raise ApiError(
            f"Pagination limit exceeded: more than {_MAX_PAGES} result pages",
            endpoint=endpoint,
            page_id=page_id,
        )

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def get_page(self, page_id: str) -> RemotePage:
        """
        Fetch the current version of a page with its storage body.
        """
        data = self._request(
            "GET",
            f"/content/{page_id}",
            params={"expand": "body.storage,version,ancestors,space"},
            page_id=page_id,
        )
        version = data.get("version") or {}
        ancestors = data.get("ancestors") or []
        space = data.get("space") or {}
        if space.get("key"):
            self._space_keys[str(data["id"])] = space["key"]
        return RemotePage(
            id=str(data["id"]),
            title=data.get("title", ""),
            raw_markup=_storage_value(data),
            version=int(version.get("number", 0)),
            parent_id=str(ancestors[-1]["id"]) if ancestors else None,
            position=_int_or_none((data.get("extensions") or {}).get("position")),
            updated=_parse_when(version.get("when")),
            author=(version.get("by") or {}).get("displayName"),
            message=version.get("message") or None,
        )

    def get_all_children(self, page_id: str) -> list[PageSummary]:
        """
        List every direct child page, following pagination.
        """
        items = self._paginate(
            f"/content/{page_id}/child/page",
            params={"expand": "extensions.position"},
            page_id=page_id,
        )
        children = [
            PageSummary(
                id=str(item["id"]),
                title=item.get("title", ""),
                position=_int_or_none(
                    (item.get("extensions") or {}).get("position")
                ),
            )
            for item in items
        ]
        # Wiki ordering: explicit positions first, then by title
        return sorted(
            children,
            key=lambda c: (c.position is None, c.position or 0, c.title),
        )

    def get_version_history(self, page_id: str) -> list[PageVersion]:
        """
        Fetch every version of a page with its body, oldest first.
        """
        entries = self._paginate(f"/content/{page_id}/version", page_id=page_id)
        versions: list[PageVersion] = []
        for entry in entries:
            number = int(entry["number"])
            data = self._request(
                "GET",
                f"/content/{page_id}",
                params={
                    "status": "historical",
                    "version": number,
                    "expand": "body.storage",
                },
                page_id=page_id,
            )
            by = entry.get("by") or {}
            versions.append(
                PageVersion(
                    version=number,
                    raw_markup=_storage_value(data),
                    author=by.get("displayName"),
                    email=by.get("email") or None,
                    timestamp=_parse_when(entry.get("when"))
                    or datetime.now(timezone.utc),
                    message=entry.get("message") or None,
                )
            )
        return sorted(versions, key=lambda v: v.version)

    def create_page(self, parent_id: str, title: str, markup: str) -> str:
        """
        Create a child page of *parent_id* and return the new id.
        """
        body = {
            "type": "page",
            "title": title,
            "space": {"key": self._space_key(parent_id)},
            "ancestors": [{"id": parent_id}],
            "body": {"storage": {"value": markup, "representation": "storage"}},
        }
        data = self._request("POST", "/content", json=body)
        page_id = str(data["id"])
        logger.info("Created page %s %r under %s", page_id, title, parent_id)
        return page_id

    def update_page(
        self,
        page_id: str,
        markup: str,
        comment: str | None = None,
        title: str | None = None,
    ) -> int:
        """
        Replace a page's body and return the new version number.
        """
        current = self.get_page(page_id)
        version: dict[str, Any] = {"number": current.version + 1}
        if comment:
            version["message"] = comment
        body = {
            "id": page_id,
            "type": "page",
            "title": title or current.title,
            "version": version,
            "body": {"storage": {"value": markup, "representation": "storage"}},
        }
        data = self._request(
            "PUT", f"/content/{page_id}", json=body, page_id=page_id
        )
        return int((data.get("version") or {}).get("number", version["number"]))

    def delete_page(self, page_id: str) -> None:
        self._request("DELETE", f"/content/{page_id}", page_id=page_id)
        logger.info("Deleted page %s", page_id)

    def _space_key(self, page_id: str) -> str:
        if self.config.space_key:
            return self.config.space_key
        if page_id not in self._space_keys:
            self.get_page(page_id)
        try:
            return self._space_keys[page_id]
        except KeyError:
            raise ApiError(
                f"Cannot determine space of page {page_id}; set wiki.space_key",
                page_id=page_id,
            ) from None


def _retry_after(response: requests.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _storage_value(data: dict) -> str:
    return ((data.get("body") or {}).get("storage") or {}).get("value", "")


def _int_or_none(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return f"HTTP {response.status_code}: {data['message']}"
    text = response.text.strip()[:200]
    if text:
        return f"HTTP {response.status_code}: {text}"
    return f"HTTP {response.status_code}"
