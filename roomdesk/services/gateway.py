"""
Remote data gateway: select / insert / delete against the three tables.

Two backends share one async interface:
  SqlGateway  - in-process, SQLAlchemy sessions run on worker threads
  RestGateway - `requests` against the REST table API (PostgREST query syntax)

Only SqlGateway offers a live change channel; RestGateway.subscribe() returns
None and the dashboard falls back to polling.
"""
import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Iterable, Optional

import requests

from ..config import settings
from ..db import SessionLocal
from ..errors import GatewayError, InvalidQuery, UniqueViolation, UnknownTable
from . import tables
from .changefeed import ChangeEvent, ChangeFeed, feed as default_feed

logger = logging.getLogger(__name__)


class Gateway:
    async def select(self, table: str, filters: Optional[dict] = None, order: Optional[Iterable[str]] = None) -> list[dict]:
        raise NotImplementedError

    async def insert(self, table: str, rows: list[dict]) -> list[dict]:
        raise NotImplementedError

    async def delete(self, table: str, filters: dict) -> None:
        raise NotImplementedError

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None]) -> Optional[Callable[[], None]]:
        """Return an unsubscribe callable, or None when no change channel exists."""
        return None

    def close(self) -> None:
        pass


class SqlGateway(Gateway):
    def __init__(self, session_factory=SessionLocal, changes: Optional[ChangeFeed] = None):
        self.session_factory = session_factory
        self.changes = changes or default_feed

    def _run(self, fn, *args):
        db = self.session_factory()
        try:
            return fn(db, *args)
        finally:
            db.close()

    async def select(self, table, filters=None, order=None):
        return await asyncio.to_thread(self._run, tables.select_rows, table, filters, list(order or []))

    async def insert(self, table, rows):
        return await asyncio.to_thread(self._run, tables.insert_rows, table, list(rows), self.changes)

    async def delete(self, table, filters):
        await asyncio.to_thread(self._run, tables.delete_rows, table, filters, self.changes)

    def subscribe(self, table, callback):
        return self.changes.subscribe(table, callback)


def _wire(value) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _jsonable(row: dict) -> dict:
    return {k: (v.isoformat() if isinstance(v, (date, datetime)) else v) for k, v in row.items()}


def encode_filters(filters: Optional[dict]) -> dict:
    """{col: v} -> {col: "eq.v"}; {col: [a, b]} -> {col: "in.(a,b)"}"""
    params = {}
    for name, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set, frozenset)):
            params[name] = "in.(" + ",".join(_wire(v) for v in value) + ")"
        else:
            params[name] = f"eq.{_wire(value)}"
    return params


class RestGateway(Gateway):
    def __init__(self, base_url: str, api_key: str = "", timeout: float = 10.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json", "Prefer": "return=representation"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, method: str, table: str, params=None, json=None):
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            response = self.session.request(method, url, params=params, json=json, headers=self._headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise GatewayError(f"Network error talking to {url}: {e}")
        if response.status_code >= 400:
            detail, code = _error_detail(response)
            if response.status_code == 409:
                raise UniqueViolation(detail, code or "23505")
            if response.status_code == 404:
                raise UnknownTable(detail, code)
            if response.status_code == 400:
                raise InvalidQuery(detail, code)
            raise GatewayError(f"{method} {table} returned {response.status_code}: {detail}", code)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # e.g. a proxy or captive portal answering with HTML
            logger.warning("%s %s returned a non-JSON body", method, url)
            raise GatewayError(f"Invalid JSON from {url}")

    async def select(self, table, filters=None, order=None):
        params = encode_filters(filters)
        if order:
            params["order"] = ",".join(order)
        return await asyncio.to_thread(self._request, "GET", table, params) or []

    async def insert(self, table, rows):
        return await asyncio.to_thread(self._request, "POST", table, None, [_jsonable(r) for r in rows]) or []

    async def delete(self, table, filters):
        if not filters:
            raise InvalidQuery("Refusing to delete without filters")
        await asyncio.to_thread(self._request, "DELETE", table, encode_filters(filters))

    def close(self):
        close = getattr(self.session, "close", None)
        if close:
            close()


def _error_detail(response) -> tuple[str, Optional[str]]:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("message") or body), body.get("code")
    return str(body), None


def build_gateway() -> Gateway:
    """Gateway for the dashboard session, chosen by GATEWAY_BACKEND."""
    if settings.GATEWAY_BACKEND == "rest":
        logger.info("Dashboard gateway: REST %s", settings.GATEWAY_URL)
        return RestGateway(settings.GATEWAY_URL, settings.GATEWAY_API_KEY, settings.GATEWAY_TIMEOUT_SECONDS)
    logger.info("Dashboard gateway: in-process SQL")
    return SqlGateway()
