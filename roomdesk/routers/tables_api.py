from typing import Any
from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import GatewayError, InvalidQuery, UniqueViolation, UnknownTable
from ..services import tables

router = APIRouter(prefix="/rest/v1", tags=["tables"])

# ==== Helpers ====

def require_api_key(request: Request):
    if not settings.API_KEY:
        return
    key = request.headers.get("apikey")
    if not key:
        auth = request.headers.get("authorization", "")
        if auth.lower().startswith("bearer "):
            key = auth[7:]
    if key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


def parse_filters(request: Request) -> dict:
    """PostgREST style: ?col=eq.value or ?col=in.(a,b). `order` and `select` are not filters."""
    filters = {}
    for name, raw in request.query_params.multi_items():
        if name in ("order", "select"):
            continue
        op, _, value = raw.partition(".")
        if op == "eq":
            filters[name] = value
        elif op == "in" and value.startswith("(") and value.endswith(")"):
            inner = value[1:-1]
            filters[name] = [v.strip().strip('"') for v in inner.split(",") if v.strip()] if inner else []
        else:
            raise InvalidQuery(f"Unsupported filter {name}={raw}")
    return filters


def parse_order(request: Request) -> list[str]:
    raw = request.query_params.get("order") or ""
    columns = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        name, _, direction = part.partition(".")
        if direction not in ("", "asc"):
            raise InvalidQuery(f"Unsupported ordering {part}")
        columns.append(name)
    return columns


def _error_response(exc: GatewayError) -> JSONResponse:
    if isinstance(exc, UnknownTable):
        status = 404
    elif isinstance(exc, InvalidQuery):
        status = 400
    elif isinstance(exc, UniqueViolation):
        status = 409
    else:
        status = 503
    return JSONResponse({"detail": exc.message, "code": exc.code}, status_code=status)

# ==== Endpoints ====

@router.get("/{table}")
def select_table(table: str, request: Request, db: Session = Depends(get_db), _auth: None = Depends(require_api_key)):
    try:
        return tables.select_rows(db, table, parse_filters(request), parse_order(request))
    except GatewayError as e:
        return _error_response(e)


@router.post("/{table}", status_code=201)
def insert_table(table: str, payload: Any = Body(...), db: Session = Depends(get_db), _auth: None = Depends(require_api_key)):
    rows = [payload] if isinstance(payload, dict) else payload
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise HTTPException(status_code=400, detail="Body must be an object or an array of objects")
    try:
        return tables.insert_rows(db, table, rows)
    except GatewayError as e:
        return _error_response(e)


@router.delete("/{table}", status_code=204)
def delete_table(table: str, request: Request, db: Session = Depends(get_db), _auth: None = Depends(require_api_key)):
    try:
        tables.delete_rows(db, table, parse_filters(request))
    except GatewayError as e:
        return _error_response(e)
    return Response(status_code=204)
