"""HTTP service exposing settings, secrets, logs, PA-API lookups and URL expansion."""
from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from connectors.base import ConnectorError, RemoteError
from connectors.models import PaapiCredentials
from connectors.paapi_client import PAAPIClient
from connectors.tile_extractor import extract_asin_aaid_pairs
from connectors.url_expander import URLExpander, unique_product_codes
from security.cipher import SecretCipher
from service.schemas import (
    ExpandUrlsRequest,
    ExtractPairsRequest,
    GetItemsRequest,
    LogEventRequest,
    PaapiConfigRequest,
    SecretValueRequest,
    SettingValueRequest,
)
from storage import Database, LogStore, SecretsStore, SettingsStore, utc_now
from utils.config import load_settings, resolve_passphrase
from utils.errors import ConfigError
from utils.logging import get_logger

logger = get_logger("service.http")


@dataclass
class ServiceContext:
    settings: Dict[str, Any]
    database: Database
    settings_store: SettingsStore
    secrets_store: SecretsStore
    log_store: LogStore
    cipher: Optional[SecretCipher] = None
    session: Any = None
    started_at: str = field(default_factory=utc_now)
    started_monotonic: float = field(default_factory=time.monotonic)

    def require_cipher(self) -> SecretCipher:
        if self.cipher is None:
            raise ConfigError("Encryption not configured properly")
        return self.cipher


def get_context(request: Request) -> ServiceContext:
    return request.app.state.context


def _parse(schema: Any, payload: Any) -> Any:
    try:
        return schema.from_dict(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _secret_view(row: Dict[str, Any], cipher: Optional[SecretCipher], include_value: bool) -> Dict[str, Any]:
    view = {
        "id": row["id"],
        "name": row["name"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }
    if include_value:
        view["value"] = cipher.reveal(row["value_encrypted"]) if cipher else None
    return view


router = APIRouter(prefix="/api")


# ----------------------------------------------------------------------
# System
# ----------------------------------------------------------------------
@router.get("/system/health")
def system_health(ctx: ServiceContext = Depends(get_context)) -> Dict[str, Any]:
    db_ok = ctx.database.ping()
    return {
        "status": "ok" if db_ok else "degraded",
        "uptimeSeconds": round(time.monotonic() - ctx.started_monotonic, 3),
        "timestamp": utc_now(),
        "db": {"ok": db_ok},
        "startedAt": ctx.started_at,
        "encryption": {"configured": ctx.cipher is not None},
    }


# ----------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------
@router.get("/settings")
def list_settings(section: Optional[str] = None, ctx: ServiceContext = Depends(get_context)):
    return ctx.settings_store.list_settings(section or None)


@router.get("/settings/{section}/{name}")
def get_setting(section: str, name: str, ctx: ServiceContext = Depends(get_context)):
    row = ctx.settings_store.get_setting(section, name)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return row


@router.put("/settings/{section}/{name}")
def put_setting(
    section: str,
    name: str,
    payload: Any = Body(None),
    ctx: ServiceContext = Depends(get_context),
):
    req = _parse(SettingValueRequest, payload)
    ctx.settings_store.upsert_setting(section, name, req.value)
    return {"ok": True}


@router.delete("/settings/{section}/{name}")
def delete_setting(section: str, name: str, ctx: ServiceContext = Depends(get_context)):
    ctx.settings_store.delete_setting(section, name)
    return _no_content()


# ----------------------------------------------------------------------
# PA-API config
# ----------------------------------------------------------------------
def _paapi_defaults(ctx: ServiceContext) -> Dict[str, str]:
    cfg = ctx.settings.get("paapi", {})
    return {key: cfg[key] for key in ("marketplace", "region", "host") if cfg.get(key)}


@router.get("/config/paapi")
def get_paapi_config(ctx: ServiceContext = Depends(get_context)):
    credentials = ctx.settings_store.get_paapi_credentials()
    if credentials is None:
        return None
    return credentials.with_defaults(**_paapi_defaults(ctx)).to_dict()


@router.put("/config/paapi")
def put_paapi_config(payload: Any = Body(None), ctx: ServiceContext = Depends(get_context)):
    req = _parse(PaapiConfigRequest, payload)
    ctx.settings_store.put_paapi_credentials(req.credentials)
    return {"ok": True}


@router.delete("/config/paapi")
def delete_paapi_config(ctx: ServiceContext = Depends(get_context)):
    ctx.settings_store.delete_paapi_credentials()
    return _no_content()


# ----------------------------------------------------------------------
# Logs
# ----------------------------------------------------------------------
@router.get("/logs")
def list_logs(
    limit: Optional[int] = Query(None),
    level: Optional[str] = None,
    ctx: ServiceContext = Depends(get_context),
):
    default_limit = ctx.settings.get("logs", {}).get("default_limit", 100)
    return ctx.log_store.list_logs(limit=limit or default_limit, level=level or None)


@router.post("/logs", status_code=status.HTTP_201_CREATED)
def create_log(payload: Any = Body(None), ctx: ServiceContext = Depends(get_context)):
    req = _parse(LogEventRequest, payload)
    log_id = ctx.log_store.append(req.level, req.message, req.context)
    return {"ok": True, "id": log_id}


@router.delete("/logs/{log_id}")
def delete_log(log_id: str, ctx: ServiceContext = Depends(get_context)):
    try:
        parsed = int(log_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid id") from None
    ctx.log_store.delete_log(parsed)
    return _no_content()


# ----------------------------------------------------------------------
# Secrets
# ----------------------------------------------------------------------
@router.get("/secrets")
def list_secrets(
    include_values: Optional[str] = Query(None, alias="includeValues"),
    ctx: ServiceContext = Depends(get_context),
):
    reveal = include_values == "1"
    return [_secret_view(row, ctx.cipher, reveal) for row in ctx.secrets_store.list_secrets()]


@router.get("/secrets/{name}")
def get_secret(
    name: str,
    include_value: Optional[str] = Query(None, alias="includeValue"),
    ctx: ServiceContext = Depends(get_context),
):
    row = ctx.secrets_store.get_secret(name)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return _secret_view(row, ctx.cipher, include_value == "1")


@router.put("/secrets/{name}")
def put_secret(name: str, payload: Any = Body(None), ctx: ServiceContext = Depends(get_context)):
    req = _parse(SecretValueRequest, payload)
    envelope = ctx.require_cipher().encrypt(req.value)
    ctx.secrets_store.put_secret(name, envelope)
    return {"ok": True}


@router.delete("/secrets/{name}")
def delete_secret(name: str, ctx: ServiceContext = Depends(get_context)):
    ctx.secrets_store.delete_secret(name)
    return _no_content()


# ----------------------------------------------------------------------
# PA-API GetItems
# ----------------------------------------------------------------------
@router.post("/paapi/get-items")
def paapi_get_items(payload: Any = Body(None), ctx: ServiceContext = Depends(get_context)):
    req = _parse(GetItemsRequest, payload)
    credentials = ctx.settings_store.get_paapi_credentials() or PaapiCredentials()
    if req.credentials:
        credentials = credentials.merged_with(req.credentials)

    client = PAAPIClient(credentials, settings=ctx.settings, session=ctx.session)
    try:
        items = client.get_items(req.asins)
    except ConnectorError as exc:
        ctx.log_store.append(
            "error",
            "PA API request failed",
            {"asins": req.asins, "status": exc.status, "error": str(exc)},
        )
        raise
    return {"items": items}


# ----------------------------------------------------------------------
# Short URL expansion
# ----------------------------------------------------------------------
@router.post("/expand-amazon-urls")
def expand_urls(payload: Any = Body(None), ctx: ServiceContext = Depends(get_context)):
    req = _parse(ExpandUrlsRequest, payload)
    expander = URLExpander(settings=ctx.settings, session=ctx.session)
    outcomes = expander.expand_batch(req.urls)
    ctx.log_store.append(
        "info",
        "Expanded short URLs",
        {"total": len(outcomes), "resolved": sum(1 for outcome in outcomes if outcome.ok)},
    )
    return {
        "results": [outcome.to_dict() for outcome in outcomes],
        "asins": unique_product_codes(outcomes),
    }


# ----------------------------------------------------------------------
# ASIN/AAID pairs from editor HTML
# ----------------------------------------------------------------------
@router.post("/extract-asin-aaid")
def extract_pairs(payload: Any = Body(None)):
    req = _parse(ExtractPairsRequest, payload)
    pairs = extract_asin_aaid_pairs(req.html)
    return {
        "pairs": [pair.to_dict() for pair in pairs],
        "asins": [pair.asin for pair in pairs],
    }


# ----------------------------------------------------------------------
# Error mapping
# ----------------------------------------------------------------------
def _error(status_code: int, error: Any, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, exc.detail)


async def _config_error_handler(request: Request, exc: ConfigError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))


async def _remote_error_handler(request: Request, exc: RemoteError) -> JSONResponse:
    return _error(exc.status, exc.body or "PA API error", statusCode=exc.status)


async def _connector_error_handler(request: Request, exc: ConnectorError) -> JSONResponse:
    logger.error("Upstream request failed: %s", exc)
    return _error(status.HTTP_502_BAD_GATEWAY, "PA API request failed")


async def _database_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error")


def _build_cipher(settings: Dict[str, Any]) -> Optional[SecretCipher]:
    passphrase = resolve_passphrase(settings)
    if passphrase is None:
        logger.warning("Secret encryption disabled: passphrase not set")
        return None
    try:
        return SecretCipher.from_passphrase(passphrase)
    except ConfigError as exc:
        logger.warning("Secret encryption disabled: %s", exc)
        return None


def create_app(
    settings: Optional[Dict[str, Any]] = None,
    *,
    database: Optional[Database] = None,
    cipher: Optional[SecretCipher] = None,
    session: Any = None,
) -> FastAPI:
    """Build the application with its collaborators attached to ``app.state``."""
    settings = settings or load_settings()
    database = database or Database(settings.get("database", {}).get("path", "data/workflow.db"))
    max_limit = int(settings.get("logs", {}).get("max_limit", 1000))

    app = FastAPI(title="Workflow Engine API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.context = ServiceContext(
        settings=settings,
        database=database,
        settings_store=SettingsStore(database),
        secrets_store=SecretsStore(database),
        log_store=LogStore(database, max_limit=max_limit),
        cipher=cipher if cipher is not None else _build_cipher(settings),
        session=session,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s status=%s time_ms=%d",
            request.method,
            request.url.path,
            response.status_code,
            int((time.perf_counter() - start) * 1000),
        )
        return response

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(ConfigError, _config_error_handler)
    app.add_exception_handler(RemoteError, _remote_error_handler)
    app.add_exception_handler(ConnectorError, _connector_error_handler)
    app.add_exception_handler(sqlite3.Error, _database_error_handler)
    app.include_router(router)
    return app
