from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, FastAPI, Form, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from cockpit.core.config import Settings, get_settings
from cockpit.core.errors import (
    AuthenticationError,
    CockpitError,
    PermissionDenied,
    RecordError,
    RecordNotFound,
    StoreError,
)
from cockpit.core.logging import configure_logging
from cockpit.core.security import (
    SESSION_COOKIE,
    Principal,
    clear_session_cookie,
    create_session_token,
    read_session,
    set_session_cookie,
    verify_credentials,
)
from cockpit.db.store import JsonFileStore, RecordStore, UserStore
from cockpit.forms import unflatten
from cockpit.records import (
    ADS,
    ECOMMERCE,
    INITIATIVE_STATUSES,
    PERIOD_LIST_FIELDS,
    normalize,
    project_legacy,
    sanitize,
    to_draft,
)
from cockpit.schemas import LoginPayload, issues_from, validate_client

# ---------- Config ----------
BASE_DIR = Path(__file__).resolve().parent
STATIC_DIR = BASE_DIR / "static"
TEMPLATES_DIR = BASE_DIR / "templates"

logger = logging.getLogger(__name__)
templates = Jinja2Templates(directory=TEMPLATES_DIR)
router = APIRouter()

# ---------- Display labels ----------
STATUS_LABELS = {
    "active": "En cours",
    "monitoring": "Monitoring",
    "planning": "Prévu",
    "paused": "En pause",
}
ECOMMERCE_LABELS = {
    "revenue": "Revenu",
    "conversionRate": "Taux de conversion",
    "returningCustomers": "Clients fidèles",
    "topProduct": "Produit star",
    "avgOrderValue": "Panier moyen",
    "cartAbandonment": "Abandon panier",
}
ADS_LABELS = {
    "spend": "Dépenses",
    "roas": "ROAS",
    "cpa": "CPA",
    "impressions": "Impressions",
    "ctr": "CTR",
    "bestChannel": "Canal star",
}
LIST_LABELS = {
    "monthlyHighlights": "Highlights du mois",
    "thisMonthActions": "Actions réalisées ce mois-ci",
    "nextMonthActions": "Actions prévues le mois prochain",
}


def _clean(values: Any) -> List[str]:
    return [str(v).strip() for v in (values or []) if str(v).strip()]


templates.env.filters["status_label"] = lambda s: STATUS_LABELS.get(s, s)


# ---------- Stores ----------
def build_stores(settings: Settings) -> Tuple[RecordStore, UserStore]:
    if settings.store_backend == "sql":
        from cockpit.db.session import make_engine
        from cockpit.db.sql_store import SqlDocumentStore

        engine = make_engine(settings.db_url)
        clients = SqlDocumentStore(engine, "clients")
        users = SqlDocumentStore(engine, "users")
        for store, path in ((clients, settings.clients_path), (users, settings.users_path)):
            if store.is_empty() and path.exists():
                count = store.seed(JsonFileStore(path).list())
                logger.info("seeded %s from %s records=%d", store.collection, path, count)
        return clients, UserStore(users)
    return JsonFileStore(settings.clients_path), UserStore(JsonFileStore(settings.users_path))


def persist_client(clients: RecordStore, payload: Dict[str, Any], target_id: str) -> Dict[str, Any]:
    """Validate ``payload`` and store it under ``target_id``.

    The route id always wins over the payload id. Raises pydantic's
    ValidationError when the payload does not match the client schema.
    """
    validated = validate_client(payload)
    record = project_legacy({**validated.to_record(), "id": target_id})
    return clients.put(record)


# ---------- Dependencies ----------
def app_settings(request: Request) -> Settings:
    return request.app.state.settings


def client_store(request: Request) -> RecordStore:
    return request.app.state.clients


def user_store(request: Request) -> UserStore:
    return request.app.state.users


def current_principal(request: Request) -> Optional[Principal]:
    return read_session(request.cookies.get(SESSION_COOKIE), request.app.state.settings)


def require_admin(principal: Optional[Principal] = Depends(current_principal)) -> Principal:
    if not principal or not principal.is_admin:
        raise PermissionDenied()
    return principal


def _open_session(settings: Settings, users: UserStore, username: str, password: str) -> Tuple[Principal, str]:
    user = verify_credentials(users, username, password)
    if not user:
        logger.info("login failed username=%s", username)
        raise AuthenticationError()
    principal = Principal.from_user(user)
    logger.info("login ok username=%s role=%s", principal.username, principal.role)
    return principal, create_session_token(principal, settings)


# ---------- Error handlers ----------
async def _cockpit_error(request: Request, exc: CockpitError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error("%s %s store failure", request.method, request.url.path)
    return JSONResponse({"message": exc.message}, status_code=exc.status_code)


async def _validation_error(request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if isinstance(exc, (ValidationError, RequestValidationError)) else []
    return JSONResponse({"message": "Payload invalide", "issues": issues_from(list(errors))}, status_code=422)


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse({"message": "Erreur serveur inconnue"}, status_code=500)


# ---------- Auth API ----------
@router.post("/api/login")
def api_login(payload: LoginPayload,
              settings: Settings = Depends(app_settings),
              users: UserStore = Depends(user_store)):
    principal, token = _open_session(settings, users, payload.username, payload.password)
    response = JSONResponse({"role": principal.role, "redirectTo": principal.home})
    set_session_cookie(response, token, settings)
    return response


@router.post("/api/logout")
def api_logout(settings: Settings = Depends(app_settings)):
    response = JSONResponse({"ok": True})
    clear_session_cookie(response, settings)
    return response


# ---------- Clients JSON API ----------
@router.get("/api/clients", response_class=JSONResponse)
def api_clients_list(principal: Principal = Depends(require_admin),
                     clients: RecordStore = Depends(client_store)):
    return [normalize(r) for r in clients.list()]


@router.get("/api/clients/{client_id}", response_class=JSONResponse)
def api_clients_get(client_id: str,
                    principal: Optional[Principal] = Depends(current_principal),
                    clients: RecordStore = Depends(client_store)):
    if not principal or not (principal.is_admin or principal.clientId == client_id):
        raise PermissionDenied()
    record = clients.get(client_id)
    if not record:
        raise RecordNotFound()
    return normalize(record)


@router.put("/api/clients/{client_id}", response_class=JSONResponse)
def api_clients_update(client_id: str,
                       payload: Dict[str, Any] = Body(...),
                       principal: Principal = Depends(require_admin),
                       clients: RecordStore = Depends(client_store)):
    target_id = client_id.strip()
    if not target_id:
        raise RecordError("Client ID manquant.")
    logger.info("PUT /api/clients paramId=%s payloadId=%s by=%s",
                target_id, payload.get("id"), principal.username)
    return persist_client(clients, payload, target_id)


# ---------- UI: login ----------
@router.get("/", include_in_schema=False)
def ui_index(principal: Optional[Principal] = Depends(current_principal)):
    return RedirectResponse(url=principal.home if principal else "/login", status_code=302)


@router.get("/login", response_class=HTMLResponse)
def ui_login(request: Request, principal: Optional[Principal] = Depends(current_principal)):
    if principal:
        return RedirectResponse(url=principal.home, status_code=302)
    return templates.TemplateResponse(request, "login.html", {"error": None, "username": ""})


@router.post("/login", response_class=HTMLResponse)
def ui_login_submit(request: Request,
                    username: str = Form(""),
                    password: str = Form(""),
                    settings: Settings = Depends(app_settings),
                    users: UserStore = Depends(user_store)):
    try:
        principal, token = _open_session(settings, users, username.strip(), password)
    except AuthenticationError as exc:
        ctx = {"error": exc.message, "username": username}
        return templates.TemplateResponse(request, "login.html", ctx, status_code=exc.status_code)
    response = RedirectResponse(url=principal.home, status_code=303)
    set_session_cookie(response, token, settings)
    return response


@router.post("/logout")
def ui_logout(settings: Settings = Depends(app_settings)):
    response = RedirectResponse(url="/login", status_code=303)
    clear_session_cookie(response, settings)
    return response


# ---------- UI: admin editor ----------
def _render_admin(request: Request, principal: Principal, records: List[Dict[str, Any]],
                  draft: Optional[Dict[str, Any]], issues: List[Dict[str, Any]],
                  saved: bool = False, status_code: int = 200):
    ctx = {
        "admin": principal,
        "clients": records,
        "draft": draft,
        "issues": issues,
        "saved": saved,
        "statuses": INITIATIVE_STATUSES,
        "status_labels": STATUS_LABELS,
        "list_fields": PERIOD_LIST_FIELDS,
        "list_labels": LIST_LABELS,
        "ecommerce": ECOMMERCE,
        "ecommerce_labels": ECOMMERCE_LABELS,
        "ads": ADS,
        "ads_labels": ADS_LABELS,
    }
    return templates.TemplateResponse(request, "admin.html", ctx, status_code=status_code)


@router.get("/admin", response_class=HTMLResponse)
def ui_admin(request: Request,
             client: Optional[str] = None,
             saved: int = 0,
             principal: Optional[Principal] = Depends(current_principal),
             clients: RecordStore = Depends(client_store)):
    if not principal or not principal.is_admin:
        return RedirectResponse(url="/login", status_code=302)
    records = [normalize(r) for r in clients.list()]
    selected = next((r for r in records if r.get("id") == client), records[0] if records else None)
    draft = to_draft(selected) if selected else None
    return _render_admin(request, principal, records, draft, issues=[], saved=bool(saved))


@router.post("/admin/clients/{client_id}", response_class=HTMLResponse)
async def ui_admin_save(request: Request,
                        client_id: str,
                        principal: Optional[Principal] = Depends(current_principal),
                        clients: RecordStore = Depends(client_store)):
    if not principal or not principal.is_admin:
        return RedirectResponse(url="/login", status_code=303)
    if clients.get(client_id) is None:
        raise RecordNotFound()

    form = await request.form()
    draft = unflatten(form.multi_items())
    record = sanitize(draft, client_id)
    record["id"] = client_id
    logger.info("admin save paramId=%s draftId=%s by=%s", client_id, draft.get("id"), principal.username)
    try:
        persist_client(clients, record, client_id)
    except ValidationError as exc:
        records = [normalize(r) for r in clients.list()]
        return _render_admin(request, principal, records, to_draft(record),
                             issues=issues_from(exc.errors()), status_code=422)
    return RedirectResponse(url=f"/admin?client={quote(client_id)}&saved=1", status_code=303)


# ---------- UI: client dashboard ----------
def _pick(periods: Optional[List[Dict[str, Any]]], wanted: Optional[str]) -> Optional[Dict[str, Any]]:
    if not periods:
        return None
    return next((p for p in periods if p.get("id") == wanted), periods[0])


@router.get("/dashboard", response_class=HTMLResponse)
def ui_dashboard(request: Request,
                 period: Optional[str] = None,
                 ecom: Optional[str] = None,
                 ads: Optional[str] = None,
                 principal: Optional[Principal] = Depends(current_principal),
                 settings: Settings = Depends(app_settings),
                 clients: RecordStore = Depends(client_store)):
    if not principal or principal.is_admin:
        return RedirectResponse(url="/login", status_code=302)
    raw = clients.get(principal.clientId) if principal.clientId else None
    if not raw:
        # drop the session so /login does not send it back here
        logger.warning("no client record for user=%s clientId=%s", principal.username, principal.clientId)
        response = RedirectResponse(url="/login", status_code=302)
        clear_session_cookie(response, settings)
        return response

    client = normalize(raw)
    selected = _pick(client["kpiPeriods"], period) or {}
    ctx = {
        "client": client,
        "period": selected,
        "highlights": _clean(selected.get("monthlyHighlights", client.get("monthlyHighlights"))),
        "delivered": _clean(selected.get("thisMonthActions", client.get("thisMonthActions"))),
        "upcoming": _clean(selected.get("nextMonthActions", client.get("nextMonthActions"))),
        "ecom": _pick(client.get("ecommercePeriods"), ecom),
        "ads": _pick(client.get("adsPeriods"), ads),
        "ecommerce_labels": ECOMMERCE_LABELS,
        "ads_labels": ADS_LABELS,
    }
    return templates.TemplateResponse(request, "dashboard.html", ctx)


# ---------- Favicon ----------
@router.get("/favicon.ico", include_in_schema=False)
def favicon():
    return Response(status_code=204)


# ---------- App ----------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.clients, app.state.users = build_stores(settings)

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
    app.add_exception_handler(CockpitError, _cockpit_error)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unexpected_error)
    app.include_router(router)
    return app


app = create_app()
