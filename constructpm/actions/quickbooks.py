"""
QuickBooks Online integration: OAuth connect, token refresh and a sync that
pulls invoices, expenses, vendors and customers and records how many came
back. Every entry point returns a QBResult instead of raising, so the
settings page can show the failure inline.
"""
import logging
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional
from urllib.parse import urlencode

import requests
from sqlalchemy.orm import Session

from constructpm.core.config import settings
from constructpm.core.dates import utcnow
from constructpm.core.permissions import can
from constructpm.db.models.quickbooks import SYNC_TYPES, QuickBooksConnection, QuickBooksSyncLog
from constructpm.db.models.user import User

logger = logging.getLogger(__name__)

AUTH_URL = "https://appcenter.intuit.com/connect/oauth2"
TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
API_BASE = "https://quickbooks.api.intuit.com/v3"
SCOPE = "com.intuit.quickbooks.accounting"
REQUEST_TIMEOUT = 30
REFRESH_MARGIN = timedelta(seconds=60)

# sync type -> (QuickBooks entity, connection toggle)
SYNC_ENTITIES = {
    "invoices": ("Invoice", "sync_invoices"),
    "expenses": ("Purchase", "sync_expenses"),
    "vendors": ("Vendor", "sync_vendors"),
    "customers": ("Customer", "sync_customers"),
}

SETTING_FIELDS = ["sync_enabled", "sync_invoices", "sync_expenses", "sync_vendors", "sync_customers"]


@dataclass
class QBResult:
    success: bool
    error: Optional[str] = None
    data: dict = field(default_factory=dict)


def _allowed(user: Optional[User]) -> Optional[QBResult]:
    if user is None or not user.is_active:
        return QBResult(False, "Unauthorized")
    if not can(user.role, "manage", "phase"):
        return QBResult(False, "Insufficient permissions")
    return None


def _connection(db: Session, user: User) -> Optional[QuickBooksConnection]:
    return db.query(QuickBooksConnection).filter(QuickBooksConnection.organization_id == user.organization_id).first()


def get_auth_url(user: User) -> QBResult:
    denied = _allowed(user)
    if denied:
        return denied
    if not settings.QUICKBOOKS_CLIENT_ID or not settings.QUICKBOOKS_REDIRECT_URI:
        return QBResult(False, "QuickBooks not configured")

    state = secrets.token_urlsafe(24)
    query = urlencode({
        "client_id": settings.QUICKBOOKS_CLIENT_ID,
        "response_type": "code",
        "scope": SCOPE,
        "redirect_uri": settings.QUICKBOOKS_REDIRECT_URI,
        "state": state,
    })
    return QBResult(True, data={"url": f"{AUTH_URL}?{query}", "state": state})


def _token_request(form: dict) -> requests.Response:
    return requests.post(
        TOKEN_URL,
        auth=(settings.QUICKBOOKS_CLIENT_ID, settings.QUICKBOOKS_CLIENT_SECRET),
        headers={"Accept": "application/json"},
        data=form,
        timeout=REQUEST_TIMEOUT,
    )


def _fetch_company_name(access_token: str, realm_id: str) -> Optional[str]:
    try:
        response = requests.get(
            f"{API_BASE}/company/{realm_id}/companyinfo/{realm_id}",
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.warning("QuickBooks company info lookup failed: %s", e)
        return None
    if not response.ok:
        return None
    try:
        return (response.json().get("CompanyInfo") or {}).get("CompanyName")
    except (ValueError, AttributeError):
        logger.warning("QuickBooks company info reply was not usable")
        return None


def _read_tokens(response: requests.Response) -> Optional[dict]:
    """Token payload of a successful token call, or None when it carries no access token."""
    try:
        tokens = response.json()
    except ValueError:
        return None
    if not isinstance(tokens, dict) or not tokens.get("access_token"):
        return None
    return tokens


def _expires_in(tokens: dict) -> int:
    try:
        return int(tokens.get("expires_in", 3600))
    except (TypeError, ValueError):
        return 3600


def exchange_code(db: Session, user: User, code: str, realm_id: str) -> QBResult:
    denied = _allowed(user)
    if denied:
        return denied
    if not code or not realm_id:
        return QBResult(False, "Missing authorization code")

    try:
        response = _token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": settings.QUICKBOOKS_REDIRECT_URI,
        })
    except requests.RequestException as e:
        return QBResult(False, str(e) or "Connection failed")
    if not response.ok:
        return QBResult(False, "Failed to exchange authorization code")

    tokens = _read_tokens(response)
    if tokens is None or not tokens.get("refresh_token"):
        logger.warning("QuickBooks token exchange for org %s returned no tokens", user.organization_id)
        return QBResult(False, "Failed to exchange authorization code")
    company_name = _fetch_company_name(tokens["access_token"], realm_id)
    expiry = utcnow() + timedelta(seconds=_expires_in(tokens))

    # One connection per organisation
    connection = _connection(db, user)
    if connection is None:
        connection = QuickBooksConnection(organization_id=user.organization_id)
        db.add(connection)
    connection.company_id = realm_id
    connection.company_name = company_name
    connection.access_token = tokens["access_token"]
    connection.refresh_token = tokens["refresh_token"]
    connection.token_expiry = expiry
    db.commit()
    return QBResult(True, data={"company_name": company_name})


def get_connection(db: Session, user: User) -> Optional[QuickBooksConnection]:
    if user is None:
        return None
    return _connection(db, user)


def disconnect(db: Session, user: User) -> QBResult:
    denied = _allowed(user)
    if denied:
        return denied
    connection = _connection(db, user)
    if connection is not None:
        db.delete(connection)
        db.commit()
    return QBResult(True)


def update_sync_settings(db: Session, user: User, **toggles) -> QBResult:
    denied = _allowed(user)
    if denied:
        return denied
    connection = _connection(db, user)
    if connection is None:
        return QBResult(False, "No QuickBooks connection found")
    for name in SETTING_FIELDS:
        if toggles.get(name) is not None:
            setattr(connection, name, bool(toggles[name]))
    db.commit()
    return QBResult(True)


def refresh_access_token(db: Session, connection: QuickBooksConnection) -> Optional[str]:
    """Current token while it has more than a minute left, otherwise a refreshed one."""
    if connection.token_expiry and connection.token_expiry > utcnow() + REFRESH_MARGIN:
        return connection.access_token
    try:
        response = _token_request({"grant_type": "refresh_token", "refresh_token": connection.refresh_token})
    except requests.RequestException as e:
        logger.warning("QuickBooks token refresh failed: %s", e)
        return None
    if not response.ok:
        logger.warning("QuickBooks token refresh rejected with %s", response.status_code)
        return None

    tokens = _read_tokens(response)
    if tokens is None:
        logger.warning("QuickBooks token refresh returned no access token")
        return None
    connection.access_token = tokens["access_token"]
    connection.refresh_token = tokens.get("refresh_token") or connection.refresh_token
    connection.token_expiry = utcnow() + timedelta(seconds=_expires_in(tokens))
    db.commit()
    return connection.access_token


def _count_entities(connection: QuickBooksConnection, access_token: str, entity: str) -> int:
    response = requests.get(
        f"{API_BASE}/company/{connection.company_id}/query",
        params={"query": f"SELECT * FROM {entity} MAXRESULTS 100"},
        headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    return len((response.json().get("QueryResponse") or {}).get(entity) or [])


def trigger_sync(db: Session, user: User, sync_type: str = "full") -> QBResult:
    denied = _allowed(user)
    if denied:
        return denied
    if sync_type not in SYNC_TYPES:
        return QBResult(False, "Invalid sync type")
    connection = _connection(db, user)
    if connection is None:
        return QBResult(False, "No QuickBooks connection found")
    if not connection.sync_enabled:
        return QBResult(False, "Sync is disabled")

    access_token = refresh_access_token(db, connection)
    if not access_token:
        return QBResult(False, "Failed to refresh QuickBooks token")

    sync_log = QuickBooksSyncLog(connection_id=connection.id, sync_type=sync_type, status="started")
    db.add(sync_log)
    db.commit()

    synced, failed, errors = 0, 0, []
    for name, (entity, toggle) in SYNC_ENTITIES.items():
        if sync_type == "full":
            if not getattr(connection, toggle):
                continue
        elif sync_type != name:
            continue
        try:
            synced += _count_entities(connection, access_token, entity)
        except (requests.RequestException, ValueError) as e:
            failed += 1
            errors.append(f"Failed to fetch {name}: {e}")

    status = ("partial" if synced > 0 else "error") if failed else "success"
    error_message = "; ".join(errors) or None
    now = utcnow()

    sync_log.status = status
    sync_log.items_synced = synced
    sync_log.items_failed = failed
    sync_log.error_message = error_message
    sync_log.completed_at = now
    connection.last_sync_at = now
    connection.last_sync_status = status
    connection.last_sync_message = error_message or f"Synced {synced} items"
    db.commit()

    logger.info("QuickBooks %s sync for org %s: %s (%d items)", sync_type, user.organization_id, status, synced)
    return QBResult(True, data={"sync_log_id": sync_log.id, "status": status, "items_synced": synced})


def get_sync_logs(db: Session, user: User, limit: int = 10) -> List[QuickBooksSyncLog]:
    if user is None:
        return []
    return db.query(QuickBooksSyncLog).join(QuickBooksConnection).filter(
        QuickBooksConnection.organization_id == user.organization_id,
    ).order_by(QuickBooksSyncLog.started_at.desc(), QuickBooksSyncLog.id.desc()).limit(limit).all()
