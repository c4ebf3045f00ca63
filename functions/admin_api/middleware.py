"""
Role-gating middleware for the admin pages and the admin API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from admin_api.auth import AuthClient, AuthError, AuthUser
from admin_api.config import get_settings
from admin_api.db import DbClient
from admin_api.dependencies import get_auth_client, get_db_client
from shared.types import ALLOWED_ROLES

logger = logging.getLogger(__name__)

PAGE_PREFIX = "/admin"
API_PREFIX = "/api/admin"
FORWARDED_HEADERS = (b"x-user-role", b"x-user-id", b"x-user-email")


@dataclass
class GateDecision:
    allowed: bool
    user: Optional[AuthUser] = None
    role: Optional[str] = None
    redirect_to: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def protected_area(path: str) -> Optional[str]:
    """Return "api" or "page" for gated paths, None for everything else."""
    if _under(path, API_PREFIX):
        return "api"
    if _under(path, PAGE_PREFIX):
        return "page"
    return None


def extract_token(request: Request, cookie_name: str) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(cookie_name)


def evaluate_access(
    area: str, token: Optional[str], auth: AuthClient, db: DbClient
) -> GateDecision:
    """
    Two lookups and a table: who is calling, and is their stored role allowed.
    """
    try:
        user = auth.get_user(token) if token else None
    except AuthError as e:
        logger.warning("Could not verify session: %s", e)
        user = None
    if not user:
        if area == "api":
            return GateDecision(False, status_code=401, error="Unauthorized")
        return GateDecision(False, redirect_to="/login?error=unauthorized")

    row = db.get("users", user.id)
    if not row or not row.get("role"):
        logger.error("Role lookup failed for user %s", user.id)
        if area == "api":
            return GateDecision(False, user=user, status_code=403, error="User not found")
        return GateDecision(False, user=user, redirect_to="/login?error=no_role")

    role = row["role"]
    if role not in ALLOWED_ROLES:
        logger.warning(
            "Unauthorized access attempt by user: %s with role: %s", user.id, role
        )
        if area == "api":
            return GateDecision(
                False, user=user, role=role, status_code=403, error="Insufficient privileges"
            )
        return GateDecision(False, user=user, role=role, redirect_to="/not-allowed")

    return GateDecision(True, user=user, role=role)


def _forward_identity(request: Request, area: str, decision: GateDecision) -> None:
    # Drop anything the client sent under our header names before adding ours.
    headers = [
        (k, v) for k, v in request.scope["headers"] if k.lower() not in FORWARDED_HEADERS
    ]
    headers.append((b"x-user-role", decision.role.encode("utf-8")))
    headers.append((b"x-user-id", decision.user.id.encode("utf-8")))
    if area == "page" and decision.user.email:
        headers.append((b"x-user-email", decision.user.email.encode("utf-8")))
    request.scope["headers"] = headers


def _strip_identity(request: Request) -> None:
    request.scope["headers"] = [
        (k, v) for k, v in request.scope["headers"] if k.lower() not in FORWARDED_HEADERS
    ]


def setup_role_gate(app: FastAPI) -> None:
    @app.middleware("http")
    async def role_gate(request: Request, call_next):
        area = protected_area(request.url.path)
        if area is None:
            _strip_identity(request)
            return await call_next(request)

        settings = get_settings()
        try:
            token = extract_token(request, settings.session_cookie_name)
            decision = evaluate_access(area, token, get_auth_client(), get_db_client())
        except Exception:
            # Any failure while checking denies access.
            logger.exception("Role gate error on %s", request.url.path)
            return RedirectResponse("/login?error=system_error", status_code=307)

        if not decision.allowed:
            if decision.redirect_to:
                return RedirectResponse(decision.redirect_to, status_code=307)
            return JSONResponse(
                {"error": decision.error}, status_code=decision.status_code
            )

        _forward_identity(request, area, decision)
        response = await call_next(request)
        if area == "page":
            response.headers["x-user-role"] = decision.role
            response.headers["x-user-id"] = decision.user.id
        return response


def setup_cors(app: FastAPI) -> None:
    origins = [o.strip() for o in get_settings().cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
