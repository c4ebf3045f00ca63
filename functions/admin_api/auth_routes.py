"""
Session endpoints: sign in, sign out, OAuth callback and the current user.

These live outside the role gate, so each one checks the stored role itself.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from admin_api.auth import AuthClient, AuthError
from admin_api.config import get_settings
from admin_api.db import DbClient
from admin_api.dependencies import get_auth_client, get_db_client
from admin_api.middleware import extract_token
from admin_api.schemas import LoginRequest, LoginResponse
from shared.types import ALLOWED_ROLES
from shared.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_MAX_AGE = 60 * 60 * 24 * 7


def _stored_role(db: DbClient, user_id: str) -> Optional[str]:
    row = db.get("users", user_id)
    return row.get("role") if row else None


def _set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        get_settings().session_cookie_name,
        token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        path="/",
    )


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    try:
        session = auth.sign_in_with_password(payload.email.strip(), payload.password)
    except AuthError as exc:
        logger.info("Login failed for %s", payload.email)
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    role = _stored_role(db, session.user.id)
    if not role:
        auth.sign_out(session.access_token)
        raise HTTPException(status_code=403, detail="Unable to verify user role")
    if role not in ALLOWED_ROLES:
        logger.warning("Login refused for %s with role %s", session.user.id, role)
        auth.sign_out(session.access_token)
        raise HTTPException(
            status_code=403, detail="Access denied. Admin privileges required."
        )

    db.update("users", session.user.id, {"last_sign_in_at": utcnow()})
    body = LoginResponse(
        access_token=session.access_token, user=session.user.as_dict(), role=role
    )
    response = JSONResponse(body.model_dump())
    _set_session_cookie(response, session.access_token)
    return response


@router.post("/logout")
def logout(request: Request, auth: AuthClient = Depends(get_auth_client)):
    token = extract_token(request, get_settings().session_cookie_name)
    if token:
        try:
            auth.sign_out(token)
        except AuthError:
            logger.exception("Sign-out failed")
    response = JSONResponse({"status": "ok"})
    response.delete_cookie(get_settings().session_cookie_name, path="/")
    return response


@router.get("/callback")
def callback(
    request: Request,
    access_token: Optional[str] = None,
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    token = access_token or extract_token(request, get_settings().session_cookie_name)
    try:
        user = auth.get_user(token) if token else None
        if not user:
            return RedirectResponse("/login?error=callback_failed", status_code=303)
        if _stored_role(db, user.id) not in ALLOWED_ROLES:
            auth.sign_out(token)
            response = RedirectResponse("/not-allowed", status_code=303)
            response.delete_cookie(get_settings().session_cookie_name, path="/")
            return response
    except AuthError:
        logger.exception("Auth callback error")
        return RedirectResponse("/login?error=callback_failed", status_code=303)

    response = RedirectResponse("/admin/dashboard", status_code=303)
    _set_session_cookie(response, token)
    return response


@router.get("/me")
def me(
    request: Request,
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    token = extract_token(request, get_settings().session_cookie_name)
    user = auth.get_user(token) if token else None
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"user": user.as_dict(), "role": _stored_role(db, user.id)}
