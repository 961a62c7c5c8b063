"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session
from typing import Optional
from urllib.parse import quote
import logging
import secrets

from signin.config import settings
from signin.database import get_db
from signin.errors import ForbiddenError, InvalidInputError, SigninError, UnauthorizedError
from signin.schemas.auth import LoginRequest, ProvidersResponse, ViewerResponse
from signin.services.access_service import Viewer
from signin.services.auth_service import (
    PROVIDER_ENTRA,
    PROVIDER_LOCAL,
    LOCAL_ADMIN_DISPLAY_NAME,
    LOCAL_ADMIN_PRINCIPAL,
    LocalAdminAuthenticator,
    SessionService,
    get_current_viewer,
    get_local_admin,
    get_session_service,
)
from signin.services.directory_service import DirectoryService
from signin.services.entra_id_service import EntraIDService, get_entra_id_service

router = APIRouter()
logger = logging.getLogger(__name__)

STATE_COOKIE_NAME = "signin_oidc_state"
STATE_MAX_AGE_SECONDS = 600


def viewer_response(viewer: Viewer) -> ViewerResponse:
    return ViewerResponse(
        id=viewer.user_id,
        upn=viewer.upn,
        display_name=viewer.display_name,
        is_admin=viewer.is_admin,
        location_ids=sorted(viewer.location_ids),
        provider=viewer.provider,
    )


def set_session_cookie(response: Response, token: str, max_age: int) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        max_age=max_age,
        path="/",
    )


def login_error_redirect(error: str) -> RedirectResponse:
    return RedirectResponse(url=f"{settings.SITE_BASE_URL.rstrip('/')}/login?error={quote(error)}")


@router.get("/providers", response_model=ProvidersResponse)
def providers(
    entra: EntraIDService = Depends(get_entra_id_service),
    local_admin: LocalAdminAuthenticator = Depends(get_local_admin),
):
    """Which login methods are available."""
    return ProvidersResponse(oidc=entra.is_configured, local=local_admin.enabled)


@router.get("/login")
def oidc_login(entra: EntraIDService = Depends(get_entra_id_service)):
    """
    Initiate SSO login via Entra ID.

    Redirects the user to the Microsoft login page.
    """
    if not entra.is_configured:
        raise InvalidInputError("single sign-on is not configured")

    state = entra.generate_state()
    response = RedirectResponse(url=entra.get_auth_url(state=state))
    response.set_cookie(
        key=STATE_COOKIE_NAME,
        value=state,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        max_age=STATE_MAX_AGE_SECONDS,
        path="/api/auth",
    )
    logger.info("Redirecting user to Entra ID for SSO login")
    return response


@router.get("/callback")
def oidc_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    db: Session = Depends(get_db),
    entra: EntraIDService = Depends(get_entra_id_service),
    sessions: SessionService = Depends(get_session_service),
):
    """Handle the Entra ID redirect: verify state, exchange the code, start a session."""
    if error:
        logger.error(f"SSO callback error: {error} - {error_description}")
        return login_error_redirect(error)

    expected_state = request.cookies.get(STATE_COOKIE_NAME)
    if not code or not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.error("SSO callback: missing code or invalid state")
        return login_error_redirect("invalid_state")

    try:
        token_result = entra.exchange_code_for_token(code)
    except SigninError as e:
        logger.error(f"SSO callback: {e.message}")
        return login_error_redirect("sso_failed")

    claims = token_result.get("id_token_claims", {})
    principal = entra.principal_from_claims(claims)
    if not principal:
        logger.error("SSO callback: no usable principal claim")
        return login_error_redirect("sso_failed")

    user = DirectoryService(db).resolve_principal(principal)
    if user is None:
        logger.warning(f"SSO: no directory user for principal '{principal}'")
        return login_error_redirect("not_authorized")

    token, expires_in = sessions.issue(principal, claims.get("name") or user.display_name, PROVIDER_ENTRA)
    response = RedirectResponse(url=f"{settings.SITE_BASE_URL.rstrip('/')}/")
    set_session_cookie(response, token, expires_in)
    response.delete_cookie(STATE_COOKIE_NAME, path="/api/auth")

    logger.info(f"SSO: {user.upn} signed in")
    return response


@router.post("/login", response_model=ViewerResponse)
def local_login(
    payload: LoginRequest,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
    local_admin: LocalAdminAuthenticator = Depends(get_local_admin),
):
    """Bootstrap admin login with INITIAL_ADMIN_PASSWORD."""
    if not local_admin.enabled:
        raise ForbiddenError("local login is disabled")
    if not local_admin.authenticate(payload.username, payload.password):
        raise UnauthorizedError("invalid credentials")

    token, expires_in = sessions.issue(LOCAL_ADMIN_PRINCIPAL, LOCAL_ADMIN_DISPLAY_NAME, PROVIDER_LOCAL)
    set_session_cookie(response, token, expires_in)

    logger.info("Local admin signed in")
    return viewer_response(local_admin.viewer())


@router.get("/me", response_model=ViewerResponse)
def me(viewer: Viewer = Depends(get_current_viewer)):
    """Get current authenticated user information."""
    return viewer_response(viewer)


@router.post("/logout", status_code=204)
def logout():
    """Clear the session cookie."""
    response = Response(status_code=204)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    logger.info("User logged out, session cookie cleared")
    return response
