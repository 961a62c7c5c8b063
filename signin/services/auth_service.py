"""
Console authentication: session tokens, the local bootstrap admin, and
the request dependencies that turn a session into a Viewer.

The local admin is a separate branch. It never goes through directory
principal resolution and can be switched off with LOCAL_ADMIN_ENABLED.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from fastapi import Depends, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from signin.config import Settings, settings
from signin.database import get_db
from signin.errors import ForbiddenError, UnauthorizedError
from signin.services.access_service import AccessService, Viewer
from signin.services.directory_service import DirectoryService

logger = logging.getLogger(__name__)

# Password hashing context for the bootstrap admin
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PROVIDER_ENTRA = "entra"
PROVIDER_LOCAL = "local"

LOCAL_ADMIN_USERNAME = "admin"
LOCAL_ADMIN_PRINCIPAL = "local:admin"
LOCAL_ADMIN_DISPLAY_NAME = "Local Admin"


class SessionService:
    """Issues and verifies signed session tokens."""

    def __init__(self, config: Settings):
        self.config = config

    def issue(self, principal: str, name: str, provider: str) -> Tuple[str, int]:
        """
        Sign a session token.

        Returns:
            (token, lifetime in seconds)
        """
        expires_in = self.config.SESSION_TTL_MINUTES * 60
        now = datetime.now(timezone.utc)
        payload = {
            "sub": principal,
            "name": name,
            "provider": provider,
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
        }
        token = jwt.encode(payload, self.config.SESSION_SECRET, algorithm=self.config.SESSION_ALGORITHM)
        return token, expires_in

    def verify(self, token: str) -> dict:
        """Decode a session token or raise UnauthorizedError."""
        try:
            return jwt.decode(
                token,
                self.config.SESSION_SECRET,
                algorithms=[self.config.SESSION_ALGORITHM]
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("session expired")
        except jwt.InvalidTokenError:
            raise UnauthorizedError("invalid session")

    def token_from_request(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[len("Bearer "):].strip() or None
        return request.cookies.get(self.config.SESSION_COOKIE_NAME)


class LocalAdminAuthenticator:
    """Bootstrap admin login backed by INITIAL_ADMIN_PASSWORD."""

    def __init__(self, config: Settings):
        self.config = config
        self._password_hash = None
        if config.local_admin_available:
            self._password_hash = pwd_context.hash(config.INITIAL_ADMIN_PASSWORD)

    @property
    def enabled(self) -> bool:
        return self._password_hash is not None

    def authenticate(self, username: str, password: str) -> bool:
        if not self.enabled:
            logger.warning("Local admin login attempted while disabled")
            return False

        username_ok = secrets.compare_digest((username or "").strip().lower(), LOCAL_ADMIN_USERNAME)
        password_ok = pwd_context.verify(password or "", self._password_hash)
        if not (username_ok and password_ok):
            logger.warning("Local admin login failed")
            return False
        return True

    def viewer(self) -> Viewer:
        """Synthetic admin identity, not backed by a user row."""
        return Viewer(
            user_id=None,
            upn=LOCAL_ADMIN_PRINCIPAL,
            display_name=LOCAL_ADMIN_DISPLAY_NAME,
            is_admin=True,
            provider=PROVIDER_LOCAL,
        )


# Global service instances
_session_service: Optional[SessionService] = None
_local_admin: Optional[LocalAdminAuthenticator] = None


def get_session_service() -> SessionService:
    """Get or create the session service instance."""
    global _session_service
    if _session_service is None:
        _session_service = SessionService(settings)
    return _session_service


def get_local_admin() -> LocalAdminAuthenticator:
    """Get or create the local admin authenticator."""
    global _local_admin
    if _local_admin is None:
        _local_admin = LocalAdminAuthenticator(settings)
    return _local_admin


def resolve_viewer(db: Session, claims: dict, local_admin: LocalAdminAuthenticator) -> Viewer:
    """
    Turn verified session claims into a Viewer.

    Directory principals are mapped to a user row on every request, so
    admin flag and grant changes apply immediately.
    """
    if claims.get("provider") == PROVIDER_LOCAL:
        if not local_admin.enabled or claims.get("sub") != LOCAL_ADMIN_PRINCIPAL:
            raise UnauthorizedError("local admin login is disabled")
        return local_admin.viewer()

    user = DirectoryService(db).resolve_principal(claims.get("sub", ""))
    if user is None:
        logger.warning(f"No user matches principal '{claims.get('sub')}'")
        raise UnauthorizedError("user not recognised")

    return Viewer(
        user_id=user.id,
        upn=user.upn,
        display_name=user.display_name,
        is_admin=user.is_admin,
        location_ids=frozenset(AccessService(db).location_ids_for_user(user.id)),
        provider=claims.get("provider") or PROVIDER_ENTRA,
    )


def get_current_viewer(
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionService = Depends(get_session_service),
    local_admin: LocalAdminAuthenticator = Depends(get_local_admin),
) -> Viewer:
    """Dependency that requires a valid console session."""
    token = sessions.token_from_request(request)
    if not token:
        raise UnauthorizedError("authentication required")
    return resolve_viewer(db, sessions.verify(token), local_admin)


def require_admin(viewer: Viewer = Depends(get_current_viewer)) -> Viewer:
    """Dependency that requires the current viewer to be an admin."""
    if not viewer.is_admin:
        logger.warning(f"Non-admin {viewer.upn} attempted an admin operation")
        raise ForbiddenError("admin required")
    return viewer
