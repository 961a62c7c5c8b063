"""
Entra ID (Azure AD) OpenID Connect login for the admin console.

Handles:
- Authorization URL generation
- Token exchange
- Principal extraction from ID token claims
"""

import logging
import secrets
from typing import Any, Dict, Optional

import msal

from signin.config import Settings, settings
from signin.errors import UnauthorizedError

logger = logging.getLogger(__name__)

# OIDC scopes (openid/profile are added by MSAL)
SCOPES = ["User.Read"]

# Claims tried in order for the login principal
PRINCIPAL_CLAIMS = ("upn", "preferred_username", "email", "sub")


class EntraIDService:
    """Microsoft Entra ID OIDC authentication service."""

    def __init__(self, config: Settings):
        """Initialize the MSAL confidential client application."""
        self.config = config
        self._msal_app = None
        self._authority = f"https://login.microsoftonline.com/{config.AZURE_AD_TENANT_ID}"

    @property
    def msal_app(self) -> msal.ConfidentialClientApplication:
        """Lazy initialization of MSAL application."""
        if self._msal_app is None:
            if not self.is_configured:
                raise UnauthorizedError("Entra ID is not configured")

            self._msal_app = msal.ConfidentialClientApplication(
                client_id=self.config.AZURE_AD_CLIENT_ID,
                client_credential=self.config.AZURE_AD_CLIENT_SECRET,
                authority=self._authority
            )
        return self._msal_app

    @property
    def is_configured(self) -> bool:
        """Check if Entra ID is properly configured."""
        return bool(
            self.config.AZURE_AD_TENANT_ID and
            self.config.AZURE_AD_CLIENT_ID and
            self.config.AZURE_AD_CLIENT_SECRET and
            self.config.AZURE_AD_REDIRECT_URI
        )

    def generate_state(self) -> str:
        """Generate a secure random state parameter for CSRF protection."""
        return secrets.token_urlsafe(32)

    def get_auth_url(self, state: str) -> str:
        """
        Generate the Entra ID authorization URL for OIDC flow.

        Args:
            state: CSRF protection state parameter

        Returns:
            Authorization URL to redirect user to
        """
        auth_url = self.msal_app.get_authorization_request_url(
            scopes=SCOPES,
            state=state,
            redirect_uri=self.config.AZURE_AD_REDIRECT_URI,
            response_type="code"
        )

        logger.info(f"Generated Entra ID auth URL for redirect to: {self.config.AZURE_AD_REDIRECT_URI}")
        return auth_url

    def exchange_code_for_token(self, code: str) -> Dict[str, Any]:
        """
        Exchange authorization code for tokens.

        Args:
            code: Authorization code from Entra ID callback

        Returns:
            MSAL token result including ``id_token_claims``
        """
        result = self.msal_app.acquire_token_by_authorization_code(
            code=code,
            scopes=SCOPES,
            redirect_uri=self.config.AZURE_AD_REDIRECT_URI
        )

        if "error" in result:
            error_desc = result.get("error_description", result.get("error"))
            logger.error(f"Token exchange failed: {error_desc}")
            raise UnauthorizedError("token exchange failed")

        logger.info("Successfully exchanged authorization code for tokens")
        return result

    @staticmethod
    def principal_from_claims(claims: Dict[str, Any]) -> Optional[str]:
        """First non-empty login claim, or None."""
        for claim in PRINCIPAL_CLAIMS:
            value = claims.get(claim)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None


# Global service instance
_entra_id_service: Optional[EntraIDService] = None


def get_entra_id_service() -> EntraIDService:
    """Get or create the Entra ID service instance."""
    global _entra_id_service
    if _entra_id_service is None:
        _entra_id_service = EntraIDService(settings)
    return _entra_id_service
