"""
Microsoft Graph directory client.

Reads users and security groups (with transitive members) using app-only
credentials. Graph pages results; every page is followed via
``@odata.nextLink`` until exhausted.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import httpx
import msal

from signin.config import Settings
from signin.errors import UpstreamError

logger = logging.getLogger(__name__)

# Microsoft Graph API base URL
GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"

# App-only scope
GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]


@dataclass
class DirectoryUser:
    """A user as reported by the directory."""
    object_id: str
    upn: str
    display_name: str = ""
    department: str = ""
    active: bool = True


@dataclass
class DirectoryGroup:
    """A group as reported by the directory, with member object IDs."""
    object_id: str
    display_name: str
    description: str = ""
    member_ids: List[str] = field(default_factory=list)


class GraphDirectoryClient:
    """Directory provider backed by Microsoft Graph."""

    def __init__(self, config: Settings, http_client: Optional[httpx.Client] = None):
        self.config = config
        self._msal_app = None
        self._http = http_client
        self._authority = f"https://login.microsoftonline.com/{config.GRAPH_TENANT_ID}"

    @property
    def is_configured(self) -> bool:
        return self.config.graph_configured

    @property
    def msal_app(self) -> msal.ConfidentialClientApplication:
        """Lazy initialization of MSAL application."""
        if self._msal_app is None:
            if not self.is_configured:
                raise UpstreamError("Graph credentials not configured")

            self._msal_app = msal.ConfidentialClientApplication(
                client_id=self.config.GRAPH_CLIENT_ID,
                client_credential=self.config.GRAPH_CLIENT_SECRET,
                authority=self._authority
            )
        return self._msal_app

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=30.0)
        return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def _access_token(self) -> str:
        result = self.msal_app.acquire_token_for_client(scopes=GRAPH_SCOPES)
        if "access_token" not in result:
            error_desc = result.get("error_description", result.get("error"))
            logger.error(f"Graph token request failed: {error_desc}")
            raise UpstreamError(f"Graph token request failed: {error_desc}")
        return result["access_token"]

    def _paged(self, url: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Yield every item of a paged Graph collection."""
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "Accept": "application/json"
        }
        next_url: Optional[str] = url
        next_params = params

        while next_url:
            try:
                response = self.http.get(next_url, headers=headers, params=next_params)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPError as e:
                raise UpstreamError(f"Graph request failed: {e}") from e
            except ValueError as e:
                raise UpstreamError(f"Graph returned invalid JSON: {e}") from e

            if not isinstance(payload, dict) or not isinstance(payload.get("value"), list):
                raise UpstreamError("Graph returned a malformed page")

            for item in payload["value"]:
                if isinstance(item, dict):
                    yield item

            # nextLink already carries the query string
            next_url = payload.get("@odata.nextLink")
            next_params = None

    def list_users(self) -> List[DirectoryUser]:
        """Fetch every directory user."""
        params = {
            "$select": "id,userPrincipalName,displayName,department,accountEnabled",
            "$top": self.config.GRAPH_PAGE_SIZE,
        }
        users = []
        for item in self._paged(f"{GRAPH_API_BASE}/users", params):
            enabled = item.get("accountEnabled")
            users.append(DirectoryUser(
                object_id=item.get("id") or "",
                upn=item.get("userPrincipalName") or "",
                display_name=item.get("displayName") or "",
                department=item.get("department") or "",
                active=True if enabled is None else bool(enabled),
            ))

        logger.info(f"Fetched {len(users)} users from Graph")
        return users

    def list_groups(self) -> List[DirectoryGroup]:
        """Fetch every group and its transitive member IDs."""
        params = {
            "$select": "id,displayName,description",
            "$top": self.config.GRAPH_PAGE_SIZE,
        }
        groups = []
        for item in self._paged(f"{GRAPH_API_BASE}/groups", params):
            object_id = item.get("id") or ""
            if not object_id:
                continue
            groups.append(DirectoryGroup(
                object_id=object_id,
                display_name=item.get("displayName") or "",
                description=item.get("description") or "",
                member_ids=self._group_member_ids(object_id),
            ))

        logger.info(f"Fetched {len(groups)} groups from Graph")
        return groups

    def _group_member_ids(self, group_object_id: str) -> List[str]:
        params = {"$select": "id", "$top": self.config.GRAPH_PAGE_SIZE}
        url = f"{GRAPH_API_BASE}/groups/{group_object_id}/transitiveMembers"
        return [item["id"] for item in self._paged(url, params) if item.get("id")]
