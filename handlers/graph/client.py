# ================================================================
# File     : client.py
# Purpose  : Microsoft Graph REST client for Entra (Azure AD)
# Notes    : GET + pagination, plus POST/PUT/PATCH for remediation.
#            - Auto-refresh token on 401 (once)
#            - Proactive refresh if token expires in <5 minutes
#            - No retry/backoff: any other error raises ApiError
# ================================================================

import os
import msal
import requests
import time
import getpass
from typing import Dict, Any, List, Optional

from core.errors import ApiError, AuthenticationError
from core.utils import fncPrintMessage, fncMask

GRAPH_ROOT = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
REQUEST_TIMEOUT = 60


class GraphClient:
    root = GRAPH_ROOT
    scope_url = GRAPH_SCOPE
    label = "Microsoft Graph"

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        app: Optional[msal.ConfidentialClientApplication] = None,
    ):
        # Try environment variables first
        tenant_id = tenant_id or os.getenv("PRIVSWEEP_TENANT_ID")
        client_id = client_id or os.getenv("PRIVSWEEP_CLIENT_ID")
        client_secret = client_secret or os.getenv("PRIVSWEEP_CLIENT_SECRET")

        # Prompt interactively if any credential is missing
        if not tenant_id:
            tenant_id = input("Enter Tenant ID: ").strip()
        if not client_id:
            client_id = input("Enter Application (Client) ID: ").strip()
        if not client_secret:
            fncPrintMessage(
                "No Client Secret found *Hidden* "
                "Credentials are stored in environment only for this session.",
                "warn",
            )
            client_secret = getpass.getpass("Enter Client Secret (input hidden): ").strip()

        # Persist to environment for the lifetime of the session
        os.environ["PRIVSWEEP_TENANT_ID"] = tenant_id
        os.environ["PRIVSWEEP_CLIENT_ID"] = client_id
        os.environ["PRIVSWEEP_CLIENT_SECRET"] = client_secret

        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret

        self.scope = [self.scope_url]
        self.authority = f"https://login.microsoftonline.com/{tenant_id}"

        fncPrintMessage(f"Initialising {self.label} client (app {fncMask(client_id)})...", "info")

        # MSAL ConfidentialClientApplication; shared when a sibling client passes it in
        self.app = app or msal.ConfidentialClientApplication(
            client_id=self.client_id,
            client_credential=self.client_secret,
            authority=self.authority,
        )

        # token/bookkeeping
        self.token: str = ""
        self._token_expires_on: int = 0  # epoch seconds
        self._set_token(self._acquire_token())

        fncPrintMessage(f"{self.label} client initialised.", "success")

    # ---------- Token helpers ----------

    def _acquire_token(self) -> Dict[str, Any]:
        """Acquire a token using MSAL (silent -> client creds). Returns MSAL result dict."""
        fncPrintMessage(f"Requesting {self.label} access token...", "debug")
        result = self.app.acquire_token_silent(self.scope, account=None)
        if not result:
            result = self.app.acquire_token_for_client(scopes=self.scope)
        if "access_token" not in result:
            fncPrintMessage(
                f"MSAL Authentication failed: {result.get('error_description', 'Unknown error')}",
                "error",
            )
            raise AuthenticationError(f"Failed to acquire access token for {self.scope_url}")
        return result

    def _set_token(self, msal_result: Dict[str, Any]) -> None:
        """Store token and expiry from MSAL result."""
        self.token = msal_result["access_token"]
        try:
            self._token_expires_on = int(msal_result.get("expires_on") or 0)
        except (TypeError, ValueError):
            self._token_expires_on = 0
        if not self._token_expires_on:
            self._token_expires_on = int(time.time()) + int(msal_result.get("expires_in", 3600))

    def _ensure_fresh_token(self) -> None:
        """Proactively refresh token if it expires in <5 minutes."""
        now = int(time.time())
        if now >= (self._token_expires_on - 300):  # <5 minutes remaining
            fncPrintMessage("Refreshing access token (nearing expiry)...", "debug")
            self._set_token(self._acquire_token())

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    # ---------- HTTP handling ----------

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        err = body.get("error") if isinstance(body, dict) else None
        if isinstance(err, dict):
            return err.get("message") or err.get("code") or response.text
        return response.text

    def _handle_response(self, response: requests.Response) -> Dict[str, Any]:
        status = response.status_code

        if status == 204 or (200 <= status < 300 and not response.content):
            return {}

        if 200 <= status < 300:
            return response.json()

        message = self._error_message(response)
        fncPrintMessage(f"{self.label} error [{status}] -> {message}", "debug")
        raise ApiError(status, message, url=str(response.url))

    def _is_expired_token(self, response: requests.Response) -> bool:
        try:
            err = (response.json().get("error") or {})
        except (ValueError, AttributeError):
            return False
        code = str(err.get("code") or "")
        msg = str(err.get("message") or "")
        return "InvalidAuthenticationToken" in code or "ExpiredAuthenticationToken" in code or "expired" in msg.lower()

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Single HTTP request with proactive token refresh and 401 auto-refresh re-send."""
        self._ensure_fresh_token()
        resp = requests.request(
            method, url, headers=self._auth_headers(), params=params, json=json_body, timeout=REQUEST_TIMEOUT
        )
        if resp.status_code == 401 and self._is_expired_token(resp):
            fncPrintMessage("Access token expired, Attempting Refresh.", "warn")
            self._set_token(self._acquire_token())
            resp = requests.request(
                method, url, headers=self._auth_headers(), params=params, json=json_body, timeout=REQUEST_TIMEOUT
            )
        return self._handle_response(resp)

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("https://"):
            return endpoint
        return f"{self.root}/{endpoint.strip().lstrip('/')}"

    def _params(self, params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        return params

    # ---------- Public API ----------

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Perform a GET request (single page).
        Use get_all for paginated resources.
        """
        url = self._url(endpoint)
        fncPrintMessage(f"GET {url}", "debug")
        return self._request("GET", url, params=self._params(params))

    def get_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Retrieve all items from a paginated endpoint.
        Returns a flat list of items (value) for list endpoints.
        Example: client.get_all("directoryRoles?$select=id,displayName,roleTemplateId")
        """
        url = self._url(endpoint)
        fncPrintMessage(f"GET (all pages) {url}", "debug")

        data = self._request("GET", url, params=self._params(params))

        if isinstance(data, dict) and "value" not in data:
            return [data]

        items: List[Dict[str, Any]] = list(data.get("value", []))
        next_link = data.get("@odata.nextLink") or data.get("nextLink")

        # nextLink already carries the query string
        while next_link:
            fncPrintMessage(f"Following nextLink -> {next_link}", "debug")
            page = self._request("GET", next_link)
            items.extend(page.get("value", []))
            next_link = page.get("@odata.nextLink") or page.get("nextLink")

        return items

    def post(self, endpoint: str, body: Dict[str, Any], params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(endpoint)
        fncPrintMessage(f"POST {url}", "debug")
        return self._request("POST", url, params=self._params(params), json_body=body)

    def put(self, endpoint: str, body: Dict[str, Any], params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(endpoint)
        fncPrintMessage(f"PUT {url}", "debug")
        return self._request("PUT", url, params=self._params(params), json_body=body)

    def patch(self, endpoint: str, body: Dict[str, Any], params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(endpoint)
        fncPrintMessage(f"PATCH {url}", "debug")
        return self._request("PATCH", url, params=self._params(params), json_body=body)
