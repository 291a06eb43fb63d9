# ================================================================
# File     : client.py
# Purpose  : Azure Resource Manager REST client
# Notes    : Same token handling as GraphClient; adds api-version to
#            every first-page request. Exposes a sibling GraphClient
#            (same credentials) for directory lookups.
# ================================================================

from typing import Dict, Any, Optional

from handlers.graph.client import GraphClient

ARM_ROOT = "https://management.azure.com"
ARM_SCOPE = "https://management.azure.com/.default"
DEFAULT_API_VERSION = "2022-04-01"


class ArmClient(GraphClient):
    root = ARM_ROOT
    scope_url = ARM_SCOPE
    label = "Azure Resource Manager"

    def __init__(self, *args, api_version: str = DEFAULT_API_VERSION, **kwargs):
        self.api_version = api_version
        self._graph: Optional[GraphClient] = None
        super().__init__(*args, **kwargs)

    def _params(self, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        out = dict(params or {})
        out.setdefault("api-version", self.api_version)
        return out

    @property
    def graph(self) -> GraphClient:
        """Graph client for service principal lookups (built on first use)."""
        if self._graph is None:
            self._graph = GraphClient(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                client_secret=self.client_secret,
                app=self.app,
            )
        return self._graph
