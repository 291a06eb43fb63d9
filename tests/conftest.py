"""
tests/conftest.py - shared pytest fixtures

In-memory stand-ins for the Graph and ARM clients. They answer the same
get/get_all/post/put/patch calls the real clients do, so the handlers and
scan modules run unchanged against them.
"""

import copy
import sys
from pathlib import Path

import pytest

# Put the project root on sys.path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from core.errors import ApiError  # noqa: E402
from core.utils import fncSetDebug  # noqa: E402

VAULT_ID = "/subscriptions/sub-1/resourceGroups/rg-sec/providers/Microsoft.KeyVault/vaults/kv-prod"

BUILTIN_ROLES = {
    "Key Vault Administrator": "00482a5a-887f-4fb3-b363-3b7fe8e74483",
    "Key Vault Secrets Officer": "b86a8fe4-44ce-4948-aee5-eccb2c155cd7",
    "Key Vault Secrets User": "4633458b-17de-408a-b874-0445c86b69e6",
    "Key Vault Crypto Officer": "14b46e9e-c2b7-41b4-b07b-48a6ebf60603",
    "Key Vault Crypto User": "12338af0-0e69-4776-bea7-57ae8d297424",
    "Key Vault Certificates Officer": "a4417e6f-fecd-4de8-b567-7b0420556985",
    "Key Vault Reader": "21090545-7ca7-4776-b22c-e363652d74d2",
}


class FakeGraph:
    """
    routes: endpoint path (no query string) -> list | dict | ApiError | callable(endpoint)
    """

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.post_errors = {}
        self.posts = []
        self.calls = []

    def _answer(self, endpoint):
        self.calls.append(endpoint)
        base = endpoint.split("?", 1)[0]
        if base not in self.routes:
            raise ApiError(404, f"Resource '{base}' does not exist")
        value = self.routes[base]
        if callable(value):
            value = value(endpoint)
        if isinstance(value, Exception):
            raise value
        return copy.deepcopy(value)

    def get(self, endpoint, params=None):
        return self._answer(endpoint)

    def get_all(self, endpoint, params=None):
        value = self._answer(endpoint)
        return value if isinstance(value, list) else [value]

    def post(self, endpoint, body, params=None):
        self.posts.append((endpoint, body))
        if endpoint in self.post_errors:
            raise self.post_errors[endpoint]
        return {}


class FakeArm:
    """One vault, a set of built-in role definitions and an assignment store."""

    def __init__(self, vault, role_defs=None, graph=None):
        self.vault = copy.deepcopy(vault)
        self.role_defs = dict(BUILTIN_ROLES if role_defs is None else role_defs)
        self.assignments = []
        self.graph = graph or FakeGraph()
        self.put_errors = {}
        self.puts = []
        self.patches = []

    def get(self, endpoint, params=None):
        if endpoint.rstrip("/").lower() == self.vault["id"].lower():
            return copy.deepcopy(self.vault)
        raise ApiError(404, f"The Resource '{endpoint}' was not found.")

    def get_all(self, endpoint, params=None):
        flt = (params or {}).get("$filter", "")
        quoted = flt.split("'")[1] if "'" in flt else ""
        if endpoint.endswith("/providers/Microsoft.Authorization/roleDefinitions"):
            guid = self.role_defs.get(quoted)
            if not guid:
                return []
            return [{
                "id": f"/subscriptions/sub-1/providers/Microsoft.Authorization/roleDefinitions/{guid}",
                "properties": {"roleName": quoted, "type": "BuiltInRole"},
            }]
        if endpoint.endswith("/providers/Microsoft.Authorization/roleAssignments"):
            return [copy.deepcopy(a) for a in self.assignments if a["properties"]["principalId"] == quoted]
        raise ApiError(404, f"No route for {endpoint}")

    def put(self, endpoint, body, params=None):
        props = body["properties"]
        self.puts.append((endpoint, body))
        if props["principalId"] in self.put_errors:
            raise self.put_errors[props["principalId"]]
        scope = endpoint.split("/providers/Microsoft.Authorization/")[0]
        assignment = {"id": endpoint, "properties": dict(props, scope=scope)}
        self.assignments.append(assignment)
        return assignment

    def patch(self, endpoint, body, params=None):
        self.patches.append((endpoint, body))
        self.vault["properties"].update(body["properties"])
        return copy.deepcopy(self.vault)


@pytest.fixture(autouse=True)
def quiet_debug():
    fncSetDebug(False)
    yield
    fncSetDebug(False)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """GraphClient writes credentials to os.environ; undo that after each test."""
    for name in ("PRIVSWEEP_TENANT_ID", "PRIVSWEEP_CLIENT_ID", "PRIVSWEEP_CLIENT_SECRET", "PRIVSWEEP_SUBSCRIPTION_ID"):
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    yield


@pytest.fixture
def vault_id():
    return VAULT_ID
