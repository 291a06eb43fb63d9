# ================================================================
# File     : handlers/arm/keyvault.py
# Purpose  : Key Vault and role-assignment calls on ARM
# Notes    : Scope is always the vault's resource id.
# ================================================================

import uuid
from typing import Any, Dict, Optional

VAULT_API_VERSION = "2023-07-01"
AUTHZ_API_VERSION = "2022-04-01"


def build_vault_id(subscription_id: str, resource_group: str, vault_name: str) -> str:
    return (
        f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.KeyVault/vaults/{vault_name}"
    )


def get_vault(client, vault_id: str) -> Dict[str, Any]:
    return client.get(vault_id, params={"api-version": VAULT_API_VERSION})


def get_role_definition_id(client, scope: str, role_name: str) -> Optional[str]:
    rows = client.get_all(
        f"{scope}/providers/Microsoft.Authorization/roleDefinitions",
        params={"$filter": f"roleName eq '{role_name}'", "api-version": AUTHZ_API_VERSION},
    )
    for r in rows:
        if (r.get("properties") or {}).get("roleName", "").lower() == role_name.lower():
            return r.get("id")
    return None


def _same_id(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").rstrip("/").lower() == (b or "").rstrip("/").lower()


def _definition_guid(definition_id: Optional[str]) -> str:
    # Definitions come back scoped (/subscriptions/.../roleDefinitions/<guid>)
    # or unscoped; the GUID is what identifies the role.
    return (definition_id or "").rstrip("/").rsplit("/", 1)[-1].lower()


def role_assignment_exists(client, scope: str, principal_id: str, role_definition_id: str) -> bool:
    rows = client.get_all(
        f"{scope}/providers/Microsoft.Authorization/roleAssignments",
        params={"$filter": f"principalId eq '{principal_id}'", "api-version": AUTHZ_API_VERSION},
    )
    for r in rows:
        props = r.get("properties") or {}
        if (
            _same_id(props.get("principalId"), principal_id)
            and _definition_guid(props.get("roleDefinitionId")) == _definition_guid(role_definition_id)
            and _same_id(props.get("scope"), scope)
        ):
            return True
    return False


def create_role_assignment(client, scope: str, principal_id: str, role_definition_id: str) -> Dict[str, Any]:
    name = str(uuid.uuid4())
    body = {"properties": {"roleDefinitionId": role_definition_id, "principalId": principal_id}}
    return client.put(
        f"{scope}/providers/Microsoft.Authorization/roleAssignments/{name}",
        body,
        params={"api-version": AUTHZ_API_VERSION},
    )


def set_rbac_authorization(client, vault_id: str, enabled: bool = True) -> Dict[str, Any]:
    return client.patch(
        vault_id,
        {"properties": {"enableRbacAuthorization": bool(enabled)}},
        params={"api-version": VAULT_API_VERSION},
    )
