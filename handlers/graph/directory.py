# ================================================================
# File     : handlers/graph/directory.py
# Purpose  : Directory, PIM schedule and licensing calls on Graph
# Notes    : Thin wrappers; callers own error handling. Everything is
#            fetched eagerly, pagination is left to client.get_all.
# ================================================================

from typing import Any, Dict, List, Optional

from handlers.graph.graph_helpers import safe_select_get, safe_select_get_all
from core.utils import fncPrintMessage

USER_FIELDS = ["id", "displayName", "userPrincipalName", "usageLocation", "assignedLicenses"]


def list_directory_roles(client) -> List[Dict[str, Any]]:
    """Activated directory roles (the human-facing side, keyed by roleTemplateId)."""
    roles, _ = safe_select_get_all(client, "directoryRoles", ["id", "displayName", "roleTemplateId"])
    return roles


def list_role_members(client, role_id: str) -> List[Dict[str, Any]]:
    members = client.get_all(f"directoryRoles/{role_id}/members")
    return [m for m in members if str(m.get("@odata.type", "")).lower() == "#microsoft.graph.user"]


def get_user(client, user_id: str) -> Dict[str, Any]:
    return safe_select_get(client, f"users/{user_id}", USER_FIELDS)


def list_subscribed_skus(client) -> List[Dict[str, Any]]:
    return client.get_all("subscribedSkus")


def find_sku(client, sku_part_number: str) -> Optional[Dict[str, Any]]:
    wanted = (sku_part_number or "").lower()
    for sku in list_subscribed_skus(client):
        if str(sku.get("skuPartNumber", "")).lower() == wanted:
            return sku
    return None


def list_active_schedules(client) -> List[Dict[str, Any]]:
    """
    PIM activations. Permanent assignments also show up as schedule
    instances (assignmentType=Assigned); only Activated ones are elevations.
    """
    rows = client.get_all("roleManagement/directory/roleAssignmentScheduleInstances")
    out = [r for r in rows if r.get("assignmentType") in (None, "Activated")]
    fncPrintMessage(f"Active schedule instances: {len(out)} activated of {len(rows)}", "debug")
    return out


def list_eligible_schedules(client) -> List[Dict[str, Any]]:
    return client.get_all("roleManagement/directory/roleEligibilityScheduleInstances")


def map_role_definitions_by_template(client) -> Dict[str, str]:
    """templateId -> role definition id (built-ins use the same GUID for both)."""
    rows, _ = safe_select_get_all(
        client, "roleManagement/directory/roleDefinitions", ["id", "templateId", "displayName"]
    )
    out = {}
    for r in rows:
        template = r.get("templateId")
        if template and template != "Not Found":
            out[template] = r.get("id")
    return out


def assign_license(client, user_id: str, sku_id: str) -> Dict[str, Any]:
    body = {
        "addLicenses": [{"skuId": sku_id, "disabledPlans": []}],
        "removeLicenses": [],
    }
    return client.post(f"users/{user_id}/assignLicense", body)


def find_service_principal_id(client, app_id: str) -> Optional[str]:
    rows = client.get_all(f"servicePrincipals?$filter=appId eq '{app_id}'&$select=id,appId,displayName")
    if not rows:
        return None
    if len(rows) > 1:
        fncPrintMessage(f"Multiple service principals for appId {app_id}; using the first.", "warn")
    return rows[0].get("id")
