# ================================================================
# File     : modules/entra/pim_inventory.py
# Purpose  : Inventory privileged directory-role members and their
#            PIM elevation state, with optional license remediation
# Notes    : Dry-run unless --apply. Licenses are only touched when
#            --assign-licenses is also given. hasElevatedLicense is read
#            before remediation; Assigned rows say so in their message.
# Output   : data["rows"] -> one row per (role, user) pair
# ================================================================

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.classify import (
    fncBuildScheduleLookup,
    fncDerivePimState,
    PIM_ACTIVE,
    PIM_ELIGIBLE,
    PIM_DIRECT,
    PIM_UNKNOWN,
)
from core.config import DEFAULT_SKU
from core.errors import ApiError, PreconditionError
from core.exports import fncGetExportPath, fncWriteReport
from core.models import (
    PIM_COLUMNS,
    PrivilegedAssignmentRecord,
    LICENSE_NONE,
    LICENSE_PLANNED,
    LICENSE_ASSIGNED,
    LICENSE_FAILED,
    LICENSE_SKIPPED,
)
from core.utils import fncPrintMessage, fncToTable, fncNewRunId
from handlers.graph.directory import (
    assign_license,
    find_sku,
    get_user,
    list_active_schedules,
    list_directory_roles,
    list_eligible_schedules,
    list_role_members,
    map_role_definitions_by_template,
)

REQUIRED_PERMS = [
    "Directory.Read.All",
    "RoleManagement.Read.Directory",
    "Organization.Read.All",
    "User.ReadWrite.All",  # only for --assign-licenses --apply
]


# ----------------------- Helpers -----------------------

def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _resolve_sku(client, sku_part: str, assign: bool) -> Optional[str]:
    sku = find_sku(client, sku_part)
    if sku:
        fncPrintMessage(f"Found SKU {sku_part} ({sku.get('skuId')})", "debug")
        return sku.get("skuId")
    if assign:
        raise PreconditionError(f"License SKU '{sku_part}' is not subscribed in this tenant")
    fncPrintMessage(f"SKU '{sku_part}' not subscribed; hasElevatedLicense will be False for everyone.", "warn")
    return None


def _has_sku(user: Dict[str, Any], sku_id: Optional[str]) -> bool:
    if not sku_id:
        return False
    licenses = user.get("assignedLicenses")
    if not isinstance(licenses, list):
        return False
    return any(str(l.get("skuId", "")).lower() == sku_id.lower() for l in licenses)


def _remediate_license(client, user: Dict[str, Any], sku_id: str, apply: bool) -> Tuple[str, str]:
    usage = user.get("usageLocation")
    if not usage or usage == "Not Found":
        return LICENSE_SKIPPED, "usageLocation not set"
    if not apply:
        return LICENSE_PLANNED, ""
    try:
        assign_license(client, user["id"], sku_id)
    except ApiError as ex:
        fncPrintMessage(f"License assignment failed for {user.get('userPrincipalName')}: {ex.message}", "error")
        return LICENSE_FAILED, ex.message
    fncPrintMessage(f"Assigned license to {user.get('userPrincipalName')}", "success")
    return LICENSE_ASSIGNED, "license assigned this run; hasElevatedLicense reflects pre-remediation state"


def _lookup_user(client, user_id: str, seen: Dict[str, Optional[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    if user_id not in seen:
        try:
            seen[user_id] = get_user(client, user_id)
        except ApiError as ex:
            fncPrintMessage(f"Skipping user {user_id}: {ex.message}", "warn")
            seen[user_id] = None
    return seen[user_id]


# ----------------------- Main -----------------------

def run(client, args):
    run_id = fncNewRunId("piminv")
    ts = _iso_now()
    apply = bool(getattr(args, "apply", False))
    assign = bool(getattr(args, "assign_licenses", False))
    sku_part = getattr(args, "sku", None) or DEFAULT_SKU

    fncPrintMessage(
        f"Running PIM inventory (run={run_id}, mode={'APPLY' if apply else 'DRY-RUN'}, sku={sku_part})", "info"
    )

    sku_id = _resolve_sku(client, sku_part, assign)

    roles = list_directory_roles(client)
    template_map = map_role_definitions_by_template(client)
    active = fncBuildScheduleLookup(list_active_schedules(client))
    eligible = fncBuildScheduleLookup(list_eligible_schedules(client))
    fncPrintMessage(
        f"{len(roles)} directory roles, {len(active)} active / {len(eligible)} eligible elevations", "info"
    )

    users: Dict[str, Optional[Dict[str, Any]]] = {}
    license_outcome: Dict[str, Tuple[str, str]] = {}
    records: List[PrivilegedAssignmentRecord] = []

    for role in roles:
        try:
            members = list_role_members(client, role["id"])
        except ApiError as ex:
            fncPrintMessage(f"Skipping role {role.get('displayName')}: {ex.message}", "warn")
            continue

        for member in members:
            uid = member.get("id")
            user = _lookup_user(client, uid, users) if uid else None
            if user is None:
                continue

            state, definition_id = fncDerivePimState(role, uid, template_map, active, eligible)
            licensed = _has_sku(user, sku_id)

            if uid not in license_outcome:
                if assign and not licensed:
                    license_outcome[uid] = _remediate_license(client, user, sku_id, apply)
                else:
                    license_outcome[uid] = (LICENSE_NONE, "")
            action, message = license_outcome[uid]

            records.append(PrivilegedAssignmentRecord(
                userId=uid,
                displayName=user.get("displayName"),
                principalName=user.get("userPrincipalName"),
                roleName=role.get("displayName"),
                roleTemplateId=role.get("roleTemplateId"),
                roleDefinitionId=definition_id,
                pimState=state,
                hasElevatedLicense=licensed,
                licenseAction=action,
                message=message,
            ))

    rows = [r.to_row() for r in records]

    states = Counter(r.pimState for r in records)
    actions = Counter(a for a, _ in license_outcome.values())
    summary = {
        "Assignments": len(records),
        "Privileged Users": len({r.userId for r in records}),
        PIM_ACTIVE: states.get(PIM_ACTIVE, 0),
        PIM_ELIGIBLE: states.get(PIM_ELIGIBLE, 0),
        PIM_DIRECT: states.get(PIM_DIRECT, 0),
        PIM_UNKNOWN: states.get(PIM_UNKNOWN, 0),
        "Unlicensed Users": len({r.userId for r in records if not r.hasElevatedLicense}),
        "Licenses Planned": actions.get(LICENSE_PLANNED, 0),
        "Licenses Assigned": actions.get(LICENSE_ASSIGNED, 0),
        "License Failures": actions.get(LICENSE_FAILED, 0),
    }

    if rows:
        fncPrintMessage("Privileged role assignments", "info")
        print(fncToTable(rows, headers=["principalName", "roleName", "pimState", "hasElevatedLicense", "licenseAction"], max_rows=50))
    print(fncToTable([[k, v] for k, v in summary.items()], headers=["Metric", "Value"]))

    output = getattr(args, "output", None) or fncGetExportPath("pim_inventory", getattr(args, "reports_dir", None))
    path = fncWriteReport(output, rows, PIM_COLUMNS)

    fncPrintMessage("PIM inventory module complete.", "success")
    return {
        "provider": "entra",
        "run_id": run_id,
        "timestamp": ts,
        "mode": "apply" if apply else "dry-run",
        "summary": summary,
        "rows": rows,
        "output": str(path),
    }
