# ================================================================
# File     : modules/azure/vault_rbac_migration.py
# Purpose  : Reclassify a Key Vault's legacy access policies into
#            scoped RBAC role assignments
# Notes    : Dry-run unless --apply. Existing identical assignments are
#            reported as Exists, so re-runs never duplicate. The vault's
#            permission model only flips with --enable-rbac --apply
#            and only when every policy resolved and every role landed.
# Output   : data["rows"] -> one row per (policy, suggested role)
# ================================================================

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

from core.classify import fncMapPermissionsToRoles, fncResolvePrincipal
from core.errors import ApiError, PreconditionError, UnresolvablePrincipalError
from core.exports import fncGetExportPath, fncWriteReport
from core.models import (
    MAPPING_COLUMNS,
    AccessPolicyMapping,
    RoleOutcome,
    STATUS_PLANNED,
    STATUS_EXISTS,
    STATUS_CREATED,
    STATUS_SKIPPED,
    STATUS_FAILED,
)
from core.utils import fncPrintMessage, fncToTable, fncNewRunId, fncPromptYesNo
from handlers.arm.keyvault import (
    build_vault_id,
    create_role_assignment,
    get_role_definition_id,
    get_vault,
    role_assignment_exists,
    set_rbac_authorization,
)
from handlers.graph.directory import find_service_principal_id

REQUIRED_PERMS = [
    "Microsoft.KeyVault/vaults/read",
    "Microsoft.KeyVault/vaults/write",              # --enable-rbac only
    "Microsoft.Authorization/roleAssignments/write",
    "Application.Read.All (Graph)",
]

# Cutover outcomes
CUTOVER_NOT_REQUESTED = "NotRequested"
CUTOVER_ALREADY = "AlreadyEnabled"
CUTOVER_PLANNED = "Planned"
CUTOVER_REFUSED = "Refused"
CUTOVER_DECLINED = "Declined"
CUTOVER_ENABLED = "Enabled"
CUTOVER_FAILED = "Failed"


# ----------------------- Helpers -----------------------

def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _resolve_vault_id(args) -> str:
    vault_id = getattr(args, "vault_id", None)
    if vault_id:
        return vault_id
    parts = [getattr(args, "subscription", None), getattr(args, "resource_group", None), getattr(args, "vault", None)]
    if not all(parts):
        raise PreconditionError("Specify --vault-id, or --subscription, --resource-group and --vault")
    return build_vault_id(*parts)


def _role_definition(client, scope: str, role: str, known: Dict[str, Optional[str]]) -> Optional[str]:
    if role not in known:
        try:
            known[role] = get_role_definition_id(client, scope, role)
        except ApiError as ex:
            fncPrintMessage(f"Role definition lookup failed for '{role}': {ex.message}", "error")
            known[role] = None
            return None
        if not known[role]:
            fncPrintMessage(f"Built-in role '{role}' not found at {scope}; its rows will be skipped.", "error")
    return known[role]


def _apply_role(client, scope: str, principal_id: str, role: str, known: Dict[str, Optional[str]], apply: bool) -> RoleOutcome:
    definition_id = _role_definition(client, scope, role, known)
    if not definition_id:
        return RoleOutcome(role, STATUS_SKIPPED, "role definition not found")

    try:
        if role_assignment_exists(client, scope, principal_id, definition_id):
            return RoleOutcome(role, STATUS_EXISTS)
        if not apply:
            return RoleOutcome(role, STATUS_PLANNED)
        create_role_assignment(client, scope, principal_id, definition_id)
    except ApiError as ex:
        fncPrintMessage(f"Role assignment '{role}' for {principal_id} failed: {ex.message}", "error")
        return RoleOutcome(role, STATUS_FAILED, ex.message)

    fncPrintMessage(f"Assigned '{role}' to {principal_id}", "success")
    return RoleOutcome(role, STATUS_CREATED)


def _cutover(client, vault_id: str, already: bool, rows: List[Dict], unresolved: int, args) -> str:
    if not getattr(args, "enable_rbac", False):
        return CUTOVER_NOT_REQUESTED
    if already:
        fncPrintMessage("Vault already uses the RBAC permission model.", "info")
        return CUTOVER_ALREADY
    if not getattr(args, "apply", False):
        fncPrintMessage("Dry-run: the vault would be switched to the RBAC permission model.", "info")
        return CUTOVER_PLANNED

    if unresolved:
        fncPrintMessage(
            f"Not switching permission model: {unresolved} access policy(ies) could not be resolved to a principal.", "warn"
        )
        return CUTOVER_REFUSED

    blocked = [r for r in rows if r["status"] in (STATUS_FAILED, STATUS_SKIPPED)]
    if blocked:
        fncPrintMessage(
            f"Not switching permission model: {len(blocked)} role assignment(s) failed or were skipped.", "warn"
        )
        return CUTOVER_REFUSED

    if not getattr(args, "yes", False):
        if not fncPromptYesNo("Switch the vault to RBAC? Access policies stop being evaluated."):
            fncPrintMessage("Permission model switch declined.", "warn")
            return CUTOVER_DECLINED

    try:
        set_rbac_authorization(client, vault_id, True)
    except ApiError as ex:
        fncPrintMessage(f"Permission model switch failed: {ex.message}", "error")
        return CUTOVER_FAILED
    fncPrintMessage("Vault switched to the RBAC permission model.", "success")
    return CUTOVER_ENABLED


# ----------------------- Main -----------------------

def run(client, args):
    run_id = fncNewRunId("kvrbac")
    ts = _iso_now()
    apply = bool(getattr(args, "apply", False))
    vault_id = _resolve_vault_id(args)

    fncPrintMessage(f"Running vault RBAC migration (run={run_id}, mode={'APPLY' if apply else 'DRY-RUN'})", "info")

    try:
        vault = get_vault(client, vault_id)
    except ApiError as ex:
        raise PreconditionError(f"Unable to read vault {vault_id}: {ex.message}") from ex

    props = vault.get("properties") or {}
    scope = vault.get("id") or vault_id
    policies = props.get("accessPolicies") or []
    rbac_enabled = bool(props.get("enableRbacAuthorization"))
    fncPrintMessage(f"{len(policies)} access policies on {vault.get('name') or scope}", "info")

    def _lookup_sp(app_id: str) -> Optional[str]:
        return find_service_principal_id(client.graph, app_id)

    # Build the Graph sibling up front so an auth failure aborts before any mutation
    if any(not str(p.get("objectId") or "").strip() for p in policies):
        _ = client.graph

    known_roles: Dict[str, Optional[str]] = {}
    mappings: List[AccessPolicyMapping] = []
    unresolved = 0

    for policy in policies:
        object_id = policy.get("objectId")
        app_id = policy.get("applicationId")
        tenant_id = policy.get("tenantId")
        try:
            principal_id = fncResolvePrincipal(object_id, app_id, tenant_id, _lookup_sp)
        except UnresolvablePrincipalError as ex:
            fncPrintMessage(f"Skipping policy: {ex}", "warn")
            unresolved += 1
            continue
        except ApiError as ex:
            fncPrintMessage(f"Skipping policy (service principal lookup for {app_id} failed): {ex.message}", "warn")
            unresolved += 1
            continue

        perms = policy.get("permissions") or {}
        roles = fncMapPermissionsToRoles(perms.get("secrets"), perms.get("keys"), perms.get("certificates"))
        fncPrintMessage(f"{principal_id} -> {', '.join(roles)}", "debug")

        outcomes = tuple(_apply_role(client, scope, principal_id, role, known_roles, apply) for role in roles)
        mappings.append(AccessPolicyMapping(
            principalObjectId=principal_id,
            applicationId=app_id,
            tenantId=tenant_id,
            suggestedRole=tuple(roles),
            scope=scope,
            outcomes=outcomes,
        ))

    rows = [row for m in mappings for row in m.to_rows()]
    cutover = _cutover(client, scope, rbac_enabled, rows, unresolved, args)

    statuses = Counter(r["status"] for r in rows)
    summary = {
        "Access Policies": len(policies),
        "Unresolved Principals": unresolved,
        "Role Mappings": len(rows),
        "Policies Fully Migrated": sum(1 for m in mappings if m.status in (STATUS_CREATED, STATUS_EXISTS)),
        STATUS_PLANNED: statuses.get(STATUS_PLANNED, 0),
        STATUS_EXISTS: statuses.get(STATUS_EXISTS, 0),
        STATUS_CREATED: statuses.get(STATUS_CREATED, 0),
        STATUS_SKIPPED: statuses.get(STATUS_SKIPPED, 0),
        STATUS_FAILED: statuses.get(STATUS_FAILED, 0),
        "Permission Model Switch": cutover,
    }

    if rows:
        fncPrintMessage("Access policy → RBAC mappings", "info")
        print(fncToTable(rows, headers=["principalObjectId", "suggestedRole", "status", "message"], max_rows=50))
    print(fncToTable([[k, v] for k, v in summary.items()], headers=["Metric", "Value"]))

    output = getattr(args, "output", None) or fncGetExportPath("vault_rbac_migration", getattr(args, "reports_dir", None))
    path = fncWriteReport(output, rows, MAPPING_COLUMNS)

    fncPrintMessage("Vault RBAC migration module complete.", "success")
    return {
        "provider": "azure",
        "run_id": run_id,
        "timestamp": ts,
        "mode": "apply" if apply else "dry-run",
        "vault_id": scope,
        "summary": summary,
        "mappings": mappings,
        "rows": rows,
        "cutover": cutover,
        "output": str(path),
    }
