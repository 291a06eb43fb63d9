# ================================================================
# File     : classify.py
# Purpose  : Pure classification rules used by the scan modules
# Notes    : No Graph/ARM calls here; everything remote is passed in
#            (schedule sets, template map, service principal lookup).
# ================================================================

from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from core.errors import UnresolvablePrincipalError

# ---------------------------------------------------------------
# PIM elevation state
# ---------------------------------------------------------------

PIM_ACTIVE = "Active"
PIM_ELIGIBLE = "Eligible"
PIM_DIRECT = "Direct-Permanent"
PIM_UNKNOWN = "Unknown"

ScheduleKey = Tuple[str, str]


# ================================================================
# Function: fncBuildScheduleLookup
# Purpose : Turn schedule instances into a (principalId, roleDefinitionId) set
# Notes   : Rows missing either id cannot be joined and are dropped
# ================================================================
def fncBuildScheduleLookup(schedules: Iterable[Dict]) -> Set[ScheduleKey]:
    keys: Set[ScheduleKey] = set()
    for s in schedules or []:
        pid = s.get("principalId")
        rid = s.get("roleDefinitionId")
        if pid and rid:
            keys.add((pid, rid))
    return keys


# ================================================================
# Function: fncClassifyElevation
# Purpose : Label a (user, role definition) pair as Active/Eligible/Direct
# Notes   : Active > Eligible > Direct-Permanent. Without a role definition
#           id the lookup is not attempted at all.
# ================================================================
def fncClassifyElevation(
    user_id: str,
    role_definition_id: Optional[str],
    active: Set[ScheduleKey],
    eligible: Set[ScheduleKey],
) -> str:
    if not role_definition_id:
        return PIM_DIRECT
    key = (user_id, role_definition_id)
    if key in active:
        return PIM_ACTIVE
    if key in eligible:
        return PIM_ELIGIBLE
    return PIM_DIRECT


# ================================================================
# Function: fncDerivePimState
# Purpose : Resolve a directory role to its definition id, then classify
# Notes   : Returns (state, roleDefinitionId). Roles with no template id
#           have nothing to map against and come back Unknown.
# ================================================================
def fncDerivePimState(
    role: Dict,
    user_id: str,
    template_map: Dict[str, str],
    active: Set[ScheduleKey],
    eligible: Set[ScheduleKey],
) -> Tuple[str, Optional[str]]:
    template_id = role.get("roleTemplateId")
    if not template_id:
        return PIM_UNKNOWN, None
    definition_id = template_map.get(template_id)
    return fncClassifyElevation(user_id, definition_id, active, eligible), definition_id


# ---------------------------------------------------------------
# Vault access policy -> RBAC role
# ---------------------------------------------------------------

ROLE_ADMINISTRATOR = "Key Vault Administrator"
ROLE_SECRETS_OFFICER = "Key Vault Secrets Officer"
ROLE_SECRETS_USER = "Key Vault Secrets User"
ROLE_CRYPTO_OFFICER = "Key Vault Crypto Officer"
ROLE_CRYPTO_USER = "Key Vault Crypto User"
ROLE_CERTIFICATES_OFFICER = "Key Vault Certificates Officer"
ROLE_READER = "Key Vault Reader"

WRITE_OPS = {"set", "delete", "purge", "recover", "backup", "restore", "import", "update", "create"}
READ_OPS = {"get", "list"}
CRYPTO_OPS = {"encrypt", "decrypt", "wrapkey", "unwrapkey", "sign", "verify"}
KEY_MANAGEMENT_OPS = {"create", "import", "delete", "update", "recover", "backup", "restore", "purge"}


def _norm(ops: Optional[Iterable[str]]) -> Set[str]:
    # ARM hands these back lowercase, the portal export in PascalCase
    return {str(o).strip().lower() for o in (ops or []) if o}


# ================================================================
# Function: fncMapPermissionsToRoles
# Purpose : Suggest RBAC role(s) for one access policy's permission sets
# Notes   : Ordered, never empty. Certificate read and write both map to
#           Certificates Officer (no read-only certificate role exists).
# ================================================================
def fncMapPermissionsToRoles(
    secrets: Optional[Iterable[str]],
    keys: Optional[Iterable[str]],
    certificates: Optional[Iterable[str]],
) -> List[str]:
    s, k, c = _norm(secrets), _norm(keys), _norm(certificates)

    write_all = all(ops & WRITE_OPS for ops in (s, k, c))
    read_all = all(ops & READ_OPS for ops in (s, k, c))
    if write_all or (read_all and k & CRYPTO_OPS):
        return [ROLE_ADMINISTRATOR]

    roles: List[str] = []
    if s & WRITE_OPS:
        roles.append(ROLE_SECRETS_OFFICER)
    elif s & READ_OPS:
        roles.append(ROLE_SECRETS_USER)

    if k & KEY_MANAGEMENT_OPS:
        roles.append(ROLE_CRYPTO_OFFICER)
    elif k & CRYPTO_OPS:
        roles.append(ROLE_CRYPTO_USER)

    if c & (READ_OPS | WRITE_OPS):
        roles.append(ROLE_CERTIFICATES_OFFICER)

    if not roles:
        roles.append(ROLE_READER)
    return roles


# ================================================================
# Function: fncResolvePrincipal
# Purpose : Pick the object id a role assignment should target
# Notes   : Declared objectId wins; else appId -> service principal via
#           lookup(app_id); else UnresolvablePrincipalError
# ================================================================
def fncResolvePrincipal(
    object_id: Optional[str],
    application_id: Optional[str],
    tenant_id: Optional[str],
    lookup: Callable[[str], Optional[str]],
) -> str:
    if object_id and str(object_id).strip():
        return object_id
    if application_id:
        resolved = lookup(application_id)
        if resolved:
            return resolved
    raise UnresolvablePrincipalError(object_id, application_id, tenant_id)
