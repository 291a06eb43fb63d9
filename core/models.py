# ================================================================
# File     : models.py
# Purpose  : Report records produced by the scan modules
# Notes    : Records are immutable once built; to_row()/to_rows()
#            emit plain dicts in the fixed report column order.
# ================================================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

PIM_COLUMNS = [
    "userId",
    "displayName",
    "principalName",
    "roleName",
    "roleTemplateId",
    "roleDefinitionId",
    "pimState",
    "hasElevatedLicense",
    "licenseAction",
    "message",
]

MAPPING_COLUMNS = [
    "principalObjectId",
    "applicationId",
    "tenantId",
    "suggestedRole",
    "scope",
    "status",
    "message",
]

# Mapping row status values
STATUS_PLANNED = "Planned"
STATUS_EXISTS = "Exists"
STATUS_CREATED = "Created"
STATUS_SKIPPED = "Skipped"
STATUS_FAILED = "Failed"

# License remediation outcomes
LICENSE_NONE = "None"
LICENSE_PLANNED = "Planned"
LICENSE_ASSIGNED = "Assigned"
LICENSE_FAILED = "Failed"
LICENSE_SKIPPED = "Skipped"


@dataclass(frozen=True)
class PrivilegedAssignmentRecord:
    userId: str
    displayName: Optional[str]
    principalName: Optional[str]
    roleName: Optional[str]
    roleTemplateId: Optional[str]
    roleDefinitionId: Optional[str]
    pimState: str
    hasElevatedLicense: bool
    licenseAction: str = LICENSE_NONE
    message: str = ""

    def to_row(self) -> Dict[str, Any]:
        return {c: getattr(self, c) for c in PIM_COLUMNS}


@dataclass(frozen=True)
class RoleOutcome:
    """Result of one role for one access policy."""
    role: str
    status: str
    message: str = ""


@dataclass(frozen=True)
class AccessPolicyMapping:
    principalObjectId: str
    applicationId: Optional[str]
    tenantId: Optional[str]
    suggestedRole: Tuple[str, ...]
    scope: str
    outcomes: Tuple[RoleOutcome, ...] = field(default_factory=tuple)

    @property
    def status(self) -> str:
        """Worst outcome across the role set (Failed > Skipped > Planned > Created > Exists)."""
        order = [STATUS_FAILED, STATUS_SKIPPED, STATUS_PLANNED, STATUS_CREATED, STATUS_EXISTS]
        seen = {o.status for o in self.outcomes}
        for s in order:
            if s in seen:
                return s
        return STATUS_PLANNED

    def to_rows(self) -> List[Dict[str, Any]]:
        by_role = {o.role: o for o in self.outcomes}
        rows = []
        for role in self.suggestedRole:
            outcome = by_role.get(role) or RoleOutcome(role, STATUS_PLANNED)
            rows.append({
                "principalObjectId": self.principalObjectId,
                "applicationId": self.applicationId or "",
                "tenantId": self.tenantId or "",
                "suggestedRole": role,
                "scope": self.scope,
                "status": outcome.status,
                "message": outcome.message,
            })
        return rows
