# ================================================================
# File     : errors.py
# Purpose  : Exception types shared across PrivSweep
# Notes    : Per-item failures are caught by the drivers and turned
#            into row outcomes; only run-level failures escape a module.
# ================================================================

from typing import Optional


class PrivSweepError(Exception):
    """Base class for every error PrivSweep raises on purpose."""


class AuthenticationError(PrivSweepError):
    """MSAL could not issue a token for the requested scope."""


class ApiError(PrivSweepError):
    def __init__(self, status: int, message: str, url: str = ""):
        self.status = status
        self.message = message
        self.url = url
        super().__init__(f"[{status}] {message}")


class PreconditionError(PrivSweepError):
    """A tenant-level prerequisite (SKU, built-in role, vault) is missing."""


class UnresolvablePrincipalError(PrivSweepError):
    def __init__(
        self,
        object_id: Optional[str],
        application_id: Optional[str],
        tenant_id: Optional[str],
    ):
        self.object_id = object_id
        self.application_id = application_id
        self.tenant_id = tenant_id
        super().__init__(
            "Unable to resolve principal "
            f"(objectId={object_id or '-'}, applicationId={application_id or '-'}, tenantId={tenant_id or '-'})"
        )
