"""
tests/test_pim_inventory.py - privileged role inventory and license remediation
"""

import csv
from argparse import Namespace

import pytest

from conftest import FakeGraph
from core.errors import ApiError, PreconditionError
from core.models import PIM_COLUMNS
from modules.entra.pim_inventory import run

SKU_ID = "6a0f6da5-0b87-4190-a6ae-9bb5a2b9546a"


def _user(uid, name, upn, licensed=False, usage="GB"):
    return {
        "id": uid,
        "displayName": name,
        "userPrincipalName": upn,
        "usageLocation": usage,
        "assignedLicenses": [{"skuId": SKU_ID}] if licensed else [],
    }


def _member(uid, kind="user"):
    return {"@odata.type": f"#microsoft.graph.{kind}", "id": uid}


@pytest.fixture
def graph():
    return FakeGraph({
        "subscribedSkus": [
            {"skuId": "sku-e5", "skuPartNumber": "ENTERPRISEPREMIUM"},
            {"skuId": SKU_ID, "skuPartNumber": "AAD_PREMIUM_P2"},
        ],
        "directoryRoles": [
            {"id": "dr-ga", "displayName": "Global Administrator", "roleTemplateId": "tmpl-ga"},
            {"id": "dr-ua", "displayName": "User Administrator", "roleTemplateId": "tmpl-ua"},
            {"id": "dr-legacy", "displayName": "Legacy Role", "roleTemplateId": None},
        ],
        "roleManagement/directory/roleDefinitions": [
            {"id": "def-ga", "templateId": "tmpl-ga", "displayName": "Global Administrator"},
            {"id": "def-ua", "templateId": "tmpl-ua", "displayName": "User Administrator"},
        ],
        "roleManagement/directory/roleAssignmentScheduleInstances": [
            {"principalId": "u1", "roleDefinitionId": "def-ga", "assignmentType": "Activated"},
            # permanent assignments also appear as instances and must not count as Active
            {"principalId": "u2", "roleDefinitionId": "def-ga", "assignmentType": "Assigned"},
        ],
        "roleManagement/directory/roleEligibilityScheduleInstances": [
            {"principalId": "u1", "roleDefinitionId": "def-ga"},
            {"principalId": "u2", "roleDefinitionId": "def-ua"},
        ],
        "directoryRoles/dr-ga/members": [_member("u1"), _member("u2"), _member("sp1", "servicePrincipal")],
        "directoryRoles/dr-ua/members": [_member("u2"), _member("u3"), _member("u4"), _member("u5")],
        "directoryRoles/dr-legacy/members": [_member("u1")],
        "users/u1": _user("u1", "Ada Lovelace", "ada@contoso.com", licensed=True),
        "users/u2": _user("u2", "Grace Hopper", "grace@contoso.com", usage="US"),
        "users/u3": ApiError(403, "Insufficient privileges to complete the operation."),
        "users/u4": _user("u4", "Alan Turing", "alan@contoso.com", usage="DE"),
        "users/u5": _user("u5", "Edsger Dijkstra", "edsger@contoso.com", usage=None),
    })


def _args(tmp_path, **kw):
    base = dict(apply=False, assign_licenses=False, sku="AAD_PREMIUM_P2", output=str(tmp_path / "pim.csv"), reports_dir=None)
    base.update(kw)
    return Namespace(**base)


def _by_pair(rows):
    return {(r["roleName"], r["userId"]): r for r in rows}


# =============================================================================
# Classification
# =============================================================================


class TestInventory:
    def test_states_per_role_and_user(self, graph, tmp_path):
        result = run(graph, _args(tmp_path))
        rows = _by_pair(result["rows"])

        assert rows[("Global Administrator", "u1")]["pimState"] == "Active"
        assert rows[("Global Administrator", "u2")]["pimState"] == "Direct-Permanent"
        assert rows[("User Administrator", "u2")]["pimState"] == "Eligible"
        assert rows[("User Administrator", "u4")]["pimState"] == "Direct-Permanent"
        assert rows[("Legacy Role", "u1")]["pimState"] == "Unknown"
        assert rows[("Legacy Role", "u1")]["roleDefinitionId"] is None

    def test_non_users_and_inaccessible_users_are_excluded(self, graph, tmp_path):
        result = run(graph, _args(tmp_path))
        user_ids = {r["userId"] for r in result["rows"]}
        assert "sp1" not in user_ids
        assert "u3" not in user_ids
        assert len(result["rows"]) == 6

    def test_license_flag(self, graph, tmp_path):
        rows = _by_pair(run(graph, _args(tmp_path))["rows"])
        assert rows[("Global Administrator", "u1")]["hasElevatedLicense"] is True
        assert rows[("Global Administrator", "u2")]["hasElevatedLicense"] is False

    def test_summary_counts(self, graph, tmp_path):
        summary = run(graph, _args(tmp_path))["summary"]
        assert summary["Assignments"] == 6
        assert summary["Privileged Users"] == 4
        assert summary["Active"] == 1
        assert summary["Eligible"] == 1
        assert summary["Direct-Permanent"] == 3
        assert summary["Unknown"] == 1

    def test_report_has_fixed_columns(self, graph, tmp_path):
        result = run(graph, _args(tmp_path))
        with open(result["output"], newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            assert reader.fieldnames == PIM_COLUMNS
            assert len(list(reader)) == 6

    def test_role_member_failure_skips_role_only(self, graph, tmp_path):
        graph.routes["directoryRoles/dr-ua/members"] = ApiError(403, "Forbidden")
        rows = run(graph, _args(tmp_path))["rows"]
        assert {r["roleName"] for r in rows} == {"Global Administrator", "Legacy Role"}


# =============================================================================
# License remediation
# =============================================================================


class TestLicenseRemediation:
    def test_dry_run_plans_without_calls(self, graph, tmp_path):
        rows = _by_pair(run(graph, _args(tmp_path, assign_licenses=True))["rows"])
        assert graph.posts == []
        assert rows[("Global Administrator", "u2")]["licenseAction"] == "Planned"
        assert rows[("Global Administrator", "u1")]["licenseAction"] == "None"
        assert rows[("User Administrator", "u5")]["licenseAction"] == "Skipped"

    def test_apply_assigns_once_per_user(self, graph, tmp_path):
        result = run(graph, _args(tmp_path, assign_licenses=True, apply=True))
        endpoints = [e for e, _ in graph.posts]
        assert sorted(endpoints) == ["users/u2/assignLicense", "users/u4/assignLicense"]
        body = graph.posts[0][1]
        assert body["addLicenses"] == [{"skuId": SKU_ID, "disabledPlans": []}]
        assert result["summary"]["Licenses Assigned"] == 2

    def test_failure_is_isolated(self, graph, tmp_path):
        graph.post_errors["users/u2/assignLicense"] = ApiError(400, "License assignment failed because service plans are mutually exclusive.")
        rows = _by_pair(run(graph, _args(tmp_path, assign_licenses=True, apply=True))["rows"])

        grace = rows[("User Administrator", "u2")]
        assert grace["licenseAction"] == "Failed"
        assert "mutually exclusive" in grace["message"]
        assert rows[("User Administrator", "u4")]["licenseAction"] == "Assigned"

    def test_assigned_row_notes_pre_remediation_license_state(self, graph, tmp_path):
        rows = _by_pair(run(graph, _args(tmp_path, assign_licenses=True, apply=True))["rows"])
        alan = rows[("User Administrator", "u4")]
        assert alan["licenseAction"] == "Assigned"
        assert alan["hasElevatedLicense"] is False
        assert "pre-remediation" in alan["message"]

    def test_no_remediation_without_flag(self, graph, tmp_path):
        run(graph, _args(tmp_path, apply=True))
        assert graph.posts == []


# =============================================================================
# SKU preconditions
# =============================================================================


class TestSkuPrecondition:
    def test_missing_sku_aborts_when_assigning(self, graph, tmp_path):
        with pytest.raises(PreconditionError):
            run(graph, _args(tmp_path, sku="NOT_A_SKU", assign_licenses=True))

    def test_missing_sku_without_assignment_continues(self, graph, tmp_path):
        rows = run(graph, _args(tmp_path, sku="NOT_A_SKU"))["rows"]
        assert rows
        assert all(r["hasElevatedLicense"] is False for r in rows)
