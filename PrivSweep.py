#!/usr/bin/env python3
# ================================================================
# Tool     : PrivSweep
# Purpose  : Privileged access inventory and Key Vault RBAC cutover
# Notes    : Dry-run by default; --apply is the explicit go-ahead for
#            any mutating call.
# ================================================================

import sys
import argparse

from core.config import fncInitConfig, fncApplyCliOverrides, fncIsDebug, fncGetProviderConfig
from core.errors import PrivSweepError
from core.utils import fncPrintMessage, fncSetDebug, fncDisplayBanner
from core.module_loader import fncRunModule

DEFAULT_SCANS = {
    "entra": "pim_inventory",
    "azure": "vault_rbac_migration",
}


# ================================================================
# Function: fncParseArguments
# Purpose  : Define and parse command-line arguments for PrivSweep
# ================================================================
def fncParseArguments(argv=None):
    parser = argparse.ArgumentParser(
        prog="PrivSweep",
        description="PrivSweep — privileged role inventory and vault access-policy to RBAC migration"
    )

    parser.add_argument(
        "provider",
        choices=sorted(DEFAULT_SCANS),
        help="entra (directory roles / PIM) or azure (Key Vault)"
    )
    parser.add_argument(
        "--scan",
        help="Module to execute (default: pim_inventory for entra, vault_rbac_migration for azure)"
    )

    parser.add_argument(
        "--apply",
        action="store_true",
        help="Perform mutating calls. Without it every run is a dry-run"
    )
    parser.add_argument(
        "--output",
        help="Report path (.csv or .json). Default: ~/.privsweep/reports/<module>_<timestamp>.csv"
    )
    parser.add_argument(
        "--config",
        help="Config file path (default: ~/.privsweep/config.json)"
    )
    parser.add_argument(
        "--debug", "-v", "--verbose",
        dest="debug",
        action="store_true",
        help="Enable verbose debug output"
    )

    entra = parser.add_argument_group("entra / pim_inventory")
    entra.add_argument(
        "--assign-licenses",
        action="store_true",
        help="Grant the elevated license SKU to privileged users lacking it"
    )
    entra.add_argument(
        "--sku",
        help="License SKU part number (default: AAD_PREMIUM_P2)"
    )

    azure = parser.add_argument_group("azure / vault_rbac_migration")
    azure.add_argument("--vault-id", help="Full resource id of the Key Vault")
    azure.add_argument("--subscription", help="Subscription id (with --resource-group and --vault)")
    azure.add_argument("--resource-group", help="Resource group of the vault")
    azure.add_argument("--vault", help="Vault name")
    azure.add_argument(
        "--enable-rbac",
        action="store_true",
        help="Switch the vault to the RBAC permission model after assignments (needs --apply)"
    )
    azure.add_argument(
        "--yes",
        action="store_true",
        help="Do not prompt before switching the permission model"
    )

    return parser.parse_args(argv)


# ================================================================
# Function: fncFillFromConfig
# Purpose  : Fill CLI gaps from the config file
# ================================================================
def fncFillFromConfig(args, cfg: dict):
    defaults = cfg.get("defaults", {})
    args.sku = args.sku or defaults.get("sku_part_number")
    args.reports_dir = defaults.get("reports_dir")
    args.scan = args.scan or DEFAULT_SCANS[args.provider]

    if args.provider == "azure":
        azure_cfg = fncGetProviderConfig(cfg, "azure")
        args.subscription = args.subscription or azure_cfg.get("subscription_id")
        args.resource_group = args.resource_group or azure_cfg.get("resource_group")
        args.vault = args.vault or azure_cfg.get("vault_name")
    return args


# ================================================================
# Function: fncInitClient
# Purpose  : Build the provider client (Graph for entra, ARM for azure)
# Notes    : Missing credentials are prompted for by the client itself
# ================================================================
def fncInitClient(provider: str, cfg: dict):
    creds = fncGetProviderConfig(cfg, provider)
    tenant_id = creds.get("tenant_id")
    client_id = creds.get("client_id")
    client_secret = creds.get("client_secret")

    if not all([tenant_id, client_id, client_secret]):
        fncPrintMessage("Missing credentials — dropping into interactive mode…", "warn")

    if provider == "entra":
        from handlers.graph.client import GraphClient
        return GraphClient(tenant_id=tenant_id, client_id=client_id, client_secret=client_secret)

    if provider == "azure":
        from handlers.arm.client import ArmClient
        return ArmClient(tenant_id=tenant_id, client_id=client_id, client_secret=client_secret)

    fncPrintMessage(f"Unsupported provider: {provider}", "error")
    return None


# ================================================================
# Function: main
# Purpose  : Main entry point for PrivSweep execution
# Notes    : Returns the process exit code
# ================================================================
def main(argv=None) -> int:
    args = fncParseArguments(argv)

    cfg = fncInitConfig(args.config)
    cfg = fncApplyCliOverrides(cfg, args)
    fncSetDebug(fncIsDebug(cfg))
    args = fncFillFromConfig(args, cfg)

    fncDisplayBanner("v1.0")
    if not args.apply:
        fncPrintMessage("Dry-run: no changes will be made (use --apply).", "warn")
    fncPrintMessage("Debug output enabled.", "debug")

    try:
        client = fncInitClient(args.provider, cfg)
    except PrivSweepError as ex:
        fncPrintMessage(f"Unable to initialise client: {ex}", "error")
        return 1
    if not client:
        fncPrintMessage("Unable to continue without valid provider client.", "error")
        return 1

    fncPrintMessage(f"Running scan module: {args.scan}", "info")
    result = fncRunModule(args.provider, args.scan, client, args)

    if not isinstance(result, dict) or "error" in result:
        fncPrintMessage("Run aborted.", "error")
        return 1

    fncPrintMessage("Sweep complete.", "success")
    return 0


if __name__ == "__main__":
    sys.exit(main())
