# ================================================================
# File     : config.py
# Purpose  : Configuration management for PrivSweep
# Notes    : Handles initial creation, loading and env overrides
# ================================================================

import copy
import pathlib
from typing import Optional

from core.utils import fncPrintMessage, fncEnsureFolder, fncReadJSON, fncWriteJSON, fncLoadEnv

DEFAULT_HOME = pathlib.Path.home() / ".privsweep"
DEFAULT_SKU = "AAD_PREMIUM_P2"


# ================================================================
# Function: fncDefaultConfig
# Purpose : Return a default configuration dictionary
# Notes   : Called when config file does not exist
# ================================================================
def fncDefaultConfig() -> dict:
    return {
        "version": "1.0",
        "privsweep_home": str(DEFAULT_HOME),
        "debug": False,
        "defaults": {
            "sku_part_number": DEFAULT_SKU,
            "reports_dir": str(DEFAULT_HOME / "reports"),
        },
        "providers": {
            "entra": {
                "tenant_id": "",
                "client_id": "",
                "client_secret": "",
            },
            "azure": {
                "tenant_id": "",
                "client_id": "",
                "client_secret": "",
                "subscription_id": "",
                "resource_group": "",
                "vault_name": "",
            },
        }
    }


# ================================================================
# Function: fncInitConfig
# Purpose : Create or load configuration file
# Notes   : Ensures base folder exists; returns full config dict
# ================================================================
def fncInitConfig(config_path: Optional[str] = None) -> dict:
    path = pathlib.Path(config_path or DEFAULT_HOME / "config.json")

    fncEnsureFolder(path.parent)

    if not path.exists():
        fncPrintMessage(f"No config found at {path}. Creating default...", "warn")
        cfg = fncDefaultConfig()
        fncWriteJSON(str(path), cfg)
        return fncApplyEnvOverrides(cfg)
    return fncLoadConfig(str(path))


# ================================================================
# Function: fncLoadConfig
# Purpose : Load configuration file and apply environment overrides
# Notes   : Missing sections are filled from the defaults
# ================================================================
def fncLoadConfig(config_path: str) -> dict:
    loaded = fncReadJSON(config_path)
    cfg = fncDefaultConfig()
    cfg["debug"] = bool(loaded.get("debug", cfg["debug"]))
    cfg["defaults"].update(loaded.get("defaults") or {})
    for provider, block in (loaded.get("providers") or {}).items():
        cfg["providers"].setdefault(provider, {}).update(block or {})

    fncPrintMessage(f"Loaded configuration from {config_path}", "debug")
    return fncApplyEnvOverrides(cfg)


# ================================================================
# Function: fncApplyEnvOverrides
# Purpose : Let PRIVSWEEP_* variables win over the file
# Notes   : Useful in CI/CD or containers; credentials apply to both providers
# ================================================================
def fncApplyEnvOverrides(cfg: dict) -> dict:
    cfg = copy.deepcopy(cfg)
    for provider in ("entra", "azure"):
        block = cfg["providers"].setdefault(provider, {})
        block["tenant_id"] = fncLoadEnv("PRIVSWEEP_TENANT_ID", block.get("tenant_id"))
        block["client_id"] = fncLoadEnv("PRIVSWEEP_CLIENT_ID", block.get("client_id"))
        block["client_secret"] = fncLoadEnv("PRIVSWEEP_CLIENT_SECRET", block.get("client_secret"))

    azure = cfg["providers"]["azure"]
    azure["subscription_id"] = fncLoadEnv("PRIVSWEEP_SUBSCRIPTION_ID", azure.get("subscription_id"))
    return cfg


# ================================================================
# Function: fncGetProviderConfig
# Purpose : Return config block for a specific provider
# Notes   : Provider options: entra, azure
# ================================================================
def fncGetProviderConfig(cfg: dict, provider: str) -> dict:
    providers = cfg.get("providers", {})
    if provider not in providers:
        fncPrintMessage(f"Provider not found in config: {provider}", "warn")
        return {}
    return providers[provider]


# ================================================================
# Function: fncApplyCliOverrides
# Purpose : Apply command-line flags to the loaded config
# Notes   : Handles --debug and --sku
# ================================================================
def fncApplyCliOverrides(cfg: dict, args) -> dict:
    if getattr(args, "debug", None):
        cfg["debug"] = True
    if getattr(args, "sku", None):
        cfg["defaults"]["sku_part_number"] = args.sku
    return cfg


# ================================================================
# Function: fncIsDebug
# Purpose : Return whether debug mode is enabled in config
# ================================================================
def fncIsDebug(cfg: dict) -> bool:
    return bool(cfg.get("debug", False))
