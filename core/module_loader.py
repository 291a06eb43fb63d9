# ================================================================
# File     : module_loader.py
# Purpose  : Dynamically load and execute scan modules
# Notes    : Modules live in modules/<provider>/<name>.py and expose
#            run(client, args). Runs are strictly sequential.
# ================================================================

import importlib
import pathlib
import traceback
from typing import Any, List

from core.errors import PrivSweepError
from core.utils import fncPrintMessage

MODULES_ROOT = pathlib.Path(__file__).resolve().parent.parent / "modules"


# ================================================================
# Function: fncDiscoverModules
# Purpose : Discover available modules for a provider by scanning the modules dir
# Notes   : Ignores __init__.py and files starting with '_' by convention
# ================================================================
def fncDiscoverModules(provider: str) -> List[str]:
    base = MODULES_ROOT / provider
    if not base.is_dir():
        fncPrintMessage(f"No modules directory for provider '{provider}' (expected: {base})", "warn")
        return []

    mods = [
        p.stem for p in sorted(base.iterdir())
        if p.is_file() and p.suffix == ".py" and not p.name.startswith("_")
    ]
    fncPrintMessage(f"Discovered modules for {provider}: {mods}", "debug")
    return mods


# ================================================================
# Function: fncLoadModule
# Purpose : Dynamically import a module based on provider and name
# Notes   : Returns the imported module or None if not found
# ================================================================
def fncLoadModule(provider: str, module_name: str):
    mod_path = f"modules.{provider}.{module_name}"
    try:
        mod = importlib.import_module(mod_path)
    except ModuleNotFoundError as ex:
        if ex.name and not mod_path.startswith(ex.name):
            raise  # a dependency is missing, not the module
        available = ", ".join(fncDiscoverModules(provider)) or "none"
        fncPrintMessage(f"Module not found: {provider}/{module_name} (available: {available})", "error")
        return None
    fncPrintMessage(f"Loaded module: {mod_path}", "debug")
    return mod


# ================================================================
# Function: fncRunModule
# Purpose : Execute a loaded module's main 'run' function
# Notes   : PrivSweepError is reported and returned as {"error": ...};
#           anything else is a bug and propagates.
# ================================================================
def fncRunModule(provider: str, module_name: str, client, args) -> Any:
    mod = fncLoadModule(provider, module_name)
    if mod is None:
        return {"error": f"unknown module {provider}/{module_name}"}
    if not hasattr(mod, "run"):
        fncPrintMessage(f"Module {module_name} missing 'run' function.", "warn")
        return {"error": f"module {module_name} has no run()"}

    try:
        fncPrintMessage(f"Starting module: {provider}/{module_name}", "info")
        result = mod.run(client, args)
    except PrivSweepError as ex:
        fncPrintMessage(f"Module {module_name} aborted: {ex}", "error")
        fncPrintMessage(traceback.format_exc(), "debug")
        return {"error": str(ex)}

    fncPrintMessage(f"Module complete: {provider}/{module_name}", "success")
    return result
