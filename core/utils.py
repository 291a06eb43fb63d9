# ================================================================
# File     : utils.py
# Purpose  : Common helpers for PrivSweep (console, files, time, data)
# Notes    : Console output is the only log sink; debug lines are
#            gated by fncSetDebug.
# ================================================================

import os
import csv
import json
import uuid
import pathlib
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from colorama import Fore, Style, init as _colorama_init
from tabulate import tabulate

_colorama_init(autoreset=True)

DEBUG_ENABLED = False


# ================================================================
# Function: fncSetDebug
# Purpose : Globally enable/disable debug output
# Notes   : Called from main after parsing --debug/--verbose
# ================================================================
def fncSetDebug(enabled: bool) -> None:
    global DEBUG_ENABLED
    DEBUG_ENABLED = bool(enabled)


# ================================================================
# Function: fncPrintMessage
# Purpose : Standardised console output with levels and colours
# Notes   : Levels: info, warn, error, success, debug
# ================================================================
def fncPrintMessage(message: str, level: str = "info") -> None:
    if level == "debug" and not DEBUG_ENABLED:
        return
    colours = {
        "info": Fore.CYAN,
        "warn": Fore.YELLOW,
        "error": Fore.RED,
        "success": Fore.GREEN,
        "debug": Fore.MAGENTA
    }
    prefix = {
        "info": "[•]",
        "warn": "[!]",
        "error": "[✗]",
        "success": "[✓]",
        "debug": "[∆]"
    }
    colour = colours.get(level, "")
    mark = prefix.get(level, "[ ]")
    print(f"{colour}{mark} {message}{Style.RESET_ALL}")


# ================================================================
# Function: fncDisplayBanner
# Purpose : Print the PrivSweep start-up banner
# ================================================================
def fncDisplayBanner(version: str = "v1.0"):
    banner_lines = [
        " ___      _       ___                      ",
        "| _ \\_ _ (_)_ __ / __|_ __ _____ ___ _ __  ",
        "|  _/ '_|| \\ V / \\__ \\ V  V / -_) -_) '_ \\ ",
        "|_| |_|  |_|\\_/  |___/\\_/\\_/\\___\\___| .__/ ",
        "                                    |_|    ",
    ]
    colours = [Fore.CYAN, Fore.BLUE, Fore.MAGENTA]
    print("")
    for i, line in enumerate(banner_lines):
        print(f"{colours[i % len(colours)]}{line}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}\nPrivSweep {version} — privileged access inventory and vault RBAC cutover{Style.RESET_ALL}\n")


# ================================================================
# Function: fncEnsureFolder
# Purpose : Create a folder if it does not exist
# Notes   : Returns pathlib.Path object
# ================================================================
def fncEnsureFolder(path: str) -> pathlib.Path:
    p = pathlib.Path(path).expanduser().resolve()
    p.mkdir(parents=True, exist_ok=True)
    return p


# ================================================================
# Function: fncLoadEnv
# Purpose : Read environment variable with default
# Notes   : Strips quotes; returns default if unset
# ================================================================
def fncLoadEnv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name, default)
    if isinstance(val, str):
        return val.strip().strip('"').strip("'")
    return val


# ================================================================
# Function: fncReadJSON
# Purpose : Load JSON from file
# Notes   : Returns {} on failure when safe=True
# ================================================================
def fncReadJSON(path: str, safe: bool = True) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as ex:
        if safe:
            fncPrintMessage(f"Could not read JSON '{path}': {ex}", "warn")
            return {}
        raise


# ================================================================
# Function: fncWriteJSON
# Purpose : Write data to JSON with nice formatting
# Notes   : Ensures parent folder exists; UTF-8; 2-space indent
# ================================================================
def fncWriteJSON(path: str, data: Any) -> None:
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    fncPrintMessage(f"Saved JSON → {p}", "success")


# ================================================================
# Function: fncExportCSV
# Purpose : Save list[dict] to CSV
# Notes   : headers fixes the column order; otherwise union of keys
#           in first-seen order. Empty rows still get a header line.
# ================================================================
def fncExportCSV(path: str, rows: Iterable[Dict[str, Any]], headers: Optional[List[str]] = None) -> None:
    rows = list(rows)
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if headers is None:
        headers = []
        for r in rows:
            for k in r.keys():
                if k not in headers:
                    headers.append(k)

    with open(p, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=headers, extrasaction="ignore")
        w.writeheader()
        for r in rows:
            w.writerow({k: r.get(k, "") for k in headers})

    if rows:
        fncPrintMessage(f"Saved CSV → {p}", "success")
    else:
        fncPrintMessage(f"Created empty CSV → {p}", "warn")


# ================================================================
# Function: fncTimestamp
# Purpose : Return a timestamp string
# Notes   : compact=True gives a filename-safe YYYYmmdd-HHMMSS
# ================================================================
def fncTimestamp(compact: bool = False) -> str:
    if compact:
        return datetime.now().strftime("%Y%m%d-%H%M%S")
    return datetime.now().strftime("%Y-%m-%dT%H:%M:%S")


# ================================================================
# Function: fncToTable
# Purpose : Render rows as a table string
# Notes   : Supports list[dict] (keys become headers) or list[list]
# ================================================================
def fncToTable(rows: Iterable[Any], headers: Optional[List[str]] = None, max_rows: Optional[int] = None) -> str:
    rows = list(rows)
    truncated = bool(max_rows and len(rows) > max_rows)
    if truncated:
        rows = rows[:max_rows]

    if not rows:
        return "(no data)"

    if isinstance(rows[0], dict):
        hdrs = headers or list(rows[0].keys())
        table_rows = [[r.get(h, "") for h in hdrs] for r in rows]
    else:
        hdrs = headers or "firstrow"
        table_rows = rows

    if truncated:
        width = len(hdrs) if isinstance(hdrs, list) else len(rows[0])
        table_rows = list(table_rows) + [["…"] * width]
    return tabulate(table_rows, headers=hdrs, tablefmt="github")


# ================================================================
# Function: fncMask
# Purpose : Mask sensitive strings (client ids, tokens)
# Notes   : Keeps start/end visible; handles short strings
# ================================================================
def fncMask(value: Optional[str], show: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= show * 2:
        return "*" * len(value)
    return f"{value[:show]}{'*' * (len(value) - (show*2))}{value[-show:]}"


# ================================================================
# Function: fncNewRunId
# Purpose : Generate a short unique run identifier
# ================================================================
def fncNewRunId(prefix: str = "run") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


# ================================================================
# Function: fncPromptYesNo
# Purpose : Simple Y/N prompt for interactive flows
# Notes   : Defaults to 'n' if empty input
# ================================================================
def fncPromptYesNo(question: str, default_no: bool = True) -> bool:
    suffix = "[y/N]" if default_no else "[Y/n]"
    ans = input(f"{question} {suffix} ").strip().lower()
    if not ans:
        return not default_no
    return ans in ("y", "yes")
