# ================================================================
# File     : exports.py
# Purpose  : Report export logic for PrivSweep (CSV, JSON)
# Notes    : Called by the scan modules once all rows are classified
# ================================================================

import pathlib
from typing import Any, Dict, Iterable, List, Optional, Union

from core.utils import fncPrintMessage, fncEnsureFolder, fncExportCSV, fncWriteJSON, fncTimestamp

DEFAULT_REPORTS_ROOT = pathlib.Path.home() / ".privsweep" / "reports"


# ================================================================
# Function: fncGetExportPath
# Purpose  : Default report path <root>/<module>_<YYYYmmdd-HHMMSS>.csv
# ================================================================
def fncGetExportPath(module_name: str, root: Optional[Union[str, pathlib.Path]] = None) -> pathlib.Path:
    out_dir = fncEnsureFolder(str(root or DEFAULT_REPORTS_ROOT))
    mod_slug = module_name.replace("/", "_").replace("\\", "_")
    return out_dir / f"{mod_slug}_{fncTimestamp(compact=True)}.csv"


# ================================================================
# Function: fncWriteReport
# Purpose  : Write the tabular report with a fixed column set
# Notes    : .json suffix -> JSON list of rows; anything else -> CSV
# ================================================================
def fncWriteReport(path: Union[str, pathlib.Path], rows: Iterable[Dict[str, Any]], columns: List[str]) -> pathlib.Path:
    p = pathlib.Path(path).expanduser()
    rows = [{c: r.get(c, "") for c in columns} for r in rows]

    if p.suffix.lower() == ".json":
        fncWriteJSON(str(p), rows)
    else:
        fncExportCSV(str(p), rows, headers=columns)

    fncPrintMessage(f"Report written → {p} ({len(rows)} rows)", "info")
    return p
