# ================================================================
# File     : handlers/graph/graph_helpers.py
# Purpose  : Safer Graph helpers (handle missing $select fields)
# Notes    : Warn instead of fail; add "Not Found" placeholders.
# ================================================================

import re
from typing import List, Dict, Any, Tuple

from core.errors import ApiError
from core.utils import fncPrintMessage

_MISSING_PROP = re.compile(r"Could not find a property named '([^']+)'")


def _missing_field(ex: ApiError, fields: List[str]):
    if ex.status != 400:
        return None
    m = _MISSING_PROP.search(ex.message or "")
    if m and m.group(1) in fields:
        return m.group(1)
    return None


def _with_select(base_endpoint: str, fields: List[str]) -> str:
    if not fields:
        return base_endpoint
    sep = "&" if "?" in base_endpoint else "?"
    return f"{base_endpoint}{sep}$select={','.join(fields)}"


def safe_select_get_all(client, base_endpoint: str, fields: List[str]) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Calls client.get_all with a $select list. If Graph returns 400 with
    "Could not find a property named 'X'", we warn, drop X, retry once,
    and add X = "Not Found" to every returned row.
    Returns: (items, missing_fields)
    """
    try:
        items = client.get_all(_with_select(base_endpoint, fields))
        for it in items:
            for f in fields:
                it.setdefault(f, None)
        return items, []
    except ApiError as ex:
        missing = _missing_field(ex, fields)
        if not missing:
            raise  # different error; bubble up

        fncPrintMessage(f"Property not found: '{missing}' — retrying without it.", "warn")
        retry_fields = [f for f in fields if f != missing]
        items, more_missing = safe_select_get_all(client, base_endpoint, retry_fields)
        for it in items:
            it[missing] = "Not Found"
        return items, [missing] + more_missing


def safe_select_get(client, base_endpoint: str, fields: List[str]) -> Dict[str, Any]:
    """Single-object flavour of safe_select_get_all."""
    try:
        item = client.get(_with_select(base_endpoint, fields))
        for f in fields:
            item.setdefault(f, None)
        return item
    except ApiError as ex:
        missing = _missing_field(ex, fields)
        if not missing:
            raise

        fncPrintMessage(f"Property not found: '{missing}' — retrying without it.", "warn")
        item = safe_select_get(client, base_endpoint, [f for f in fields if f != missing])
        item[missing] = "Not Found"
        return item
