import json
from typing import Any, Dict, Iterable, List, Sequence

import pandas as pd

LINE_TERMINATOR = "\r\n"
# first cell of the row for a record that is not a JSON object
INVALID_RECORD = "[invalid record]"


def header_of(records: Iterable[Dict[str, Any]]) -> List[str]:
    """Union of every record's keys, in first-seen order."""
    seen: Dict[str, None] = {}
    for rec in records:
        if not isinstance(rec, dict):
            continue
        for key in rec:
            seen.setdefault(key, None)
    return list(seen)


def to_cell(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, str):
        return v
    if isinstance(v, (dict, list, tuple)):
        try:
            return json.dumps(
                v, default=str, ensure_ascii=False, separators=(",", ":")
            )
        except (TypeError, ValueError):
            return str(v)
    return str(v)


def _row(rec: Any, header: List[str]) -> List[str]:
    if not isinstance(rec, dict):
        if not header:
            return []
        return [INVALID_RECORD] + [""] * (len(header) - 1)
    return [to_cell(rec[h]) if h in rec else "" for h in header]


def to_dataframe(records: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    header = header_of(records)
    rows = [_row(rec, header) for rec in records]
    return pd.DataFrame(rows, columns=header, dtype=object)


def encode(records: Sequence[Dict[str, Any]]) -> str:
    """Render records as CSV text with a header row.

    Nested values become compact JSON, missing fields become empty cells.
    An empty record set gives an empty string.
    """
    if not records:
        return ""
    df = to_dataframe(records)
    if df.columns.empty:
        return ""
    return df.to_csv(index=False, lineterminator=LINE_TERMINATOR)
