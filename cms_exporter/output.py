import zipfile
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

import pandas as pd

from cms_exporter.errors import ArchiveError
from cms_exporter.models import DELIVERED, PipelineResult

DEFAULT_FILENAME = "{service_id}-export-{now:%Y%m%dT%H%M%SZ}.zip"


def archive_filename(
    service_id: str, now: pd.Timestamp, template: Optional[str] = None
) -> str:
    return (template or DEFAULT_FILENAME).format(
        service_id=service_id, now=now.to_pydatetime()
    )


def build_archive(
    entries: Iterable[Tuple[str, str]], now: pd.Timestamp
) -> bytes:
    """Zip one ``<name>.csv`` per (name, csv_text) pair.

    Entry timestamps are pinned to ``now`` so the same inputs give the same
    bytes.
    """
    stamp = now.to_pydatetime().timetuple()[:6]
    buf = BytesIO()
    try:
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, table in entries:
                info = zipfile.ZipInfo(f"{name}.csv", date_time=stamp)
                info.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(info, table.encode("utf-8"))
    except (OSError, ValueError, MemoryError) as e:
        raise ArchiveError(f"Could not build the zip archive: {e}") from e
    return buf.getvalue()


def write_archive(
    ctx: Dict[str, Any], result: PipelineResult, output_dir: Path
) -> Dict[str, Any]:
    if result.status != DELIVERED or result.archive is None:
        raise ValueError("Only a delivered result carries an archive to write.")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / result.filename
    path.write_bytes(result.archive)

    meta = {"path": str(path), "bytes": int(len(result.archive))}
    ctx["log"].info(
        f"[output] Wrote {len(result.delivered)} file(s) ({meta['bytes']} bytes) to {meta['path']}"
    )
    return meta
