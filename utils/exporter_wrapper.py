# exporter_wrapper.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from cms_exporter import CmsExporter
from cms_exporter.models import DELIVERED
from cms_exporter.output import write_archive
from utils.helper_functions import read_yml_configs, summarize_outcomes

LOG = logging.getLogger("exporter_wrapper")


def run_exporter(yaml_path: str, output_dir: str) -> Dict[str, Any]:
    """
    Run one export and return a metadata dict.

    Args:
        yaml_path:  Path to the export YAML (service, credentials, endpoints).
        output_dir: Directory the zip is written to when the run delivers one.
    """
    if not yaml_path:
        raise ValueError("Parameter 'yaml_path' is required.")
    if not output_dir:
        raise ValueError("Parameter 'output_dir' is required.")

    config = read_yml_configs(LOG, yaml_path)
    result = CmsExporter(config=config, log=LOG).run()

    meta: Dict[str, Any] = {
        "status": result.status,
        "message": result.message,
        "delivered": result.delivered,
        "skipped": result.skipped,
        "failures": [
            {"reason": g.reason, "endpoints": g.endpoints}
            for g in result.failures
        ],
        "endpoints": summarize_outcomes(result.outcomes),
        "started_at": result.started_at.isoformat(),
        "ended_at": result.ended_at.isoformat(),
        "duration_s": result.duration_s,
        "path": "",
        "bytes": 0,
    }
    if result.status == DELIVERED:
        meta.update(write_archive({"log": LOG}, result, Path(output_dir)))

    LOG.info("Exporter metadata: %s", json.dumps(meta, ensure_ascii=False))
    return meta
