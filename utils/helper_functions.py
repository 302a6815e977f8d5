from logging import Logger
from pathlib import Path
from typing import Any, Dict

from utils.config_reader import ConfigReader


def read_yml_configs(log: Logger, yaml_path: str) -> Dict[str, Any]:
    config = ConfigReader(log, Path(yaml_path)).load_configurations().configs_data
    log.info("Configuration loaded successfully.")
    return config


def summarize_outcomes(outcomes) -> Dict[str, Any]:
    """Per-endpoint status/rows/reason, safe to dump as JSON."""
    return {
        o.name: {"status": o.status, "rows": o.rows, "reason": o.reason}
        for o in outcomes
    }
