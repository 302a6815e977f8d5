import argparse
import json
import logging
import os
import sys

from cms_exporter.errors import ConfigError
from cms_exporter.models import FAILED
from logger.basic_logger import setup_logger
from utils.exporter_wrapper import run_exporter


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Export CMS endpoints to CSV files bundled in one zip."
    )
    parser.add_argument("-y", "--yaml_path", required=True, help="Path to the export YAML")
    parser.add_argument("-o", "--output_dir", default=".", help="Where the zip is written")
    parser.add_argument("--log_level", default="INFO")
    parser.add_argument("--extra_env", action="append", default=[], help="KEY=VALUE; repeatable")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    setup_logger(args.log_level)
    log = logging.getLogger("export_runner")

    # lets ${VAR} placeholders in the YAML resolve without touching the shell
    for kv in args.extra_env:
        if "=" in kv:
            k, v = kv.split("=", 1)
            os.environ[k] = v
            log.info("Set env %s", k)

    log.info("Starting export: yaml=%s out=%s", args.yaml_path, args.output_dir)
    try:
        meta = run_exporter(yaml_path=args.yaml_path, output_dir=args.output_dir)
    except ConfigError as e:
        log.error("Invalid configuration: %s", e)
        print(json.dumps({"status": "error", "message": str(e)}, ensure_ascii=False))
        return 1

    print(json.dumps({"status": "ok" if meta["status"] != FAILED else "error", "meta": meta}, ensure_ascii=False))
    return 1 if meta["status"] == FAILED else 0


if __name__ == "__main__":
    sys.exit(main())
