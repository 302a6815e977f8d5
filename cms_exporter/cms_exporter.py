import asyncio
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd
from requests import Session

from cms_exporter.config import prepare
from cms_exporter.models import (
    DELIVERED,
    EMPTY,
    FAILED,
    FULFILLED,
    REJECTED,
    FailureGroup,
    Outcome,
    PipelineResult,
)
from cms_exporter.output import archive_filename, build_archive
from cms_exporter.processor import process_endpoint
from cms_exporter.request_helpers import build_session


def partition(
    outcomes: List[Outcome],
) -> Tuple[List[Outcome], List[Outcome], List[Outcome]]:
    """Split outcomes into (fulfilled, empty, rejected), keeping input order."""
    by_status: Dict[str, List[Outcome]] = {FULFILLED: [], EMPTY: [], REJECTED: []}
    for o in outcomes:
        by_status[o.status].append(o)
    return by_status[FULFILLED], by_status[EMPTY], by_status[REJECTED]


def group_failures(rejected: List[Outcome]) -> List[FailureGroup]:
    """One group per distinct reason, in first-seen order."""
    groups: Dict[str, FailureGroup] = {}
    for o in rejected:
        reason = o.reason or "Unknown error."
        groups.setdefault(reason, FailureGroup(reason=reason)).endpoints.append(
            o.name
        )
    return list(groups.values())


class CmsExporter:
    """Fetch every configured endpoint and bundle the CSVs into one zip."""

    def __init__(
        self,
        config: Dict[str, Any],
        log,
        session_factory: Callable[
            [Optional[Dict[str, Any]]], Session
        ] = build_session,
    ):
        self.config = config
        self.log = log
        self.session_factory = session_factory

    def run(
        self, cancel_event: Optional[threading.Event] = None
    ) -> PipelineResult:
        return asyncio.run(self.run_async(cancel_event))

    async def run_async(
        self, cancel_event: Optional[threading.Event] = None
    ) -> PipelineResult:
        started = pd.Timestamp.now(tz="UTC")

        # raises ConfigError before any request goes out
        service_cfg, collections, req_opts, api_cfg = prepare(self.config)
        service_id = service_cfg["service_id"]
        out_cfg = api_cfg["output"]
        min_display_s = out_cfg["min_display_s"]

        self.log.info(
            f"[run] start service={service_id} endpoints={len(collections)} "
            f"min_display={min_display_s:.1f}s"
        )

        ctx: Dict[str, Any] = {
            "log": self.log,
            "service_id": service_id,
            "base_url": service_cfg["base_url"],
        }
        credentials = service_cfg["credentials"]

        work = asyncio.gather(
            *(
                asyncio.to_thread(
                    process_endpoint,
                    ctx,
                    c,
                    credentials[c.name],
                    req_opts,
                    api_cfg["pagination"],
                    self.session_factory,
                    cancel_event,
                )
                for c in collections
            )
        )
        # join: whichever finishes later decides when the run completes
        outcomes, _ = await asyncio.gather(work, asyncio.sleep(min_display_s))
        outcomes = list(outcomes)

        result = self._summarize(
            service_id, outcomes, out_cfg.get("filename")
        )
        result.started_at = started
        result.ended_at = pd.Timestamp.now(tz="UTC")

        log_fn = self.log.error if result.status == FAILED else self.log.info
        log_fn(
            f"[run] done service={service_id} status={result.status} "
            f"delivered={result.delivered} skipped={result.skipped} "
            f"failed={[o.name for o in outcomes if o.status == REJECTED]} "
            f"duration={result.duration_s:.3f}s"
        )
        return result

    def _summarize(
        self,
        service_id: str,
        outcomes: List[Outcome],
        filename_template: Optional[str] = None,
    ) -> PipelineResult:
        fulfilled, empty, rejected = partition(outcomes)
        skipped = [o.name for o in empty]

        # any rejection fails the whole run; no partial archive is delivered
        if rejected:
            return PipelineResult(
                status=FAILED,
                outcomes=outcomes,
                skipped=skipped,
                failures=group_failures(rejected),
            )

        if not fulfilled:
            return PipelineResult(
                status=EMPTY, outcomes=outcomes, skipped=skipped
            )

        now = pd.Timestamp.now(tz="UTC").floor("s")
        archive = build_archive(((o.name, o.table) for o in fulfilled), now)
        return PipelineResult(
            status=DELIVERED,
            outcomes=outcomes,
            archive=archive,
            filename=archive_filename(service_id, now, filename_template),
            delivered=[o.name for o in fulfilled],
            skipped=skipped,
        )
