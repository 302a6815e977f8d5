import threading
from typing import Any, Callable, Dict, Optional

from requests import Session

from cms_exporter.encoding import encode
from cms_exporter.errors import ENCODING_FAILED, REASONS, translate_exception
from cms_exporter.models import Collection, Outcome
from cms_exporter.pagination import fetch_all
from cms_exporter.request_helpers import (
    apply_session_defaults,
    build_session,
    credential_headers,
    endpoint_url,
    log_exception,
    log_request,
)
from cms_exporter.small_utils import whitelist_request_opts


def process_endpoint(
    ctx: Dict[str, Any],
    collection: Collection,
    credential: str,
    req_opts: Dict[str, Any],
    pag_cfg: Dict[str, Any],
    session_factory: Callable[[Optional[Dict[str, Any]]], Session] = build_session,
    cancel_event: Optional[threading.Event] = None,
) -> Outcome:
    """Fetch and encode one collection; every failure ends up in the Outcome."""
    name = collection.name
    prefix = f"[{collection.kind}:{name}] "
    url = endpoint_url(ctx["base_url"], name)

    opts = dict(req_opts)
    retries = opts.pop("retries", None)
    opts["headers"] = {
        **(opts.get("headers") or {}),
        **credential_headers(credential),
    }
    safe = whitelist_request_opts(opts)

    def new_session() -> Session:
        s = session_factory(retries)
        apply_session_defaults(s, safe)
        return s

    sess = None
    try:
        sess = new_session()
        log_request(ctx, url, safe, prefix=prefix)
        records = fetch_all(
            sess, url, collection, safe, pag_cfg, cancel_event, new_session
        )
    except Exception as e:
        err = translate_exception(name, e)
        log_exception(ctx, url, e, prefix=f"{prefix}({err.category}) ")
        return Outcome.rejected(name, err.reason)
    finally:
        if sess is not None:
            sess.close()

    try:
        table = encode(records)
    except Exception as e:
        log_exception(ctx, url, e, prefix=f"{prefix}(encode) ")
        return Outcome.rejected(name, REASONS[ENCODING_FAILED])

    if not table:
        ctx["log"].info(f"{prefix}0 records; skipping")
        return Outcome.empty(name)

    ctx["log"].info(f"{prefix}fetched {len(records)} records")
    return Outcome.fulfilled(name, table, rows=len(records))
