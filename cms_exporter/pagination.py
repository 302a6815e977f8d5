import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from requests import Session

from cms_exporter.errors import (
    CANCELLED,
    MALFORMED_RESPONSE,
    NOT_FOUND,
    FetchError,
    translate_exception,
)
from cms_exporter.models import LIST, Collection, Record
from cms_exporter.small_utils import whitelist_request_opts


def _check_cancel(endpoint: str, cancel_event: Optional[threading.Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise FetchError(endpoint, CANCELLED)


def _get_json(
    sess: Session, url: str, endpoint: str, opts: Dict[str, Any]
) -> Any:
    try:
        resp = sess.get(url, **opts)
        resp.raise_for_status()
        return resp.json()
    except Exception as e:
        raise translate_exception(endpoint, e) from e


def _page_contents(endpoint: str, data: Any) -> List[Record]:
    contents = data.get("contents") if isinstance(data, dict) else None
    if not isinstance(contents, list):
        raise FetchError(
            endpoint, MALFORMED_RESPONSE, f"no 'contents' list in {type(data).__name__}"
        )
    return contents


def fetch_page(
    sess: Session,
    url: str,
    endpoint: str,
    base_opts: Dict[str, Any],
    limit: int,
    offset: int,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    _check_cancel(endpoint, cancel_event)
    opts = whitelist_request_opts(dict(base_opts))
    opts["params"] = {**(opts.get("params") or {}), "limit": limit, "offset": offset}
    return _get_json(sess, url, endpoint, opts)


def fetch_list(
    sess: Session,
    url: str,
    endpoint: str,
    base_opts: Dict[str, Any],
    pag_cfg: Dict[str, Any],
    cancel_event: Optional[threading.Event] = None,
    session_factory: Optional[Callable[[], Session]] = None,
) -> List[Record]:
    """Fetch every page of a list endpoint, in ascending-offset order.

    The first page's ``totalCount`` decides how many more pages exist; those
    are fetched concurrently and reassembled by offset.

    With ``session_factory``, each worker thread builds and later closes its
    own session, since ``requests.Session`` is not thread-safe. Without one,
    the workers share ``sess``.
    """
    limit = int(pag_cfg.get("page_size", 100))
    max_workers = max(1, int(pag_cfg.get("max_workers", 4)))
    delay = float(pag_cfg.get("request_delay", 0.0))

    first = fetch_page(sess, url, endpoint, base_opts, limit, 0, cancel_event)
    records = list(_page_contents(endpoint, first))
    total = first.get("totalCount")
    if isinstance(total, bool) or not isinstance(total, int):
        raise FetchError(
            endpoint, MALFORMED_RESPONSE, f"totalCount={total!r} is not an int"
        )

    offsets = list(range(limit, total, limit))
    if not offsets:
        return records

    local = threading.local()
    opened: List[Session] = []
    opened_lock = threading.Lock()

    def worker_session() -> Session:
        if session_factory is None:
            return sess
        s = getattr(local, "sess", None)
        if s is None:
            s = local.sess = session_factory()
            with opened_lock:
                opened.append(s)
        return s

    def fetch_offset(offset: int) -> Dict[str, Any]:
        return fetch_page(
            worker_session(), url, endpoint, base_opts, limit, offset, cancel_event
        )

    try:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(offsets))) as pool:
            futures = []
            for offset in offsets:
                if futures and delay > 0:
                    time.sleep(delay)
                futures.append(pool.submit(fetch_offset, offset))
            # futures are kept in submission (offset) order
            for fut in futures:
                records.extend(_page_contents(endpoint, fut.result()))
    finally:
        for s in opened:
            s.close()
    return records


def fetch_object(
    sess: Session,
    url: str,
    endpoint: str,
    base_opts: Dict[str, Any],
    cancel_event: Optional[threading.Event] = None,
) -> List[Record]:
    _check_cancel(endpoint, cancel_event)
    try:
        data = _get_json(sess, url, endpoint, whitelist_request_opts(base_opts))
    except FetchError as e:
        if e.category == NOT_FOUND:
            return []
        raise
    if not isinstance(data, dict):
        raise FetchError(
            endpoint, MALFORMED_RESPONSE, f"object response is {type(data).__name__}"
        )
    return [data]


def fetch_all(
    sess: Session,
    url: str,
    collection: Collection,
    base_opts: Dict[str, Any],
    pag_cfg: Dict[str, Any],
    cancel_event: Optional[threading.Event] = None,
    session_factory: Optional[Callable[[], Session]] = None,
) -> List[Record]:
    if collection.kind == LIST:
        return fetch_list(
            sess,
            url,
            collection.name,
            base_opts,
            pag_cfg,
            cancel_event,
            session_factory,
        )
    return fetch_object(sess, url, collection.name, base_opts, cancel_event)
