import traceback
from typing import Any, Dict, Optional
from urllib.parse import quote, urljoin

from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

API_KEY_HEADER = "X-MICROCMS-API-KEY"
DEFAULT_BASE_URL = "https://{service_id}.microcms.io/api/v1/"

_SENSITIVE_HEADERS = {
    API_KEY_HEADER.lower(),
    "authorization",
    "x-api-key",
    "api-key",
    "proxy-authorization",
}


def build_url(base_url: str, path: str) -> str:
    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))


def service_base_url(service_id: str, template: Optional[str] = None) -> str:
    return (template or DEFAULT_BASE_URL).format(
        service_id=quote(service_id, safe="")
    )


def endpoint_url(base_url: str, endpoint: str) -> str:
    return build_url(base_url, quote(endpoint, safe=""))


def build_session(retries_cfg: Optional[Dict[str, Any]]) -> Session:
    s = Session()
    if not retries_cfg:
        return s
    total = int(retries_cfg.get("total", 3))
    connect = int(retries_cfg.get("connect", total))
    read = int(retries_cfg.get("read", total))
    backoff_factor = float(retries_cfg.get("backoff_factor", 0.5))
    status_forcelist = tuple(
        retries_cfg.get("status_forcelist", [429, 500, 502, 503, 504])
    )
    allowed = retries_cfg.get("allowed_methods", ["GET"])
    r = Retry(
        total=total,
        connect=connect,
        read=read,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=frozenset(m.upper() for m in allowed),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=r)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


def apply_session_defaults(sess: Session, opts: Dict[str, Any]) -> None:
    if opts.get("headers"):
        sess.headers.update(opts["headers"])
    if opts.get("proxies"):
        sess.proxies.update(opts["proxies"])
    if "verify" in opts:
        sess.verify = opts["verify"]


def credential_headers(credential: str) -> Dict[str, str]:
    return {API_KEY_HEADER: credential}


def redact_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    safe = dict(headers or {})
    for k in list(safe):
        if k.lower() in _SENSITIVE_HEADERS:
            safe[k] = "***REDACTED***"
    return safe


def log_request(
    ctx: Dict[str, Any], url: str, opts: Dict[str, Any], prefix: str = ""
):
    safe_headers = redact_headers(opts.get("headers") or {})
    safe_params = dict(opts.get("params") or {})
    ctx["log"].info(
        f"{prefix}GET {url} params={safe_params} headers={safe_headers}"
    )


def log_exception(
    ctx: Dict[str, Any], url: str, e: Exception, prefix: str = ""
):
    ctx["log"].error(
        f"{prefix}Error retrieving data from {url}: {e}\nStack Trace: {traceback.format_exc()}"
    )
