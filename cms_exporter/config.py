import os
import re
from typing import Any, Dict, List, Optional, Tuple

from cms_exporter.errors import ConfigError
from cms_exporter.models import KINDS, LIST, Collection
from cms_exporter.request_helpers import service_base_url
from cms_exporter.small_utils import dig, first_non_empty

_ENV_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

DEFAULT_MIN_DISPLAY_S = 3.0
DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_WORKERS = 4


def expand_env_value(v: Any) -> Any:
    if isinstance(v, str):
        return _ENV_RE.sub(lambda m: os.getenv(m.group(1), m.group(0)), v)
    if isinstance(v, dict):
        return {k: expand_env_value(vv) for k, vv in v.items()}
    if isinstance(v, list):
        return [expand_env_value(x) for x in v]
    return v


def _collections(config: Dict[str, Any]) -> List[Collection]:
    out: List[Collection] = []
    endpoints = config.get("endpoints") or {}
    for kind in KINDS:
        for name in endpoints.get(kind) or []:
            out.append(Collection(name=str(name).strip(), kind=kind))

    # flat form: collections: [{name, kind}]
    for item in config.get("collections") or []:
        if isinstance(item, str):
            out.append(Collection(name=item.strip(), kind=LIST))
            continue
        if not isinstance(item, dict):
            raise ConfigError(f"Unsupported collection entry: {item!r}.")
        kind = (item.get("kind") or item.get("type") or LIST).lower()
        if kind not in KINDS:
            raise ConfigError(
                f"Endpoint '{item.get('name')}' has unsupported kind '{kind}'; "
                f"expected one of {', '.join(KINDS)}."
            )
        out.append(Collection(name=str(item.get("name") or "").strip(), kind=kind))
    return out


def _overrides(raw: Any) -> Dict[str, str]:
    if not raw:
        return {}
    if isinstance(raw, dict):
        return {str(k): v for k, v in raw.items()}
    out: Dict[str, str] = {}
    for item in raw:
        if not isinstance(item, dict):
            raise ConfigError(
                "credentials.overrides entries need endpoint and credential keys."
            )
        endpoint = first_non_empty(item.get("endpoint"), item.get("endpointName"))
        credential = first_non_empty(item.get("credential"), item.get("key"))
        # later entries win, matching a dict built in order
        if endpoint:
            out[str(endpoint)] = credential
    return out


def _number(cfg: Dict[str, Any], section: str, key: str, cast, minimum) -> None:
    """Cast ``cfg[key]`` in place; raise ConfigError if unusable or below ``minimum``."""
    raw = cfg.get(key)
    try:
        if isinstance(raw, bool):
            raise TypeError(key)
        value = cast(raw)
        if cast is int and value != float(raw):
            raise ValueError(key)
    except (TypeError, ValueError):
        raise ConfigError(f"{section}.{key} must be a number, got {raw!r}.")
    if value < minimum:
        raise ConfigError(f"{section}.{key} must be at least {minimum}, got {raw!r}.")
    cfg[key] = value


def resolve_credentials(
    collections: List[Collection],
    default: Optional[str],
    overrides: Dict[str, str],
) -> Dict[str, str]:
    """Pick one credential per collection: its override, else the default."""
    resolved: Dict[str, str] = {}
    missing: List[str] = []
    for c in collections:
        cred = first_non_empty(overrides.get(c.name), default)
        # an unset ${VAR} is left in place by expand_env_value
        if not cred or _ENV_RE.search(str(cred)):
            missing.append(c.name)
            continue
        resolved[c.name] = cred
    if missing:
        raise ConfigError(
            f"No API key available for endpoint(s): {', '.join(missing)}."
        )
    return resolved


def prepare(
    config: Dict[str, Any]
) -> Tuple[Dict[str, Any], List[Collection], Dict[str, Any], Dict[str, Any]]:
    """Return (service_cfg, collections, req_opts, api_cfg).

    ``service_cfg`` holds ``service_id``, ``base_url`` and the resolved
    ``credentials`` mapping; ``api_cfg`` holds the ``pagination`` and
    ``output`` sections with defaults filled in.
    """
    config = expand_env_value(config or {})

    service_id = first_non_empty(
        dig(config, "service.service_id"), config.get("serviceId")
    )
    if not service_id:
        raise ConfigError("service.service_id must be a non-empty string.")

    collections = _collections(config)
    if not collections:
        raise ConfigError("At least one list or object endpoint is required.")
    names = [c.name for c in collections]
    if not all(names):
        raise ConfigError("Endpoint names must be non-empty.")
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ConfigError(f"Duplicate endpoint name(s): {', '.join(dupes)}.")

    default_cred = first_non_empty(
        dig(config, "credentials.default"), config.get("defaultCredential")
    )
    overrides = _overrides(
        dig(config, "credentials.overrides")
        or config.get("credentialOverrides")
    )
    credentials = resolve_credentials(collections, default_cred, overrides)

    service_cfg = {
        "service_id": service_id,
        "base_url": service_base_url(
            service_id, dig(config, "service.base_url")
        ),
        "credentials": credentials,
    }

    req_opts = dict(config.get("request_defaults") or {})

    pag_cfg = {
        "page_size": DEFAULT_PAGE_SIZE,
        "max_workers": DEFAULT_MAX_WORKERS,
        "request_delay": 0.0,
        **(config.get("pagination") or {}),
    }
    _number(pag_cfg, "pagination", "page_size", int, 1)
    _number(pag_cfg, "pagination", "max_workers", int, 1)
    _number(pag_cfg, "pagination", "request_delay", float, 0.0)
    out_cfg = {
        "min_display_s": DEFAULT_MIN_DISPLAY_S,
        **(config.get("output") or {}),
    }
    _number(out_cfg, "output", "min_display_s", float, 0.0)
    api_cfg = {"pagination": pag_cfg, "output": out_cfg}
    return service_cfg, collections, req_opts, api_cfg
