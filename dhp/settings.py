from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Cluster scope ("" watches every namespace)
    namespace: str = os.getenv("DHP_NAMESPACE", os.getenv("KUBERNETES_NAMESPACE", ""))
    kubeconfig: str | None = os.getenv("DHP_KUBECONFIG")

    # Watch subscriptions are reopened after this many seconds.
    watch_timeout_s: int = _env_int("DHP_WATCH_TIMEOUT_S", 60 * 60 * 24)

    # Policy knobs
    # Remember nodes that have no ExternalIP instead of asking again next time.
    cache_negative_lookups: bool = _env_bool("DHP_CACHE_NEGATIVE_LOOKUPS", False)
    # Delete the Endpoints object ourselves instead of relying on the cluster.
    explicit_endpoint_delete: bool = _env_bool("DHP_EXPLICIT_ENDPOINT_DELETE", False)

    # Logging / journal
    log_level: str = os.getenv("DHP_LOG_LEVEL", "INFO")
    db_path: str = os.getenv("DHP_DB_PATH", "")


settings = Settings()
