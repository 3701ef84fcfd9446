from __future__ import annotations

import signal
import threading
from typing import Any

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from . import journal
from .journal import log_event
from .kube_ops import ServiceRegistry, load_core_api
from .reaper import StaleServiceReaper
from .reconciler import Reconciler
from .runtime import NodeIPCache, RuntimeState
from .settings import Settings
from .watcher import PodWatcher, WatchError


def _setup(settings: Settings, api: Any | None, stderr_only: bool = False) -> tuple[Any, ServiceRegistry]:
    journal.configure_logging(settings.log_level, stderr_only=stderr_only)
    journal.init_db(settings.db_path)
    if api is None:
        api = load_core_api(settings)
    return api, ServiceRegistry(api, explicit_endpoint_delete=settings.explicit_endpoint_delete)


def run_reaper(settings: Settings, api: Any | None = None) -> list[str]:
    """One sweep; log lines go to stderr so stdout carries only the result."""
    _, registry = _setup(settings, api, stderr_only=True)
    return StaleServiceReaper(registry).run(settings.namespace)


def run_controller(settings: Settings, api: Any | None = None, watcher: PodWatcher | None = None) -> None:
    """Sweep stale services once, then reconcile pod events until terminated.

    SIGTERM and SIGINT stop the loop after the event in progress.
    """
    api, registry = _setup(settings, api)
    log_event("INFO", "Starting...")

    try:
        StaleServiceReaper(registry).run(settings.namespace)
    except (ApiException, HTTPError) as e:
        log_event("ERROR", f"Error while deleting stale services {e}")
        raise SystemExit(1) from e

    reconciler = Reconciler(
        registry,
        NodeIPCache(api, cache_negative=settings.cache_negative_lookups),
        RuntimeState(),
    )
    watcher = watcher or PodWatcher(api, namespace=settings.namespace, timeout_s=settings.watch_timeout_s)

    def _shutdown(signum: int, frame: Any) -> None:
        log_event("INFO", f"Received signal {signum}, stopping")
        reconciler.stop()
        watcher.stop()

    previous: dict[int, Any] = {}
    # Signal handlers can only be installed from the main thread.
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGTERM, signal.SIGINT):
            previous[signum] = signal.signal(signum, _shutdown)
    try:
        reconciler.run(watcher.events())
    except WatchError as e:
        log_event("ERROR", str(e))
        raise SystemExit(1) from e
    finally:
        for signum, handler in previous.items():
            if handler is not None:
                signal.signal(signum, handler)
    log_event("INFO", "Stopped")
