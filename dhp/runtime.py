from __future__ import annotations

from threading import Lock
from typing import Any

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from .journal import log_event


class RuntimeState:
    """In-memory state for reconciliation.

    Nothing here is persisted; a restart starts from an empty set and relies on
    pod annotations and the startup reaper to converge again.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self.handled_pods: set[str] = set()  # "<namespace>/<name>"

    def is_handled(self, key: str) -> bool:
        with self.lock:
            return key in self.handled_pods

    def mark_handled(self, key: str) -> None:
        with self.lock:
            self.handled_pods.add(key)

    def forget(self, key: str) -> None:
        with self.lock:
            self.handled_pods.discard(key)


class NodeIPCache:
    """Memoizes the ExternalIP of each node.

    Entries are never invalidated. Nodes without an ExternalIP are looked up
    again on every call unless ``cache_negative`` is set; API failures are
    never remembered.
    """

    def __init__(self, api: Any, cache_negative: bool = False):
        self.api = api
        self.cache_negative = cache_negative
        self.lock = Lock()
        self._ips: dict[str, str] = {}

    def lookup(self, node_name: str | None) -> str:
        if not node_name:
            return ""
        with self.lock:
            if node_name in self._ips:
                return self._ips[node_name]

        try:
            node = self.api.read_node(node_name)
        except (ApiException, HTTPError) as e:
            log_event("WARN", f"Got an error while fetching external ip of node '{node_name}'. {e}")
            return ""

        addresses = node.status.addresses if node.status else None
        for addr in addresses or []:
            if addr.type == "ExternalIP" and addr.address:
                log_event("INFO", f"Caching ip of node '{node_name}' => {addr.address}")
                with self.lock:
                    self._ips[node_name] = addr.address
                return addr.address

        if self.cache_negative:
            with self.lock:
                self._ips[node_name] = ""
        return ""
