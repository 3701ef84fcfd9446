from __future__ import annotations

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from .journal import log_event
from .kube_ops import ServiceRegistry
from .ports import FOR_POD_LABEL_KEY


class StaleServiceReaper:
    """Deletes derived services whose pod no longer exists.

    The watch only covers the controller's own uptime, so pods deleted while it
    was down are caught here, once, before watching starts.
    """

    def __init__(self, registry: ServiceRegistry):
        self.registry = registry

    def run(self, namespace: str = "") -> list[str]:
        pods = self.registry.list_marked_pods(namespace)
        services = self.registry.list_managed_services(namespace)

        live = {(p.metadata.namespace, p.metadata.name) for p in pods}
        deleted: list[str] = []
        for svc in services:
            meta = svc.metadata
            owner = (meta.labels or {}).get(FOR_POD_LABEL_KEY)
            if (meta.namespace, owner) in live:
                continue

            log_event("INFO", f"Delete stale service '{meta.name}'", namespace=meta.namespace, pod=owner)
            try:
                self.registry.delete_service(meta.namespace, meta.name)
            except (ApiException, HTTPError) as e:
                log_event("ERROR", f"Failed to delete service {meta.name}: {e}", namespace=meta.namespace, pod=owner)
                continue
            deleted.append(meta.name)

        log_event("INFO", f"Stale service sweep done: {len(deleted)} of {len(services)} removed")
        return deleted
