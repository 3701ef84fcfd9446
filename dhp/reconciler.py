from __future__ import annotations

from typing import Any, Iterable

from .journal import log_event
from .kube_ops import ServiceRegistry
from .ports import annotation_key, derived_name, pod_key, requested_ports
from .runtime import NodeIPCache, RuntimeState
from .watcher import EventKind, PodEvent


class Reconciler:
    """Turns pod lifecycle events into derived services, one event at a time.

    A pod is marked handled before its ports are exposed, so a failed port is
    reported once and not retried from later events for the same pod.
    """

    def __init__(self, registry: ServiceRegistry, node_ips: NodeIPCache, runtime: RuntimeState | None = None):
        self.registry = registry
        self.node_ips = node_ips
        self.runtime = runtime or RuntimeState()
        self._stop = False

    def stop(self) -> None:
        self._stop = True

    def run(self, events: Iterable[PodEvent]) -> None:
        log_event("INFO", "Reconciler started")
        for event in events:
            try:
                self.handle_event(event)
            except Exception as e:
                meta = event.pod.metadata
                log_event(
                    "ERROR",
                    f"Failed to handle {event.kind.value} event: {type(e).__name__}: {e}",
                    namespace=meta.namespace,
                    pod=meta.name,
                )
            if self._stop:
                break

    def handle_event(self, event: PodEvent) -> None:
        pod = event.pod
        key = pod_key(pod)

        if event.kind is EventKind.DELETED:
            self.runtime.forget(key)
            self.retract_pod(pod)
            return

        name, namespace = pod.metadata.name, pod.metadata.namespace
        if self.runtime.is_handled(key):
            log_event("INFO", "Ignoring pod because it was already handled.", namespace=namespace, pod=name)
            return
        if not pod.status or not pod.status.pod_ip:
            log_event("INFO", "Ignoring pod because it does not have an ip.", namespace=namespace, pod=name)
            return
        if pod.status.phase != "Running":
            log_event("INFO", "Ignoring pod because it is not running.", namespace=namespace, pod=name)
            return

        # A malformed label leaves the pod unhandled so a later edit can fix it.
        ports = requested_ports(pod)
        self.runtime.mark_handled(key)

        for port in ports:
            self.expose_port(pod, port)

    def expose_port(self, pod: Any, port: int) -> str:
        """Expose one pod port and return the node port written to the pod."""
        name, namespace = pod.metadata.name, pod.metadata.namespace
        existing = (pod.metadata.annotations or {}).get(annotation_key(port))
        if existing:
            log_event(
                "INFO",
                f"Pod already has service annotation for port {port}. Skipping recreation.",
                namespace=namespace,
                pod=name,
            )
            return existing

        log_event("INFO", f"Create service for port {port}", namespace=namespace, pod=name)

        # Endpoints first: a service without them would get selector-based endpoints.
        self.registry.create_endpoints(pod, port)

        node_name = pod.spec.node_name if pod.spec else None
        external_ip = self.node_ips.lookup(node_name)
        if not external_ip:
            log_event(
                "WARN",
                f"Got no ip of node '{node_name}', are you using minikube? "
                "The service will be exposed over all nodes.",
                namespace=namespace,
                pod=name,
            )
        service = self.registry.create_service(pod, port, external_ip)

        node_port = service.spec.ports[0].node_port
        try:
            self.registry.annotate_pod(pod, port, node_port)
        except Exception as e:
            # The service stays; the reaper or the pod's deletion cleans it up.
            log_event("ERROR", f"Adding annotation {port}=>{node_port} failed {e}", namespace=namespace, pod=name)
            raise
        return str(node_port)

    def retract_pod(self, pod: Any) -> None:
        name, namespace = pod.metadata.name, pod.metadata.namespace
        for port in requested_ports(pod):
            log_event("INFO", f"Deleting service for port {port}.", namespace=namespace, pod=name)
            self.registry.delete_service(namespace, derived_name(name, port))
