"""In-memory stand-ins for the parts of CoreV1Api the controller talks to."""
from __future__ import annotations

from typing import Any

from kubernetes.client import (
    V1Node,
    V1NodeAddress,
    V1NodeStatus,
    V1ObjectMeta,
    V1Pod,
    V1PodList,
    V1PodSpec,
    V1PodStatus,
    V1Service,
    V1ServiceList,
    V1ServicePort,
    V1ServiceSpec,
)
from kubernetes.client.exceptions import ApiException

from dhp.ports import FOR_POD_LABEL_KEY, LABEL_KEY, derived_labels


def make_pod(
    name: str = "web",
    namespace: str = "default",
    ports: str | None = "8080.8082",
    ip: str | None = "10.0.0.5",
    phase: str = "Running",
    node: str | None = "node-1",
    annotations: dict[str, str] | None = None,
) -> V1Pod:
    labels = {LABEL_KEY: ports} if ports is not None else {}
    return V1Pod(
        metadata=V1ObjectMeta(name=name, namespace=namespace, labels=labels, annotations=annotations),
        spec=V1PodSpec(containers=[], node_name=node),
        status=V1PodStatus(phase=phase, pod_ip=ip),
    )


def make_node(name: str = "node-1", external_ip: str | None = None) -> V1Node:
    addresses = [V1NodeAddress(address="192.168.0.10", type="InternalIP")]
    if external_ip:
        addresses.append(V1NodeAddress(address=external_ip, type="ExternalIP"))
    return V1Node(metadata=V1ObjectMeta(name=name), status=V1NodeStatus(addresses=addresses))


def make_service(name: str, owner: str, namespace: str = "default", node_port: int = 31000) -> V1Service:
    return V1Service(
        metadata=V1ObjectMeta(name=name, namespace=namespace, labels=derived_labels(owner)),
        spec=V1ServiceSpec(type="NodePort", ports=[V1ServicePort(port=80, node_port=node_port)]),
    )


class FakeCoreV1Api:
    """Records every call; ``fail[method] = exc`` makes that method raise."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.fail: dict[str, BaseException] = {}
        self.pods: list[V1Pod] = []
        self.nodes: dict[str, V1Node] = {}
        self.services: dict[tuple[str, str], V1Service] = {}
        self.service_bodies: dict[tuple[str, str], dict[str, Any]] = {}
        self.endpoints: dict[tuple[str, str], dict[str, Any]] = {}
        self.patches: list[tuple[str, str, dict[str, Any], dict[str, Any]]] = []
        self.next_node_port = 31000

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        exc = self.fail.get(method)
        if exc is not None:
            raise exc

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == method]

    # writes

    def create_namespaced_endpoints(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        self._record("create_namespaced_endpoints", namespace, body["metadata"]["name"])
        self.endpoints[(namespace, body["metadata"]["name"])] = body
        return body

    def create_namespaced_service(self, namespace: str, body: dict[str, Any]) -> V1Service:
        name = body["metadata"]["name"]
        self._record("create_namespaced_service", namespace, name)
        node_port = self.next_node_port
        self.next_node_port += 1
        port = body["spec"]["ports"][0]["port"]
        svc = V1Service(
            metadata=V1ObjectMeta(name=name, namespace=namespace, labels=body["metadata"]["labels"]),
            spec=V1ServiceSpec(type="NodePort", ports=[V1ServicePort(port=port, node_port=node_port)]),
        )
        self.services[(namespace, name)] = svc
        self.service_bodies[(namespace, name)] = body
        return svc

    def patch_namespaced_pod(self, name: str, namespace: str, body: dict[str, Any], **kwargs: Any) -> None:
        self._record("patch_namespaced_pod", namespace, name)
        self.patches.append((namespace, name, body, kwargs))

    def delete_namespaced_service(self, name: str, namespace: str) -> None:
        self._record("delete_namespaced_service", namespace, name)
        if self.services.pop((namespace, name), None) is None:
            raise ApiException(status=404, reason="Not Found")

    def delete_namespaced_endpoints(self, name: str, namespace: str) -> None:
        self._record("delete_namespaced_endpoints", namespace, name)
        if self.endpoints.pop((namespace, name), None) is None:
            raise ApiException(status=404, reason="Not Found")

    # reads

    def read_node(self, name: str) -> V1Node:
        self._record("read_node", name)
        if name not in self.nodes:
            raise ApiException(status=404, reason="Not Found")
        return self.nodes[name]

    def list_namespaced_pod(self, namespace: str, label_selector: str | None = None, **kwargs: Any) -> V1PodList:
        self._record("list_namespaced_pod", namespace, label_selector)
        return V1PodList(items=[p for p in self._marked_pods() if p.metadata.namespace == namespace])

    def list_pod_for_all_namespaces(self, label_selector: str | None = None, **kwargs: Any) -> V1PodList:
        self._record("list_pod_for_all_namespaces", label_selector)
        return V1PodList(items=self._marked_pods())

    def list_namespaced_service(self, namespace: str, label_selector: str | None = None) -> V1ServiceList:
        self._record("list_namespaced_service", namespace, label_selector)
        return V1ServiceList(items=[s for (ns, _), s in self.services.items() if ns == namespace])

    def list_service_for_all_namespaces(self, label_selector: str | None = None) -> V1ServiceList:
        self._record("list_service_for_all_namespaces", label_selector)
        return V1ServiceList(items=list(self.services.values()))

    def _marked_pods(self) -> list[V1Pod]:
        return [p for p in self.pods if LABEL_KEY in (p.metadata.labels or {})]

    def add_service(self, svc: V1Service) -> None:
        self.services[(svc.metadata.namespace, svc.metadata.name)] = svc

    def owners(self) -> dict[str, str]:
        return {name: s.metadata.labels[FOR_POD_LABEL_KEY] for (_, name), s in self.services.items()}


class ScriptedWatch:
    """watch_factory replacement: each opened subscription replays the next script.

    A script is a list of raw watch events; an exception instance in it is raised
    and a callable is invoked at that point of the stream.
    """

    def __init__(self, *scripts: list[Any]):
        self.scripts = list(scripts)
        self.opened: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.stopped = 0

    def __call__(self) -> "ScriptedWatch":
        return self

    def stream(self, func: Any, *args: Any, **kwargs: Any):
        self.opened.append((func.__name__, args, kwargs))
        script = self.scripts.pop(0) if self.scripts else []
        for item in script:
            if isinstance(item, BaseException):
                raise item
            if callable(item):
                item()
                continue
            yield item

    def stop(self) -> None:
        self.stopped += 1
