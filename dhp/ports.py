from __future__ import annotations

from typing import Any

# Pods opt in with e.g. ``dynamic-hostports: "8080.8082"``.
LABEL_KEY = "dynamic-hostports"
ANNOTATION_PREFIX = "dynamic-hostports.k8s"

MANAGED_BY_LABEL_KEY = "app.kubernetes.io/managed-by"
MANAGED_BY_LABEL_VALUE = ANNOTATION_PREFIX
FOR_POD_LABEL_KEY = f"{ANNOTATION_PREFIX}/for-pod"

MANAGED_SELECTOR = f"{MANAGED_BY_LABEL_KEY}={MANAGED_BY_LABEL_VALUE}"


class PortListError(ValueError):
    pass


def parse_port_list(raw: str | None) -> tuple[int, ...]:
    """Split ``"8080.8082"`` into ``(8080, 8082)``.

    Every token must be a plain decimal number in 1..65535. A single bad token
    rejects the whole list.
    """
    ports: list[int] = []
    for token in (raw or "").split("."):
        if not (token.isascii() and token.isdigit()):
            raise PortListError(f"Invalid port {token!r} in {raw!r}")
        port = int(token)
        if port <= 0 or port >= 65536:
            raise PortListError(f"Port {port} is not in valid range")
        ports.append(port)
    return tuple(ports)


def annotation_key(port: int) -> str:
    return f"{ANNOTATION_PREFIX}/{int(port)}"


def derived_name(pod_name: str, port: int) -> str:
    """Name shared by the service and endpoints created for one pod port.

    Recovery relies on recomputing this from pod state alone, so the format
    must not change.
    """
    return f"{pod_name}-{int(port)}"


def pod_key(pod: Any) -> str:
    return f"{pod.metadata.namespace}/{pod.metadata.name}"


def requested_ports(pod: Any) -> tuple[int, ...]:
    labels = pod.metadata.labels or {}
    return parse_port_list(labels.get(LABEL_KEY))


def derived_labels(pod_name: str) -> dict[str, str]:
    return {
        MANAGED_BY_LABEL_KEY: MANAGED_BY_LABEL_VALUE,
        FOR_POD_LABEL_KEY: pod_name,
    }
