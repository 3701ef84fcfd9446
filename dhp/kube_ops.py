from __future__ import annotations

from typing import Any

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from .journal import log_event
from .ports import LABEL_KEY, MANAGED_SELECTOR, annotation_key, derived_labels, derived_name
from .settings import Settings

MERGE_PATCH = "application/merge-patch+json"


def load_core_api(settings: Settings) -> client.CoreV1Api:
    """Build a CoreV1Api from the in-cluster service account or a kubeconfig."""
    if settings.kubeconfig:
        config.load_kube_config(config_file=settings.kubeconfig)
        log_event("INFO", f"Loaded kubeconfig {settings.kubeconfig}")
    else:
        try:
            config.load_incluster_config()
            log_event("INFO", "Using in-cluster Kubernetes config")
        except config.ConfigException:
            # Local development: fall back to ~/.kube/config
            config.load_kube_config()
            log_event("INFO", "Loaded default kubeconfig")
    return client.CoreV1Api()


def _meta(pod: Any, port: int) -> dict[str, Any]:
    return {
        "name": derived_name(pod.metadata.name, port),
        "namespace": pod.metadata.namespace,
        "labels": derived_labels(pod.metadata.name),
    }


class ServiceRegistry:
    """Create/list/delete the derived Service + Endpoints pair of a pod port.

    Objects are labeled so they can be re-discovered after restarts. Errors from
    the API are ``ApiException`` and are left to the caller.
    """

    def __init__(self, api: Any, explicit_endpoint_delete: bool = False):
        self.api = api
        self.explicit_endpoint_delete = explicit_endpoint_delete

    def create_endpoints(self, pod: Any, port: int) -> Any:
        # Protocol is left to the cluster default (TCP).
        body = {
            "apiVersion": "v1",
            "kind": "Endpoints",
            "metadata": _meta(pod, port),
            "subsets": [
                {
                    "addresses": [{"ip": pod.status.pod_ip}],
                    "ports": [{"port": int(port)}],
                }
            ],
        }
        return self.api.create_namespaced_endpoints(pod.metadata.namespace, body)

    def create_service(self, pod: Any, port: int, external_ip: str = "") -> Any:
        """Create a selector-less NodePort service; the cluster picks the node port."""
        spec: dict[str, Any] = {
            "type": "NodePort",
            "ports": [{"port": int(port), "targetPort": int(port)}],
        }
        if external_ip:
            spec["externalIPs"] = [external_ip]
        body = {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": _meta(pod, port),
            "spec": spec,
        }
        return self.api.create_namespaced_service(pod.metadata.namespace, body)

    def annotate_pod(self, pod: Any, port: int, node_port: int) -> None:
        body = {"metadata": {"annotations": {annotation_key(port): str(int(node_port))}}}
        self.api.patch_namespaced_pod(
            pod.metadata.name,
            pod.metadata.namespace,
            body,
            _content_type=MERGE_PATCH,
        )

    def delete_service(self, namespace: str, name: str) -> None:
        self.api.delete_namespaced_service(name, namespace)
        if not self.explicit_endpoint_delete:
            return
        try:
            self.api.delete_namespaced_endpoints(name, namespace)
        except ApiException as e:
            # Already removed together with the service.
            if e.status != 404:
                raise

    def list_marked_pods(self, namespace: str = "") -> list[Any]:
        if namespace:
            pods = self.api.list_namespaced_pod(namespace, label_selector=LABEL_KEY)
        else:
            pods = self.api.list_pod_for_all_namespaces(label_selector=LABEL_KEY)
        return list(pods.items)

    def list_managed_services(self, namespace: str = "") -> list[Any]:
        if namespace:
            services = self.api.list_namespaced_service(namespace, label_selector=MANAGED_SELECTOR)
        else:
            services = self.api.list_service_for_all_namespaces(label_selector=MANAGED_SELECTOR)
        return list(services.items)
