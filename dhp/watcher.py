from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator

from kubernetes import watch
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError, ProtocolError

from .journal import log_event
from .ports import LABEL_KEY


class WatchError(RuntimeError):
    """The pod watch could not be (re)opened. Fatal for the process."""


class EventKind(str, Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class PodEvent:
    kind: EventKind
    pod: Any


class PodWatcher:
    """Endless, label-filtered stream of pod lifecycle events.

    Each subscription lives at most ``timeout_s`` seconds. When it ends, either
    by expiry or because the server closed the connection, a new one is opened
    and consumption resumes. Refusals from the API server raise ``WatchError``.
    """

    def __init__(
        self,
        api: Any,
        namespace: str = "",
        timeout_s: int = 60 * 60 * 24,
        watch_factory: Callable[[], Any] = watch.Watch,
        max_subscriptions: int | None = None,
    ):
        self.api = api
        self.namespace = namespace
        self.timeout_s = max(1, int(timeout_s))
        self.watch_factory = watch_factory
        self.max_subscriptions = max_subscriptions
        self._stop = False
        self._watch: Any | None = None

    def stop(self) -> None:
        self._stop = True
        if self._watch is not None:
            self._watch.stop()

    def _open(self) -> Iterator[dict[str, Any]]:
        self._watch = self.watch_factory()
        if self.namespace:
            return self._watch.stream(
                self.api.list_namespaced_pod,
                self.namespace,
                label_selector=LABEL_KEY,
                timeout_seconds=self.timeout_s,
            )
        return self._watch.stream(
            self.api.list_pod_for_all_namespaces,
            label_selector=LABEL_KEY,
            timeout_seconds=self.timeout_s,
        )

    def events(self) -> Iterator[PodEvent]:
        log_event("INFO", f"Watching pods (namespace={self.namespace or 'all'})")
        opened = 0
        while not self._stop:
            if self.max_subscriptions is not None and opened >= self.max_subscriptions:
                return
            opened += 1
            try:
                for raw in self._open():
                    event = self._to_event(raw)
                    if event is not None:
                        yield event
                    if self._stop:
                        return
            except ApiException as e:
                raise WatchError(f"Error while watching pods: {e.status} {e.reason}") from e
            except ProtocolError as e:
                log_event("WARN", f"Pod watch connection dropped: {e}")
            except HTTPError as e:
                raise WatchError(f"Error while watching pods: {e}") from e
            log_event("INFO", "Restart loop")

    @staticmethod
    def _to_event(raw: dict[str, Any]) -> PodEvent | None:
        try:
            kind = EventKind(raw.get("type"))
        except ValueError:
            return None
        pod = raw.get("object")
        if pod is None or isinstance(pod, dict):
            # Undeserialized payloads (bookmarks, status objects) carry no pod.
            return None
        return PodEvent(kind=kind, pod=pod)
