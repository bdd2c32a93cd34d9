"""Background watcher that logs ValidatingWebhookConfiguration changes.

It only reports events; nothing it observes feeds back into admission decisions.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from kubernetes import client, config, watch

logger = logging.getLogger(__name__)

_EVENT_VERBS = {"ADDED": "added", "MODIFIED": "updated", "DELETED": "deleted"}


class WebhookConfigWatcher:
    def __init__(
        self,
        api: Optional[Any] = None,
        *,
        kubeconfig: Optional[str] = None,
        watch_factory: Callable[[], Any] = watch.Watch,
        timeout_seconds: int = 30,
        retry_seconds: float = 5.0,
    ) -> None:
        if api is None:
            config.load_kube_config(config_file=kubeconfig)
            api = client.AdmissionregistrationV1Api()
        self.api = api
        self.watch_factory = watch_factory
        self.timeout_seconds = timeout_seconds
        self.retry_seconds = retry_seconds
        self._stopped = threading.Event()
        self._watch: Optional[Any] = None

    def start(self) -> threading.Thread:
        thread = threading.Thread(target=self.run, name="webhook-config-watcher", daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        self._stopped.set()
        if self._watch is not None:
            self._watch.stop()

    def run(self) -> None:
        resource_version: Optional[str] = None
        while not self._stopped.is_set():
            self._watch = self.watch_factory()
            kwargs: Dict[str, Any] = {"timeout_seconds": self.timeout_seconds}
            if resource_version is not None:
                kwargs["resource_version"] = resource_version
            try:
                for event in self._watch.stream(self.api.list_validating_webhook_configuration, **kwargs):
                    self.handle_event(event)
                    if self._stopped.is_set():
                        break
            except client.rest.ApiException as exc:
                if exc.status == 410:
                    logger.info("Resource version expired for ValidatingWebhookConfigurations, restarting watch")
                    resource_version = None
                    continue
                logger.exception("Watching ValidatingWebhookConfigurations failed with status %s", exc.status)
                self._stopped.wait(self.retry_seconds)
                continue
            except Exception:
                logger.exception("Watching ValidatingWebhookConfigurations failed")
                self._stopped.wait(self.retry_seconds)
                continue
            # Watch tracks the last resourceVersion it saw; resume from there.
            resource_version = getattr(self._watch, "resource_version", None) or resource_version

    def handle_event(self, event: Dict[str, Any]) -> None:
        verb = _EVENT_VERBS.get(event.get("type", ""))
        if verb is None:
            logger.debug("Ignoring ValidatingWebhookConfiguration event %s", event.get("type"))
            return
        name = _object_name(event.get("object"))
        if name is None:
            logger.warning("Resource %s: Invalid object passed: %r", verb, event.get("object"))
            return
        logger.info("VWC %s %s", name, verb)


def _object_name(obj: Any) -> Optional[str]:
    if isinstance(obj, dict):
        metadata = obj.get("metadata")
        name = metadata.get("name") if isinstance(metadata, dict) else None
    else:
        metadata = getattr(obj, "metadata", None)
        name = getattr(metadata, "name", None)
    return name if isinstance(name, str) and name else None


__all__ = ["WebhookConfigWatcher"]
