# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/k8s/client.py
from __future__ import annotations

import logging
from typing import Any, List, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from sriovfec.daemon.errors import TransientInfraError
from sriovfec.resources.models import API_GROUP, API_VERSION, PLURAL, NodeConfig

log = logging.getLogger("sriovfec")


class KubeApiError(TransientInfraError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(KubeApiError):
    pass


class ConflictError(KubeApiError):
    pass


def _wrap(e: ApiException, what: str) -> KubeApiError:
    msg = f"{what} failed: {e.status} {e.reason}"
    if e.status == 404:
        return NotFoundError(msg, e.status)
    if e.status == 409:
        return ConflictError(msg, e.status)
    return KubeApiError(msg, e.status)


def load_kube_clients(kubeconfig: Optional[str] = None) -> tuple[client.CustomObjectsApi, client.CoreV1Api]:
    """In-cluster config first (daemonset), kubeconfig as a fallback for local runs."""
    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig)
        log.info("Loaded kubeconfig %s", kubeconfig)
    else:
        try:
            config.load_incluster_config()
            log.info("Loaded in-cluster Kubernetes config")
        except config.ConfigException:
            config.load_kube_config()
            log.info("Loaded default kubeconfig")
    return client.CustomObjectsApi(), client.CoreV1Api()


class KubeClient:
    """
    Thin wrapper over the Kubernetes API used by the daemon.

    Every call carries its own request timeout; nothing here retries, the
    controller's requeue/backoff does that.
    """

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        core_api: client.CoreV1Api,
        *,
        request_timeout: float = 30.0,
    ):
        self.custom_api = custom_api
        self.core_api = core_api
        self.request_timeout = request_timeout

    # ------------------------------------------------------------------
    # SriovFecNodeConfig
    # ------------------------------------------------------------------
    def get_node_config(self, namespace: str, name: str) -> NodeConfig:
        try:
            body = self.custom_api.get_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=PLURAL,
                name=name,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise _wrap(e, f"get {namespace}/{name}") from e
        return NodeConfig.from_body(body)

    def create_node_config(self, node_config: NodeConfig) -> NodeConfig:
        body = node_config.to_body()
        # status is a subresource; the API server drops it on create
        body.pop("status", None)
        try:
            created = self.custom_api.create_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=node_config.metadata.namespace,
                plural=PLURAL,
                body=body,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise _wrap(e, f"create {node_config.key}") from e
        return NodeConfig.from_body(created)

    def update_node_config_status(self, node_config: NodeConfig) -> NodeConfig:
        try:
            updated = self.custom_api.replace_namespaced_custom_object_status(
                group=API_GROUP,
                version=API_VERSION,
                namespace=node_config.metadata.namespace,
                plural=PLURAL,
                name=node_config.metadata.name,
                body=node_config.to_body(),
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise _wrap(e, f"update status of {node_config.key}") from e
        return NodeConfig.from_body(updated)

    # ------------------------------------------------------------------
    # Pods / nodes
    # ------------------------------------------------------------------
    def list_pods(self, namespace: str, label_selector: str) -> List[Any]:
        try:
            resp = self.core_api.list_namespaced_pod(
                namespace=namespace,
                label_selector=label_selector,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise _wrap(e, f"list pods {namespace} ({label_selector})") from e
        return list(resp.items)

    def list_pods_on_node(self, node_name: str) -> List[Any]:
        try:
            resp = self.core_api.list_pod_for_all_namespaces(
                field_selector=f"spec.nodeName={node_name}",
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise _wrap(e, f"list pods on node {node_name}") from e
        return list(resp.items)

    def delete_pod(self, namespace: str, name: str) -> None:
        try:
            self.core_api.delete_namespaced_pod(
                name=name,
                namespace=namespace,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise _wrap(e, f"delete pod {namespace}/{name}") from e

    def evict_pod(self, namespace: str, name: str) -> None:
        body = client.V1Eviction(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace)
        )
        try:
            self.core_api.create_namespaced_pod_eviction(
                name=name,
                namespace=namespace,
                body=body,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise _wrap(e, f"evict pod {namespace}/{name}") from e

    def set_node_unschedulable(self, node_name: str, unschedulable: bool) -> None:
        try:
            self.core_api.patch_node(
                name=node_name,
                body={"spec": {"unschedulable": unschedulable}},
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            verb = "cordon" if unschedulable else "uncordon"
            raise _wrap(e, f"{verb} node {node_name}") from e
