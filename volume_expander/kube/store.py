from __future__ import annotations

import logging
from typing import Any, List, Optional

import urllib3
from kubernetes import client, config

from volume_expander.core.exceptions import (
    ClaimNotFoundError,
    DeleteError,
    FetchError,
    ListError,
    UpdateError,
)
from volume_expander.models.resources import StorageClaim, WorkloadRef
from volume_expander.parsers.manifest import claim_from_manifest, workload_from_manifest
from volume_expander.utils.units import format_quantity


logger = logging.getLogger(__name__)

# ApiException for API responses, urllib3 errors for transport failures
_CLIENT_ERRORS = (client.ApiException, urllib3.exceptions.HTTPError)


def _is_not_found(e: Exception) -> bool:
    return isinstance(e, client.ApiException) and e.status == 404


def _describe(e: Exception) -> str:
    if isinstance(e, client.ApiException):
        return str(e.reason)
    return str(e)


def load_cluster_config() -> None:
    """Use the in-cluster service account, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class KubeClaimStore:
    """Reads and writes claims and pods through the Kubernetes API."""

    def __init__(self, core_v1: Optional[client.CoreV1Api] = None) -> None:
        self.core_v1 = core_v1 or client.CoreV1Api()
        self._api_client = client.ApiClient()

    def _to_dict(self, obj: Any) -> dict:
        return self._api_client.sanitize_for_serialization(obj)

    def get(self, namespace: str, name: str) -> StorageClaim:
        try:
            pvc = self.core_v1.read_namespaced_persistent_volume_claim(name, namespace)
        except _CLIENT_ERRORS as e:
            if _is_not_found(e):
                raise ClaimNotFoundError(f"PVC {namespace}/{name} not found") from e
            raise FetchError(f"unable to read PVC {namespace}/{name}: {_describe(e)}") from e
        try:
            return claim_from_manifest(self._to_dict(pvc), default_namespace=namespace)
        except ValueError as e:
            raise FetchError(str(e)) from e

    def update_requested(self, claim: StorageClaim, new_bytes: int) -> None:
        metadata = {}
        if claim.resource_version:
            # merge patch with a resourceVersion fails on conflict, like a full update
            metadata["resourceVersion"] = claim.resource_version
        body = {
            "metadata": metadata,
            "spec": {"resources": {"requests": {"storage": format_quantity(new_bytes)}}},
        }
        try:
            self.core_v1.patch_namespaced_persistent_volume_claim(claim.name, claim.namespace, body)
        except _CLIENT_ERRORS as e:
            raise UpdateError(
                f"unable to update PVC {claim.namespace}/{claim.name}: {_describe(e)}"
            ) from e

    def list_workloads(self, namespace: str) -> List[WorkloadRef]:
        try:
            pods = self.core_v1.list_namespaced_pod(namespace)
        except _CLIENT_ERRORS as e:
            raise ListError(f"unable to list pods in {namespace}: {_describe(e)}") from e
        return [
            workload_from_manifest(self._to_dict(pod), default_namespace=namespace)
            for pod in pods.items or []
        ]

    def delete_workload(self, ref: WorkloadRef) -> None:
        try:
            self.core_v1.delete_namespaced_pod(ref.name, ref.namespace)
        except _CLIENT_ERRORS as e:
            if _is_not_found(e):
                logger.info("pod %s/%s already gone", ref.namespace, ref.name)
                return
            raise DeleteError(f"unable to delete pod {ref.namespace}/{ref.name}: {_describe(e)}") from e
