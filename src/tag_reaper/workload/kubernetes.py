"""Workload source listing pods from a Kubernetes cluster."""

from collections.abc import Sequence
from typing import Any

import structlog
from kubernetes import client, config
from kubernetes.client import V1Pod
from kubernetes.config.config_exception import ConfigException

from ..config import KubernetesConfig
from ..models.workload import Container, WorkloadSpec
from .source import WorkloadSource

FINISHED_PHASES = ("Succeeded", "Failed")
"""Pods in these phases run nothing and hold no image in use."""


class KubernetesWorkloadSource(WorkloadSource):
    """List pods, with their init and regular containers.

    Parameters
    ----------
    cfg
        Cluster access settings.
    api
        Preconfigured ``CoreV1Api``; if not given, one is built from
        in-cluster configuration or a kubeconfig file.
    """

    def __init__(
        self,
        cfg: KubernetesConfig | None = None,
        api: client.CoreV1Api | None = None,
    ) -> None:
        self._cfg = cfg or KubernetesConfig()
        self._logger = structlog.get_logger(__name__)
        if api is None:
            self._load_config()
            api = client.CoreV1Api()
        self._api = api

    def _load_config(self) -> None:
        if self._cfg.kubeconfig:
            config.load_kube_config(
                config_file=str(self._cfg.kubeconfig),
                context=self._cfg.context,
            )
            return
        try:
            config.load_incluster_config()
            self._logger.debug("Loaded in-cluster Kubernetes configuration")
        except ConfigException:
            config.load_kube_config(context=self._cfg.context)
            self._logger.debug("Loaded Kubernetes configuration from file")

    def list_all_workloads(
        self, namespaces: Sequence[str]
    ) -> list[WorkloadSpec]:
        selector = ",".join(f"status.phase!={x}" for x in FINISHED_PHASES)
        kwargs: dict[str, Any] = {"field_selector": selector, "limit": 500}
        if self._cfg.request_timeout:
            kwargs["_request_timeout"] = self._cfg.request_timeout
        workloads: list[WorkloadSpec] = []
        for namespace in namespaces:
            token: str | None = None
            while True:
                if token:
                    kwargs["_continue"] = token
                else:
                    kwargs.pop("_continue", None)
                resp = self._api.list_namespaced_pod(namespace, **kwargs)
                workloads.extend(self._pod_to_workload(x) for x in resp.items)
                token = resp.metadata._continue if resp.metadata else None
                if not token:
                    break
            self._logger.debug(f"Listed pods in namespace {namespace}")
        self._logger.debug(f"Found {len(workloads)} running pods")
        return workloads

    def _pod_to_workload(self, pod: V1Pod) -> WorkloadSpec:
        meta = pod.metadata
        spec = pod.spec
        containers: list[Container] = []
        if spec is not None:
            for ctr in (spec.init_containers or []) + (spec.containers or []):
                if ctr.image:
                    containers.append(
                        Container(name=ctr.name, image=ctr.image)
                    )
        return WorkloadSpec(
            namespace=meta.namespace if meta else "",
            name=meta.name if meta else "",
            containers=tuple(containers),
        )
