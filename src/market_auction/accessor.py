"""Boundary between the reconciler and the Kubernetes API.

The reconciler only sees the abstract capabilities below; the Kubernetes
backed implementations translate API errors into the operator's own
exceptions.
"""
import abc
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import aiohttp
from kubernetes_asyncio import client
from kubernetes_asyncio.client.rest import ApiException

from .auction import Decision
from .errors import NotFound, TransientAccessError
from .models import AuctionStatus, MarketAuctionJob, ResourceIdentity
from .registry import ResourceType

logger = logging.getLogger("market-auction.accessor")

# errors raised by the aiohttp transport underneath kubernetes_asyncio
_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


class AuctionAccessor(abc.ABC):
    @abc.abstractmethod
    async def fetch(self, identity: ResourceIdentity) -> MarketAuctionJob:
        """Return the current resource.

        Raises NotFound, TransientAccessError or InvalidResourceError.
        """

    @abc.abstractmethod
    async def update_status(
        self,
        identity: ResourceIdentity,
        status: AuctionStatus,
        resource_version: Optional[str] = None,
    ) -> None:
        """Replace the status subresource. Raises NotFound or TransientAccessError."""


class EventRecorder(abc.ABC):
    @abc.abstractmethod
    async def emit(self, identity: ResourceIdentity, severity: str, reason: str, message: str) -> None:
        ...


class WorkloadLauncher(abc.ABC):
    @abc.abstractmethod
    async def create_workload(self, job: MarketAuctionJob, decision: Decision) -> None:
        ...


def _translate(exc: ApiException, identity: ResourceIdentity, action: str) -> Exception:
    if exc.status == 404:
        return NotFound(f"{identity} not found")
    return TransientAccessError(f"{action} {identity} failed: {exc.status} {exc.reason}")


class KubernetesAuctionAccessor(AuctionAccessor):
    def __init__(self, api: client.CustomObjectsApi, resource: ResourceType):
        self.api = api
        self.resource = resource

    async def fetch(self, identity: ResourceIdentity) -> MarketAuctionJob:
        try:
            body = await self.api.get_namespaced_custom_object(
                group=self.resource.group,
                version=self.resource.version,
                namespace=identity.namespace,
                plural=self.resource.plural,
                name=identity.name,
            )
        except ApiException as exc:
            raise _translate(exc, identity, "fetching") from exc
        except _TRANSPORT_ERRORS as exc:
            raise TransientAccessError(f"fetching {identity} failed: {exc!r}") from exc

        logger.debug("fetched %s at resourceVersion=%s", identity,
                     body.get("metadata", {}).get("resourceVersion"))
        return self.resource.model.from_body(body)

    async def update_status(
        self,
        identity: ResourceIdentity,
        status: AuctionStatus,
        resource_version: Optional[str] = None,
    ) -> None:
        metadata = {"name": identity.name, "namespace": identity.namespace}
        if resource_version:
            # optimistic concurrency: a stale write fails with 409 and is retried
            metadata["resourceVersion"] = resource_version
        body = {
            "apiVersion": self.resource.api_version,
            "kind": self.resource.kind,
            "metadata": metadata,
            "status": status.to_wire(),
        }
        try:
            await self.api.replace_namespaced_custom_object_status(
                group=self.resource.group,
                version=self.resource.version,
                namespace=identity.namespace,
                plural=self.resource.plural,
                name=identity.name,
                body=body,
            )
        except ApiException as exc:
            raise _translate(exc, identity, "updating status of") from exc
        except _TRANSPORT_ERRORS as exc:
            raise TransientAccessError(f"updating status of {identity} failed: {exc!r}") from exc


class KubernetesEventRecorder(EventRecorder):
    """Posts core/v1 Events attached to the auction resource."""

    def __init__(self, api: client.CoreV1Api, resource: ResourceType,
                 component: str = "market-auction-operator"):
        self.api = api
        self.resource = resource
        self.component = component

    async def emit(self, identity: ResourceIdentity, severity: str, reason: str, message: str) -> None:
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = {
            "apiVersion": "v1",
            "kind": "Event",
            "metadata": {"generateName": f"{identity.name}.", "namespace": identity.namespace},
            "involvedObject": {
                "apiVersion": self.resource.api_version,
                "kind": self.resource.kind,
                "name": identity.name,
                "namespace": identity.namespace,
            },
            "type": severity,
            "reason": reason,
            "message": message,
            "source": {"component": self.component},
            "reportingComponent": self.component,
            "firstTimestamp": now,
            "lastTimestamp": now,
            "count": 1,
        }
        await self.api.create_namespaced_event(namespace=identity.namespace, body=body)


class LoggingWorkloadLauncher(WorkloadLauncher):
    """Placeholder hook: announces the workload a scheduled job needs."""

    async def create_workload(self, job: MarketAuctionJob, decision: Decision) -> None:
        logger.info(
            "Job %s scheduled on %s; create the workload %r with %d GPUs there",
            job.identity, decision.cluster_id, job.spec.job_request.name,
            job.spec.job_request.resource_requirements.gpus,
        )
