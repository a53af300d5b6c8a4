"""Entrypoint for the market-auction operator."""
import logging
import os
from datetime import timedelta

import kopf
from kubernetes_asyncio import client, config

from .accessor import KubernetesAuctionAccessor, KubernetesEventRecorder, LoggingWorkloadLauncher
from .crd import GROUP, KIND, PLURAL, VERSION
from .errors import TransientAccessError
from .metrics import start_metrics_server
from .models import ResourceIdentity
from .reconciler import Reconciler
from .registry import ResourceRegistry, register_types

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("market-auction")

WATCH_NAMESPACES = [ns.strip() for ns in os.getenv("WATCH_NAMESPACES", "default").split(",") if ns.strip()]
METRICS_PORT = int(os.getenv("METRICS_PORT", "8000"))
RETRY_DELAY_SECONDS = float(os.getenv("RETRY_DELAY_SECONDS", "10"))
SCHEDULING_LEAD_SECONDS = float(os.getenv("SCHEDULING_LEAD_SECONDS", "300"))

# these will be populated on startup():
API_CLIENT: client.ApiClient
RECONCILER: Reconciler


# -----------------------------------------------------------------------------
# Startup: load kube config, wire the reconciler, start metrics
# -----------------------------------------------------------------------------
@kopf.on.startup()
async def startup(**_):
    # 1. Kubernetes client
    if os.getenv("KUBERNETES_SERVICE_HOST"):
        config.load_incluster_config()
    else:
        await config.load_kube_config()
    api_client = client.ApiClient()

    # 2. Resource types
    registry = register_types(ResourceRegistry())
    resource = registry.get(KIND)

    # 3. Reconciler and its collaborators
    reconciler = Reconciler(
        KubernetesAuctionAccessor(client.CustomObjectsApi(api_client), resource),
        KubernetesEventRecorder(client.CoreV1Api(api_client), resource),
        LoggingWorkloadLauncher(),
        lead_time=timedelta(seconds=SCHEDULING_LEAD_SECONDS),
    )

    # 4. Metrics server
    start_metrics_server(METRICS_PORT)
    logger.info("Prometheus metrics at :%d/metrics", METRICS_PORT)

    # expose to handlers
    global API_CLIENT, RECONCILER
    API_CLIENT = api_client
    RECONCILER = reconciler


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_):
    # kopf's own events only for problems; auction events are posted by the reconciler
    settings.posting.level = logging.WARNING
    # status is replaced wholesale by the reconciler and pruned by the CRD schema
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()


@kopf.on.cleanup()
async def cleanup(**_):
    await API_CLIENT.close()


# -----------------------------------------------------------------------------
# MarketAuctionJob handler: run the auction once per job
# -----------------------------------------------------------------------------
@kopf.on.resume(GROUP, VERSION, PLURAL)
@kopf.on.create(GROUP, VERSION, PLURAL)
@kopf.on.update(GROUP, VERSION, PLURAL, field="spec")
async def on_auction_change(namespace, name, **_):
    identity = ResourceIdentity(namespace, name)
    try:
        outcome = await RECONCILER.reconcile(identity)
    except TransientAccessError as exc:
        raise kopf.TemporaryError(f"reconcile of {identity} failed: {exc}", delay=RETRY_DELAY_SECONDS) from exc
    logger.debug("reconciled %s: %s", identity, outcome.value)


def run():
    """Console entry point, equivalent to ``kopf run -m market_auction.main``."""
    kopf.run(namespaces=WATCH_NAMESPACES)
