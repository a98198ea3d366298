"""Cluster lifecycle entry points shared by the CLI and the API.

Each call merges the persisted status into the document, runs one
reconcile pass and persists the resulting status whatever the errors.
"""
import logging

from .. import registry
from .infra import get_backend
from .infra.models import Infra
from .infra.pipeline import ReconcileResult
from .infra.provider import InfraProvider

logger = logging.getLogger("kubeinfra.cluster")

DEFAULT_BACKEND = "memory"


def _merge_persisted_status(infra: Infra) -> None:
    persisted = registry.load_status(infra.name)
    if persisted is not None:
        infra.status = persisted
        logger.debug(f"Loaded persisted status for {infra.name}")


def apply_infra(infra: Infra, backend: str = DEFAULT_BACKEND) -> ReconcileResult:
    """Converge the cluster's resources toward its spec."""
    _merge_persisted_status(infra)
    provider = InfraProvider(infra, get_backend(backend))
    logger.info(f"Applying infra {infra.name} with backend {backend}")
    result = provider.apply()
    registry.save_status(infra.name, result.status)
    if result.ok:
        logger.info(f"Infra {infra.name} applied")
    else:
        logger.warning(f"Infra {infra.name} applied with {len(result.errors)} error(s)")
    return result


def delete_infra(infra: Infra, backend: str = DEFAULT_BACKEND) -> ReconcileResult:
    """Tear the cluster's resources down and drop its status once nothing is left."""
    _merge_persisted_status(infra)
    infra.mark_for_deletion()
    provider = InfraProvider(infra, get_backend(backend))
    logger.info(f"Deleting infra {infra.name} with backend {backend}")
    result = provider.reconcile()
    if registry.is_empty_status(result.status):
        registry.remove_status(infra.name)
        logger.info(f"Infra {infra.name} deleted")
    else:
        registry.save_status(infra.name, result.status)
        logger.warning(f"Infra {infra.name} partially deleted, re-run delete to converge")
    return result
