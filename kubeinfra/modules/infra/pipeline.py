"""Ordered action pipelines with idempotency gates.

A pipeline is an explicit list of Action descriptors. Actions bound to a
ResourceName are gated by the resource's status field: create actions are
skipped when the field is already set, delete actions are skipped (with a
warning) when it is already empty.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ...exceptions import ReconcileError
from .models import InfraStatus
from .resources import ResourceName

logger = logging.getLogger("kubeinfra.infra.pipeline")


@dataclass(frozen=True)
class Action:
    """One named pipeline step.

    Create actions return the new resource value; delete actions return None.
    Actions without a resource manage their own gating.
    """
    name: str
    func: Callable[[], Optional[str]]
    resource: Optional[ResourceName] = None
    teardown: bool = False


@dataclass
class ActionError:
    action: str
    message: str

    def __str__(self) -> str:
        return f"{self.action}: {self.message}"


@dataclass
class ReconcileResult:
    """Status reached by a pass plus the errors collected on the way."""
    status: InfraStatus
    errors: List[ActionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ReconcileError(self.errors)


def reconcile_resource(status: InfraStatus, resource: ResourceName,
                       create: Callable[[], Optional[str]]) -> None:
    """Run a create action unless the resource already has a status value."""
    current = resource.value_of(status)
    if current:
        logger.debug(f"using resource status value {resource.value}: {current}")
        return
    try:
        value = create()
    except Exception as e:
        logger.error(f"reconcile resource {resource.value} failed err: {e}")
        raise
    if value:
        resource.set_value(status, value)
    if resource.value_of(status):
        logger.info(f"create resource success {resource.value}: {resource.value_of(status)}")


def delete_resource(status: InfraStatus, resource: ResourceName,
                    delete: Callable[[], Optional[str]]) -> None:
    """Run a delete action if the resource has a status value, then clear it."""
    current = resource.value_of(status)
    if not current:
        logger.warning(f"delete resource not exists {resource.value}")
        return
    try:
        delete()
    except Exception as e:
        logger.error(f"delete resource {resource.value} failed err: {e}")
        raise
    resource.clear(status)
    logger.info(f"delete resource success {resource.value}: {current}")


def run_pipeline(status: InfraStatus, actions: List[Action]) -> List[ActionError]:
    """Run actions strictly in order; a failed step is recorded and the next one runs."""
    errors: List[ActionError] = []
    for action in actions:
        try:
            if action.resource is None:
                action.func()
            elif action.teardown:
                delete_resource(status, action.resource, action.func)
            else:
                reconcile_resource(status, action.resource, action.func)
        except Exception as e:
            logger.warning(f"actionName: {action.name}, err: {e}, skip it")
            errors.append(ActionError(action.name, str(e)))
    return errors
