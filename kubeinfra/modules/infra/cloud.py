"""Cloud action interface consumed by the reconciler.

The reconciler never talks to a vendor SDK directly. A backend implements
CloudClient and is looked up by name from the backend registry; the
factory receives the account credential and the chosen region.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from ...exceptions import KubeInfraError
from .models import Credential

logger = logging.getLogger("kubeinfra.infra.cloud")

INSTANCE_RUNNING = "Running"


@dataclass
class InstanceInfo:
    """A compute instance as reported by the cloud."""
    instance_id: str
    private_ip: str = ""
    public_ip: str = ""
    status: str = ""
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class InstanceRequest:
    """Parameters for creating instances of one host group."""
    cluster: str
    roles: List[str]
    count: int
    instance_type: str
    image_id: str
    disk_size: int
    password: str
    zone_id: str
    subnet_id: str
    security_group_id: str
    spot_strategy: str


class CloudClient(ABC):
    """Create/list/delete calls for one account in one region."""

    @abstractmethod
    def list_zones(self) -> List[str]:
        """Availability zones usable in the client's region."""

    @abstractmethod
    def create_network(self, name: str, cidr: str) -> str:
        """Create a network and return its id."""

    @abstractmethod
    def delete_network(self, network_id: str) -> None:
        pass

    @abstractmethod
    def create_subnet(self, network_id: str, zone_id: str, cidr: str) -> str:
        """Create a subnet and return its id."""

    @abstractmethod
    def delete_subnet(self, subnet_id: str) -> None:
        pass

    @abstractmethod
    def create_security_group(self, network_id: str, ingress_ports: List[str]) -> str:
        """Create a security group allowing the given port ranges and return its id."""

    @abstractmethod
    def delete_security_group(self, security_group_id: str) -> None:
        pass

    @abstractmethod
    def run_instances(self, request: InstanceRequest) -> List[str]:
        """Start request.count instances and return their ids."""

    @abstractmethod
    def list_instances(self, cluster: str, roles: List[str]) -> List[InstanceInfo]:
        """Instances tagged with the cluster name and role set."""

    @abstractmethod
    def delete_instances(self, instance_ids: List[str]) -> None:
        pass

    @abstractmethod
    def allocate_floating_ip(self) -> Tuple[str, str]:
        """Allocate a floating IP and return (id, address)."""

    @abstractmethod
    def associate_floating_ip(self, floating_ip_id: str, instance_id: str) -> None:
        pass

    @abstractmethod
    def release_floating_ip(self, floating_ip_id: str) -> None:
        """Unbind (if bound) and release a floating IP."""


ClientFactory = Callable[[Credential, str], CloudClient]

_BACKENDS: Dict[str, ClientFactory] = {}


def register_backend(name: str, factory: ClientFactory) -> None:
    """Register a CloudClient factory under a backend name."""
    _BACKENDS[name] = factory
    logger.debug(f"Registered cloud backend {name}")


def get_backend(name: str) -> ClientFactory:
    try:
        return _BACKENDS[name]
    except KeyError:
        raise KubeInfraError(
            f"Unknown cloud backend '{name}'. Available: {', '.join(sorted(_BACKENDS)) or 'none'}"
        )


def list_backends() -> List[str]:
    return sorted(_BACKENDS)
