"""Resource names and their accessors over InfraStatus.

Each resource is keyed by a ResourceName; its status field is read and
written through an explicit getter/setter pair so the reconciler can treat
heterogeneous resources uniformly.
"""
from enum import Enum
from typing import Callable, Dict, NamedTuple

from .models import InfraStatus


class ResourceName(str, Enum):
    """Resources tracked in InfraStatus.cluster."""
    ZONE_ID = "ZoneID"
    NETWORK_ID = "NetworkID"
    SUBNET_ID = "SubnetID"
    SECURITY_GROUP_ID = "SecurityGroupID"
    FLOATING_IP_ID = "FloatingIPID"
    PENDING_DELETE_INSTANCE_IDS = "PendingDeleteInstanceIDs"

    def value_of(self, status: InfraStatus) -> str:
        return ACCESSORS[self].get(status)

    def set_value(self, status: InfraStatus, value: str) -> None:
        ACCESSORS[self].set(status, value)

    def clear(self, status: InfraStatus) -> None:
        ACCESSORS[self].set(status, "")


class Accessor(NamedTuple):
    get: Callable[[InfraStatus], str]
    set: Callable[[InfraStatus, str], None]


def _field_accessor(name: str) -> Accessor:
    def getter(status: InfraStatus) -> str:
        return getattr(status.cluster, name)

    def setter(status: InfraStatus, value: str) -> None:
        setattr(status.cluster, name, value)

    return Accessor(getter, setter)


def _floating_ip_setter(status: InfraStatus, value: str) -> None:
    status.cluster.floating_ip_id = value
    if not value:
        status.cluster.floating_ip_address = ""


ACCESSORS: Dict[ResourceName, Accessor] = {
    ResourceName.ZONE_ID: _field_accessor("zone_id"),
    ResourceName.NETWORK_ID: _field_accessor("network_id"),
    ResourceName.SUBNET_ID: _field_accessor("subnet_id"),
    ResourceName.SECURITY_GROUP_ID: _field_accessor("security_group_id"),
    ResourceName.FLOATING_IP_ID: Accessor(
        lambda status: status.cluster.floating_ip_id, _floating_ip_setter
    ),
    ResourceName.PENDING_DELETE_INSTANCE_IDS: _field_accessor("pending_delete_instance_ids"),
}
