"""In-memory cloud backend.

Keeps resources in dictionaries so that reconcile and teardown can be run
without a cloud account (dry runs, tests). Clients are shared per
(access key, region) within a process.
"""
import itertools
import logging
import threading
from typing import Dict, List, Optional, Set, Tuple

from ...exceptions import CloudError
from .cloud import INSTANCE_RUNNING, CloudClient, InstanceInfo, InstanceRequest, register_backend
from .models import Credential, roles_key

logger = logging.getLogger("kubeinfra.infra.memory")

DEFAULT_ZONES = ("zone-a", "zone-b")


class MemoryCloud(CloudClient):
    """CloudClient backed by plain dictionaries.

    Args:
        region: Region the client is bound to
        zones: Availability zones to report
        fail_on: Method names that raise CloudError when called
    """

    def __init__(self, region: str = "memory-1", zones: Optional[List[str]] = None,
                 fail_on: Optional[Set[str]] = None):
        self.region = region
        self.zones = list(zones) if zones is not None else [f"{region}-{z}" for z in DEFAULT_ZONES]
        self.fail_on: Set[str] = set(fail_on or ())
        self.calls: List[str] = []
        self.networks: Dict[str, dict] = {}
        self.subnets: Dict[str, dict] = {}
        self.security_groups: Dict[str, dict] = {}
        self.instances: Dict[str, InstanceInfo] = {}
        self.floating_ips: Dict[str, dict] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise CloudError(f"{name} failed (injected)")

    def _new_id(self, prefix: str) -> str:
        with self._lock:
            return f"{prefix}-{next(self._ids):04d}"

    def list_zones(self) -> List[str]:
        self._call("list_zones")
        return list(self.zones)

    def create_network(self, name: str, cidr: str) -> str:
        self._call("create_network")
        network_id = self._new_id("net")
        self.networks[network_id] = {"name": name, "cidr": cidr}
        return network_id

    def delete_network(self, network_id: str) -> None:
        self._call("delete_network")
        if any(s["network_id"] == network_id for s in self.subnets.values()):
            raise CloudError(f"network {network_id} still has subnets")
        if any(g["network_id"] == network_id for g in self.security_groups.values()):
            raise CloudError(f"network {network_id} still has security groups")
        if self.networks.pop(network_id, None) is None:
            raise CloudError(f"network {network_id} not found")

    def create_subnet(self, network_id: str, zone_id: str, cidr: str) -> str:
        self._call("create_subnet")
        if network_id not in self.networks:
            raise CloudError(f"network {network_id} not found")
        subnet_id = self._new_id("subnet")
        self.subnets[subnet_id] = {"network_id": network_id, "zone_id": zone_id, "cidr": cidr}
        return subnet_id

    def delete_subnet(self, subnet_id: str) -> None:
        self._call("delete_subnet")
        if self.subnets.pop(subnet_id, None) is None:
            raise CloudError(f"subnet {subnet_id} not found")

    def create_security_group(self, network_id: str, ingress_ports: List[str]) -> str:
        self._call("create_security_group")
        if network_id not in self.networks:
            raise CloudError(f"network {network_id} not found")
        group_id = self._new_id("sg")
        self.security_groups[group_id] = {"network_id": network_id, "ports": list(ingress_ports)}
        return group_id

    def delete_security_group(self, security_group_id: str) -> None:
        self._call("delete_security_group")
        if self.security_groups.pop(security_group_id, None) is None:
            raise CloudError(f"security group {security_group_id} not found")

    def run_instances(self, request: InstanceRequest) -> List[str]:
        self._call("run_instances")
        if request.subnet_id not in self.subnets:
            raise CloudError(f"subnet {request.subnet_id} not found")
        ids = []
        for _ in range(request.count):
            instance_id = self._new_id("i")
            number = int(instance_id.split("-")[1])
            self.instances[instance_id] = InstanceInfo(
                instance_id=instance_id,
                private_ip=f"172.16.0.{number % 250 + 2}",
                status=INSTANCE_RUNNING,
                tags={"cluster": request.cluster, "roles": roles_key(request.roles)},
            )
            ids.append(instance_id)
        return ids

    def list_instances(self, cluster: str, roles: List[str]) -> List[InstanceInfo]:
        self._call("list_instances")
        key = roles_key(roles)
        return [
            info for info in self.instances.values()
            if info.tags.get("cluster") == cluster and info.tags.get("roles") == key
        ]

    def delete_instances(self, instance_ids: List[str]) -> None:
        self._call("delete_instances")
        for instance_id in instance_ids:
            self.instances.pop(instance_id, None)
            for eip in self.floating_ips.values():
                if eip["instance_id"] == instance_id:
                    eip["instance_id"] = ""

    def allocate_floating_ip(self) -> Tuple[str, str]:
        self._call("allocate_floating_ip")
        eip_id = self._new_id("eip")
        address = f"47.0.0.{int(eip_id.split('-')[1]) % 250 + 2}"
        self.floating_ips[eip_id] = {"address": address, "instance_id": ""}
        return eip_id, address

    def associate_floating_ip(self, floating_ip_id: str, instance_id: str) -> None:
        self._call("associate_floating_ip")
        if floating_ip_id not in self.floating_ips:
            raise CloudError(f"floating ip {floating_ip_id} not found")
        if instance_id not in self.instances:
            raise CloudError(f"instance {instance_id} not found")
        self.floating_ips[floating_ip_id]["instance_id"] = instance_id
        self.instances[instance_id].public_ip = self.floating_ips[floating_ip_id]["address"]

    def release_floating_ip(self, floating_ip_id: str) -> None:
        self._call("release_floating_ip")
        eip = self.floating_ips.pop(floating_ip_id, None)
        if eip is None:
            raise CloudError(f"floating ip {floating_ip_id} not found")
        instance = self.instances.get(eip["instance_id"])
        if instance is not None:
            instance.public_ip = ""


_CLOUDS: Dict[Tuple[str, str], MemoryCloud] = {}
_CLOUDS_LOCK = threading.Lock()


def memory_client(credential: Credential, region: str) -> MemoryCloud:
    """Backend factory: one shared MemoryCloud per (access key, region)."""
    with _CLOUDS_LOCK:
        key = (credential.access_key, region)
        if key not in _CLOUDS:
            logger.debug(f"Creating in-memory cloud for region {region}")
            _CLOUDS[key] = MemoryCloud(region=region)
        return _CLOUDS[key]


def reset_memory_clouds() -> None:
    with _CLOUDS_LOCK:
        _CLOUDS.clear()


register_backend("memory", memory_client)
