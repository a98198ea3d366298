"""Data models for cluster infrastructure: desired spec and observed status."""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

ROLE_SEPARATOR = ","
MASTER_ROLE = "master"

SPOT_AS_PRICE_GO = "SpotAsPriceGo"
NO_SPOT = "NoSpot"


def roles_key(roles: List[str]) -> str:
    """Identity of a host group: its roles sorted and comma-joined."""
    return ROLE_SEPARATOR.join(sorted(roles))


@dataclass
class Credential:
    """Cloud account credential reference."""
    access_key: str = ""
    access_secret: str = ""


@dataclass
class ClusterSpec:
    """Cluster-wide provisioning parameters."""
    region_ids: List[str] = field(default_factory=list)
    network_cidr: str = "172.16.0.0/12"
    subnet_cidr: str = "172.16.0.0/24"
    is_seize: bool = False
    ingress_ports: List[str] = field(default_factory=lambda: ["22/22", "6443/6443"])
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class Hosts:
    """A desired host group: machines sharing one role set."""
    roles: List[str]
    count: int = 1
    instance_type: str = "ecs.c5.large"
    image_id: str = ""
    disk_size: int = 40
    password: str = ""

    @property
    def key(self) -> str:
        return roles_key(self.roles)


@dataclass
class InfraSpec:
    """Desired state of one account's resources."""
    credential: Credential = field(default_factory=Credential)
    cluster: ClusterSpec = field(default_factory=ClusterSpec)
    hosts: List[Hosts] = field(default_factory=list)


@dataclass
class ClusterStatus:
    """Identifiers of the cluster-wide resources created so far."""
    region_id: str = ""
    zone_id: str = ""
    network_id: str = ""
    subnet_id: str = ""
    security_group_id: str = ""
    floating_ip_id: str = ""
    floating_ip_address: str = ""
    spot_strategy: str = ""
    pending_delete_instance_ids: str = ""


@dataclass
class HostsStatus:
    """Observed state of a host group."""
    roles: List[str]
    ids: List[str] = field(default_factory=list)
    ips: List[str] = field(default_factory=list)
    ready: bool = False
    error: str = ""

    @property
    def key(self) -> str:
        return roles_key(self.roles)


@dataclass
class InfraStatus:
    """Observed/achieved state, persisted by the caller between passes."""
    cluster: ClusterStatus = field(default_factory=ClusterStatus)
    hosts: List[HostsStatus] = field(default_factory=list)

    def find_hosts_by_roles(self, roles: List[str]) -> int:
        """Index of the status entry for a role set, or -1."""
        return self.find_hosts_by_roles_string(roles_key(roles))

    def find_hosts_by_roles_string(self, key: str) -> int:
        for index, hosts in enumerate(self.hosts):
            if hosts.key == key:
                return index
        return -1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "InfraStatus":
        data = data or {}
        return cls(
            cluster=ClusterStatus(**(data.get("cluster") or {})),
            hosts=[HostsStatus(**h) for h in data.get("hosts") or []],
        )


@dataclass
class Infra:
    """A named infra document: spec, status and lifecycle metadata."""
    name: str
    spec: InfraSpec = field(default_factory=InfraSpec)
    status: InfraStatus = field(default_factory=InfraStatus)
    deletion_timestamp: Optional[str] = None

    @property
    def deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def mark_for_deletion(self) -> None:
        if self.deletion_timestamp is None:
            self.deletion_timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "spec": asdict(self.spec),
            "status": self.status.to_dict(),
        }
        if self.deletion_timestamp is not None:
            data["deletion_timestamp"] = self.deletion_timestamp
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Infra":
        spec = data.get("spec") or {}
        return cls(
            name=data["name"],
            spec=InfraSpec(
                credential=Credential(**(spec.get("credential") or {})),
                cluster=ClusterSpec(**(spec.get("cluster") or {})),
                hosts=[Hosts(**h) for h in spec.get("hosts") or []],
            ),
            status=InfraStatus.from_dict(data.get("status")),
            deletion_timestamp=data.get("deletion_timestamp"),
        )
