"""Infrastructure reconciler.

InfraProvider drives one account's resources (network, subnet, security
group, instances, floating IP) from the observed status toward the spec.
Every pass is safe to repeat: create steps are gated on the status value
of their resource, and a failed step is recorded without aborting the
steps after it. The caller persists ``infra.status`` after each pass,
whatever the returned errors.
"""
import logging
import random
from typing import List, Optional

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ...config import Config
from ...exceptions import CloudError, InfraValidationError, ReconcileError
from .cloud import INSTANCE_RUNNING, ClientFactory, CloudClient, InstanceInfo, InstanceRequest
from .defaults import default_infra
from .hosts import diff_host_groups, find_master0
from .models import Hosts, HostsStatus, Infra
from .pipeline import Action, ActionError, ReconcileResult, delete_resource, run_pipeline
from .resources import ResourceName

logger = logging.getLogger("kubeinfra.infra.provider")

# Action names
GET_ZONE_ID = "GetAvailableZoneID"
CREATE_NETWORK = "CreateNetwork"
CREATE_SUBNET = "CreateSubnet"
CREATE_SECURITY_GROUP = "CreateSecurityGroup"
RECONCILE_INSTANCE = "ReconcileInstance"
BIND_FLOATING_IP = "BindFloatingIP"
RELEASE_FLOATING_IP = "ReleaseFloatingIP"
CLEAR_INSTANCES = "ClearInstances"
DELETE_SUBNET = "DeleteSubnet"
DELETE_SECURITY_GROUP = "DeleteSecurityGroup"
DELETE_NETWORK = "DeleteNetwork"
NEW_CLIENT = "NewClient"


class InstancesNotReady(CloudError):
    """Raised while a host group has fewer running instances than requested."""
    pass


class InfraProvider:
    """Reconciles an Infra document against a cloud account.

    Args:
        infra: The document to converge; its status is updated in place
        client_factory: Builds a CloudClient from the credential and region
    """

    def __init__(self, infra: Infra, client_factory: ClientFactory):
        self.infra = infra
        self.client_factory = client_factory
        self._client: Optional[CloudClient] = None

    @property
    def status(self):
        return self.infra.status

    @property
    def client(self) -> CloudClient:
        if self._client is None:
            self.new_client()
        return self._client

    def new_client(self) -> CloudClient:
        """Pick the region (once, then persisted in status) and build the cloud client."""
        cluster_status = self.status.cluster
        if not cluster_status.region_id:
            region_ids = self.infra.spec.cluster.region_ids
            if not region_ids:
                raise InfraValidationError("spec.cluster.region_ids is empty")
            cluster_status.region_id = random.choice(region_ids)
        logger.info(f"using regionID is {cluster_status.region_id}")
        self._client = self.client_factory(self.infra.spec.credential, cluster_status.region_id)
        return self._client

    def apply(self) -> ReconcileResult:
        default_infra(self.infra)
        return self.reconcile()

    def reconcile(self) -> ReconcileResult:
        """Run one pass: teardown when deletion is requested, the create pipeline otherwise."""
        if self.infra.deleting:
            logger.info("DeletionTimestamp not nil Clear Infra")
            return self.clear_cluster()

        try:
            self.new_client()
        except Exception as e:
            logger.error(f"failed to create cloud client: {e}")
            return ReconcileResult(self.status, [ActionError(NEW_CLIENT, str(e))])

        errors = run_pipeline(self.status, self.create_actions())
        return ReconcileResult(self.status, errors)

    def clear_cluster(self) -> ReconcileResult:
        """Best-effort teardown; every step runs whatever happened to the previous one."""
        try:
            self.new_client()
        except Exception as e:
            logger.error(f"failed to create cloud client: {e}")
            return ReconcileResult(self.status, [ActionError(NEW_CLIENT, str(e))])

        errors = run_pipeline(self.status, self.teardown_actions())
        return ReconcileResult(self.status, errors)

    def create_actions(self) -> List[Action]:
        return [
            Action(GET_ZONE_ID, self.get_available_zone_id, ResourceName.ZONE_ID),
            Action(CREATE_NETWORK, self.create_network, ResourceName.NETWORK_ID),
            Action(CREATE_SUBNET, self.create_subnet, ResourceName.SUBNET_ID),
            Action(CREATE_SECURITY_GROUP, self.create_security_group, ResourceName.SECURITY_GROUP_ID),
            Action(RECONCILE_INSTANCE, self.reconcile_host_groups),
            Action(BIND_FLOATING_IP, self.bind_floating_ip_for_master0, ResourceName.FLOATING_IP_ID),
        ]

    def teardown_actions(self) -> List[Action]:
        return [
            Action(RELEASE_FLOATING_IP, self.release_floating_ip, ResourceName.FLOATING_IP_ID, teardown=True),
            Action(CLEAR_INSTANCES, self.clear_instances),
            Action(DELETE_SUBNET, self.delete_subnet, ResourceName.SUBNET_ID, teardown=True),
            Action(DELETE_SECURITY_GROUP, self.delete_security_group, ResourceName.SECURITY_GROUP_ID, teardown=True),
            Action(DELETE_NETWORK, self.delete_network, ResourceName.NETWORK_ID, teardown=True),
        ]

    def _require(self, resource: ResourceName) -> str:
        value = resource.value_of(self.status)
        if not value:
            raise CloudError(f"{resource.value} is not available yet")
        return value

    # Create actions

    def get_available_zone_id(self) -> str:
        zones = self.client.list_zones()
        if not zones:
            raise CloudError(f"no available zone in region {self.status.cluster.region_id}")
        return random.choice(zones)

    def create_network(self) -> str:
        return self.client.create_network(self.infra.name, self.infra.spec.cluster.network_cidr)

    def create_subnet(self) -> str:
        network_id = self._require(ResourceName.NETWORK_ID)
        zone_id = self._require(ResourceName.ZONE_ID)
        return self.client.create_subnet(network_id, zone_id, self.infra.spec.cluster.subnet_cidr)

    def create_security_group(self) -> str:
        network_id = self._require(ResourceName.NETWORK_ID)
        return self.client.create_security_group(network_id, self.infra.spec.cluster.ingress_ports)

    def reconcile_host_groups(self) -> None:
        """Converge every spec host group, then delete groups that left the spec."""
        error_msgs: List[str] = []
        diff = diff_host_groups(self.infra.spec.hosts, self.status.hosts)
        desired = {h.key: h for h in self.infra.spec.hosts}
        for key in diff.reconcile:
            if key in diff.missing:
                error_msgs.append(f"infra status not found in role tag: {key}")
                continue
            hosts = desired[key]
            hosts_status = self.status.hosts[self.status.find_hosts_by_roles_string(key)]
            try:
                self.reconcile_instances(hosts, hosts_status)
            except Exception as e:
                logger.error(f"reconcile instances for roles {hosts.key} failed: {e}")
                hosts_status.ready = False
                hosts_status.error = str(e)
                error_msgs.append(str(e))
            else:
                hosts_status.ready = True
                hosts_status.error = ""

        try:
            self.remove_host_groups(diff.remove)
        except Exception as e:
            error_msgs.append(str(e))

        if error_msgs:
            raise ReconcileError(error_msgs)

    def remove_host_groups(self, keys: List[str]) -> None:
        """Delete the instances of removed groups with one call and drop their status entries."""
        pending = ResourceName.PENDING_DELETE_INSTANCE_IDS
        instance_ids = [i for i in pending.value_of(self.status).split(",") if i]
        for key in keys:
            hosts_status = self.status.hosts[self.status.find_hosts_by_roles_string(key)]
            tagged = [i.instance_id for i in self._list_instances(hosts_status.roles)]
            instance_ids.extend(i for i in hosts_status.ids + tagged if i not in instance_ids)

        remaining = [h for h in self.status.hosts if h.key not in keys]
        if keys:
            logger.info(f"removing host groups: {' '.join(keys)}")
        if instance_ids:
            pending.set_value(self.status, ",".join(instance_ids))
            try:
                delete_resource(self.status, pending, lambda: self.client.delete_instances(instance_ids))
            finally:
                self.status.hosts = remaining
        else:
            self.status.hosts = remaining

    def reconcile_instances(self, hosts: Hosts, hosts_status: HostsStatus) -> None:
        """Scale one host group to its desired count and record ids and IPs."""
        instances = self._list_instances(hosts.roles)
        current = len(instances)
        if current < hosts.count:
            logger.info(f"creating {hosts.count - current} instances for roles {hosts.key}")
            self.client.run_instances(self._instance_request(hosts, hosts.count - current))
        elif current > hosts.count:
            surplus = [i.instance_id for i in instances[hosts.count:]]
            logger.info(f"deleting surplus instances for roles {hosts.key}: {','.join(surplus)}")
            self.client.delete_instances(surplus)

        try:
            instances = self.wait_for_instances(hosts)
        except InstancesNotReady:
            # keep ids of instances that exist but are not running yet
            self._record_instances(hosts_status, self._list_instances(hosts.roles))
            raise
        self._record_instances(hosts_status, instances)

    @staticmethod
    def _record_instances(hosts_status: HostsStatus, instances: List[InstanceInfo]) -> None:
        hosts_status.ids = [i.instance_id for i in instances]
        hosts_status.ips = [i.private_ip for i in instances]

    def wait_for_instances(self, hosts: Hosts) -> List[InstanceInfo]:
        """Poll until the group has exactly its desired count of running instances with an IP."""
        retrying = Retrying(
            stop=stop_after_attempt(Config.MAX_RETRIES),
            wait=wait_fixed(Config.RETRY_DELAY),
            retry=retry_if_exception_type(InstancesNotReady),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                instances = self._list_instances(hosts.roles)
                ready = [i for i in instances if i.status == INSTANCE_RUNNING and i.private_ip]
                if len(instances) != hosts.count or len(ready) != hosts.count:
                    raise InstancesNotReady(
                        f"roles {hosts.key}: {len(ready)}/{hosts.count} instances running"
                    )
        return instances

    def _list_instances(self, roles: List[str]) -> List[InstanceInfo]:
        instances = self.client.list_instances(self.infra.name, roles)
        return sorted(instances, key=lambda i: i.instance_id)

    def _instance_request(self, hosts: Hosts, count: int) -> InstanceRequest:
        cluster_status = self.status.cluster
        return InstanceRequest(
            cluster=self.infra.name,
            roles=sorted(hosts.roles),
            count=count,
            instance_type=hosts.instance_type,
            image_id=hosts.image_id,
            disk_size=hosts.disk_size,
            password=hosts.password,
            zone_id=self._require(ResourceName.ZONE_ID),
            subnet_id=self._require(ResourceName.SUBNET_ID),
            security_group_id=self._require(ResourceName.SECURITY_GROUP_ID),
            spot_strategy=cluster_status.spot_strategy,
        )

    def bind_floating_ip_for_master0(self) -> str:
        master0 = find_master0(self.status.hosts)
        if not master0:
            raise CloudError("no master instance to bind a floating ip to")
        eip_id, address = self.client.allocate_floating_ip()
        try:
            self.client.associate_floating_ip(eip_id, master0)
        except Exception:
            logger.error(f"binding floating ip {eip_id} to {master0} failed, releasing it")
            self.client.release_floating_ip(eip_id)
            raise
        self.status.cluster.floating_ip_address = address
        logger.info(f"bound floating ip {address} to master0 {master0}")
        return eip_id

    # Teardown actions

    def release_floating_ip(self) -> None:
        self.client.release_floating_ip(self.status.cluster.floating_ip_id)

    def clear_instances(self) -> None:
        """Delete every instance the cloud still reports for the status host groups."""
        pending = ResourceName.PENDING_DELETE_INSTANCE_IDS
        instance_ids = [i for i in pending.value_of(self.status).split(",") if i]
        lookup_errors: List[str] = []
        for hosts_status in self.status.hosts:
            try:
                instances = self.client.list_instances(self.infra.name, hosts_status.roles)
            except Exception as e:
                logger.error(f"get {hosts_status.key} instanceInfo failed {e}")
                lookup_errors.append(f"{hosts_status.key}: {e}")
                continue
            instance_ids.extend(i.instance_id for i in instances if i.instance_id not in instance_ids)

        if instance_ids:
            pending.set_value(self.status, ",".join(instance_ids))
        delete_resource(self.status, pending, lambda: self.client.delete_instances(instance_ids))

        if lookup_errors:
            raise CloudError("; ".join(lookup_errors))
        self.status.hosts = []

    def delete_subnet(self) -> None:
        self.client.delete_subnet(self.status.cluster.subnet_id)

    def delete_security_group(self) -> None:
        self.client.delete_security_group(self.status.cluster.security_group_id)

    def delete_network(self) -> None:
        self.client.delete_network(self.status.cluster.network_id)
