"""Defaulting of infra documents before a reconcile pass."""
import logging
from typing import Any, Dict

from .hosts import seed_status_entries
from .models import NO_SPOT, SPOT_AS_PRICE_GO, Infra

logger = logging.getLogger("kubeinfra.infra.defaults")


def default_infra(infra: Infra) -> Infra:
    """Fill status fields derived from the spec.

    The spot strategy follows the seize flag, and every spec host group gets
    an empty status entry if it has none yet.
    """
    if infra.spec.cluster.is_seize:
        infra.status.cluster.spot_strategy = SPOT_AS_PRICE_GO
    else:
        infra.status.cluster.spot_strategy = NO_SPOT

    for key in seed_status_entries(infra.spec.hosts, infra.status.hosts):
        logger.debug(f"seeded status entry for roles {key}")
    return infra


def default_infra_document(name: str = "default") -> Dict[str, Any]:
    """A starter infra document: one master and one node."""
    return {
        "name": name,
        "spec": {
            "credential": {
                "access_key": "",
                "access_secret": "",
            },
            "cluster": {
                "region_ids": ["cn-hangzhou"],
                "network_cidr": "172.16.0.0/12",
                "subnet_cidr": "172.16.0.0/24",
                "is_seize": False,
                "ingress_ports": ["22/22", "6443/6443"],
            },
            "hosts": [
                {"roles": ["master"], "count": 1, "instance_type": "ecs.c5.large", "disk_size": 40},
                {"roles": ["node"], "count": 1, "instance_type": "ecs.c5.large", "disk_size": 40},
            ],
        },
    }
