"""Host group diffing.

Host groups are matched between spec and status by role-set identity
(sorted, comma-joined roles), never by position.
"""
from dataclasses import dataclass, field
from typing import List

from .models import Hosts, HostsStatus, MASTER_ROLE, roles_key


@dataclass
class HostGroupDiff:
    """What a pass has to do with each host group identity."""
    reconcile: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    remove: List[str] = field(default_factory=list)


def removal_set(spec_hosts: List[Hosts], status_hosts: List[HostsStatus]) -> List[str]:
    """Role identities present in status but absent from spec, sorted."""
    current = {h.key for h in status_hosts}
    desired = {h.key for h in spec_hosts}
    return sorted(current - desired)


def diff_host_groups(spec_hosts: List[Hosts], status_hosts: List[HostsStatus]) -> HostGroupDiff:
    """Compare spec against status.

    Every spec group is a reconcile target; those without a status entry are
    also listed as missing.
    """
    current = {h.key for h in status_hosts}
    diff = HostGroupDiff(remove=removal_set(spec_hosts, status_hosts))
    for hosts in spec_hosts:
        if hosts.key in diff.reconcile:
            continue
        diff.reconcile.append(hosts.key)
        if hosts.key not in current:
            diff.missing.append(hosts.key)
    return diff


def seed_status_entries(spec_hosts: List[Hosts], status_hosts: List[HostsStatus]) -> List[str]:
    """Append an empty status entry for each spec group that has none. Returns the added keys."""
    added = []
    current = {h.key for h in status_hosts}
    for hosts in spec_hosts:
        if hosts.key in current:
            continue
        status_hosts.append(HostsStatus(roles=sorted(hosts.roles)))
        current.add(hosts.key)
        added.append(hosts.key)
    return added


def find_master0(status_hosts: List[HostsStatus]) -> str:
    """Instance id of the first master, or an empty string."""
    for hosts in status_hosts:
        if MASTER_ROLE in hosts.roles and hosts.ids:
            return hosts.ids[0]
    return ""


def duplicate_keys(groups) -> List[str]:
    """Role identities that occur more than once in a list of groups."""
    seen, duplicates = set(), []
    for group in groups:
        key = roles_key(group.roles)
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates
