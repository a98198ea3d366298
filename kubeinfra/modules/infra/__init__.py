"""
Cloud infrastructure reconciliation.
"""
from .cloud import CloudClient, InstanceInfo, InstanceRequest, get_backend, list_backends, register_backend
from .defaults import default_infra, default_infra_document
from .document import dump_infra, load_infra, parse_infra, validate_infra_document
from .hosts import diff_host_groups, removal_set
from .memory import MemoryCloud, memory_client
from .models import ClusterSpec, ClusterStatus, Credential, Hosts, HostsStatus, Infra, InfraSpec, InfraStatus, roles_key
from .pipeline import Action, ActionError, ReconcileResult
from .provider import InfraProvider
from .resources import ResourceName

__all__ = [
    'CloudClient',
    'InstanceInfo',
    'InstanceRequest',
    'get_backend',
    'list_backends',
    'register_backend',
    'default_infra',
    'default_infra_document',
    'dump_infra',
    'load_infra',
    'parse_infra',
    'validate_infra_document',
    'diff_host_groups',
    'removal_set',
    'MemoryCloud',
    'memory_client',
    'ClusterSpec',
    'ClusterStatus',
    'Credential',
    'Hosts',
    'HostsStatus',
    'Infra',
    'InfraSpec',
    'InfraStatus',
    'roles_key',
    'Action',
    'ActionError',
    'ReconcileResult',
    'InfraProvider',
    'ResourceName',
]
