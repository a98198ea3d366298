"""Load, validate and dump infra documents (YAML)."""
import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from jsonschema import ValidationError, validate

from ...exceptions import InfraValidationError
from .hosts import duplicate_keys
from .models import Hosts, Infra

logger = logging.getLogger("kubeinfra.infra.document")

HOSTS_SCHEMA = {
    "type": "object",
    "properties": {
        "roles": {"type": "array", "items": {"type": "string"}, "minItems": 1},
        "count": {"type": "integer", "minimum": 0},
        "instance_type": {"type": "string"},
        "image_id": {"type": "string"},
        "disk_size": {"type": "integer", "minimum": 1},
        "password": {"type": "string"},
    },
    "required": ["roles", "count"],
    "additionalProperties": False,
}

STATUS_SCHEMA = {
    "type": "object",
    "properties": {
        "cluster": {
            "type": "object",
            "properties": {
                name: {"type": "string"}
                for name in (
                    "region_id", "zone_id", "network_id", "subnet_id", "security_group_id",
                    "floating_ip_id", "floating_ip_address", "spot_strategy",
                    "pending_delete_instance_ids",
                )
            },
            "additionalProperties": False,
        },
        "hosts": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "roles": {"type": "array", "items": {"type": "string"}, "minItems": 1},
                    "ids": {"type": "array", "items": {"type": "string"}},
                    "ips": {"type": "array", "items": {"type": "string"}},
                    "ready": {"type": "boolean"},
                    "error": {"type": "string"},
                },
                "required": ["roles"],
                "additionalProperties": False,
            },
        },
    },
    "additionalProperties": False,
}

INFRA_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "deletion_timestamp": {"type": ["string", "null"]},
        "spec": {
            "type": "object",
            "properties": {
                "credential": {
                    "type": "object",
                    "properties": {
                        "access_key": {"type": "string"},
                        "access_secret": {"type": "string"},
                    },
                    "additionalProperties": False,
                },
                "cluster": {
                    "type": "object",
                    "properties": {
                        "region_ids": {"type": "array", "items": {"type": "string"}, "minItems": 1},
                        "network_cidr": {"type": "string"},
                        "subnet_cidr": {"type": "string"},
                        "is_seize": {"type": "boolean"},
                        "ingress_ports": {"type": "array", "items": {"type": "string"}},
                        "annotations": {"type": "object"},
                    },
                    "required": ["region_ids"],
                    "additionalProperties": False,
                },
                "hosts": {"type": "array", "items": HOSTS_SCHEMA},
            },
            "required": ["cluster", "hosts"],
        },
        "status": STATUS_SCHEMA,
    },
    "required": ["name", "spec"],
}


def validate_infra_document(data: Dict[str, Any]) -> None:
    """Validate a raw infra document; raises InfraValidationError."""
    try:
        validate(instance=data, schema=INFRA_SCHEMA)
    except ValidationError as ve:
        location = "/".join(str(p) for p in ve.absolute_path) or "<root>"
        raise InfraValidationError(f"{location}: {ve.message}")

    duplicates = duplicate_keys([Hosts(**h) for h in data["spec"]["hosts"]])
    if duplicates:
        raise InfraValidationError(f"spec/hosts: duplicate role sets: {', '.join(duplicates)}")


def parse_infra(data: Dict[str, Any]) -> Infra:
    validate_infra_document(data)
    return Infra.from_dict(data)


def load_infra(path: Union[str, Path]) -> Infra:
    """Read and validate an infra YAML file."""
    path = Path(path).expanduser()
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InfraValidationError(f"{path}: expected a mapping at the top level")
    logger.debug(f"Loaded infra document from {path}")
    return parse_infra(data)


def dump_infra(infra: Infra) -> str:
    return yaml.safe_dump(infra.to_dict(), default_flow_style=False, sort_keys=False)
