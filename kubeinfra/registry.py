"""Persisted infra status, keyed by cluster name."""
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from .config import Config
from .modules.infra.models import InfraStatus

logger = logging.getLogger("kubeinfra.registry")

REGISTRY_FILE = "infra-registry.json"

_lock = threading.Lock()


def registry_path() -> Path:
    return Path(Config.STATE_DIR).expanduser() / REGISTRY_FILE


def load_registry() -> Dict[str, dict]:
    path = registry_path()
    if path.exists():
        with open(path, "r") as f:
            return json.load(f)
    return {}


def save_registry(data: Dict[str, dict]) -> None:
    """Write the registry atomically (temp file + rename)."""
    path = registry_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".registry-")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise


def load_status(name: str) -> Optional[InfraStatus]:
    entry = load_registry().get(name)
    return InfraStatus.from_dict(entry) if entry is not None else None


def save_status(name: str, status: InfraStatus) -> None:
    with _lock:
        data = load_registry()
        data[name] = status.to_dict()
        save_registry(data)
    logger.debug(f"Saved status for {name} to {registry_path()}")


def remove_status(name: str) -> bool:
    with _lock:
        data = load_registry()
        if data.pop(name, None) is None:
            return False
        save_registry(data)
    logger.debug(f"Removed status for {name}")
    return True


def is_empty_status(status: InfraStatus) -> bool:
    """True once teardown has left nothing behind."""
    cluster = status.cluster
    return not (status.hosts or cluster.network_id or cluster.subnet_id
                or cluster.security_group_id or cluster.floating_ip_id
                or cluster.pending_delete_instance_ids)
