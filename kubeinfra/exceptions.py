"""Exception types raised across kubeinfra."""
from typing import Any, List, Optional


class KubeInfraError(Exception):
    """Base exception for kubeinfra errors."""
    pass


class SSHConnectionError(KubeInfraError):
    """Raised when an SSH session cannot be established or authenticated."""

    def __init__(self, host: str, message: str):
        self.host = host
        super().__init__(f"[ssh][{host}] {message}")


class RemoteCommandError(KubeInfraError):
    """Raised when a remote command exits non-zero and the caller asked to check it."""

    def __init__(self, host: str, command: str, exit_code: int, stderr: str = ""):
        self.host = host
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"[ssh][{host}] command '{command}' exited {exit_code}: {stderr.strip()}")


class TransferError(KubeInfraError):
    """Raised after distribution when checksum verification is strict and some hosts failed."""

    def __init__(self, message: str, results: Optional[List[Any]] = None):
        self.results = results or []
        super().__init__(message)


class ArtifactError(KubeInfraError):
    """Raised when an artifact location cannot be resolved to a local file."""
    pass


class InfraValidationError(KubeInfraError):
    """Raised when an infra document fails schema validation."""
    pass


class CloudError(KubeInfraError):
    """Raised by cloud backends when an API call fails."""
    pass


class ReconcileError(KubeInfraError):
    """Aggregate of the action errors collected during one reconcile or teardown pass."""

    def __init__(self, errors: List[Any]):
        self.errors = list(errors)
        super().__init__(" && ".join(str(e) for e in self.errors))
