"""
SSH session management using paramiko.

A session holds one authenticated SSH connection to one host plus a lazily
opened SFTP channel. Sessions are context managers and are closed on every
exit path; they are never shared between hosts.
"""
import logging
import os
import shlex
import socket
from typing import Optional, Tuple

import paramiko
from paramiko.ssh_exception import (
    AuthenticationException,
    NoValidConnectionsError,
    SSHException,
)
from pydantic import BaseModel, Field, field_validator

from ..config import Config
from ..exceptions import RemoteCommandError, SSHConnectionError

logger = logging.getLogger("kubeinfra.ssh")


class SSHConfig(BaseModel):
    """SSH connection configuration."""
    user: str = Field(default="root", description="SSH username")
    password: str = Field(default="", description="Password for password authentication")
    pk_file: str = Field(default="~/.ssh/id_rsa", validate_default=True, description="Path to SSH private key")
    pk_password: str = Field(default="", description="Passphrase of the private key")
    port: int = Field(default=22, description="Default SSH port when a host has none")
    timeout: int = Field(default_factory=lambda: Config.SSH_TIMEOUT,
                         description="Connection timeout in seconds")

    @field_validator('pk_file')
    @classmethod
    def expand_key_path(cls, v: str) -> str:
        """Expand the user home directory in the key path."""
        return os.path.expanduser(v) if v else v


def split_host(host: str, default_port: int = 22) -> Tuple[str, int]:
    """Split 'host' or 'host:port' into its parts."""
    if host.count(":") == 1:
        hostname, port = host.split(":")
        return hostname, int(port)
    return host, default_port


class SSHSession:
    """An authenticated SSH/SFTP session to one host.

    Args:
        host: Remote host, optionally with ':port'
        config: Credentials and connection settings
    """

    def __init__(self, host: str, config: SSHConfig):
        self.host = host
        self.config = config
        self.hostname, self.port = split_host(host, config.port)
        self._client: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._connect()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _connect(self) -> None:
        """Open the SSH connection using password, key file or key plus passphrase."""
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kwargs = {
            'hostname': self.hostname,
            'port': self.port,
            'username': self.config.user,
            'timeout': self.config.timeout,
            'allow_agent': False,
            'look_for_keys': False,
        }
        if self.config.password:
            kwargs['password'] = self.config.password
        if self.config.pk_file and os.path.exists(self.config.pk_file):
            kwargs['key_filename'] = self.config.pk_file
            if self.config.pk_password:
                kwargs['passphrase'] = self.config.pk_password

        logger.debug(f"[ssh][{self.host}] connecting as {self.config.user} on port {self.port}")
        try:
            client.connect(**kwargs)
        except (AuthenticationException, NoValidConnectionsError, SSHException, socket.error) as e:
            client.close()
            raise SSHConnectionError(self.host, f"connect failed: {e}") from e
        self._client = client

    @property
    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            try:
                self._sftp = self._client.open_sftp()
            except SSHException as e:
                raise SSHConnectionError(self.host, f"open sftp failed: {e}") from e
        return self._sftp

    def execute(self, command: str, timeout: Optional[int] = None, check: bool = False) -> Tuple[int, str, str]:
        """Run a command and return (exit code, stdout, stderr)."""
        logger.debug(f"[ssh][{self.host}] exec: {command}")
        try:
            _, stdout, stderr = self._client.exec_command(command, timeout=timeout)
            out = stdout.read().decode('utf-8', errors='replace')
            err = stderr.read().decode('utf-8', errors='replace')
            code = stdout.channel.recv_exit_status()
        except (SSHException, socket.timeout) as e:
            raise SSHConnectionError(self.host, f"exec '{command}' failed: {e}") from e
        if check and code != 0:
            raise RemoteCommandError(self.host, command, code, err)
        return code, out, err

    def exists(self, path: str) -> bool:
        try:
            self.sftp.stat(path)
            return True
        except IOError:
            return False

    def mkdir_p(self, path: str) -> None:
        """Create a directory and its parents; an existing directory is fine."""
        self.execute(f"mkdir -p {shlex.quote(path)} || true")

    def mkdir(self, path: str) -> None:
        """Create one directory over SFTP, ignoring 'already exists'."""
        try:
            self.sftp.mkdir(path)
        except IOError:
            logger.debug(f"[ssh][{self.host}] mkdir {path}: already exists")

    def remove(self, path: str) -> None:
        self.execute(f"rm -f {shlex.quote(path)}", check=True)

    def open_remote(self, path: str, mode: str = 'wb'):
        return self.sftp.open(path, mode)

    def get(self, remote_path: str, local_path: str) -> None:
        self.sftp.get(remote_path, local_path)

    def close(self) -> None:
        if self._sftp is not None:
            try:
                self._sftp.close()
            except (SSHException, OSError) as e:
                logger.debug(f"[ssh][{self.host}] closing sftp: {e}")
            self._sftp = None
        if self._client is not None:
            self._client.close()
            self._client = None


def open_session(host: str, config: SSHConfig) -> SSHSession:
    """Default session factory."""
    return SSHSession(host, config)
