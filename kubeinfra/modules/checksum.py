"""Content fingerprints for local and remote files.

Both sides use MD5 so digests compare directly; equality of digests is the
only test for "remote copy is current" and "transfer succeeded".
"""
import hashlib
import logging
import shlex
from typing import Optional

from ..config import Config

logger = logging.getLogger("kubeinfra.checksum")


def md5_file(path: str, chunk_size: Optional[int] = None) -> str:
    """MD5 hex digest of a local file, read in chunks."""
    digest = hashlib.md5()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size or Config.TRANSFER_CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


def md5_bytes(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def remote_md5_command(path: str) -> str:
    return f'md5sum {shlex.quote(path)} | cut -d" " -f1'


def remote_md5(session, path: str) -> str:
    """MD5 hex digest of a remote file, or an empty string if it cannot be read."""
    code, out, err = session.execute(remote_md5_command(path))
    if code != 0:
        logger.debug(f"[ssh][{session.host}] md5sum {path} failed: {err.strip()}")
        return ""
    return out.strip()


def checksums_match(local: str, remote: str) -> bool:
    local, remote = (local or "").strip(), (remote or "").strip()
    return bool(local) and local == remote


def validate_checksum(session, local_path: str, remote_path: str, expected: Optional[str] = None) -> bool:
    """Compare a local file (or a known digest) against the remote copy."""
    local = expected or md5_file(local_path)
    remote = remote_md5(session, remote_path)
    logger.debug(f"[ssh][{session.host}] local md5: {local}, remote md5: {remote}")
    return checksums_match(local, remote)
