"""
File distribution over SSH/SFTP with MD5 verification.

Every per-file operation is idempotent: a remote file whose MD5 already
matches the source is left alone, a stale one is removed and copied again,
and a copy only counts as successful once the remote MD5 matches.
Distribution fans out one job per host on a thread pool and returns after
all of them finish.
"""
import io
import logging
import os
import posixpath
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from ..config import Config
from ..exceptions import KubeInfraError, TransferError
from .checksum import checksums_match, md5_bytes, md5_file, remote_md5
from .download import resolve_artifact
from .ssh import SSHConfig, open_session

logger = logging.getLogger("kubeinfra.scp")

ONE_KB = 1024
ONE_MB = 1024 * 1024

Source = Union[str, bytes]
SessionFactory = Callable[[str, SSHConfig], object]


@dataclass
class TransferResult:
    """Outcome of putting one file on one host."""
    host: str
    remote_path: str
    success: bool = False
    transferred: bool = False
    bytes_sent: int = 0
    error: str = ""


@dataclass
class TransferJob:
    """One host's share of a distribution."""
    host: str
    source: Source
    destination: str
    checksum: str = ""
    checksums: Dict[str, str] = field(default_factory=dict)
    before: Optional[str] = None
    after: Optional[str] = None


@dataclass
class DistributionReport:
    location: str
    results: List[TransferResult] = field(default_factory=list)

    @property
    def failed(self) -> List[TransferResult]:
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        return not self.failed

    def failed_hosts(self) -> List[str]:
        return sorted({r.host for r in self.failed})


def to_size(total: int) -> Tuple[float, str]:
    """Human-scaled size: KB below one megabyte, MB from there on."""
    if total < ONE_MB:
        return total / ONE_KB, "KB"
    return total / ONE_MB, "MB"


def stream_copy(host: str, src, dst, label: str, chunk_size: Optional[int] = None) -> int:
    """Copy src to dst in fixed-size chunks, in order. Returns bytes written."""
    chunk_size = chunk_size or Config.TRANSFER_CHUNK_SIZE
    total = 0
    for chunk in iter(lambda: src.read(chunk_size), b''):
        dst.write(chunk)
        length = len(chunk)
        total += length
        if length < ONE_MB:
            speed, unit = length // ONE_KB, "KB"
        else:
            speed, unit = length // ONE_MB, "MB"
        total_length, total_unit = to_size(total)
        logger.debug(
            f"[ssh][{host}]transfer {label} total size is: {total_length:.2f}{total_unit} ;speed is {speed}{unit}"
        )
    return total


@contextmanager
def open_source(source: Source) -> Iterator:
    if isinstance(source, bytes):
        yield io.BytesIO(source)
    else:
        with open(source, 'rb') as f:
            yield f


def source_checksum(source: Source) -> str:
    return md5_bytes(source) if isinstance(source, bytes) else md5_file(source)


def _label(source: Source, remote_path: str) -> str:
    origin = f"<{len(source)} bytes>" if isinstance(source, bytes) else source
    return f"local [{origin}] to Dst [{remote_path}]"


def copy_file(session, source: Source, remote_path: str) -> int:
    """Write a local file or byte buffer to remote_path. Returns bytes written."""
    with open_source(source) as src, session.open_remote(remote_path, 'wb') as dst:
        return stream_copy(session.host, src, dst, _label(source, remote_path))


def copy_config_file(session, remote_path: str, source: Source) -> int:
    """Push a path or an in-memory buffer (e.g. a rendered config) to a remote path."""
    written = copy_file(session, source, remote_path)
    size, unit = to_size(written)
    logger.info(f"[ssh][{session.host}]transfer total size is: {size:.2f}{unit}")
    return written


def copy_remote_to_local(session, remote_path: str, local_path: str) -> None:
    local_dir = os.path.dirname(os.path.abspath(local_path))
    os.makedirs(local_dir, exist_ok=True)
    session.get(remote_path, local_path)
    logger.info(f"[ssh][{session.host}] fetched {remote_path} to {local_path}")


def copy_for_checksum(session, source: Source, remote_path: str, checksum: str = "") -> TransferResult:
    """Copy and then verify the remote MD5 against the source."""
    checksum = checksum or source_checksum(source)
    result = TransferResult(host=session.host, remote_path=remote_path)
    result.bytes_sent = copy_file(session, source, remote_path)
    result.transferred = True
    remote = remote_md5(session, remote_path)
    logger.debug(f"[ssh]host: {session.host} , remote md5: {remote}")
    if checksums_match(checksum, remote):
        logger.info(f"[ssh][{session.host}] copy {remote_path} md5 validate success")
        result.success = True
    else:
        result.error = f"md5 mismatch: local {checksum}, remote {remote or '<none>'}"
        logger.error(f"[ssh][{session.host}] copy {remote_path} md5 validate failed: {result.error}")
    return result


def sync_file(session, source: Source, remote_path: str, checksum: str = "") -> TransferResult:
    """Make remote_path hold the source content, sending bytes only when needed."""
    checksum = checksum or source_checksum(source)
    if session.exists(remote_path):
        if checksums_match(checksum, remote_md5(session, remote_path)):
            logger.info(f"[ssh][{session.host}] {remote_path} file is exist and ValidateMd5 success")
            return TransferResult(host=session.host, remote_path=remote_path, success=True)
        logger.info(f"[ssh][{session.host}] {remote_path} is stale, removing before copy")
        session.remove(remote_path)
    return copy_for_checksum(session, source, remote_path, checksum)


def tree_checksums(local_dir: str) -> Dict[str, str]:
    """MD5 of every file below local_dir, keyed by its '/'-separated relative path."""
    checksums: Dict[str, str] = {}
    for root, _, files in os.walk(local_dir):
        for name in files:
            local_path = os.path.join(root, name)
            relative = os.path.relpath(local_path, local_dir).replace(os.sep, "/")
            checksums[relative] = md5_file(local_path)
    return checksums


def sync_tree(session, local_dir: str, remote_dir: str,
              checksums: Optional[Dict[str, str]] = None, prefix: str = "") -> List[TransferResult]:
    """Mirror a local directory; directories are created before their children.

    checksums maps relative paths to precomputed MD5s; missing entries are
    computed on the spot.
    """
    checksums = checksums or {}
    results: List[TransferResult] = []
    session.mkdir(remote_dir)
    for name in sorted(os.listdir(local_dir)):
        local_path = os.path.join(local_dir, name)
        remote_path = posixpath.join(remote_dir, name)
        relative = posixpath.join(prefix, name) if prefix else name
        if os.path.isdir(local_path):
            results.extend(sync_tree(session, local_path, remote_path, checksums, relative))
        else:
            results.append(sync_file(session, local_path, remote_path, checksums.get(relative, "")))
    return results


def copy_local_to_remote(session, local_path: str, remote_path: str, checksum: str = "",
                         checksums: Optional[Dict[str, str]] = None) -> List[TransferResult]:
    """Copy a file or a directory tree over one session."""
    if os.path.isdir(local_path):
        return sync_tree(session, local_path, remote_path, checksums)
    return [sync_file(session, local_path, remote_path, checksum)]


def run_hook(session, name: str, command: Optional[str]) -> None:
    if not command:
        return
    logger.debug(f"[{session.host}]please wait for {name} hook")
    code, _, err = session.execute(command)
    if code != 0:
        logger.warning(f"[{session.host}] {name} hook exited {code}: {err.strip()}")


class Distributor:
    """Pushes one artifact to many hosts concurrently.

    Args:
        ssh_config: Credentials used for every host
        session_factory: Opens a session for (host, ssh_config)
        max_workers: Concurrent host jobs; 0/None means one per host
        strict: Raise TransferError after the join when any host failed
    """

    def __init__(
        self,
        ssh_config: SSHConfig,
        session_factory: SessionFactory = open_session,
        max_workers: Optional[int] = None,
        strict: Optional[bool] = None,
    ):
        self.ssh_config = ssh_config
        self.session_factory = session_factory
        self.max_workers = Config.MAX_CONCURRENT_TRANSFERS if max_workers is None else max_workers
        if self.max_workers < 0:
            raise KubeInfraError(f"max_workers must be >= 0, got {self.max_workers}")
        self.strict = Config.STRICT_CHECKSUM if strict is None else strict

    def distribute(self, location: str, hosts: List[str], dst: str,
                   before: Optional[str] = None, after: Optional[str] = None) -> DistributionReport:
        """Resolve location once, then sync it into dst on every host."""
        local_path, checksum = resolve_artifact(location)
        checksums = tree_checksums(local_path) if os.path.isdir(local_path) else {}
        full_path = posixpath.join(dst, os.path.basename(local_path.rstrip(os.sep)))
        jobs = [
            TransferJob(host=host, source=local_path, destination=full_path,
                        checksum=checksum, checksums=checksums, before=before, after=after)
            for host in hosts
        ]
        report = DistributionReport(location=local_path, results=self.run_jobs(jobs))
        return self._finish(report)

    def distribute_bytes(self, data: bytes, hosts: List[str], remote_path: str,
                         before: Optional[str] = None, after: Optional[str] = None) -> DistributionReport:
        """Sync an in-memory buffer to remote_path on every host."""
        checksum = md5_bytes(data)
        jobs = [
            TransferJob(host=host, source=data, destination=remote_path,
                        checksum=checksum, before=before, after=after)
            for host in hosts
        ]
        report = DistributionReport(location=remote_path, results=self.run_jobs(jobs))
        return self._finish(report)

    def _finish(self, report: DistributionReport) -> DistributionReport:
        if report.failed:
            logger.error(f"distribution failed on hosts: {', '.join(report.failed_hosts())}")
            if self.strict:
                raise TransferError(
                    f"distribution of {report.location} failed on {', '.join(report.failed_hosts())}",
                    report.results,
                )
        return report

    def run_jobs(self, jobs: List[TransferJob]) -> List[TransferResult]:
        """Run every job on its own worker and wait for all of them."""
        if not jobs:
            return []
        workers = self.max_workers or len(jobs)
        results: List[TransferResult] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scp") as executor:
            future_to_job = {executor.submit(self.run_job, job): job for job in jobs}
            for future in as_completed(future_to_job):
                job = future_to_job[future]
                try:
                    results.extend(future.result())
                except Exception as e:
                    logger.error(f"[{job.host}] transfer job crashed: {e}", exc_info=True)
                    results.append(TransferResult(host=job.host, remote_path=job.destination, error=str(e)))
        return results

    def run_job(self, job: TransferJob) -> List[TransferResult]:
        """Per-host unit: mkdir, before hook, idempotent sync, after hook."""
        try:
            with self.session_factory(job.host, self.ssh_config) as session:
                session.mkdir_p(posixpath.dirname(job.destination))
                logger.debug(f"[{job.host}]please wait for mkDstDir")
                run_hook(session, "before", job.before)
                if isinstance(job.source, bytes):
                    results = [sync_file(session, job.source, job.destination, job.checksum)]
                else:
                    results = copy_local_to_remote(session, job.source, job.destination,
                                                   job.checksum, job.checksums)
                run_hook(session, "after", job.after)
                return results
        except (KubeInfraError, OSError) as e:
            logger.error(f"[ssh][{job.host}] copy to {job.destination} failed: {e}")
            return [TransferResult(host=job.host, remote_path=job.destination, error=str(e))]


def copy_files(ssh_config: SSHConfig, location: str, hosts: List[str], dst: str,
               before: Optional[str] = None, after: Optional[str] = None, **kwargs) -> str:
    """Distribute location to dst on all hosts and return the resolved local path.

    Example hook: cd /root && rm -rf kube && tar zxvf kube.tar.gz && cd /root/kube/shell && sh init.sh
    """
    return Distributor(ssh_config, **kwargs).distribute(location, hosts, dst, before, after).location
