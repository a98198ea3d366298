import hashlib

import pytest

from kubeinfra.exceptions import ArtifactError, KubeInfraError, TransferError
from kubeinfra.modules import scp
from kubeinfra.modules.scp import (
    ONE_KB, ONE_MB, Distributor, copy_config_file, copy_files, copy_remote_to_local, to_size,
)
from kubeinfra.modules.ssh import SSHConfig

HOSTS = ["10.0.0.1", "10.0.0.2", "10.0.0.3"]


def distributor(sessions, **kwargs):
    return Distributor(SSHConfig(pk_file=""), session_factory=sessions, **kwargs)


def test_to_size():
    assert to_size(512) == (0.5, "KB")
    assert to_size(ONE_MB - ONE_KB) == (1023.0, "KB")
    assert to_size(2 * ONE_MB) == (2.0, "MB")


def test_distribute_file(sessions, artifact):
    report = distributor(sessions).distribute(str(artifact), HOSTS, "/root")

    assert report.ok
    assert report.location == str(artifact)
    assert sorted(r.host for r in report.results) == HOSTS
    for result in report.results:
        assert result.remote_path == "/root/kube1.18.0.tar.gz"
        assert result.transferred
        assert result.bytes_sent == artifact.stat().st_size
        assert sessions.remote_file(result.host, result.remote_path).read_bytes() == artifact.read_bytes()


def test_second_distribution_sends_nothing(sessions, artifact):
    distributor(sessions).distribute(str(artifact), HOSTS, "/root")
    sessions.bytes_written.clear()

    report = distributor(sessions).distribute(str(artifact), HOSTS, "/root")

    assert report.ok
    assert all(not r.transferred for r in report.results)
    assert sum(sessions.bytes_written.values()) == 0


def test_stale_remote_file_is_replaced(sessions, artifact):
    sessions.put_remote("10.0.0.1", "/root/kube1.18.0.tar.gz", b"old content")

    report = distributor(sessions).distribute(str(artifact), ["10.0.0.1"], "/root")

    result = report.results[0]
    assert result.success and result.transferred
    assert sessions.removed["10.0.0.1"] == ["/root/kube1.18.0.tar.gz"]
    remote = sessions.remote_file("10.0.0.1", "/root/kube1.18.0.tar.gz").read_bytes()
    assert hashlib.md5(remote).hexdigest() == hashlib.md5(artifact.read_bytes()).hexdigest()


def test_unreachable_host_does_not_affect_others(sessions, artifact):
    sessions.unreachable.add("10.0.0.2")

    report = distributor(sessions).distribute(str(artifact), HOSTS, "/root")

    assert not report.ok
    assert report.failed_hosts() == ["10.0.0.2"]
    failed = report.failed[0]
    assert "host unreachable" in failed.error
    for host in ("10.0.0.1", "10.0.0.3"):
        assert sessions.remote_file(host, "/root/kube1.18.0.tar.gz").exists()


def test_strict_raises_after_all_hosts_finish(sessions, artifact):
    sessions.unreachable.add("10.0.0.2")

    with pytest.raises(TransferError) as exc:
        distributor(sessions, strict=True).distribute(str(artifact), HOSTS, "/root")

    assert "10.0.0.2" in str(exc.value)
    assert len(exc.value.results) == 3
    assert sessions.remote_file("10.0.0.3", "/root/kube1.18.0.tar.gz").exists()


def test_checksum_mismatch_after_copy_is_reported(sessions, artifact):
    sessions.corrupt.add("10.0.0.1")

    report = distributor(sessions).distribute(str(artifact), ["10.0.0.1", "10.0.0.2"], "/root")

    assert report.failed_hosts() == ["10.0.0.1"]
    failed = report.failed[0]
    assert failed.transferred
    assert "md5 mismatch" in failed.error


def test_directory_is_mirrored_over_one_session(sessions, tmp_path):
    bundle = tmp_path / "bundle"
    (bundle / "shell").mkdir(parents=True)
    (bundle / "shell" / "init.sh").write_text("echo init\n")
    (bundle / "README").write_text("bundle\n")

    report = distributor(sessions).distribute(str(bundle), ["10.0.0.1"], "/opt")

    assert report.ok
    assert sorted(r.remote_path for r in report.results) == ["/opt/bundle/README", "/opt/bundle/shell/init.sh"]
    assert sessions.opened["10.0.0.1"] == 1
    assert sessions.mkdirs["10.0.0.1"] == ["/opt/bundle", "/opt/bundle/shell"]
    assert sessions.remote_file("10.0.0.1", "/opt/bundle/shell/init.sh").read_text() == "echo init\n"


def test_hooks_run_around_the_copy(sessions, artifact):
    distributor(sessions).distribute(str(artifact), ["10.0.0.1"], "/root",
                                     before="echo before", after="cd /root && tar zxvf kube1.18.0.tar.gz")

    commands = sessions.commands["10.0.0.1"]
    assert commands[0].startswith("mkdir -p")
    assert commands[1] == "echo before"
    assert commands[-1] == "cd /root && tar zxvf kube1.18.0.tar.gz"


def test_bounded_workers(sessions, artifact):
    report = distributor(sessions, max_workers=1).distribute(str(artifact), HOSTS, "/root")
    assert report.ok
    assert len(report.results) == 3


def test_distribute_bytes(sessions):
    data = b"apiVersion: v1\nkind: Config\n"

    report = distributor(sessions).distribute_bytes(data, ["10.0.0.1"], "/etc/kubernetes/admin.conf")

    assert report.ok
    assert sessions.remote_file("10.0.0.1", "/etc/kubernetes/admin.conf").read_bytes() == data


def test_missing_artifact(sessions, tmp_path):
    with pytest.raises(ArtifactError):
        distributor(sessions).distribute(str(tmp_path / "missing.tar.gz"), HOSTS, "/root")
    assert sessions.opened == {}


def test_copy_files_returns_location(sessions, artifact):
    location = copy_files(SSHConfig(pk_file=""), str(artifact), ["10.0.0.1"], "/root", session_factory=sessions)
    assert location == str(artifact)


def test_copy_config_file_and_fetch(sessions, tmp_path):
    session = sessions("10.0.0.1", SSHConfig(pk_file=""))
    session.mkdir_p("/etc/kubeinfra")

    written = copy_config_file(session, "/etc/kubeinfra/config.yaml", b"key: value\n")
    assert written == len(b"key: value\n")

    local = tmp_path / "fetched" / "config.yaml"
    copy_remote_to_local(session, "/etc/kubeinfra/config.yaml", str(local))
    assert local.read_bytes() == b"key: value\n"


def test_directory_checksums_computed_once(sessions, tmp_path, monkeypatch):
    bundle = tmp_path / "bundle"
    (bundle / "shell").mkdir(parents=True)
    (bundle / "shell" / "init.sh").write_text("echo init\n")
    (bundle / "README").write_text("bundle\n")
    hashed = []
    real_md5_file = scp.md5_file

    def counting_md5_file(path, chunk_size=None):
        hashed.append(path)
        return real_md5_file(path, chunk_size)

    monkeypatch.setattr(scp, "md5_file", counting_md5_file)

    report = distributor(sessions).distribute(str(bundle), HOSTS, "/opt")

    assert report.ok
    assert len(report.results) == 6
    assert sorted(hashed) == sorted([str(bundle / "README"), str(bundle / "shell" / "init.sh")])


def test_tree_checksums(tmp_path):
    (tmp_path / "a" / "b").mkdir(parents=True)
    (tmp_path / "a" / "b" / "c.txt").write_bytes(b"c")
    (tmp_path / "top.txt").write_bytes(b"top")

    assert scp.tree_checksums(str(tmp_path)) == {
        "a/b/c.txt": hashlib.md5(b"c").hexdigest(),
        "top.txt": hashlib.md5(b"top").hexdigest(),
    }


def test_negative_max_workers_rejected(sessions):
    with pytest.raises(KubeInfraError):
        distributor(sessions, max_workers=-1)
