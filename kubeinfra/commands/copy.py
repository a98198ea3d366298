import logging
from typing import List, Optional

import typer

from kubeinfra.exceptions import KubeInfraError, TransferError
from kubeinfra.modules.scp import Distributor, copy_remote_to_local
from kubeinfra.modules.ssh import SSHConfig, open_session

app = typer.Typer()
logger = logging.getLogger("kubeinfra.commands.copy")


def _ssh_config(user: str, passwd: str, pk: str, pk_passwd: str, port: int) -> SSHConfig:
    return SSHConfig(user=user, password=passwd, pk_file=pk, pk_password=pk_passwd, port=port)


@app.command("files")
def copy_files_cmd(
    pkg_url: str = typer.Option(..., help="Artifact URL or local path (file or directory)"),
    host: List[str] = typer.Option(..., "--host", help="Target host, repeatable (host or host:port)"),
    dst: str = typer.Option("/root", help="Destination directory on every host"),
    before: Optional[str] = typer.Option(None, help="Command to run on each host before the copy"),
    after: Optional[str] = typer.Option(None, help="Command to run on each host after the copy"),
    user: str = typer.Option("root", help="Servers user name for ssh"),
    passwd: str = typer.Option("", help="Password for ssh"),
    pk: str = typer.Option("~/.ssh/id_rsa", help="Private key for ssh"),
    pk_passwd: str = typer.Option("", help="Private key password for ssh"),
    port: int = typer.Option(22, help="Default ssh port"),
    max_workers: Optional[int] = typer.Option(None, min=0, help="Hosts copied concurrently (0 = all)"),
    strict: Optional[bool] = typer.Option(None, "--strict/--no-strict", help="Fail when any host fails md5 validation"),
):
    """Push an artifact to every host, skipping hosts that already hold it."""
    try:
        distributor = Distributor(
            _ssh_config(user, passwd, pk, pk_passwd, port),
            max_workers=max_workers,
            strict=strict,
        )
        report = distributor.distribute(pkg_url, host, dst, before=before, after=after)
    except TransferError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
    except KubeInfraError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=2)

    for result in sorted(report.results, key=lambda r: (r.host, r.remote_path)):
        mark = "✅" if result.success else "❌"
        action = "copied" if result.transferred else "up to date"
        detail = result.error or action
        typer.echo(f"{mark} {result.host}:{result.remote_path} {detail}")
    typer.echo(report.location)


@app.command("fetch")
def fetch_cmd(
    host: str = typer.Option(..., help="Source host"),
    remote: str = typer.Option(..., help="Remote file path"),
    local: str = typer.Option(..., help="Local destination path"),
    user: str = typer.Option("root", help="Servers user name for ssh"),
    passwd: str = typer.Option("", help="Password for ssh"),
    pk: str = typer.Option("~/.ssh/id_rsa", help="Private key for ssh"),
    pk_passwd: str = typer.Option("", help="Private key password for ssh"),
    port: int = typer.Option(22, help="Default ssh port"),
):
    """Copy a remote file to the local machine."""
    try:
        with open_session(host, _ssh_config(user, passwd, pk, pk_passwd, port)) as session:
            copy_remote_to_local(session, remote, local)
    except (KubeInfraError, OSError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✅ {host}:{remote} -> {local}")
