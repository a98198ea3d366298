import json
import logging

import typer
import yaml

from kubeinfra import registry
from kubeinfra.exceptions import InfraValidationError
from kubeinfra.logging import redact_sensitive_data
from kubeinfra.modules.cluster import DEFAULT_BACKEND, apply_infra, delete_infra
from kubeinfra.modules.infra import default_infra_document, list_backends, load_infra

app = typer.Typer()
logger = logging.getLogger("kubeinfra.commands.infra")


def _load(path: str):
    try:
        infra = load_infra(path)
    except (OSError, yaml.YAMLError, InfraValidationError) as e:
        typer.echo(f"❌ Invalid infra file {path}: {e}", err=True)
        raise typer.Exit(code=2)
    logger.debug(f"Loaded infra: {redact_sensitive_data(infra.to_dict())}")
    return infra


def _check_backend(backend: str) -> None:
    if backend not in list_backends():
        raise typer.BadParameter(f"unknown backend '{backend}', choose from: {', '.join(list_backends())}")


def _report(result) -> None:
    typer.echo(json.dumps(result.status.to_dict(), indent=2))
    for error in result.errors:
        typer.echo(f"⚠️  {error}", err=True)
    if not result.ok:
        raise typer.Exit(code=1)


@app.command("apply")
def apply_cmd(
    file: str = typer.Option(..., "--file", "-f", help="Infra YAML file"),
    backend: str = typer.Option(DEFAULT_BACKEND, help="Cloud backend"),
):
    """Create or scale the cluster's cloud resources to match the file."""
    _check_backend(backend)
    infra = _load(file)
    typer.echo(f"🚀 Applying infra {infra.name}...")
    _report(apply_infra(infra, backend=backend))
    typer.echo("✅ Infra applied.")


@app.command("delete")
def delete_cmd(
    file: str = typer.Option(..., "--file", "-f", help="Infra YAML file"),
    backend: str = typer.Option(DEFAULT_BACKEND, help="Cloud backend"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Release every cloud resource of the cluster."""
    _check_backend(backend)
    infra = _load(file)
    if not yes and not typer.confirm(f"Are you sure you want to delete infra '{infra.name}'?", default=False):
        typer.echo("❌ Deletion cancelled.")
        raise typer.Exit()
    _report(delete_infra(infra, backend=backend))
    typer.echo("✅ Infra deletion complete.")


@app.command("status")
def status_cmd(name: str = typer.Option(..., help="Infra name")):
    """Show the persisted status of an infra."""
    status = registry.load_status(name)
    if status is None:
        typer.echo(f"🔍 No status recorded for {name}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(status.to_dict(), indent=2))


@app.command("gen")
def gen_cmd(name: str = typer.Option("default", help="Infra name")):
    """Print a default infra document."""
    typer.echo(yaml.safe_dump(default_infra_document(name), default_flow_style=False, sort_keys=False))
