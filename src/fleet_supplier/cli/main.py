"""Command-line interface for fleet-supplier.

Commands:
    validate    Validate the config file
    discover    List fleet clusters and whether they are in scope
    refresh     Run one reconciliation cycle and print the cluster set
    run         Refresh periodically until interrupted
    serve       Refresh periodically and serve the cluster set over HTTP
"""

from __future__ import annotations

import json
import logging
import sys
import threading

import click

from fleet_supplier import __version__
from fleet_supplier.config import ConfigError, FleetSupplierConfig, load_config
from fleet_supplier.models import ClusterDetails
from fleet_supplier.service import SupplierService, build_service
from fleet_supplier.suppliers.fleet import FleetClusterSupplier

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _load(config_path: str | None) -> FleetSupplierConfig:
    """Load config, exiting with an error message on failure."""
    try:
        return load_config(config_path)
    except (ConfigError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _echo_clusters(clusters: list[ClusterDetails], json_output: bool) -> None:
    redacted = [c.redacted() for c in clusters]
    if json_output:
        click.echo(json.dumps([c.model_dump(mode="json") for c in redacted], indent=2))
        return
    if not redacted:
        click.echo("No clusters available.")
        return
    for c in redacted:
        click.echo(f"  {c.name:<40} {c.url}  [{c.auth_provider or 'none'}]")
    click.echo(f"\n{len(redacted)} cluster(s).")


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level", default="WARNING",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level",
)
def cli(log_level: str) -> None:
    """fleet-supplier: Kubernetes fleet discovery and credential bootstrap."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# --- validate command ---


@cli.command()
@click.option("--config", "config_path", default=None, help="Path to fleet-supplier.yaml")
def validate(config_path: str | None) -> None:
    """Validate the config file."""
    cfg = _load(config_path)
    if cfg.config_path is None:
        click.echo("No config file found to validate.")
        return

    click.echo(click.style("OK", fg="green") + f"  config: {cfg.config_path}")
    click.echo(f"  static clusters: {len(cfg.clusters)}")
    click.echo(f"  fleet instances: {len(cfg.fleet)}")
    for instance in cfg.fleet:
        provider = instance.cluster_provider
        click.echo(
            f"    {instance.display_name:<30} "
            f"refresh={provider.refresh_interval_seconds:g}s "
            f"timeout={provider.cluster_timeout_seconds:g}s"
        )


# --- discover command ---


@cli.command()
@click.option("--config", "config_path", default=None, help="Path to fleet-supplier.yaml")
@click.option("--instance", default=None, help="Only this fleet instance (by name)")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def discover(config_path: str | None, instance: str | None, json_output: bool) -> None:
    """List fleet clusters and whether they would be bootstrapped.

    Performs no changes in any cluster.
    """
    cfg = _load(config_path)
    instances = [i for i in cfg.fleet if instance is None or i.display_name == instance]
    if not instances:
        click.echo("No matching fleet instances configured.", err=True)
        sys.exit(1)

    rows: list[dict[str, str | None]] = []
    for inst in instances:
        supplier = FleetClusterSupplier.from_config(inst)
        for summary in supplier.client.list_clusters():
            if not summary.name or not summary.uid:
                reason: str | None = "missing name or uid"
            else:
                reason = supplier.filter_cluster(summary)
            rows.append({
                "instance": supplier.name,
                "name": summary.name,
                "uid": summary.uid,
                "scope": summary.scope,
                "project_uid": summary.project_uid,
                "state": summary.state,
                "excluded": reason,
            })

    if json_output:
        click.echo(json.dumps(rows, indent=2))
        return

    for row in rows:
        verdict = (
            click.style("include", fg="green") if row["excluded"] is None
            else click.style(f"exclude ({row['excluded']})", fg="yellow")
        )
        click.echo(
            f"  {row['instance']:<20} {row['name'] or '-':<30} "
            f"{row['scope'] or '-':<8} {verdict}"
        )
    click.echo(f"\n{len(rows)} fleet cluster(s).")


# --- refresh command ---


@cli.command()
@click.option("--config", "config_path", default=None, help="Path to fleet-supplier.yaml")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def refresh(config_path: str | None, json_output: bool) -> None:
    """Run one reconciliation cycle and print the combined cluster set."""
    cfg = _load(config_path)
    service = build_service(cfg)

    results = service.refresh_all()
    failed = [name for name, ok in results.items() if not ok]
    for name in failed:
        click.echo(f"Warning: refresh failed for {name}", err=True)

    try:
        clusters = service.combined.get_clusters()
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    _echo_clusters(clusters, json_output)


# --- run / serve commands ---


def _wait_forever(service: SupplierService) -> None:
    service.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        click.echo("Stopping...")
    finally:
        service.stop()


@cli.command()
@click.option("--config", "config_path", default=None, help="Path to fleet-supplier.yaml")
def run(config_path: str | None) -> None:
    """Refresh every fleet instance periodically until interrupted."""
    cfg = _load(config_path)
    service = build_service(cfg)
    if not service.runners:
        click.echo("No fleet instances configured, nothing to refresh.", err=True)
        sys.exit(1)
    click.echo(f"Refreshing {len(service.runners)} fleet instance(s). Ctrl+C to stop.")
    _wait_forever(service)


@cli.command()
@click.option("--config", "config_path", default=None, help="Path to fleet-supplier.yaml")
@click.option("--host", default=None, help="Bind host (default from config)")
@click.option("--port", default=None, type=int, help="Bind port (default from config)")
def serve(config_path: str | None, host: str | None, port: int | None) -> None:
    """Refresh periodically and serve the cluster set over HTTP."""
    try:
        import uvicorn
    except ImportError:
        click.echo(
            "Error: the HTTP server requires extra dependencies. Install with:\n"
            "  pip install fleet-supplier[server]",
            err=True,
        )
        sys.exit(1)

    from fleet_supplier.server.app import create_app

    cfg = _load(config_path)
    service = build_service(cfg)
    app = create_app(service)

    host = host or cfg.server.host
    port = port or cfg.server.port
    click.echo(f"Serving clusters at http://{host}:{port}/api/clusters/")

    service.start()
    try:
        uvicorn.run(app, host=host, port=port, log_level="info")
    finally:
        service.stop()


if __name__ == "__main__":
    cli()
