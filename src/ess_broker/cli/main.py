"""Main CLI entry point for ESS Broker.

Runs the broker verbs from a terminal against the configured control plane:
    ess-broker catalog
    ess-broker provision <instance-id> --service-id <id> --plan-id <id>
    ess-broker deprovision <instance-id>
    ess-broker bind <instance-id> <binding-id>
    ess-broker unbind <instance-id> <binding-id>
    ess-broker update <instance-id>
    ess-broker last-operation <instance-id> --operation <operation-data>
    ess-broker credentials <binding-id>
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from .. import __version__
from ..config import Catalog, ProviderConfig, load_catalog, load_config
from ..provider import Provider

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


@dataclass
class CLIState:
    """Options given to the top-level command, shared with subcommands."""

    config_path: str | None = None
    catalog_dir: str = "config"


def configure_logging(verbosity: int = 0) -> None:
    """Send log records to stderr so command output stays parseable.

    Args:
        verbosity: 0 logs warnings and errors, 1 adds info, 2 adds debug
    """
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if not any(isinstance(h, logging.StreamHandler) for h in root_logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(_LOG_FORMAT))
        root_logger.addHandler(console)


def run_async(coro: Any) -> Any:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def get_config(state: CLIState) -> ProviderConfig:
    try:
        return load_config(state.config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from None


def get_catalog(state: CLIState, required: bool = True) -> Catalog:
    """Load the catalog; an absent catalog is empty unless required."""
    if not required and not Path(state.catalog_dir).is_dir():
        return Catalog()
    try:
        return load_catalog(state.catalog_dir)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(f"Invalid catalog: {e}") from None


def build_provider(state: CLIState, catalog: Catalog | None = None) -> Provider:
    """Create a Provider from the CLI configuration."""
    config = get_config(state)
    if catalog is None:
        catalog = get_catalog(state, required=False)
    return Provider(config, catalog.templates, logger=logging.getLogger("ess_broker.provider"))


@click.group()
@click.version_option(version=__version__, prog_name="ess-broker")
@click.option(
    "--config",
    "config_path",
    type=click.Path(),
    envvar="ESS_CONFIG",
    help="YAML config file (ESS_PROVIDER_* variables take precedence)",
)
@click.option(
    "--catalog",
    "catalog_dir",
    type=click.Path(),
    default="config",
    show_default=True,
    envvar="ESS_CATALOG",
    help="Directory holding plans.json and services.json",
)
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug)")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, catalog_dir: str, verbose: int) -> None:
    """ESS Broker - manage Elasticsearch deployments through broker verbs.

    \b
    Verbs:
        ess-broker provision <instance-id> --service-id <id> --plan-id <id>
        ess-broker deprovision <instance-id>
        ess-broker bind <instance-id> <binding-id>
        ess-broker unbind <instance-id> <binding-id>
        ess-broker update <instance-id>
        ess-broker last-operation <instance-id> --operation <operation-data>

    \b
    Inspect:
        ess-broker catalog
        ess-broker credentials <binding-id>
    """
    configure_logging(verbose)
    ctx.obj = CLIState(config_path=config_path, catalog_dir=catalog_dir)


def main() -> None:
    """Main entry point."""
    cli()


# Register subcommands on the group
from . import verbs  # noqa: E402,F401

if __name__ == "__main__":
    main()
