"""Verb commands for the ESS Broker CLI.

Each command builds a Provider from the CLI configuration, runs one verb and
prints the result. Operation data printed by a verb is what last-operation
expects back.
"""

import json
import sys

import click

from ..exceptions import BrokerError
from ..provider import LastOperationState, derive_service_account, derive_user_account
from .main import CLIState, build_provider, cli, get_catalog, get_config, run_async

_FORMAT_OPTION = click.option(
    "--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text"
)


def _echo_json(data: dict) -> None:
    click.echo(json.dumps(data, indent=2))


# =============================================================================
# Catalog Command
# =============================================================================


@cli.command()
@_FORMAT_OPTION
@click.pass_obj
def catalog(state: CLIState, output_format: str) -> None:
    """List the services and plans in the catalog."""
    loaded = get_catalog(state)

    if output_format == "json":
        click.echo(loaded.model_dump_json(indent=2))
        return

    if not loaded.services:
        click.echo("No services in catalog.")
        return

    template_names = {t.name for t in loaded.templates}
    for service in loaded.services:
        click.echo(f"{service.name} ({service.id})")
        for plan in service.plans:
            marker = "" if plan.name in template_names else "  [no template]"
            click.echo(f"  - {plan.name} ({plan.id}){marker}")


# =============================================================================
# Provision / Deprovision Commands
# =============================================================================


@cli.command()
@click.argument("instance_id")
@click.option("--service-id", required=True, help="Catalog service ID")
@click.option("--plan-id", required=True, help="Catalog plan ID")
@_FORMAT_OPTION
@click.pass_obj
def provision(
    state: CLIState, instance_id: str, service_id: str, plan_id: str, output_format: str
) -> None:
    """Create a deployment for a service instance.

    \b
    Examples:
        ess-broker provision my-instance --service-id uuid-1 --plan-id uuid-2
    """
    loaded = get_catalog(state)
    try:
        plan = loaded.find_plan(service_id, plan_id)
    except BrokerError as e:
        raise click.ClickException(str(e)) from None

    async def _run():
        async with build_provider(state, loaded) as provider:
            return await provider.provision(instance_id, plan)

    try:
        result = run_async(_run())
    except BrokerError as e:
        raise click.ClickException(f"Provision failed: {e}") from None

    if output_format == "json":
        click.echo(result.model_dump_json(indent=2))
    else:
        click.echo(f"Provision started: {instance_id}")
        click.echo(f"  Dashboard: {result.dashboard_url}")
        click.echo(f"  Operation: {result.operation_data}")


@cli.command()
@click.argument("instance_id")
@click.pass_obj
def deprovision(state: CLIState, instance_id: str) -> None:
    """Shut down the deployment of a service instance."""

    async def _run():
        async with build_provider(state) as provider:
            return await provider.deprovision(instance_id)

    try:
        operation_data = run_async(_run())
    except BrokerError as e:
        raise click.ClickException(f"Deprovision failed: {e}") from None

    click.echo(f"Deprovision started: {instance_id}")
    click.echo(f"  Operation: {operation_data}")


# =============================================================================
# Bind / Unbind Commands
# =============================================================================


@cli.command()
@click.argument("instance_id")
@click.argument("binding_id")
@_FORMAT_OPTION
@click.pass_obj
def bind(state: CLIState, instance_id: str, binding_id: str, output_format: str) -> None:
    """Create a user account on an instance's cluster."""

    async def _run():
        async with build_provider(state) as provider:
            return await provider.bind(instance_id, binding_id)

    try:
        result = run_async(_run())
    except BrokerError as e:
        raise click.ClickException(f"Bind failed: {e}") from None

    if output_format == "json":
        _echo_json(
            {
                "credentials": result.credentials.model_dump(by_alias=True),
                "operation_data": result.operation_data,
            }
        )
        return

    creds = result.credentials
    click.echo(f"Binding created: {binding_id}")
    click.echo(f"  URI:       {creds.uri}")
    click.echo(f"  Username:  {creds.username}")
    click.echo(f"  Password:  {creds.password}")
    click.echo(f"  Operation: {result.operation_data}")


@cli.command()
@click.argument("instance_id")
@click.argument("binding_id")
@click.pass_obj
def unbind(state: CLIState, instance_id: str, binding_id: str) -> None:
    """Delete the user account of a binding."""

    async def _run():
        async with build_provider(state) as provider:
            return await provider.unbind(instance_id, binding_id)

    try:
        operation_data = run_async(_run())
    except BrokerError as e:
        raise click.ClickException(f"Unbind failed: {e}") from None

    click.echo(f"Binding removed: {binding_id}")
    click.echo(f"  Operation: {operation_data}")


# =============================================================================
# Update Command
# =============================================================================


@cli.command()
@click.argument("instance_id")
@click.pass_obj
def update(state: CLIState, instance_id: str) -> None:
    """Update a service instance (accepted, nothing is changed)."""

    async def _run():
        async with build_provider(state) as provider:
            return await provider.update(instance_id)

    run_async(_run())
    click.echo(f"Update accepted for {instance_id}: resizing is not supported, nothing changed.")


# =============================================================================
# Last Operation Command
# =============================================================================


@cli.command("last-operation")
@click.argument("instance_id")
@click.option("--operation", "-o", "operation_data", required=True, help="Operation data")
@click.option("--binding-id", help="Binding ID (for bind/unbind operations)")
@_FORMAT_OPTION
@click.pass_obj
def last_operation(
    state: CLIState,
    instance_id: str,
    operation_data: str,
    binding_id: str | None,
    output_format: str,
) -> None:
    """Poll the status of an operation.

    Exits with status 1 when the operation failed.

    \b
    Examples:
        ess-broker last-operation my-instance \\
            --operation '{"Action":"provision","DeploymentID":"0837d2cd..."}'
    """

    async def _run():
        async with build_provider(state) as provider:
            return await provider.last_operation(instance_id, operation_data, binding_id)

    result = run_async(_run())

    if output_format == "json":
        click.echo(result.model_dump_json(indent=2))
    else:
        click.echo(f"State:       {result.state}")
        click.echo(f"Description: {result.description}")

    if result.state == LastOperationState.FAILED:
        sys.exit(1)


# =============================================================================
# Credentials Command
# =============================================================================


@cli.command()
@click.argument("identifier")
@click.option(
    "--service", "service_account", is_flag=True, help="Treat IDENTIFIER as an instance ID"
)
@click.pass_obj
def credentials(state: CLIState, identifier: str, service_account: bool) -> None:
    """Print the credentials derived for a binding (or instance) ID."""
    seed = get_config(state).seed.get_secret_value()
    if service_account:
        username, password = derive_service_account(identifier, seed)
    else:
        username, password = derive_user_account(identifier, seed)
    click.echo(f"Username: {username}")
    click.echo(f"Password: {password}")
