"""Lifecycle commands for the a4c CLI.

Provides deploy, undeploy, status and logs commands for one application
environment.
"""

import json
import sys

import click

from ..client.applications import DEFAULT_ENVIRONMENT_NAME
from ..models import LogFilter, OperationResult
from ..monitor import LogPaginator
from .main import cli, echo_log, get_client, get_monitor, run_async

_env_option = click.option(
    "--env",
    "env_name",
    default=DEFAULT_ENVIRONMENT_NAME,
    show_default=True,
    help="Application environment name",
)


def _echo_result(label: str, result: OperationResult) -> None:
    click.echo(f"\n{label} status: {result.status}")


# =============================================================================
# Deploy Command
# =============================================================================


@cli.command()
@click.argument("app_name")
@click.option("--template", "-t", required=True, help="Topology template to create the app from")
@click.option("--location", "-l", default="", help="Location name (default: first matching)")
@_env_option
def deploy(app_name: str, template: str, location: str, env_name: str) -> None:
    """Create an application from a template and deploy it.

    Follows deployment logs until the deployment ends, then prints the
    output attributes.

    \b
    Examples:
        a4c deploy myapp --template MyTopology
        a4c deploy myapp -t MyTopology --location openstack
    """

    async def _run() -> OperationResult:
        async with get_client() as client:
            monitor = get_monitor(client)
            click.echo("Waiting for the end of deployment...")
            result = await monitor.create_and_deploy(app_name, template, location, env_name)
            _echo_result("Deployment", result)
            if result.succeeded:
                outputs = await monitor.collect_outputs(
                    result.handle.application_id, result.handle.environment_id
                )
                if outputs:
                    click.echo("\nOutputs:")
                    for node_name, values in outputs.items():
                        click.echo(f" - {node_name}")
                        for key, value in values.items():
                            click.echo(f"  * {key}: {value}")
            return result

    result = run_async(_run())
    if not result.succeeded:
        sys.exit(1)


# =============================================================================
# Undeploy Command
# =============================================================================


@cli.command()
@click.argument("app_id")
@_env_option
@click.option("--delete", is_flag=True, help="Delete the application once undeployed")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def undeploy(app_id: str, env_name: str, delete: bool, yes: bool) -> None:
    """Undeploy an application, optionally deleting it.

    \b
    Examples:
        a4c undeploy myapp
        a4c undeploy myapp --delete --yes
    """
    if delete and not yes:
        if not click.confirm(f"Undeploy and delete application {app_id}?"):
            click.echo("Aborted.")
            sys.exit(0)

    async def _run() -> OperationResult:
        async with get_client() as client:
            monitor = get_monitor(client)
            click.echo("Waiting for the end of undeployment...")
            if delete:
                result = await monitor.undeploy_and_delete(app_id, env_name)
            else:
                env_id = await client.applications.get_environment_id(app_id, env_name)
                result = await monitor.undeploy(app_id, env_id)
            _echo_result("Undeployment", result)
            if delete and result.succeeded:
                click.echo(f"Application {app_id} deleted")
            return result

    result = run_async(_run())
    if not result.succeeded:
        sys.exit(1)


# =============================================================================
# Status Command
# =============================================================================


@cli.command()
@click.argument("app_id")
@_env_option
@click.option(
    "--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text"
)
def status(app_id: str, env_name: str, output_format: str) -> None:
    """Get the deployment status of an application.

    \b
    Examples:
        a4c status myapp
        a4c status myapp --format json
    """

    async def _run() -> dict[str, str]:
        async with get_client() as client:
            env_id = await client.applications.get_environment_id(app_id, env_name)
            deployment_id = await client.deployments.get_current_deployment_id(app_id, env_id)
            deployment_status = await client.deployments.get_deployment_status(app_id, env_id)
            return {
                "application_id": app_id,
                "environment_id": env_id,
                "deployment_id": deployment_id,
                "status": deployment_status,
            }

    state = run_async(_run())
    if output_format == "json":
        click.echo(json.dumps(state, indent=2))
    else:
        click.echo(f"Application: {state['application_id']}")
        click.echo(f"  Environment: {state['environment_id']}")
        if state["deployment_id"]:
            click.echo(f"  Deployment:  {state['deployment_id']}")
        click.echo(f"  Status:      {state['status']}")


# =============================================================================
# Logs Command
# =============================================================================


@cli.command()
@click.argument("app_id")
@_env_option
@click.option("--execution", "-e", "execution_ids", multiple=True, help="Workflow execution id")
@click.option("--level", "levels", multiple=True, help="Log level (e.g. INFO, ERROR)")
@click.option(
    "--from", "from_index", type=click.IntRange(min=0), default=0, help="Index of the first entry"
)
def logs(
    app_id: str,
    env_name: str,
    execution_ids: tuple[str, ...],
    levels: tuple[str, ...],
    from_index: int,
) -> None:
    """View deployment logs of an application.

    \b
    Examples:
        a4c logs myapp
        a4c logs myapp --execution 7d2a... --level ERROR
    """
    filters = LogFilter(execution_id=list(execution_ids), level=list(levels))

    async def _run() -> int:
        async with get_client() as client:
            env_id = await client.applications.get_environment_id(app_id, env_name)
            paginator = LogPaginator(client.logs, app_id, env_id, filters, cursor=from_index)
            for entry in await paginator.fetch_new():
                echo_log(entry)
            return paginator.cursor - from_index

    if run_async(_run()) == 0:
        click.echo("No logs found.")
