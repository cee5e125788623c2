"""Workflow commands for the a4c CLI.

Provides run-workflow, workflow-status and cancel-execution.
"""

import sys

import click

from ..client.applications import DEFAULT_ENVIRONMENT_NAME
from ..models import OperationResult, WorkflowExecution
from ..monitor.formatting import format_timestamp
from .main import cli, get_client, get_monitor, run_async

_env_option = click.option(
    "--env",
    "env_name",
    default=DEFAULT_ENVIRONMENT_NAME,
    show_default=True,
    help="Application environment name",
)


@cli.command("run-workflow")
@click.argument("app_id")
@click.argument("workflow_name")
@_env_option
@click.option("--events", "show_events", is_flag=True, help="Show instance state events, not logs")
def run_workflow(app_id: str, workflow_name: str, env_name: str, show_events: bool) -> None:
    """Run a workflow on a deployed application and follow its execution.

    Logs of the execution are printed while it runs; with --events,
    instance state changes are printed instead. Exits with status 1 when
    the workflow does not succeed.

    \b
    Examples:
        a4c run-workflow myapp stop
        a4c run-workflow myapp start --events
    """

    async def _run() -> OperationResult:
        async with get_client() as client:
            env_id = await client.applications.get_environment_id(app_id, env_name)
            monitor = get_monitor(client)
            click.echo("Waiting for the end of workflow execution...")
            return await monitor.run_workflow(app_id, env_id, workflow_name, show_events)

    result = run_async(_run())
    click.echo(f"Workflow ended with status: {result.status}")
    if not result.succeeded:
        sys.exit(1)


@cli.command("workflow-status")
@click.argument("app_id")
@_env_option
@click.option(
    "--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text"
)
def workflow_status(app_id: str, env_name: str, output_format: str) -> None:
    """Show the last workflow execution of a deployed application.

    \b
    Examples:
        a4c workflow-status myapp
        a4c workflow-status myapp --format json
    """

    async def _run() -> WorkflowExecution:
        async with get_client() as client:
            env_id = await client.applications.get_environment_id(app_id, env_name)
            return await client.deployments.get_last_workflow_execution(app_id, env_id)

    execution = run_async(_run())
    if output_format == "json":
        click.echo(execution.model_dump_json(indent=2))
        return
    click.echo(f"Workflow: {execution.display_workflow_name or execution.workflow_name}")
    click.echo(f"  Execution: {execution.id}")
    click.echo(f"  Status:    {execution.status}")
    click.echo(f"  Started:   {format_timestamp(execution.start_date)}")
    click.echo(f"  Ended:     {format_timestamp(execution.end_date)}")


@cli.command("cancel-execution")
@click.argument("app_id")
@click.argument("execution_id")
@_env_option
def cancel_execution(app_id: str, execution_id: str, env_name: str) -> None:
    """Cancel a running workflow execution.

    \b
    Examples:
        a4c cancel-execution myapp 7d2a...
    """

    async def _run() -> None:
        async with get_client() as client:
            env_id = await client.applications.get_environment_id(app_id, env_name)
            await client.deployments.cancel_execution(env_id, execution_id)

    run_async(_run())
    click.echo(f"Cancellation of execution {execution_id} requested")
