"""Catalog commands for the a4c CLI."""

from pathlib import Path

import click

from ..exceptions import ContentError
from ..models import CSAR
from .main import cli, get_client, run_async


@cli.command("upload-csar")
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--workspace", "-w", default="", help="Target workspace (premium feature)")
def upload_csar(archive: Path, workspace: str) -> None:
    """Upload a CSAR (zip with a TOSCA definition at its root) to the catalog.

    Parsing warnings are printed; critical parsing errors fail the command.

    \b
    Examples:
        a4c upload-csar types.zip
    """

    async def _run() -> CSAR:
        async with get_client() as client:
            try:
                return await client.catalog.upload_csar(archive.read_bytes(), workspace)
            except ContentError as e:
                if e.has_critical_errors():
                    raise click.ClickException(f"CSAR rejected:\n{e}") from None
                click.echo(f"CSAR uploaded with warnings:\n{e}")
                return e.csar

    csar = run_async(_run())
    click.echo(f"Uploaded {csar.name}:{csar.version} ({csar.id})")
