"""CLI entry point for swagger-docgen."""

import logging
from pathlib import Path

import click

from swagger_docgen.config import Settings
from swagger_docgen.errors import DocgenError
from swagger_docgen.generator.pipeline import generate_docs

LOG_LEVELS = {0: logging.ERROR, 1: logging.INFO}


@click.group()
def main():
    """Swagger Docgen: build Swagger documents from annotated controllers."""
    pass


@main.command()
@click.argument("project_root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--router", default=None, help="Router file relative to the project root.")
@click.option("-o", "--output-dir", default=None, help="Output directory relative to the project root.")
@click.option("--workers", default=None, type=click.IntRange(min=1), help="Parallel file readers for the scan.")
@click.option("-v", "--verbose", count=True, help="Log progress (-v) or debug details (-vv).")
def docs(project_root: Path, router: str | None, output_dir: str | None, workers: int | None, verbose: int):
    """Generate swagger.json and swagger.yml for PROJECT_ROOT."""
    logging.basicConfig(
        level=LOG_LEVELS.get(verbose, logging.DEBUG),
        format="%(levelname)s %(name)s: %(message)s",
    )
    overrides = {"router_file": router, "output_dir": output_dir, "scan_workers": workers}
    settings = Settings().model_copy(update={k: v for k, v in overrides.items() if v is not None})

    click.echo(f"Generating documentation for {project_root}...")
    try:
        result = generate_docs(project_root, settings)
    except DocgenError as e:
        raise click.ClickException(str(e)) from e

    document = result.document
    click.echo(f"Documented {len(document.paths)} paths and {len(document.definitions)} definitions.")
    for path in result.written:
        click.echo(f"  Created {path}")

    if result.warnings:
        click.echo(f"{len(result.warnings)} warnings:")
        for warning in result.warnings:
            click.echo(f"  - {warning}")
