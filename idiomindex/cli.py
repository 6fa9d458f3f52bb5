"""idiomindex CLI application with Typer."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any

import typer

from idiomindex import __version__
from idiomindex.bootstrap import bootstrap_application
from idiomindex.config import get_settings, set_settings
from idiomindex.errors import IdiomIndexError
from idiomindex.index import load_inventory, load_manifest, prefetch_inventory, save_inventory
from idiomindex.utils.cli_output import json_response

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="idiomindex",
    help="Semantic idiom lookup by embedding similarity",
    add_completion=True,
    no_args_is_help=True,
)
inventory_app = typer.Typer(help="Inventory generation and inspection")
app.add_typer(inventory_app, name="inventory")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"idiomindex version {__version__}")
        raise typer.Exit()


def _fail(exc: Exception) -> typer.Exit:
    typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
    return typer.Exit(code=1)


def _parse_models(value: str | None) -> list[str]:
    if value is None:
        return [get_settings().embedding_model]
    models = [model.strip() for model in value.split(",") if model.strip()]
    if not models:
        raise ValueError("At least one embedding model is required")
    return models


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Override data directory"),
    ] = None,
) -> None:
    """idiomindex - find values by what their phrases mean."""
    settings = get_settings()
    if data_dir:
        settings.data_dir = data_dir
    set_settings(settings)
    logging.basicConfig(
        level=settings.get_log_level(),
        format="%(levelname)s %(name)s: %(message)s",
    )


@inventory_app.command("generate")
def inventory_generate(
    manifest_path: Annotated[
        Path,
        typer.Argument(help="Manifest YAML declaring idioms and phrases"),
    ],
    models: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Comma-separated embedding models to prefetch"),
    ] = None,
    precache_path: Annotated[
        Path | None,
        typer.Option("--precache", help="Precache file to read and update"),
    ] = None,
    no_precache: Annotated[
        bool,
        typer.Option("--no-precache", help="Embed every phrase without reading or writing a precache"),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Inventory file to write"),
    ] = None,
) -> None:
    """Prefetch phrase embeddings and write an inventory."""

    container = bootstrap_application()
    settings = container.settings

    try:
        manifest = load_manifest(manifest_path.expanduser())
        embedding_models = _parse_models(models)
        precache = None if no_precache else container.load_precache(precache_path)
        inventory = asyncio.run(
            prefetch_inventory(manifest, container.embedder, embedding_models, precache=precache)
        )
        destination = output.expanduser() if output is not None else settings.get_inventory_path()
        save_inventory(destination, inventory)
        precache_destination = (
            container.save_precache(precache, precache_path) if precache is not None else None
        )
    except (IdiomIndexError, OSError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.secho(
        f"✅ Wrote {len(inventory.idioms)} idiom(s), {inventory.vector_count()} vector(s) "
        f"to {destination}",
        fg=typer.colors.GREEN,
    )
    if precache_destination is not None:
        typer.echo(f"   Precache: {precache_destination}")


@inventory_app.command("show")
def inventory_show(
    path: Annotated[Path, typer.Argument(help="Inventory YAML file")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output summary as JSON"),
    ] = False,
) -> None:
    """Summarise an inventory file."""

    try:
        inventory = load_inventory(path.expanduser())
    except (OSError, ValueError) as exc:
        raise _fail(exc) from exc

    idioms: list[dict[str, Any]] = [
        {
            "id": idiom_id,
            "phrases": len(entry.embeddings),
            "vectors": sum(len(embedding) for embedding in entry.embeddings.values()),
        }
        for idiom_id, entry in sorted(inventory.idioms.items())
    ]

    if json_output:
        typer.echo(
            json_response(
                "inventory_summary",
                1,
                path=str(path),
                embedding_models=inventory.embedding_models,
                idiom_count=len(idioms),
                vector_count=inventory.vector_count(),
                idioms=idioms,
            )
        )
        return

    typer.secho(f"Inventory: {path}", fg=typer.colors.BLUE)
    typer.echo(f"Models:  {', '.join(inventory.embedding_models) or '(none)'}")
    typer.echo(f"Idioms:  {len(idioms)}")
    typer.echo(f"Vectors: {inventory.vector_count()}")
    for idiom in idioms:
        typer.echo(f"  {idiom['id']}: {idiom['phrases']} phrase(s), {idiom['vectors']} vector(s)")


@app.command("query")
def query(
    manifest_path: Annotated[
        Path,
        typer.Argument(help="Manifest YAML declaring idioms and phrases"),
    ],
    text: Annotated[str, typer.Argument(help="Query text")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=0, help="Maximum results to return"),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Embedding model"),
    ] = None,
    inventory_path: Annotated[
        Path | None,
        typer.Option("--inventory", help="Inventory file with precomputed vectors"),
    ] = None,
    history_penalty: Annotated[
        float | None,
        typer.Option("--history-penalty", min=0.0, help="Distance penalty per prompt turn"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results as JSON"),
    ] = False,
) -> None:
    """Rank the idioms of a manifest against a query."""

    if not text.strip():
        typer.secho("Error: Query cannot be empty", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    container = bootstrap_application()

    try:
        manifest = load_manifest(manifest_path.expanduser())
        inventory = container.load_inventory(
            inventory_path.expanduser() if inventory_path is not None else None
        )
        precache = container.load_precache()
        index = container.build_index(
            manifest,
            inventory=inventory,
            precache=precache,
            model=model,
            limit=limit,
            history_penalty=history_penalty,
        )
        results = asyncio.run(index(text))
    except (IdiomIndexError, OSError, ValueError) as exc:
        raise _fail(exc) from exc

    if json_output:
        typer.echo(
            json_response(
                "query_results",
                1,
                query=text,
                model=index.model,
                total_hits=len(results),
                results=results,
            )
        )
        return

    if not results:
        typer.secho("No results found", fg=typer.colors.YELLOW)
        return

    typer.secho(f"Found {len(results)} result(s) for '{text}':", fg=typer.colors.BLUE)
    for i, value in enumerate(results, 1):
        typer.echo(f"{i}. {value}")


if __name__ == "__main__":
    app()
