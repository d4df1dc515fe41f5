from __future__ import annotations

import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.tree import Tree

from adapters.filesystem.canvas_repository import FileSystemCanvasRepository
from app.config import load_settings
from domain.canvas_model import CanvasModel
from domain.models import CanvasDocument, MenuEntry

app = typer.Typer(no_args_is_help=True)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_model(input_path: Path, config_path: Path | None) -> tuple[CanvasModel, list[str]]:
    if not input_path.exists():
        console.print(f"[red]File not found:[/] {input_path}")
        raise typer.Exit(code=1)
    try:
        document = FileSystemCanvasRepository().load(input_path)
    except (ValidationError, ValueError) as exc:
        console.print(f"[red]Invalid canvas file:[/] {exc}")
        raise typer.Exit(code=1) from exc
    settings = load_settings(config_path)
    model = CanvasModel(config=settings.editor.to_model_config())
    repairs = model.load(document).repairs
    return model, repairs


@app.command("validate")
def validate(
    input_path: Path = typer.Argument(..., help="Canvas JSON file to validate."),
    strict: bool = typer.Option(False, help="Fail when the file needed repairs."),
    config_path: Path | None = typer.Option(None, "--config", help="Settings YAML file."),
) -> None:
    _, repairs = _load_model(input_path, config_path)
    for repair in repairs:
        console.print(f"[yellow]Repaired:[/] {repair}")
    if repairs and strict:
        raise typer.Exit(code=1)
    console.print(f"[green]Valid canvas file:[/] {input_path}")


@app.command("tree")
def tree(
    input_path: Path = typer.Argument(..., help="Canvas JSON file."),
    config_path: Path | None = typer.Option(None, "--config", help="Settings YAML file."),
) -> None:
    model, _ = _load_model(input_path, config_path)
    root = Tree(f"[bold]{model.canvas_id}[/]")
    _add_entries(root, model.snapshot().menu_index)
    console.print(root)


@app.command("view")
def view(
    input_path: Path = typer.Argument(..., help="Canvas JSON file."),
    config_path: Path | None = typer.Option(None, "--config", help="Settings YAML file."),
) -> None:
    model, _ = _load_model(input_path, config_path)
    table = Table(title=f"Canvas {model.canvas_id}")
    for column in ("id", "kind", "label", "x", "y", "size", "parent"):
        table.add_column(column)
    for node in model.view().nodes:
        size = f"{node.size.width:g}x{node.size.height:g}" if node.size else ""
        table.add_row(
            node.id,
            node.kind,
            node.label,
            f"{node.position.x:g}",
            f"{node.position.y:g}",
            size,
            node.parent_id or "",
        )
    console.print(table)


@app.command("normalise")
def normalise(
    input_path: Path = typer.Argument(..., help="Canvas JSON file."),
    output_path: Path = typer.Option(..., "--output", "-o", help="Where to write the result."),
    config_path: Path | None = typer.Option(None, "--config", help="Settings YAML file."),
) -> None:
    model, repairs = _load_model(input_path, config_path)
    document: CanvasDocument = model.to_document()
    FileSystemCanvasRepository().save(document, output_path)
    console.print(f"[green]Wrote[/] {output_path} ({len(repairs)} repairs)")


def _add_entries(parent: Tree, entries: tuple[MenuEntry, ...]) -> None:
    for entry in entries:
        name = entry.label or entry.node_id
        if entry.is_container:
            name = f"[bold blue]{name}[/]"
        branch = parent.add(f"{name} [dim]({entry.node_id})[/]")
        _add_entries(branch, entry.children)


if __name__ == "__main__":
    app()
