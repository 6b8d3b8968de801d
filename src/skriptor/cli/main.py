import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from skriptor.core.config import load_settings
from skriptor.core.errors import ConfigurationError, SkriptorError
from skriptor.core.image_extract import RasterImageExtractor
from skriptor.core.image_storage import ImageStorage
from skriptor.core.ingest import IngestionOrchestrator
from skriptor.core.blob_store import create_blob_store
from skriptor.core.logging_config import configure_logging
from skriptor.core.models import ImageExtractionOptions
from skriptor.core.pdf_handle import open_pdf
from skriptor.core.repository import DocumentRepository
from skriptor.core.segmenter import split_page_sections
from skriptor.core.text_extract import extract_text

app = typer.Typer(help="Skriptor CLI: turn PDF study letters into structured learning documents")
console = Console()


def _read_pdf(pdf_file: Path) -> bytes:
    if not pdf_file.is_file():
        console.print(f"[red]Error:[/] {pdf_file} is not a file")
        raise typer.Exit(1)
    return pdf_file.read_bytes()


@app.callback()
def main():
    settings = load_settings()
    configure_logging(log_level=settings.log_level, json_logs=settings.json_logs)


@app.command()
def ingest(
    document_id: str,
    source_path: str = typer.Argument(..., help="Path of the PDF in the documents bucket (<owner>/<file>.pdf)"),
    owner: Optional[str] = typer.Option(None, help="Owner id (defaults to the first path component)"),
    filename: Optional[str] = typer.Option(None, help="Original filename used for the default title"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Use the rule-based segmenter instead of the model"),
    reprocess: bool = typer.Option(False, "--reprocess", help="Delete existing sections and images first"),
):
    """Ingest a stored PDF into the database."""
    try:
        orchestrator = IngestionOrchestrator.from_settings(load_settings(), use_ai=False if no_ai else None)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        raise typer.Exit(2)

    run = orchestrator.reprocess if reprocess else orchestrator.ingest
    try:
        with console.status("[bold green]Processing PDF..."):
            result = asyncio.run(run(document_id, source_path, owner_id=owner, filename=filename))
    except SkriptorError as e:
        console.print(f"[red]Ingestion failed ({e.stage}):[/] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✅ Ingestion complete![/] {result.title}")
    console.print_json(json.dumps(result.to_response()))


@app.command()
def inspect(pdf_file: Path):
    """Show page count, metadata and text statistics of a PDF."""
    data = _read_pdf(pdf_file)
    try:
        with open_pdf(data) as handle:
            metadata = handle.metadata
            extraction = extract_text(handle)
    except SkriptorError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    table = Table(title=pdf_file.name)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Pages", str(extraction.page_count))
    table.add_row("Characters", str(len(extraction.text)))
    table.add_row("Heuristic sections", str(len(split_page_sections(extraction.pages))))
    for key, value in sorted(metadata.items()):
        table.add_row(key, value)
    console.print(table)


@app.command()
def segment(pdf_file: Path):
    """Print the rule-based section outline of a PDF."""
    data = _read_pdf(pdf_file)
    try:
        with open_pdf(data) as handle:
            pages = extract_text(handle).pages
    except SkriptorError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    for section in split_page_sections(pages):
        if section.page_start is None:
            page_range = "-"
        elif section.page_end in (None, section.page_start):
            page_range = f"p. {section.page_start}"
        else:
            page_range = f"pp. {section.page_start}-{section.page_end}"
        console.print(
            f"[bold]{section.order_index + 1:>3}.[/] {section.title} "
            f"[dim]({page_range}, {len(section.content)} chars)[/]"
        )


@app.command()
def images(
    pdf_file: Path,
    out_dir: Path,
    min_width: int = typer.Option(50, help="Minimum image width in pixels"),
    min_height: int = typer.Option(50, help="Minimum image height in pixels"),
    max_images: int = typer.Option(100, help="Maximum number of images"),
    image_format: str = typer.Option("png", "--format", help="png or jpeg"),
    quality: int = typer.Option(85, help="JPEG quality 1-100"),
):
    """Extract embedded raster images of a PDF into a directory."""
    data = _read_pdf(pdf_file)
    try:
        options = ImageExtractionOptions(
            min_width=min_width,
            min_height=min_height,
            max_images=max_images,
            output_format=image_format.lower(),
            quality=quality,
        )
    except ValueError as e:
        console.print(f"[red]Invalid options:[/] {e}")
        raise typer.Exit(2)

    extractor = RasterImageExtractor(options)
    try:
        with open_pdf(data) as handle:
            result = asyncio.run(extractor.extract(handle))
    except SkriptorError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    out_dir.mkdir(parents=True, exist_ok=True)
    for image in result.images:
        target = out_dir / f"page-{image.page_number}-img-{image.image_index}.{image.format}"
        target.write_bytes(image.data)

    console.print(f"[bold]Images extracted:[/] {len(result.images)}")
    console.print(f"[bold]Pages with images:[/] {', '.join(map(str, result.pages_with_images)) or '-'}")
    console.print(f"[bold]Written to:[/] {out_dir}")


@app.command()
def purge(document_id: str, owner_id: str):
    """Delete stored images and image metadata of a document."""
    settings = load_settings()
    try:
        settings.require("database_url")
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        raise typer.Exit(2)

    storage = ImageStorage(
        create_blob_store(settings, settings.image_bucket), DocumentRepository(settings.database_url)
    )
    removed = storage.delete_all(document_id, owner_id)
    console.print(f"[green]Removed {removed} stored images for document {document_id}[/]")


if __name__ == "__main__":
    app()
