"""Command-line interface for catalog enrichment and item publishing.

Examples:
    python -m app.cli enrich "Ada Lovelace" --type person
    python -m app.cli enrich "Dune" --type book --known language=en --trace
    python -m app.cli publish "Alan Turing" --type person
    python -m app.cli list-items
    python -m app.cli delete-item items/<id>.json
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer

from catalog.enrichment.config import EnrichmentConfig
from catalog.enrichment.enrichment_service import EnrichmentService
from catalog.enrichment.exceptions import GenerationFailed
from catalog.enrichment.models import EnrichedRecord, EnrichmentTrace, EntityReference, EntityType
from catalog.items.store import ItemStore, ItemValidationError
from catalog.utils.logger import LoggerManager

app = typer.Typer(help="Catalog entry enrichment and publishing.")

cli_logger = LoggerManager.get_logger(name="cli", use_json=True)

DEFAULT_ITEMS_DB = "data/items/items.db"


def parse_known(pairs: List[str]) -> Dict[str, Any]:
    """`["birthYear=1950", "name=Ada"]` -> `{"birthYear": 1950, "name": "Ada"}`.

    Values are decoded as JSON when possible, otherwise kept as strings.
    """
    known: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--known")
        try:
            known[key.strip()] = json.loads(raw)
        except ValueError:
            known[key.strip()] = raw
    return known


def load_config(config_path: Optional[Path]) -> EnrichmentConfig:
    if config_path is not None:
        return EnrichmentConfig.from_yaml(config_path)
    return EnrichmentConfig.from_env()


def run_enrichment(
    reference: EntityReference, config: EnrichmentConfig
) -> Tuple[EnrichedRecord, EnrichmentTrace]:
    async def _run():
        async with EnrichmentService(config) as service:
            return await service.enrich_with_trace(reference)

    try:
        return asyncio.run(_run())
    except GenerationFailed as e:
        cli_logger.error("cli.enrich_failed", extra={"extra_data": e.to_detail()})
        typer.echo(f"❌ Generation failed: {e}", err=True)
        if e.status_code is not None:
            typer.echo(f"   Upstream status: {e.status_code}", err=True)
        raise typer.Exit(code=1)


def open_store(db_path: Optional[Path]) -> ItemStore:
    path = Path(db_path or os.getenv("ITEMS_DB_PATH", DEFAULT_ITEMS_DB))
    path.parent.mkdir(parents=True, exist_ok=True)
    return ItemStore(path)


@app.command()
def enrich(
    title: str = typer.Argument(..., help="Entry title."),
    entity_type: EntityType = typer.Option(EntityType.TOPIC, "--type", "-t", help="Entry type."),
    known: List[str] = typer.Option([], "--known", "-k", help="Known value as key=value (repeatable)."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file."),
    trace: bool = typer.Option(False, "--trace", help="Print the enrichment trace to stderr."),
):
    """
    Enriches TITLE into a catalog record and prints it as JSON.
    """
    reference = EntityReference(title=title, type=entity_type, known_fields=parse_known(known))
    record, enrichment_trace = run_enrichment(reference, load_config(config_path))

    typer.echo(json.dumps(record.to_record(), indent=2, ensure_ascii=False))
    if trace:
        typer.echo(enrichment_trace.model_dump_json(indent=2), err=True)


@app.command()
def publish(
    title: str = typer.Argument(..., help="Entry title."),
    entity_type: EntityType = typer.Option(EntityType.TOPIC, "--type", "-t", help="Entry type."),
    known: List[str] = typer.Option([], "--known", "-k", help="Known value as key=value (repeatable)."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file."),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Items database (default ITEMS_DB_PATH)."),
):
    """
    Enriches TITLE and stores the record as a published item.
    """
    reference = EntityReference(title=title, type=entity_type, known_fields=parse_known(known))
    record, _ = run_enrichment(reference, load_config(config_path))

    store = open_store(db_path)
    try:
        item_id = store.create(record.to_record())
    except ItemValidationError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        store.close()

    typer.echo(f"✅ Published {record.title!r} as {item_id}")


@app.command("list-items")
def list_items(
    db_path: Optional[Path] = typer.Option(None, "--db", help="Items database (default ITEMS_DB_PATH)."),
):
    """
    Prints stored items as JSON, newest first.
    """
    store = open_store(db_path)
    try:
        items = store.list_items()
    finally:
        store.close()
    typer.echo(json.dumps(items, indent=2, ensure_ascii=False))


@app.command("delete-item")
def delete_item(
    key: str = typer.Argument(..., help="Item key (items/<id>.json) or bare id."),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Items database (default ITEMS_DB_PATH)."),
):
    """
    Deletes a stored item by key or id.
    """
    store = open_store(db_path)
    try:
        if key.startswith("items/"):
            deleted = store.delete(key=key)
        else:
            deleted = store.delete(item_id=key)
    finally:
        store.close()

    if not deleted:
        typer.echo(f"❌ Item not found: {key}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"🗑️ Deleted {key}")


if __name__ == "__main__":
    app()
