"""Command-line interface for Sqimo.

Inspects and edits a Sqimo database file from the shell. Every command
prints JSON to stdout; errors go to stderr with exit status 1.
"""

import json
from typing import Any, NoReturn

import click

from sqimo.core.config import get_settings
from sqimo.core.exceptions import SqimoError
from sqimo.core.logging import configure_logging
from sqimo.domain.entities import Field
from sqimo.store import Sqimo


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _parse_value(raw: str) -> Any:
    """Parse a command-line value as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _parse_where(pairs: tuple[str, ...]) -> dict[str, Any]:
    filter: dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep:
            raise click.BadParameter(f"expected KEY=VALUE, got '{pair}'", param_hint="--where")
        filter[key] = _parse_value(raw)
    return filter


def _parse_field(spec: str) -> Field:
    name, _, field_type = spec.partition(":")
    return Field(name=name, type=field_type or None)


def _store(ctx: click.Context) -> Sqimo:
    return ctx.obj["store"]


class SqimoGroup(click.Group):
    """Command group reporting store errors as CLI errors."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except SqimoError as e:
            raise click.ClickException(str(e)) from e


@click.group(cls=SqimoGroup)
@click.version_option(version="0.1.0", prog_name="Sqimo")
@click.option(
    "--database",
    "database",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the database file (defaults to SQIMO_DATABASE_PATH, else in-memory)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default=None,
    help="Set log level (overrides SQIMO_LOG_LEVEL)",
)
@click.pass_context
def cli(ctx: click.Context, database: str | None, log_level: str | None) -> None:
    """Sqimo - document collections on top of SQLite."""
    settings = get_settings()
    if log_level is not None:
        settings = settings.model_copy(update={"log_level": log_level})
    configure_logging(settings)

    store = Sqimo(database, settings=settings)
    ctx.obj = {"store": store}
    ctx.call_on_close(store.close)


@cli.command()
@click.pass_context
def collections(ctx: click.Context) -> None:
    """List collections and their fields."""
    _echo_json([c.to_dict() for c in _store(ctx).list_collections()])


@cli.command()
@click.argument("collection")
@click.pass_context
def fields(ctx: click.Context, collection: str) -> None:
    """List the fields of COLLECTION."""
    _echo_json([f.to_dict() for f in _store(ctx).list_fields(collection)])


@cli.command()
@click.argument("collection")
@click.pass_context
def indexes(ctx: click.Context, collection: str) -> None:
    """List the indexes of COLLECTION."""
    _echo_json([i.to_dict() for i in _store(ctx).list_indexes(collection)])


@cli.command()
@click.argument("collection")
@click.option(
    "--field",
    "field_specs",
    multiple=True,
    help="Field to add, as NAME or NAME:TYPE (repeatable)",
)
@click.pass_context
def create(ctx: click.Context, collection: str, field_specs: tuple[str, ...]) -> None:
    """Create COLLECTION if absent and add missing fields."""
    created = _store(ctx).create_collection(collection, [_parse_field(s) for s in field_specs])
    _echo_json(created.to_dict())


@cli.command()
@click.argument("collection")
@click.argument("document")
@click.pass_context
def insert(ctx: click.Context, collection: str, document: str) -> None:
    """Insert DOCUMENT (a JSON object) into COLLECTION."""
    try:
        data = json.loads(document)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="DOCUMENT") from e
    if not isinstance(data, dict):
        raise click.BadParameter("must be a JSON object", param_hint="DOCUMENT")
    _echo_json(_store(ctx).insert(collection, data))


@cli.command()
@click.argument("collection")
@click.option("--where", "where", multiple=True, help="KEY=VALUE filter, prefix KEY with ! to negate")
@click.option("--limit", type=click.IntRange(min=0), default=None, help="Maximum documents to return")
@click.option("--sort-by", default=None, help="Field to sort by")
@click.option("--desc", is_flag=True, default=False, help="Sort descending")
@click.pass_context
def find(
    ctx: click.Context,
    collection: str,
    where: tuple[str, ...],
    limit: int | None,
    sort_by: str | None,
    desc: bool,
) -> None:
    """Find documents in COLLECTION."""
    documents = _store(ctx).find(
        collection, _parse_where(where), limit=limit, sort_by=sort_by, descending=desc
    )
    _echo_json(documents)


def main() -> NoReturn:
    """Main entry point for the CLI.

    This function is called when the `sqimo` command is run
    or when using `python -m sqimo`.
    """
    cli()


if __name__ == "__main__":
    main()
