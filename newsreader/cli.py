"""Command line interface for the newsletter reader."""

import asyncio
import json
import logging
import sys

import click

logger = logging.getLogger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Newsletter reader CLI.

    Serves the reader UI and API, and runs maintenance tasks against the
    configured Redis, Upstash or in-memory store.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=log_level, force=True)
    logger.debug("Debug mode enabled")


def _open_store(ctx: click.Context):
    """Store passed in by the caller, or one built from settings."""
    if ctx.obj.get("store") is not None:
        return ctx.obj["store"]

    from .clients import create_store
    from .models.settings import Settings

    settings = Settings(debug=ctx.obj.get("debug", False))
    ctx.obj["settings"] = settings
    return create_store(settings)


async def _close(ctx: click.Context, store) -> None:
    if ctx.obj.get("store") is None:
        await store.close()


def _run(coro):
    """Run a command body, exiting with status 1 when the store fails."""
    from .clients import StoreError

    try:
        return asyncio.run(coro)
    except StoreError as e:
        logger.error(f"Store error: {e}")
        click.echo(f"❌ Store error: {e}")
        sys.exit(1)


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the web app under uvicorn."""
    import uvicorn

    logger.info(f"Starting newsletter reader on http://{host}:{port}")
    uvicorn.run("newsreader.web.app:app", host=host, port=port, reload=reload)


@cli.command()
@click.pass_context
def ping(ctx: click.Context) -> None:
    """Check connectivity to the key-value store."""
    from .clients import StoreError

    async def _ping():
        store = _open_store(ctx)
        try:
            await store.ping()
            click.echo(f"✅ {store.backend_name} store is reachable")
            return True
        except StoreError as e:
            click.echo(f"❌ {store.backend_name} store ping failed: {e}")
            return False
        finally:
            await _close(ctx, store)

    if not asyncio.run(_ping()):
        sys.exit(1)


@cli.command()
@click.option("--pattern", default="*", show_default=True, help="Glob pattern to match")
@click.pass_context
def keys(ctx: click.Context, pattern: str) -> None:
    """List keys grouped by record kind."""
    from .core.keys import META_PREFIX, NEWSLETTER_PREFIX

    async def _keys():
        store = _open_store(ctx)
        try:
            return await store.keys(pattern)
        finally:
            await _close(ctx, store)

    found = _run(_keys())
    groups = {"Metadata": [], "Content": [], "Legacy/other": []}
    for key in found:
        if key.startswith(META_PREFIX):
            groups["Metadata"].append(key)
        elif key.startswith(NEWSLETTER_PREFIX):
            groups["Content"].append(key)
        else:
            groups["Legacy/other"].append(key)

    click.echo(f"\n🔑 {len(found)} keys matching '{pattern}'\n")
    for title, members in groups.items():
        click.echo(f"{title} ({len(members)}):")
        for key in members:
            click.echo(f"  {key}")


@cli.command()
@click.argument("article_id")
@click.pass_context
def article(ctx: click.Context, article_id: str) -> None:
    """Resolve an article and print it as JSON."""
    from .core.normalizer import to_article
    from .core.resolver import RecordResolver

    async def _article():
        store = _open_store(ctx)
        try:
            resolver = RecordResolver(store)
            found = await resolver.find(article_id)
            return found, resolver.attempts
        finally:
            await _close(ctx, store)

    try:
        found, attempts = _run(_article())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="ARTICLE_ID")

    if found is None:
        click.echo(f"❌ Article '{article_id}' not found")
        for attempt in attempts:
            click.echo(f"  {attempt.key}: {attempt.outcome}")
        sys.exit(1)

    click.echo(json.dumps(to_article(found.data, found.key).to_api(), indent=2))


@cli.command()
@click.pass_context
def migrate(ctx: click.Context) -> None:
    """Backfill the content fields of older newsletters."""
    from .core.repository import NewsletterRepository

    async def _migrate():
        store = _open_store(ctx)
        try:
            return await NewsletterRepository(store, ctx.obj.get("settings")).migrate_content()
        finally:
            await _close(ctx, store)

    result = _run(_migrate())
    click.echo(f"✅ Migrated {result['updated']} of {result['total']} newsletters")


@cli.command("fix-dates")
@click.pass_context
def fix_dates(ctx: click.Context) -> None:
    """Replace invalid newsletter dates with the current time."""
    from .core.repository import NewsletterRepository

    async def _fix():
        store = _open_store(ctx)
        try:
            return await NewsletterRepository(store, ctx.obj.get("settings")).fix_dates()
        finally:
            await _close(ctx, store)

    result = _run(_fix())
    click.echo(
        f"✅ Fixed {result['fixedCount']} of {result['totalNewsletters']} newsletter dates"
    )


if __name__ == "__main__":
    cli()
