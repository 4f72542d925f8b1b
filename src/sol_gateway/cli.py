"""CLI for sol-gateway."""

import asyncio

import click
import uvicorn

from sol_gateway import __version__
from sol_gateway.config import Settings, get_settings
from sol_gateway.notion.client import NotionClient
from sol_gateway.notion.directory import list_all_users
from sol_gateway.notion.schema import fetch_schema


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Read settings from this file instead of .env",
)
@click.pass_context
def main(ctx: click.Context, env_file: str | None) -> None:
    """Notion gateway for automation agents."""
    ctx.obj = {}
    try:
        ctx.obj["settings"] = get_settings() if env_file is None else Settings(_env_file=env_file)
    except ValueError as e:
        # Reported by the subcommand that needs settings
        ctx.obj["settings_error"] = str(e)


def _settings_or_exit(ctx: click.Context) -> Settings:
    settings: Settings | None = ctx.obj.get("settings")
    if settings is None:
        click.echo(f"Error loading settings: {ctx.obj.get('settings_error')}", err=True)
        ctx.exit(1)
    return settings


@main.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--port", type=int, default=None, help="Port (defaults to PORT, then 3000)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int | None, reload: bool) -> None:
    """Run the HTTP gateway."""
    settings = _settings_or_exit(ctx)
    port = port or settings.port
    base = settings.base_url or f"http://localhost:{port}"
    auth = "protected" if settings.server_token else "open"
    click.echo(f"Sol gateway {settings.version} on {base} (auth: {auth})")

    uvicorn.run("sol_gateway.api:create_app", factory=True, host=host, port=port, reload=reload)


@main.command()
@click.option("--db", "db_key", default="", help="Database key: docs, roadmap or tasks")
@click.pass_context
def schema(ctx: click.Context, db_key: str) -> None:
    """Show a database's properties, kinds and options."""
    settings = _settings_or_exit(ctx)
    database_id = settings.database_id_for(db_key)
    if not settings.notion_key or not database_id:
        click.echo("Error: NOTION_KEY and a database id must be set", err=True)
        ctx.exit(1)

    async def run() -> None:
        client = NotionClient(settings.notion_key, notion_version=settings.notion_version)
        try:
            db_schema = await fetch_schema(client, database_id)
            click.echo(f"Database {db_schema.title or database_id} has {len(db_schema.properties)} properties:\n")
            for name, descriptor in db_schema.properties.items():
                marker = " (title)" if name == db_schema.title_property else ""
                click.echo(f"  {name}: {descriptor.type_name}{marker}")
                if descriptor.options:
                    click.echo(f"    options: {', '.join(descriptor.options)}")
                if descriptor.relation_database_id:
                    click.echo(f"    relation -> {descriptor.relation_database_id}")
        finally:
            await client.close()

    try:
        asyncio.run(run())
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


@main.command()
@click.pass_context
def users(ctx: click.Context) -> None:
    """List workspace users and their emails."""
    settings = _settings_or_exit(ctx)
    if not settings.notion_key:
        click.echo("Error: NOTION_KEY not set", err=True)
        ctx.exit(1)

    async def run() -> None:
        client = NotionClient(settings.notion_key, notion_version=settings.notion_version)
        try:
            index = await list_all_users(client)
            click.echo(f"{len(index.by_id)} users:\n")
            for user_id, user in index.by_id.items():
                email = (user.get("person") or {}).get("email") or "-"
                click.echo(f"  {user.get('name') or '(unnamed)'} <{email}> {user_id}")
        finally:
            await client.close()

    try:
        asyncio.run(run())
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


if __name__ == "__main__":
    main()
