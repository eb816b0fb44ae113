"""Click CLI for running and poking at the relay bot."""

from __future__ import annotations

import asyncio
import json
import logging
import os

import click

from src.config import PROFILES, ConfigError, RelaySettings, resolve_profile
from src.relay.adapter import UpstreamClient
from src.relay.errors import RelayError
from src.relay.extractor import ResponseExtractor
from src.store.db import ChatStore
from src.webhook.telegram import TelegramRelay


@click.group()
@click.option(
    "--profile",
    type=click.Choice(sorted(PROFILES)),
    default=None,
    help="Relay profile (defaults to RELAY_PROFILE or 'ask').",
)
@click.option("--log-level", default=None, help="Log level (defaults to LOG_LEVEL or INFO).")
@click.pass_context
def cli(ctx: click.Context, profile: str | None, log_level: str | None) -> None:
    """Webhook relay bot CLI."""
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=(log_level or os.environ.get("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj["profile"] = profile or os.environ.get("RELAY_PROFILE", "ask")


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address.")
@click.option("--port", default=8000, type=int, help="Bind port.")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the webhook server."""
    import uvicorn

    os.environ["RELAY_PROFILE"] = ctx.obj["profile"]
    try:
        RelaySettings.from_env()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    uvicorn.run("src.server.app:create_app_from_env", factory=True, host=host, port=port)


@cli.command()
@click.argument("text")
@click.option("--upstream-url", default=None, help="Override the profile endpoint.")
@click.option("--timeout", default=30.0, type=float, help="Timeout in seconds.")
@click.pass_context
def ask(ctx: click.Context, text: str, upstream_url: str | None, timeout: float) -> None:
    """Send TEXT upstream once and print the extracted result as JSON."""
    try:
        profile = resolve_profile(
            ctx.obj["profile"], upstream_url or os.environ.get("UPSTREAM_URL"),
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    async def _run() -> str:
        raw = await UpstreamClient().call(profile.build_request(text.strip(), timeout))
        return ResponseExtractor().extract(raw, profile.shape).model_dump_json(indent=2)

    try:
        click.echo(asyncio.run(_run()))
    except RelayError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("set-webhook")
@click.argument("url")
@click.option("--token", envvar="TOKEN", required=True, help="Bot token (or TOKEN env).")
def set_webhook(url: str, token: str) -> None:
    """Register URL as the bot's webhook with Telegram."""
    try:
        asyncio.run(TelegramRelay(token).set_webhook(url))
    except RelayError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Webhook set: {url}")


@cli.command()
@click.option("--db", envvar="CHAT_DB_PATH", required=True, help="Chat database path.")
def chats(db: str) -> None:
    """List recorded chats."""
    store = ChatStore(db)
    try:
        output = [record.model_dump() for record in store.list_chats()]
    finally:
        store.close()
    click.echo(json.dumps(output, indent=2))


if __name__ == "__main__":
    cli()
