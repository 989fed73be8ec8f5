import asyncio
import json
from typing import Optional

import typer

from . import server
from .auth import CredentialStore
from .client import ZohoDeskClient, ZohoResponse
from .config import ConfigError, ZohoConfig, load_config
from .notifications import WebhookNotifier

app = typer.Typer(add_completion=False, help="Zoho Desk CLI (wraps zoho-desk-mcp operations)")

tickets_app = typer.Typer(help="Ticket operations")
contacts_app = typer.Typer(help="Contact operations")
departments_app = typer.Typer(help="Department operations")

app.add_typer(tickets_app, name="tickets")
app.add_typer(contacts_app, name="contacts")
app.add_typer(departments_app, name="departments")

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to a config.json file")


def _print(response: ZohoResponse, as_json: bool) -> None:
    data = response.describe_failure() if response.transport_failed else response.data
    if as_json:
        typer.echo(json.dumps(data, indent=2, sort_keys=True, default=str))
    else:
        typer.echo(str(data))
    if not response.ok:
        raise typer.Exit(code=1)


def _config(config_path: Optional[str]) -> ZohoConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)


def _client(config_path: Optional[str]) -> ZohoDeskClient:
    return ZohoDeskClient(CredentialStore.from_config(_config(config_path)))


def _run(coro):
    return asyncio.run(coro)


@app.command("validate-env")
def validate_env(config_path: Optional[str] = CONFIG_OPTION) -> None:
    """Check that Zoho Desk credentials can be loaded."""

    config = _config(config_path)

    typer.echo(f"Credentials found for organization {config.org_id}")
    typer.echo(f"Automatic token refresh: {'enabled' if config.can_refresh else 'disabled'}")
    typer.echo(f"Webhook notifications: {'enabled' if config.webhook_url else 'disabled'}")


@app.command("serve")
def serve() -> None:
    """Run the MCP server on stdio."""

    server.main()


@tickets_app.command("list")
def ticket_list(
    status: Optional[str] = typer.Option(None, help="Filter by status"),
    limit: int = typer.Option(50, min=1, max=100),
    config_path: Optional[str] = CONFIG_OPTION,
    json_out: bool = typer.Option(True, "--json/--text"),
) -> None:
    """List tickets."""

    client = _client(config_path)
    _print(_run(client.get_tickets(status=status, limit=limit)), json_out)


@tickets_app.command("get")
def ticket_get(
    ticket_id: str,
    config_path: Optional[str] = CONFIG_OPTION,
    json_out: bool = typer.Option(True, "--json/--text"),
) -> None:
    """Get a ticket."""

    client = _client(config_path)
    _print(_run(client.get_ticket(ticket_id)), json_out)


@tickets_app.command("context")
def ticket_context(
    ticket_id: str,
    config_path: Optional[str] = CONFIG_OPTION,
    json_out: bool = typer.Option(True, "--json/--text"),
) -> None:
    """Get a ticket with its threads and comments."""

    client = _client(config_path)
    _print(_run(client.get_ticket_full_context(ticket_id)), json_out)


@tickets_app.command("search")
def ticket_search(
    query: str,
    limit: Optional[int] = typer.Option(None, min=1, max=100),
    config_path: Optional[str] = CONFIG_OPTION,
    json_out: bool = typer.Option(True, "--json/--text"),
) -> None:
    """Search tickets by keywords."""

    client = _client(config_path)
    _print(_run(client.search_tickets(query, limit=limit)), json_out)


@tickets_app.command("reply")
def ticket_reply(
    ticket_id: str,
    content: str = typer.Option(..., "--content", help="Reply body (HTML allowed)"),
    public: bool = typer.Option(True, "--public/--private"),
    config_path: Optional[str] = CONFIG_OPTION,
    json_out: bool = typer.Option(True, "--json/--text"),
) -> None:
    """Reply to a ticket, notifying the configured webhook on success."""

    config = _config(config_path)
    client = ZohoDeskClient(CredentialStore.from_config(config))
    notifier = WebhookNotifier(config.webhook_url, client) if config.webhook_url else None

    async def reply() -> ZohoResponse:
        response = await client.add_ticket_reply(ticket_id, content, is_public=public)
        if response.ok and notifier is not None:
            await notifier.notify("reply", ticket_id, content, public)
        return response

    _print(_run(reply()), json_out)


@contacts_app.command("list")
def contact_list(
    limit: int = typer.Option(50, min=1, max=100),
    config_path: Optional[str] = CONFIG_OPTION,
    json_out: bool = typer.Option(True, "--json/--text"),
) -> None:
    """List contacts."""

    client = _client(config_path)
    _print(_run(client.get_contacts(limit=limit)), json_out)


@contacts_app.command("get")
def contact_get(
    contact_id: str,
    config_path: Optional[str] = CONFIG_OPTION,
    json_out: bool = typer.Option(True, "--json/--text"),
) -> None:
    """View a contact by id."""

    client = _client(config_path)
    _print(_run(client.get_contact(contact_id)), json_out)


@departments_app.command("list")
def department_list(
    config_path: Optional[str] = CONFIG_OPTION,
    json_out: bool = typer.Option(True, "--json/--text"),
) -> None:
    """List departments."""

    client = _client(config_path)
    _print(_run(client.get_departments()), json_out)


def main() -> None:
    app()
