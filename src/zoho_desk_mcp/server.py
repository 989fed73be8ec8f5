import asyncio
import contextlib
import json
import logging
import sys
from typing import Any, Dict, List, Mapping, Optional, Set

import mcp.server.stdio
from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.types import TextContent, Tool
from pydantic import ValidationError

from .auth import CredentialStore
from .client import ZohoDeskClient, ZohoResponse
from .config import ConfigError, ZohoConfig, load_config
from .notifications import WebhookNotifier
from .tools import TOOLS_BY_NAME, ToolSpec

# Set up logging; stdout carries the MCP stream so this goes to stderr
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

SERVER_NAME = "zoho-desk-mcp"
SERVER_VERSION = "1.0.0"


class UnknownToolError(LookupError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


def _text(text: str) -> List[TextContent]:
    return [TextContent(type="text", text=text)]


def _error(message: str) -> List[TextContent]:
    return _text(f"Error: {message}")


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "arguments"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def serialize_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, ZohoResponse):
        data = result.describe_failure() if result.transport_failed else result.data
    else:
        data = result
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


class ToolDispatcher:
    """Routes tool calls to Zoho Desk operations.

    Every call yields exactly one text result. Remote HTTP errors come back as
    ordinary JSON; ``Error: ...`` is reserved for unknown tools, invalid
    arguments and unexpected faults.
    """

    def __init__(
        self,
        client: ZohoDeskClient,
        notifier: Optional[WebhookNotifier] = None,
        tools: Optional[Mapping[str, ToolSpec]] = None,
    ):
        self.client = client
        self.notifier = notifier
        self.tools = dict(tools if tools is not None else TOOLS_BY_NAME)
        self._pending: Set[asyncio.Task] = set()

    def list_tools(self) -> List[Tool]:
        return [
            Tool(name=spec.name, description=spec.description, inputSchema=spec.input_schema)
            for spec in self.tools.values()
        ]

    async def dispatch(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> List[TextContent]:
        try:
            return _text(await self._dispatch(name, arguments or {}))
        except UnknownToolError as e:
            logger.warning("%s", e)
            return _error(str(e))
        except ValidationError as e:
            return _error(f"Invalid arguments for {name}: {_format_validation_error(e)}")
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return _error(str(e) or type(e).__name__)

    async def _dispatch(self, name: str, arguments: Dict[str, Any]) -> str:
        spec = self.tools.get(name)
        if spec is None:
            raise UnknownToolError(name)

        params = spec.params.model_validate(arguments)
        logger.info("Calling tool %s", name)
        result = await spec.handler(self.client, params)

        if (
            spec.notify
            and self.notifier is not None
            and isinstance(result, ZohoResponse)
            and result.ok
        ):
            self._schedule(
                self.notifier.notify(spec.notify, params.ticket_id, params.content, params.is_public)
            )

        return serialize_result(result)

    def _schedule(self, coro) -> None:
        # Notifications run in the background; the tool result never waits on the webhook
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Webhook notification failed: %s", error)

    async def drain(self) -> None:
        """Wait for background notifications still in flight."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def create_dispatcher(config: ZohoConfig) -> ToolDispatcher:
    client = ZohoDeskClient(CredentialStore.from_config(config))
    notifier = WebhookNotifier(config.webhook_url, client) if config.webhook_url else None
    return ToolDispatcher(client, notifier)


def create_server(dispatcher: ToolDispatcher) -> Server:
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> list[Tool]:
        return dispatcher.list_tools()

    # Arguments are validated by the dispatcher so failures share its "Error: " format
    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: dict | None) -> list[TextContent]:
        return await dispatcher.dispatch(name, arguments)

    return server


def get_initialization_options(server: Server) -> InitializationOptions:
    return InitializationOptions(
        server_name=SERVER_NAME,
        server_version=SERVER_VERSION,
        capabilities=server.get_capabilities(
            notification_options=NotificationOptions(),
            experimental_capabilities={},
        ),
    )


async def log_token_refreshes(client: ZohoDeskClient) -> None:
    while True:
        event = await client.token_events.get()
        logger.info("Zoho access token refreshed at %s", event.refreshed_at.isoformat())


async def stop_task(task: asyncio.Task) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


async def serve(config: ZohoConfig) -> None:
    dispatcher = create_dispatcher(config)
    server = create_server(dispatcher)
    refresh_logger = asyncio.create_task(log_token_refreshes(dispatcher.client))
    try:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, get_initialization_options(server))
    finally:
        await dispatcher.drain()
        await stop_task(refresh_logger)


def main():
    logger.info("Starting Zoho Desk MCP server")
    try:
        config = load_config()
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(1)
    if not config.can_refresh:
        logger.info("Refresh credentials not configured; expired tokens will not be renewed")
    asyncio.run(serve(config))


if __name__ == "__main__":
    main()
