import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .auth import AUTH_BASE, CredentialStore, TokenRefreshed, refresh_access_token

logger = logging.getLogger(__name__)

API_BASE = "https://desk.zoho.com/api/v1"

AUTH_FAILURE_STATUSES = (401, 403)


@dataclass(frozen=True)
class ZohoRequest:
    method: str
    path: str
    query: Optional[Mapping[str, str]] = None
    body: Any = None

    def __post_init__(self):
        method = self.method.upper()
        if method not in ("GET", "POST", "PATCH", "DELETE"):
            raise ValueError(f"Unsupported HTTP method: {self.method}")
        object.__setattr__(self, "method", method)


@dataclass
class ZohoResponse:
    """Outcome of one remote call, success or failure.

    HTTP error statuses are ordinary values here. ``transport_failed`` marks
    calls that never got a response from the server.
    """

    status_code: int
    data: Any = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    transport_failed: bool = False
    transport_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.transport_failed and 200 <= self.status_code < 300

    def describe_failure(self) -> Dict[str, Any]:
        if self.transport_failed:
            return {"error": "transport_failed", "message": self.transport_error}
        return {"error": "http_error", "status_code": self.status_code, "details": self.data}


def _query(**params: Any) -> Dict[str, str]:
    """Drop unset parameters and stringify the rest."""
    query = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        query[key] = str(value)
    return query


def _body(**fields: Any) -> Dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


class ZohoDeskClient:
    """Zoho Desk REST client with automatic access-token renewal."""

    def __init__(
        self,
        credentials: CredentialStore,
        api_base: str = API_BASE,
        auth_base: str = AUTH_BASE,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.api_base = api_base.rstrip("/")
        self.auth_base = auth_base.rstrip("/")
        self.timeout = timeout
        self.token_events: "asyncio.Queue[TokenRefreshed]" = asyncio.Queue()

    # ===========================
    # Request pipeline
    # ===========================

    async def issue(self, request: ZohoRequest, _attempt: int = 0) -> ZohoResponse:
        token = self.credentials.access_token
        headers = {
            "Authorization": f"Zoho-oauthtoken {token}",
            "orgId": self.credentials.org_id,
        }
        kwargs: Dict[str, Any] = {}
        if request.query:
            kwargs["params"] = dict(request.query)
        if request.body is not None:
            headers["Content-Type"] = "application/json"
            kwargs["json"] = request.body

        url = f"{self.api_base}{request.path}"
        client_kwargs = {} if self.timeout is None else {"timeout": self.timeout}

        async with httpx.AsyncClient(**client_kwargs) as client:
            try:
                response = await client.request(request.method, url, headers=headers, **kwargs)
            except httpx.RequestError as e:
                logger.warning("%s %s failed: %s", request.method, request.path, e)
                return ZohoResponse(
                    status_code=0,
                    transport_failed=True,
                    transport_error=str(e) or type(e).__name__,
                )

        if (
            response.status_code in AUTH_FAILURE_STATUSES
            and _attempt == 0
            and self.credentials.can_refresh
        ):
            logger.info(
                "%s %s returned %s, refreshing access token",
                request.method,
                request.path,
                response.status_code,
            )
            if await self._renew_token(token):
                return await self.issue(request, _attempt=1)

        try:
            data = response.json()
        except ValueError:
            data = {}

        return ZohoResponse(
            status_code=response.status_code,
            data=data,
            headers=dict(response.headers),
        )

    async def _renew_token(self, rejected_token: str) -> bool:
        """Replace ``rejected_token``, collapsing concurrent refreshes into one."""
        store = self.credentials
        async with store.refresh_lock:
            if store.access_token != rejected_token:
                # another call refreshed while we waited for the lock
                return True

            new_token = await refresh_access_token(
                store.client_id,
                store.client_secret,
                store.refresh_token,
                auth_base=self.auth_base,
            )
            if not new_token:
                return False

            store.replace_access_token(new_token)
            self.token_events.put_nowait(TokenRefreshed())
            return True

    async def _get(self, path: str, query: Optional[Mapping[str, str]] = None) -> ZohoResponse:
        return await self.issue(ZohoRequest("GET", path, query=query or None))

    async def _post(self, path: str, body: Any = None) -> ZohoResponse:
        return await self.issue(ZohoRequest("POST", path, body=body))

    async def _patch(self, path: str, body: Any = None) -> ZohoResponse:
        return await self.issue(ZohoRequest("PATCH", path, body=body))

    async def _delete(self, path: str) -> ZohoResponse:
        return await self.issue(ZohoRequest("DELETE", path))

    # ===========================
    # Tickets
    # ===========================

    async def get_tickets(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        sort_by: Optional[str] = None,
        from_index: Optional[int] = None,
        department_id: Optional[str] = None,
    ) -> ZohoResponse:
        return await self._get(
            "/tickets",
            _query(
                status=status,
                limit=limit,
                sortBy=sort_by,
                departmentId=department_id,
                **{"from": from_index},
            ),
        )

    async def get_ticket(self, ticket_id: str) -> ZohoResponse:
        return await self._get(f"/tickets/{ticket_id}")

    async def create_ticket(
        self,
        subject: str,
        description: str,
        contact_id: Optional[str] = None,
        department_id: Optional[str] = None,
        priority: Optional[str] = None,
        status: Optional[str] = None,
        assignee_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ZohoResponse:
        return await self._post(
            "/tickets",
            _body(
                subject=subject,
                description=description,
                contactId=contact_id,
                departmentId=department_id,
                priority=priority,
                status=status,
                assigneeId=assignee_id,
                email=email,
            ),
        )

    async def update_ticket(self, ticket_id: str, fields: Dict[str, Any]) -> ZohoResponse:
        return await self._patch(f"/tickets/{ticket_id}", fields)

    async def delete_ticket(self, ticket_id: str) -> ZohoResponse:
        return await self._delete(f"/tickets/{ticket_id}")

    async def move_ticket(self, ticket_id: str, department_id: str) -> ZohoResponse:
        return await self._post(f"/tickets/{ticket_id}/move", {"departmentId": department_id})

    async def get_ticket_threads(self, ticket_id: str) -> ZohoResponse:
        return await self._get(f"/tickets/{ticket_id}/threads")

    async def add_ticket_reply(
        self, ticket_id: str, content: str, is_public: bool = True
    ) -> ZohoResponse:
        return await self._post(
            f"/tickets/{ticket_id}/threads",
            {"content": content, "isPublicReply": is_public},
        )

    async def get_ticket_comments(
        self,
        ticket_id: str,
        limit: Optional[int] = None,
        from_index: Optional[int] = None,
    ) -> ZohoResponse:
        return await self._get(
            f"/tickets/{ticket_id}/comments",
            _query(limit=limit, **{"from": from_index}),
        )

    async def add_ticket_comment(
        self,
        ticket_id: str,
        content: str,
        is_public: bool = False,
        content_type: str = "html",
    ) -> ZohoResponse:
        return await self._post(
            f"/tickets/{ticket_id}/comments",
            {"content": content, "isPublic": is_public, "contentType": content_type},
        )

    async def get_ticket_tags(self, ticket_id: str) -> ZohoResponse:
        return await self._get(f"/tickets/{ticket_id}/tags")

    async def add_ticket_tags(self, ticket_id: str, tags: List[str]) -> ZohoResponse:
        return await self._post(f"/tickets/{ticket_id}/tags", {"tags": tags})

    async def remove_ticket_tag(self, ticket_id: str, tag_id: str) -> ZohoResponse:
        return await self._delete(f"/tickets/{ticket_id}/tags/{tag_id}")

    async def get_ticket_full_context(self, ticket_id: str) -> ZohoResponse:
        """Fetch a ticket together with its threads and comments.

        The three calls run concurrently. A failed threads or comments call is
        reported inside its own field; a failed ticket call is returned as is.
        """
        ticket, threads, comments = await asyncio.gather(
            self.get_ticket(ticket_id),
            self.get_ticket_threads(ticket_id),
            self.get_ticket_comments(ticket_id),
        )
        if not ticket.ok:
            return ticket

        data = dict(ticket.data) if isinstance(ticket.data, dict) else {"ticket": ticket.data}
        data["threads"] = threads.data if threads.ok else threads.describe_failure()
        data["comments"] = comments.data if comments.ok else comments.describe_failure()
        return ZohoResponse(status_code=ticket.status_code, data=data, headers=ticket.headers)

    # ===========================
    # Contacts
    # ===========================

    async def get_contacts(
        self, limit: Optional[int] = None, from_index: Optional[int] = None
    ) -> ZohoResponse:
        return await self._get("/contacts", _query(limit=limit, **{"from": from_index}))

    async def get_contact(self, contact_id: str) -> ZohoResponse:
        return await self._get(f"/contacts/{contact_id}")

    async def create_contact(self, fields: Dict[str, Any]) -> ZohoResponse:
        return await self._post("/contacts", fields)

    async def update_contact(self, contact_id: str, fields: Dict[str, Any]) -> ZohoResponse:
        return await self._patch(f"/contacts/{contact_id}", fields)

    async def get_contact_tickets(self, contact_id: str) -> ZohoResponse:
        return await self._get(f"/contacts/{contact_id}/tickets")

    # ===========================
    # Accounts
    # ===========================

    async def get_accounts(
        self, limit: Optional[int] = None, from_index: Optional[int] = None
    ) -> ZohoResponse:
        return await self._get("/accounts", _query(limit=limit, **{"from": from_index}))

    async def get_account(self, account_id: str) -> ZohoResponse:
        return await self._get(f"/accounts/{account_id}")

    async def create_account(self, fields: Dict[str, Any]) -> ZohoResponse:
        return await self._post("/accounts", fields)

    async def update_account(self, account_id: str, fields: Dict[str, Any]) -> ZohoResponse:
        return await self._patch(f"/accounts/{account_id}", fields)

    async def get_account_contacts(self, account_id: str) -> ZohoResponse:
        return await self._get(f"/accounts/{account_id}/contacts")

    # ===========================
    # Tasks
    # ===========================

    async def get_tasks(
        self,
        limit: Optional[int] = None,
        from_index: Optional[int] = None,
        department_id: Optional[str] = None,
    ) -> ZohoResponse:
        return await self._get(
            "/tasks",
            _query(limit=limit, departmentId=department_id, **{"from": from_index}),
        )

    async def get_task(self, task_id: str) -> ZohoResponse:
        return await self._get(f"/tasks/{task_id}")

    async def create_task(self, fields: Dict[str, Any]) -> ZohoResponse:
        return await self._post("/tasks", fields)

    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> ZohoResponse:
        return await self._patch(f"/tasks/{task_id}", fields)

    async def delete_task(self, task_id: str) -> ZohoResponse:
        return await self._delete(f"/tasks/{task_id}")

    # ===========================
    # Time entries
    # ===========================

    async def get_ticket_time_entries(
        self,
        ticket_id: str,
        limit: Optional[int] = None,
        from_index: Optional[int] = None,
    ) -> ZohoResponse:
        return await self._get(
            f"/tickets/{ticket_id}/timeEntry",
            _query(limit=limit, **{"from": from_index}),
        )

    async def add_ticket_time_entry(self, ticket_id: str, fields: Dict[str, Any]) -> ZohoResponse:
        return await self._post(f"/tickets/{ticket_id}/timeEntry", fields)

    # ===========================
    # Products, departments, agents
    # ===========================

    async def get_products(
        self, limit: Optional[int] = None, from_index: Optional[int] = None
    ) -> ZohoResponse:
        return await self._get("/products", _query(limit=limit, **{"from": from_index}))

    async def get_product(self, product_id: str) -> ZohoResponse:
        return await self._get(f"/products/{product_id}")

    async def get_departments(self) -> ZohoResponse:
        return await self._get("/departments")

    async def get_department(self, department_id: str) -> ZohoResponse:
        return await self._get(f"/departments/{department_id}")

    async def get_agents(self) -> ZohoResponse:
        return await self._get("/agents")

    async def get_agent(self, agent_id: str) -> ZohoResponse:
        return await self._get(f"/agents/{agent_id}")

    # ===========================
    # Search
    # ===========================

    async def search_tickets(self, query: str, limit: Optional[int] = None) -> ZohoResponse:
        return await self._get("/search", _query(searchStr=query, limit=limit))
