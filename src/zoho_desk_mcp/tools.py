"""MCP tool catalog for Zoho Desk.

Each tool is a pydantic parameter model (which also publishes the tool's
input schema) plus a handler mapping validated parameters onto one
``ZohoDeskClient`` operation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, Union

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .client import ZohoDeskClient, ZohoResponse


class TicketPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class CommentContentType(str, Enum):
    HTML = "html"
    PLAIN_TEXT = "plainText"


class TicketSortField(str, Enum):
    CREATED_TIME = "createdTime"
    MODIFIED_TIME = "modifiedTime"
    CUSTOMER_RESPONSE_TIME = "customerResponseTime"
    DUE_DATE = "dueDate"


class ToolParams(BaseModel):
    """Base for tool arguments.

    Validation uses the snake_case names published in the schema; dumping by
    alias produces the camelCase keys Zoho Desk expects.
    """

    model_config = ConfigDict(
        extra="forbid",
        coerce_numbers_to_str=True,
        use_enum_values=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    def payload(self, *exclude: str) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, exclude=set(exclude))


Limit = Optional[int]


def _limit(description: str = "Number of records to retrieve (1-100)"):
    return Field(None, ge=1, le=100, description=description)


def _from():
    return Field(None, ge=0, description="Starting index for pagination")


# ===========================
# Parameter models
# ===========================


class NoParams(ToolParams):
    pass


class TicketRef(ToolParams):
    ticket_id: str = Field(..., min_length=1, description="Ticket ID")


class ContactRef(ToolParams):
    contact_id: str = Field(..., min_length=1, description="Contact ID")


class AccountRef(ToolParams):
    account_id: str = Field(..., min_length=1, description="Account ID")


class TaskRef(ToolParams):
    task_id: str = Field(..., min_length=1, description="Task ID")


class ListTickets(ToolParams):
    status: Optional[str] = Field(None, description="Filter by status (Open, On Hold, Escalated, Closed)")
    limit: Limit = _limit("Number of tickets to retrieve (1-100)")
    sort_by: Optional[TicketSortField] = Field(None, description="Sort field")
    from_index: Optional[int] = _from()
    department_id: Optional[str] = Field(None, description="Only tickets from this department")


class GetTicket(TicketRef):
    include_threads: bool = Field(True, description="Include conversation history")


class CreateTicket(ToolParams):
    subject: str = Field(..., min_length=1, description="Ticket subject/title")
    description: str = Field(..., description="Ticket description/content")
    contact_id: Optional[str] = Field(None, description="Contact ID (customer)")
    department_id: Optional[str] = Field(None, description="Department ID")
    priority: Optional[TicketPriority] = Field(None, description="Ticket priority")
    status: Optional[str] = Field(None, description="Initial ticket status")
    assignee_id: Optional[str] = Field(None, description="Agent ID to assign")
    email: Optional[str] = Field(None, description="Requester email")


class UpdateTicket(TicketRef):
    subject: Optional[str] = Field(None, description="New subject")
    description: Optional[str] = Field(None, description="New description")
    status: Optional[str] = Field(None, description="New status")
    priority: Optional[TicketPriority] = Field(None, description="New priority")
    assignee_id: Optional[str] = Field(None, description="Assign to agent ID")
    department_id: Optional[str] = Field(None, description="Move ticket to department ID")
    due_date: Optional[str] = Field(None, description="Due date (ISO 8601)")


class MoveTicket(TicketRef):
    department_id: str = Field(..., min_length=1, description="Target department ID to move ticket to")


class ReplyTicket(TicketRef):
    content: str = Field(..., min_length=1, description="Reply content (supports HTML)")
    is_public: bool = Field(
        True, description="Public reply visible to customer (true) or private note (false)"
    )


class ListTicketComments(TicketRef):
    limit: Limit = _limit("Number of comments to retrieve (1-100)")
    from_index: Optional[int] = _from()


class AddTicketComment(TicketRef):
    content: str = Field(..., min_length=1, description="Comment content (supports HTML)")
    is_public: bool = Field(
        False, description="Public comment visible to customer (true) or private note (false)"
    )
    content_type: CommentContentType = Field("html", description="Content format type")


class AddTicketTags(TicketRef):
    tags: List[str] = Field(..., min_length=1, description="Tag names to add")


class RemoveTicketTag(TicketRef):
    tag_id: str = Field(..., min_length=1, description="Tag ID to remove")


class Paging(ToolParams):
    limit: Limit = _limit()
    from_index: Optional[int] = _from()


class ContactFields(ToolParams):
    first_name: Optional[str] = Field(None, description="First name")
    email: Optional[str] = Field(None, description="Email address")
    phone: Optional[str] = Field(None, description="Phone number")
    mobile: Optional[str] = Field(None, description="Mobile number")
    account_id: Optional[str] = Field(None, description="Account the contact belongs to")
    description: Optional[str] = Field(None, description="Short description of the contact")
    custom_fields: Optional[Dict[str, Any]] = Field(
        None, serialization_alias="cf", description="Custom field values keyed by API name"
    )


class CreateContact(ContactFields):
    last_name: str = Field(..., min_length=1, description="Last name (required by Zoho Desk)")


class UpdateContact(ContactRef, ContactFields):
    last_name: Optional[str] = Field(None, description="Last name")


class AccountFields(ToolParams):
    email: Optional[str] = Field(None, description="Email address")
    phone: Optional[str] = Field(None, description="Phone number")
    website: Optional[str] = Field(None, description="Website URL")
    industry: Optional[str] = Field(None, description="Industry")
    description: Optional[str] = Field(None, description="Short description of the account")
    custom_fields: Optional[Dict[str, Any]] = Field(
        None, serialization_alias="cf", description="Custom field values keyed by API name"
    )


class CreateAccount(AccountFields):
    account_name: str = Field(..., min_length=1, description="Account (company) name")


class UpdateAccount(AccountRef, AccountFields):
    account_name: Optional[str] = Field(None, description="Account (company) name")


class ListTasks(Paging):
    department_id: Optional[str] = Field(None, description="Only tasks from this department")


class TaskFields(ToolParams):
    ticket_id: Optional[str] = Field(None, description="Ticket the task belongs to")
    department_id: Optional[str] = Field(None, description="Department ID")
    owner_id: Optional[str] = Field(None, description="Agent ID owning the task")
    due_date: Optional[str] = Field(None, description="Due date (ISO 8601)")
    priority: Optional[str] = Field(None, description="Task priority")
    status: Optional[str] = Field(None, description="Task status")
    description: Optional[str] = Field(None, description="Task description")


class CreateTask(TaskFields):
    subject: str = Field(..., min_length=1, description="Task subject")


class UpdateTask(TaskFields):
    task_id: str = Field(..., min_length=1, description="Task ID")
    subject: Optional[str] = Field(None, description="Task subject")


class ListTimeEntries(TicketRef):
    limit: Limit = _limit()
    from_index: Optional[int] = _from()


class AddTimeEntry(TicketRef):
    hours_spent: Optional[int] = Field(None, ge=0, description="Hours spent")
    minutes_spent: Optional[int] = Field(None, ge=0, le=59, description="Minutes spent")
    seconds_spent: Optional[int] = Field(None, ge=0, le=59, description="Seconds spent")
    executed_time: Optional[str] = Field(None, description="When the work was done (ISO 8601)")
    owner_id: Optional[str] = Field(None, description="Agent ID who did the work")
    description: Optional[str] = Field(None, description="Work description")
    is_billable: Optional[bool] = Field(None, description="Whether the time is billable")


class ProductRef(ToolParams):
    product_id: str = Field(..., min_length=1, description="Product ID")


class DepartmentRef(ToolParams):
    department_id: str = Field(..., min_length=1, description="Department ID")


class AgentRef(ToolParams):
    agent_id: str = Field(..., min_length=1, description="Agent ID")


class SearchTickets(ToolParams):
    query: str = Field(..., min_length=1, description="Search query")
    limit: Limit = _limit("Max results to return (1-100)")


# ===========================
# Handlers
# ===========================

HandlerResult = Union[ZohoResponse, str]
Handler = Callable[[ZohoDeskClient, Any], Awaitable[HandlerResult]]


async def _list_tickets(client: ZohoDeskClient, p: ListTickets) -> HandlerResult:
    return await client.get_tickets(
        status=p.status,
        limit=p.limit,
        sort_by=p.sort_by,
        from_index=p.from_index,
        department_id=p.department_id,
    )


async def _get_ticket(client: ZohoDeskClient, p: GetTicket) -> HandlerResult:
    ticket = await client.get_ticket(p.ticket_id)
    if not p.include_threads or not ticket.ok or not isinstance(ticket.data, dict):
        return ticket
    threads = await client.get_ticket_threads(p.ticket_id)
    data = dict(ticket.data)
    data["threads"] = threads.data if threads.ok else threads.describe_failure()
    return ZohoResponse(status_code=ticket.status_code, data=data, headers=ticket.headers)


async def _get_ticket_full_context(client: ZohoDeskClient, p: TicketRef) -> HandlerResult:
    return await client.get_ticket_full_context(p.ticket_id)


async def _create_ticket(client: ZohoDeskClient, p: CreateTicket) -> HandlerResult:
    return await client.create_ticket(
        subject=p.subject,
        description=p.description,
        contact_id=p.contact_id,
        department_id=p.department_id,
        priority=p.priority,
        status=p.status,
        assignee_id=p.assignee_id,
        email=p.email,
    )


async def _update_ticket(client: ZohoDeskClient, p: UpdateTicket) -> HandlerResult:
    fields = p.payload("ticket_id")
    if not fields:
        raise ValueError("No fields provided for update")
    return await client.update_ticket(p.ticket_id, fields)


async def _move_ticket(client: ZohoDeskClient, p: MoveTicket) -> HandlerResult:
    return await client.move_ticket(p.ticket_id, p.department_id)


async def _reply_ticket(client: ZohoDeskClient, p: ReplyTicket) -> HandlerResult:
    return await client.add_ticket_reply(p.ticket_id, p.content, p.is_public)


async def _delete_ticket(client: ZohoDeskClient, p: TicketRef) -> HandlerResult:
    response = await client.delete_ticket(p.ticket_id)
    if response.ok:
        return f"Ticket {p.ticket_id} deleted successfully"
    return response


async def _list_ticket_comments(client: ZohoDeskClient, p: ListTicketComments) -> HandlerResult:
    return await client.get_ticket_comments(p.ticket_id, limit=p.limit, from_index=p.from_index)


async def _add_ticket_comment(client: ZohoDeskClient, p: AddTicketComment) -> HandlerResult:
    return await client.add_ticket_comment(p.ticket_id, p.content, p.is_public, p.content_type)


async def _get_ticket_tags(client: ZohoDeskClient, p: TicketRef) -> HandlerResult:
    return await client.get_ticket_tags(p.ticket_id)


async def _add_ticket_tags(client: ZohoDeskClient, p: AddTicketTags) -> HandlerResult:
    return await client.add_ticket_tags(p.ticket_id, p.tags)


async def _remove_ticket_tag(client: ZohoDeskClient, p: RemoveTicketTag) -> HandlerResult:
    return await client.remove_ticket_tag(p.ticket_id, p.tag_id)


async def _list_contacts(client: ZohoDeskClient, p: Paging) -> HandlerResult:
    return await client.get_contacts(limit=p.limit, from_index=p.from_index)


async def _get_contact(client: ZohoDeskClient, p: ContactRef) -> HandlerResult:
    return await client.get_contact(p.contact_id)


async def _create_contact(client: ZohoDeskClient, p: CreateContact) -> HandlerResult:
    return await client.create_contact(p.payload())


async def _update_contact(client: ZohoDeskClient, p: UpdateContact) -> HandlerResult:
    fields = p.payload("contact_id")
    if not fields:
        raise ValueError("No fields provided for update")
    return await client.update_contact(p.contact_id, fields)


async def _get_contact_tickets(client: ZohoDeskClient, p: ContactRef) -> HandlerResult:
    return await client.get_contact_tickets(p.contact_id)


async def _list_accounts(client: ZohoDeskClient, p: Paging) -> HandlerResult:
    return await client.get_accounts(limit=p.limit, from_index=p.from_index)


async def _get_account(client: ZohoDeskClient, p: AccountRef) -> HandlerResult:
    return await client.get_account(p.account_id)


async def _create_account(client: ZohoDeskClient, p: CreateAccount) -> HandlerResult:
    return await client.create_account(p.payload())


async def _update_account(client: ZohoDeskClient, p: UpdateAccount) -> HandlerResult:
    fields = p.payload("account_id")
    if not fields:
        raise ValueError("No fields provided for update")
    return await client.update_account(p.account_id, fields)


async def _get_account_contacts(client: ZohoDeskClient, p: AccountRef) -> HandlerResult:
    return await client.get_account_contacts(p.account_id)


async def _list_tasks(client: ZohoDeskClient, p: ListTasks) -> HandlerResult:
    return await client.get_tasks(limit=p.limit, from_index=p.from_index, department_id=p.department_id)


async def _get_task(client: ZohoDeskClient, p: TaskRef) -> HandlerResult:
    return await client.get_task(p.task_id)


async def _create_task(client: ZohoDeskClient, p: CreateTask) -> HandlerResult:
    return await client.create_task(p.payload())


async def _update_task(client: ZohoDeskClient, p: UpdateTask) -> HandlerResult:
    fields = p.payload("task_id")
    if not fields:
        raise ValueError("No fields provided for update")
    return await client.update_task(p.task_id, fields)


async def _delete_task(client: ZohoDeskClient, p: TaskRef) -> HandlerResult:
    response = await client.delete_task(p.task_id)
    if response.ok:
        return f"Task {p.task_id} deleted successfully"
    return response


async def _list_time_entries(client: ZohoDeskClient, p: ListTimeEntries) -> HandlerResult:
    return await client.get_ticket_time_entries(p.ticket_id, limit=p.limit, from_index=p.from_index)


async def _add_time_entry(client: ZohoDeskClient, p: AddTimeEntry) -> HandlerResult:
    fields = p.payload("ticket_id")
    if not any(key in fields for key in ("hoursSpent", "minutesSpent", "secondsSpent")):
        raise ValueError("At least one of hours_spent, minutes_spent or seconds_spent is required")
    return await client.add_ticket_time_entry(p.ticket_id, fields)


async def _list_products(client: ZohoDeskClient, p: Paging) -> HandlerResult:
    return await client.get_products(limit=p.limit, from_index=p.from_index)


async def _get_product(client: ZohoDeskClient, p: ProductRef) -> HandlerResult:
    return await client.get_product(p.product_id)


async def _list_departments(client: ZohoDeskClient, p: NoParams) -> HandlerResult:
    return await client.get_departments()


async def _get_department(client: ZohoDeskClient, p: DepartmentRef) -> HandlerResult:
    return await client.get_department(p.department_id)


async def _list_agents(client: ZohoDeskClient, p: NoParams) -> HandlerResult:
    return await client.get_agents()


async def _get_agent(client: ZohoDeskClient, p: AgentRef) -> HandlerResult:
    return await client.get_agent(p.agent_id)


async def _search_tickets(client: ZohoDeskClient, p: SearchTickets) -> HandlerResult:
    return await client.search_tickets(p.query, limit=p.limit)


# ===========================
# Catalog
# ===========================


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    params: Type[ToolParams]
    handler: Handler
    notify: Optional[str] = None  # notification kind sent after success

    @property
    def input_schema(self) -> Dict[str, Any]:
        return self.params.model_json_schema()


TOOLS: List[ToolSpec] = [
    # Tickets
    ToolSpec("zoho_list_tickets", "List Zoho Desk support tickets with optional filters", ListTickets, _list_tickets),
    ToolSpec(
        "zoho_get_ticket",
        "Get detailed information about a specific ticket including conversation threads",
        GetTicket,
        _get_ticket,
    ),
    ToolSpec(
        "zoho_get_ticket_full_context",
        "Get a ticket together with its conversation threads and comments in one call",
        TicketRef,
        _get_ticket_full_context,
    ),
    ToolSpec("zoho_create_ticket", "Create a new support ticket", CreateTicket, _create_ticket),
    ToolSpec(
        "zoho_update_ticket",
        "Update ticket details (status, priority, assignee, department, etc.)",
        UpdateTicket,
        _update_ticket,
    ),
    ToolSpec("zoho_move_ticket", "Move/transfer a ticket to a different department", MoveTicket, _move_ticket),
    ToolSpec("zoho_reply_ticket", "Add a reply to a ticket", ReplyTicket, _reply_ticket, notify="reply"),
    ToolSpec("zoho_delete_ticket", "Delete a ticket", TicketRef, _delete_ticket),
    # Comments and tags
    ToolSpec("zoho_list_ticket_comments", "List all comments on a ticket", ListTicketComments, _list_ticket_comments),
    ToolSpec(
        "zoho_add_ticket_comment",
        "Add a comment to a ticket (internal note or public comment)",
        AddTicketComment,
        _add_ticket_comment,
        notify="comment",
    ),
    ToolSpec("zoho_get_ticket_tags", "Get all tags applied to a ticket", TicketRef, _get_ticket_tags),
    ToolSpec("zoho_add_ticket_tags", "Add tags to a ticket for categorization", AddTicketTags, _add_ticket_tags),
    ToolSpec("zoho_remove_ticket_tag", "Remove a tag from a ticket", RemoveTicketTag, _remove_ticket_tag),
    # Contacts
    ToolSpec("zoho_list_contacts", "List all contacts (customers)", Paging, _list_contacts),
    ToolSpec("zoho_get_contact", "Get contact details", ContactRef, _get_contact),
    ToolSpec("zoho_create_contact", "Create a contact", CreateContact, _create_contact),
    ToolSpec("zoho_update_contact", "Update a contact", UpdateContact, _update_contact),
    ToolSpec(
        "zoho_get_contact_tickets",
        "Get all tickets for a specific contact (customer history)",
        ContactRef,
        _get_contact_tickets,
    ),
    # Accounts
    ToolSpec("zoho_list_accounts", "List all accounts (customer companies)", Paging, _list_accounts),
    ToolSpec("zoho_get_account", "Get account details", AccountRef, _get_account),
    ToolSpec("zoho_create_account", "Create an account", CreateAccount, _create_account),
    ToolSpec("zoho_update_account", "Update an account", UpdateAccount, _update_account),
    ToolSpec("zoho_get_account_contacts", "List the contacts of an account", AccountRef, _get_account_contacts),
    # Tasks
    ToolSpec("zoho_list_tasks", "List tasks", ListTasks, _list_tasks),
    ToolSpec("zoho_get_task", "Get task details", TaskRef, _get_task),
    ToolSpec("zoho_create_task", "Create a task, optionally linked to a ticket", CreateTask, _create_task),
    ToolSpec("zoho_update_task", "Update a task", UpdateTask, _update_task),
    ToolSpec("zoho_delete_task", "Delete a task", TaskRef, _delete_task),
    # Time entries
    ToolSpec("zoho_list_time_entries", "List time entries logged on a ticket", ListTimeEntries, _list_time_entries),
    ToolSpec("zoho_add_time_entry", "Log time spent on a ticket", AddTimeEntry, _add_time_entry),
    # Products, departments, agents
    ToolSpec("zoho_list_products", "List products", Paging, _list_products),
    ToolSpec("zoho_get_product", "Get product details", ProductRef, _get_product),
    ToolSpec("zoho_list_departments", "List all departments", NoParams, _list_departments),
    ToolSpec("zoho_get_department", "Get department details", DepartmentRef, _get_department),
    ToolSpec("zoho_list_agents", "List all support agents", NoParams, _list_agents),
    ToolSpec("zoho_get_agent", "Get agent details", AgentRef, _get_agent),
    # Search
    ToolSpec("zoho_search_tickets", "Search tickets by keywords", SearchTickets, _search_tickets),
]

TOOLS_BY_NAME: Dict[str, ToolSpec] = {tool.name: tool for tool in TOOLS}
