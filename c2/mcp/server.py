"""
MCP server wiring and tool registration.
"""

from __future__ import annotations

from typing import Optional, Union

from fastmcp import FastMCP

import c2.config as config
from c2.services import contact_tools
from c2.services.contact_service import ContactService

READ_ONLY_TOOL_ANNOTATIONS = {"readOnlyHint": True, "destructiveHint": False, "idempotentHint": True}
WRITE_TOOL_ANNOTATIONS = {"readOnlyHint": False, "destructiveHint": False}
DESTRUCTIVE_TOOL_ANNOTATIONS = {"readOnlyHint": False, "destructiveHint": True, "idempotentHint": True}

StringOrList = Optional[Union[str, list[str]]]

TOOL_NAMES = (
    "create-contact",
    "get-contact",
    "list-contacts",
    "search-contacts",
    "semantic-search-contacts",
    "update-contact",
    "delete-contact",
    "bulk-create-contacts",
    "bulk-update-contacts",
    "bulk-delete-contacts",
)


def create_mcp_server(service: ContactService, name: str = "C2 Contacts") -> FastMCP:
    """Build a FastMCP server whose tools are bound to ``service``."""
    mcp = FastMCP(name)

    @mcp.tool(name="create-contact", description="Create a new contact", annotations=WRITE_TOOL_ANNOTATIONS)
    def create_contact(
        name: str,
        title: Optional[str] = None,
        company: Optional[str] = None,
        email: StringOrList = None,
        phone: StringOrList = None,
        links: StringOrList = None,
        tags: StringOrList = None,
        notes: Optional[str] = None,
        location: Optional[str] = None,
        birthdate: Optional[str] = None,
    ) -> dict:
        return contact_tools.create_contact(
            service,
            name=name,
            title=title,
            company=company,
            email=email,
            phone=phone,
            links=links,
            tags=tags,
            notes=notes,
            location=location,
            birthdate=birthdate,
        )

    @mcp.tool(name="get-contact", description="Get a contact by ID", annotations=READ_ONLY_TOOL_ANNOTATIONS)
    def get_contact(id: str) -> dict:
        return contact_tools.get_contact(service, id)

    @mcp.tool(
        name="list-contacts",
        description="List contacts, most recently updated first",
        annotations=READ_ONLY_TOOL_ANNOTATIONS,
    )
    def list_contacts(limit: Optional[int] = None, offset: Optional[int] = None) -> dict:
        return contact_tools.list_contacts(service, limit=limit, offset=offset)

    @mcp.tool(
        name="search-contacts",
        description="Search contacts by name, company, notes, email, phone, links or tags",
        annotations=READ_ONLY_TOOL_ANNOTATIONS,
    )
    def search_contacts(query: str, limit: Optional[int] = None, offset: Optional[int] = None) -> dict:
        return contact_tools.search_contacts(service, query, limit=limit, offset=offset)

    @mcp.tool(
        name="semantic-search-contacts",
        description="Search contacts using semantic similarity",
        annotations=READ_ONLY_TOOL_ANNOTATIONS,
    )
    def semantic_search_contacts(query: str, limit: Optional[int] = None) -> dict:
        return contact_tools.semantic_search_contacts(service, query, limit=limit)

    @mcp.tool(name="update-contact", description="Update an existing contact", annotations=WRITE_TOOL_ANNOTATIONS)
    def update_contact(
        id: str,
        name: Optional[str] = None,
        title: Optional[str] = None,
        company: Optional[str] = None,
        email: StringOrList = None,
        phone: StringOrList = None,
        links: StringOrList = None,
        tags: StringOrList = None,
        notes: Optional[str] = None,
        location: Optional[str] = None,
        birthdate: Optional[str] = None,
    ) -> dict:
        return contact_tools.update_contact(
            service,
            id,
            name=name,
            title=title,
            company=company,
            email=email,
            phone=phone,
            links=links,
            tags=tags,
            notes=notes,
            location=location,
            birthdate=birthdate,
        )

    @mcp.tool(name="delete-contact", description="Delete a contact by ID", annotations=DESTRUCTIVE_TOOL_ANNOTATIONS)
    def delete_contact(id: str) -> dict:
        return contact_tools.delete_contact(service, id)

    @mcp.tool(
        name="bulk-create-contacts",
        description="Create multiple contacts at once",
        annotations=WRITE_TOOL_ANNOTATIONS,
    )
    def bulk_create_contacts(contacts: list[dict]) -> dict:
        return contact_tools.bulk_create_contacts(service, contacts)

    @mcp.tool(
        name="bulk-update-contacts",
        description="Update multiple contacts at once; each entry carries its id",
        annotations=WRITE_TOOL_ANNOTATIONS,
    )
    def bulk_update_contacts(updates: list[dict]) -> dict:
        return contact_tools.bulk_update_contacts(service, updates)

    @mcp.tool(
        name="bulk-delete-contacts",
        description="Delete multiple contacts at once",
        annotations=DESTRUCTIVE_TOOL_ANNOTATIONS,
    )
    def bulk_delete_contacts(ids: list[str]) -> dict:
        return contact_tools.bulk_delete_contacts(service, ids)

    config.logger.info("mcp_tools_registered", extra={"tool_count": len(TOOL_NAMES)})
    return mcp


async def tool_inventory_status(mcp: FastMCP) -> dict:
    """Return the registered tool names and count."""
    tools = await mcp.get_tools()
    tool_names = sorted(tools.keys())
    tool_count = len(tool_names)
    if tool_count == 0:
        config.logger.warning("tool_inventory_empty", extra={"tool_count": tool_count})
    return {
        "tool_count": tool_count,
        "tools": tool_names,
    }
