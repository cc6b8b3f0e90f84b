"""Lorebook nodes - create lorebooks and read, add or edit their entries."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import required_field


class LorebookEntry(BaseModel):
    uid: int | None = None
    key: list[str] = Field(default_factory=list)
    keysecondary: list[str] = Field(default_factory=list)
    content: str = ""
    comment: str = ""
    disable: bool = False


def parse_keys(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(k).strip() for k in value if str(k).strip()]
    return [k.strip() for k in str(value).split(",") if k.strip()]


async def load_lorebook(context, name: str) -> list[dict[str, Any]]:
    lorebooks = await context.dependencies.get_lorebook_entries(["all"])
    if name not in lorebooks:
        raise LookupError(f'Lorebook "{name}" not found.')
    return lorebooks[name]


class CreateLorebookData(FlowNodeData):
    lorebook_name: str = "My Lorebook"


@register_node
class CreateLorebookNode(NodeDefinition):
    """Create an empty lorebook; fails if one with the name already exists."""

    type = "lorebook/create"
    label = "Create Lorebook"
    category = "lorebook"
    data_schema = CreateLorebookData
    inputs = [HandleSpec("lorebook_name", FlowDataType.STRING)]
    outputs = [HandleSpec("lorebook_name", FlowDataType.LOREBOOK_NAME)]
    validators = (required_field("lorebook_name", "Lorebook Name is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        name = resolve_input(input, self.parse_data(node), "lorebook_name")
        if not name:
            raise ValueError("Lorebook name is required.")
        if not await context.dependencies.create_lorebook(name):
            raise RuntimeError(f'Failed to create lorebook "{name}". It might already exist.')
        return {"lorebook_name": name}


class CreateEntryData(FlowNodeData):
    lorebook_name: str = ""
    key: str = ""
    content: str = ""
    comment: str = ""


@register_node
class CreateLorebookEntryNode(NodeDefinition):
    """Add an entry to a lorebook. ``key`` is a comma separated list of keywords."""

    type = "lorebook/create_entry"
    label = "Create Lorebook Entry"
    category = "lorebook"
    data_schema = CreateEntryData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("lorebook_name", FlowDataType.LOREBOOK_NAME),
        HandleSpec("key", FlowDataType.STRING),
        HandleSpec("content", FlowDataType.STRING),
        HandleSpec("comment", FlowDataType.STRING),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.OBJECT, schema=LorebookEntry),
    ]
    validators = (
        required_field("lorebook_name", "Lorebook Name is required."),
        required_field("key", "Key(s) are required."),
    )

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        name = resolve_input(input, data, "lorebook_name")
        keys = resolve_input(input, data, "key")
        if not name:
            raise ValueError("Lorebook name is required.")
        if not keys:
            raise ValueError("Key(s) are required.")

        entry = LorebookEntry(
            key=parse_keys(keys),
            content=resolve_input(input, data, "content") or "",
            comment=resolve_input(input, data, "comment") or "",
        )
        result = await context.dependencies.apply_lorebook_entry(
            entry.model_dump(), name, operation="add"
        )
        return {"main": input.get("main"), "result": result["entry"]}


class EditEntryData(FlowNodeData):
    lorebook_name: str = ""
    entry_uid: int | None = None
    key: str = ""
    content: str = ""
    comment: str = ""


@register_node
class EditLorebookEntryNode(NodeDefinition):
    """Update the keys, content or comment of an entry identified by uid."""

    type = "lorebook/edit_entry"
    label = "Edit Lorebook Entry"
    category = "lorebook"
    data_schema = EditEntryData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("lorebook_name", FlowDataType.LOREBOOK_NAME),
        HandleSpec("entry_uid", FlowDataType.NUMBER),
        HandleSpec("key", FlowDataType.STRING),
        HandleSpec("content", FlowDataType.STRING),
        HandleSpec("comment", FlowDataType.STRING),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.OBJECT, schema=LorebookEntry),
    ]
    validators = (
        required_field("lorebook_name", "Lorebook Name is required."),
        required_field("entry_uid", "Entry to Edit is required."),
    )

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        name = resolve_input(input, data, "lorebook_name")
        uid = resolve_input(input, data, "entry_uid")
        if not name:
            raise ValueError("Lorebook name is required to find the entry.")
        if uid is None:
            raise ValueError("Entry UID is required to identify the entry to edit.")

        entries = await load_lorebook(context, name)
        existing = next((e for e in entries if e.get("uid") == uid), None)
        if existing is None:
            raise LookupError(f'Entry with UID "{uid}" not found in "{name}".')

        entry = dict(existing)
        keys = resolve_input(input, data, "key")
        if keys:
            entry["key"] = parse_keys(keys)
        for field_name in ("content", "comment"):
            value = resolve_input(input, data, field_name)
            if value:
                entry[field_name] = value

        result = await context.dependencies.apply_lorebook_entry(entry, name, operation="update")
        return {"main": input.get("main"), "result": result["entry"]}


class GetEntriesData(FlowNodeData):
    lorebook_name: str = ""


@register_node
class GetLorebookEntriesNode(NodeDefinition):
    type = "lorebook/get_entries"
    label = "Get Lorebook Entries"
    category = "lorebook"
    data_schema = GetEntriesData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("lorebook_name", FlowDataType.LOREBOOK_NAME),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("entries", FlowDataType.ARRAY, schema=list[LorebookEntry]),
    ]
    validators = (required_field("lorebook_name", "Lorebook Name is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        name = resolve_input(input, self.parse_data(node), "lorebook_name")
        if not name:
            raise ValueError("Lorebook name is required.")
        entries = await load_lorebook(context, name)
        return {"main": input.get("main"), "entries": list(entries)}


class GetEntryData(FlowNodeData):
    lorebook_name: str = ""
    entry_uid: int | None = None


@register_node
class GetLorebookEntryNode(NodeDefinition):
    """Read one entry by uid. ``key`` is output as a comma separated string."""

    type = "lorebook/get_entry"
    label = "Get Lorebook Entry"
    category = "lorebook"
    data_schema = GetEntryData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("lorebook_name", FlowDataType.LOREBOOK_NAME),
        HandleSpec("entry_uid", FlowDataType.NUMBER),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("entry", FlowDataType.OBJECT, schema=LorebookEntry),
        HandleSpec("key", FlowDataType.STRING),
        HandleSpec("content", FlowDataType.STRING),
        HandleSpec("comment", FlowDataType.STRING),
    ]
    validators = (
        required_field("lorebook_name", "Lorebook Name is required."),
        required_field("entry_uid", "Entry UID is required."),
    )

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        name = resolve_input(input, data, "lorebook_name")
        uid = resolve_input(input, data, "entry_uid")
        if not name:
            raise ValueError("Lorebook name is required.")
        if uid is None:
            raise ValueError("Entry UID is required.")

        entries = await load_lorebook(context, name)
        entry = next((e for e in entries if e.get("uid") == uid), None)
        if entry is None:
            raise LookupError(f'Entry with UID "{uid}" not found in "{name}".')
        return {
            "main": input.get("main"),
            "entry": dict(entry),
            "key": ", ".join(entry.get("key") or []),
            "content": entry.get("content", ""),
            "comment": entry.get("comment", ""),
        }
