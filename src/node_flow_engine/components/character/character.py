"""Character nodes - read, create and edit host character cards."""

from __future__ import annotations

import copy
from typing import Any

from pydantic import BaseModel, Field

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import required_field

CARD_FIELDS = ("name", "description", "first_mes", "scenario", "personality", "mes_example")


class Character(BaseModel):
    name: str = Field(description="The character's name.")
    avatar: str = Field(description="The character's avatar filename.")
    description: str = Field("", description="The character's description.")
    first_mes: str = Field("", description="The character's first message.")
    scenario: str = Field("", description="The scenario.")
    personality: str = Field("", description="The character's personality.")
    mes_example: str = Field("", description="Example messages.")
    tags: list[str] = Field(default_factory=list, description="A list of tags.")


def parse_tags(value: Any) -> list[str]:
    """Comma separated string (or list) -> cleaned tag list."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(t).strip() for t in value if str(t).strip()]
    return [t.strip() for t in str(value).split(",") if t.strip()]


async def find_character(context, avatar: str) -> dict[str, Any]:
    """Deep copy of the host character with ``avatar``; raises LookupError if absent."""
    host_context = await context.dependencies.get_host_context()
    for character in host_context.get("characters", []):
        if character.get("avatar") == avatar:
            character = copy.deepcopy(character)
            character.pop("json_data", None)
            if isinstance(character.get("data"), dict):
                character["data"].pop("json_data", None)
            return character
    raise LookupError(f'Character with avatar "{avatar}" not found.')


class CharacterFields(FlowNodeData):
    name: str = ""
    description: str = ""
    first_mes: str = ""
    scenario: str = ""
    personality: str = ""
    mes_example: str = ""
    tags: str = ""


_FIELD_INPUTS = [HandleSpec(f, FlowDataType.STRING) for f in CARD_FIELDS + ("tags",)]


class GetCharacterData(FlowNodeData):
    character_avatar: str = ""


@register_node
class GetCharacterNode(NodeDefinition):
    """Look up a character by avatar and expose its card fields."""

    type = "character/get"
    label = "Get Character"
    category = "character"
    data_schema = GetCharacterData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("character_avatar", FlowDataType.CHARACTER_AVATAR),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.OBJECT, schema=Character),
        *[HandleSpec(f, FlowDataType.STRING) for f in CARD_FIELDS],
        HandleSpec("tags", FlowDataType.ARRAY, schema=list[str]),
    ]
    validators = (required_field("character_avatar", "Character is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        avatar = resolve_input(input, self.parse_data(node), "character_avatar")
        if not avatar:
            raise ValueError("No character avatar provided.")

        character = await find_character(context, avatar)
        return {**character, "main": input.get("main"), "result": character}


class CreateCharacterData(CharacterFields):
    name: str = "New Character"


@register_node
class CreateCharacterNode(NodeDefinition):
    """
    Create a new character card.

    ``tags`` is a comma separated string. Outputs the new card's ``name``
    and the ``avatar`` the host assigned to it.
    """

    type = "character/create"
    label = "Create Character"
    category = "character"
    data_schema = CreateCharacterData
    inputs = _FIELD_INPUTS
    outputs = [
        HandleSpec("name", FlowDataType.STRING),
        HandleSpec("avatar", FlowDataType.CHARACTER_AVATAR),
    ]
    validators = (required_field("name", "Character name is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        name = resolve_input(input, data, "name")
        if not name:
            raise ValueError("Character name is required.")

        card = {f: resolve_input(input, data, f) or "" for f in CARD_FIELDS}
        card["name"] = name
        card["tags"] = parse_tags(resolve_input(input, data, "tags"))
        await context.dependencies.create_character(card)

        host_context = await context.dependencies.get_host_context()
        created = [c for c in host_context.get("characters", []) if c.get("name") == name]
        avatar = created[-1].get("avatar") if created else None
        return {"name": name, "avatar": avatar}


class EditCharacterData(CharacterFields):
    character_avatar: str = ""


@register_node
class EditCharacterNode(NodeDefinition):
    """Overwrite the non-empty fields of an existing character card."""

    type = "character/edit"
    label = "Edit Character"
    category = "character"
    data_schema = EditCharacterData
    inputs = [HandleSpec("character_avatar", FlowDataType.CHARACTER_AVATAR), *_FIELD_INPUTS]
    outputs = [
        HandleSpec("name", FlowDataType.STRING),
        HandleSpec("result", FlowDataType.OBJECT, schema=Character),
    ]
    validators = (required_field("character_avatar", "Character is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        avatar = resolve_input(input, data, "character_avatar")
        if not avatar:
            raise ValueError("Character avatar is required.")

        character = await find_character(context, avatar)
        for field_name in CARD_FIELDS:
            value = resolve_input(input, data, field_name)
            if value:
                character[field_name] = value
        tags = resolve_input(input, data, "tags")
        if tags:
            character["tags"] = parse_tags(tags)

        await context.dependencies.save_character(character)
        return {"name": character.get("name"), "result": character}
