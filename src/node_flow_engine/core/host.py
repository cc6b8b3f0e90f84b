"""Host capability surface consumed by node behaviors.

Nodes never reach into the host application directly; every side effect
goes through a HostDependencies instance carried on the execution context.
The base class raises HostCapabilityError for every capability so a host
only implements what it supports. HeadlessHost is a complete in-memory
implementation used by the CLI, the HTTP service and the tests.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Literal, Sequence

from pydantic import BaseModel

from .errors import HostCapabilityError

logger = logging.getLogger(__name__)

MessageRole = Literal["user", "assistant", "system"]
LorebookScope = Literal["all", "global", "character", "chat", "persona"]
NotificationLevel = Literal["info", "success", "warning", "error"]


class HostDependencies:
    """Async capability surface. Every method may fail."""

    # Messaging / profiles

    async def get_base_messages_for_profile(
        self, profile_id: str, last_message_id: int | None = None
    ) -> list[dict[str, Any]]:
        raise HostCapabilityError("get_base_messages_for_profile")

    async def make_simple_request(
        self, profile_id: str, messages: list[dict[str, Any]], max_response_token: int
    ) -> str:
        raise HostCapabilityError("make_simple_request")

    async def make_structured_request(
        self,
        profile_id: str,
        messages: list[dict[str, Any]],
        schema: type[BaseModel],
        schema_name: str,
        prompt_engineering_mode: str,
        max_response_token: int,
    ) -> dict[str, Any]:
        raise HostCapabilityError("make_structured_request")

    async def get_host_context(self) -> dict[str, Any]:
        raise HostCapabilityError("get_host_context")

    # Characters / lorebooks

    async def create_character(self, data: dict[str, Any]) -> None:
        raise HostCapabilityError("create_character")

    async def save_character(self, data: dict[str, Any]) -> None:
        raise HostCapabilityError("save_character")

    async def create_lorebook(self, name: str) -> bool:
        raise HostCapabilityError("create_lorebook")

    async def apply_lorebook_entry(
        self,
        entry: dict[str, Any],
        lorebook_name: str,
        operation: Literal["add", "update", "auto"] = "auto",
    ) -> dict[str, Any]:
        raise HostCapabilityError("apply_lorebook_entry")

    async def get_lorebook_entries(
        self, include: Sequence[LorebookScope]
    ) -> dict[str, list[dict[str, Any]]]:
        raise HostCapabilityError("get_lorebook_entries")

    # Chat

    async def send_chat_message(
        self, message: str, role: MessageRole, name: str | None = None
    ) -> int:
        raise HostCapabilityError("send_chat_message")

    async def delete_message(self, message_id: int) -> None:
        raise HostCapabilityError("delete_message")

    async def update_message_block(self, message_id: int, content: str) -> None:
        raise HostCapabilityError("update_message_block")

    async def hide_message_range(self, start: int, end: int, unhide: bool) -> None:
        raise HostCapabilityError("hide_message_range")

    async def get_chat_messages(self) -> list[dict[str, Any]]:
        raise HostCapabilityError("get_chat_messages")

    async def get_chat_input(self) -> str:
        raise HostCapabilityError("get_chat_input")

    async def update_chat_input(self, value: str) -> None:
        raise HostCapabilityError("update_chat_input")

    # Scripting

    async def run_regex_script(self, script_name: str, content: str) -> str:
        raise HostCapabilityError("run_regex_script")

    async def execute_slash_commands(self, text: str) -> Any:
        raise HostCapabilityError("execute_slash_commands")

    # Persistent variable stores (chat-scoped and global)

    async def get_local_variable(self, name: str) -> Any:
        raise HostCapabilityError("get_local_variable")

    async def set_local_variable(self, name: str, value: Any) -> None:
        raise HostCapabilityError("set_local_variable")

    async def get_global_variable(self, name: str) -> Any:
        raise HostCapabilityError("get_global_variable")

    async def set_global_variable(self, name: str, value: Any) -> None:
        raise HostCapabilityError("set_global_variable")

    # Interaction

    async def prompt_user(self, message: str, default: str | None = None) -> str | None:
        raise HostCapabilityError("prompt_user")

    async def confirm_user(self, message: str) -> bool:
        raise HostCapabilityError("confirm_user")

    async def notify(self, message: str, level: NotificationLevel = "info") -> None:
        raise HostCapabilityError("notify")

    # Host events (used by trigger registration)

    def add_event_listener(self, event_type: str, listener: Callable[..., Any]) -> None:
        raise HostCapabilityError("add_event_listener")

    def remove_event_listener(self, event_type: str, listener: Callable[..., Any]) -> None:
        raise HostCapabilityError("remove_event_listener")


@dataclass
class ChatMessage:
    role: str
    content: str
    name: str | None = None
    hidden: bool = False


@dataclass
class RegexScript:
    find: str
    replace: str = ""
    flags: str = "g"


class HeadlessHost(HostDependencies):
    """
    In-memory host with no UI.

    LLM calls are answered by an optional ``responder`` callable; prompts and
    confirmations by queued answers (falling back to the default / False).
    Host events can be fired with ``dispatch_event``.
    """

    def __init__(
        self,
        responder: Callable[[str, list[dict[str, Any]]], Any] | None = None,
        prompt_answers: list[str | None] | None = None,
        confirm_answers: list[bool] | None = None,
    ):
        self.responder = responder
        self.prompt_answers = list(prompt_answers or [])
        self.confirm_answers = list(confirm_answers or [])
        self.chat: list[ChatMessage] = []
        self.chat_input = ""
        self.characters: dict[str, dict[str, Any]] = {}
        self.lorebooks: dict[str, list[dict[str, Any]]] = {}
        self.regex_scripts: dict[str, RegexScript] = {}
        self.local_variables: dict[str, Any] = {}
        self.global_variables: dict[str, Any] = {}
        self.slash_commands: list[str] = []
        self.notifications: list[tuple[str, str]] = []
        self.listeners: dict[str, list[Callable[..., Any]]] = {}
        self.context: dict[str, Any] = {}

    # Messaging

    async def get_base_messages_for_profile(self, profile_id, last_message_id=None):
        messages = [m for m in self.chat if not m.hidden]
        if last_message_id is not None:
            messages = messages[: last_message_id + 1]
        return [{"role": m.role, "content": m.content} for m in messages]

    async def make_simple_request(self, profile_id, messages, max_response_token):
        if self.responder is None:
            raise HostCapabilityError("make_simple_request")
        return str(self.responder(profile_id, messages))

    async def make_structured_request(
        self, profile_id, messages, schema, schema_name, prompt_engineering_mode, max_response_token
    ):
        if self.responder is None:
            raise HostCapabilityError("make_structured_request")
        raw = self.responder(profile_id, messages)
        return schema.model_validate(raw).model_dump()

    async def get_host_context(self):
        return {
            "chat": [m.__dict__.copy() for m in self.chat],
            "characters": list(self.characters.values()),
            **self.context,
        }

    # Characters / lorebooks

    async def create_character(self, data):
        name = data.get("name")
        if not name:
            raise ValueError("Character name is required")
        avatar = data.get("avatar") or f"{name}.png"
        if avatar in self.characters:
            raise ValueError(f"Character '{avatar}' already exists")
        self.characters[avatar] = {**data, "avatar": avatar}

    async def save_character(self, data):
        avatar = data.get("avatar")
        if avatar not in self.characters:
            raise ValueError(f"Character '{avatar}' not found")
        self.characters[avatar].update(data)

    async def create_lorebook(self, name):
        if name in self.lorebooks:
            return False
        self.lorebooks[name] = []
        return True

    async def apply_lorebook_entry(self, entry, lorebook_name, operation="auto"):
        if lorebook_name not in self.lorebooks:
            raise ValueError(f"Lorebook '{lorebook_name}' not found")
        entries = self.lorebooks[lorebook_name]
        existing = next((e for e in entries if e.get("uid") == entry.get("uid")), None)
        if operation == "update" or (operation == "auto" and existing is not None):
            if existing is None:
                raise ValueError(f"Entry {entry.get('uid')} not found in '{lorebook_name}'")
            existing.update(entry)
            return {"entry": existing, "operation": "update"}
        new_entry = dict(entry)
        if new_entry.get("uid") is None:
            new_entry["uid"] = max((e.get("uid", -1) for e in entries), default=-1) + 1
        entries.append(new_entry)
        return {"entry": new_entry, "operation": "add"}

    async def get_lorebook_entries(self, include):
        # Headless host keeps every lorebook global
        if "all" in include or "global" in include:
            return {name: list(entries) for name, entries in self.lorebooks.items()}
        return {}

    # Chat

    async def send_chat_message(self, message, role, name=None):
        self.chat.append(ChatMessage(role=role, content=message, name=name))
        return len(self.chat) - 1

    def _message(self, message_id: int) -> ChatMessage:
        if not 0 <= message_id < len(self.chat):
            raise IndexError(f"Message {message_id} does not exist")
        return self.chat[message_id]

    async def delete_message(self, message_id):
        self._message(message_id)
        del self.chat[message_id]

    async def update_message_block(self, message_id, content):
        self._message(message_id).content = content

    async def hide_message_range(self, start, end, unhide):
        for message_id in range(start, end + 1):
            self._message(message_id).hidden = not unhide

    async def get_chat_messages(self):
        return [m.__dict__.copy() for m in self.chat]

    async def get_chat_input(self):
        return self.chat_input

    async def update_chat_input(self, value):
        self.chat_input = value

    # Scripting

    async def run_regex_script(self, script_name, content):
        script = self.regex_scripts.get(script_name)
        if script is None:
            raise ValueError(f"Regex script '{script_name}' not found")
        flags = re.IGNORECASE if "i" in script.flags else 0
        count = 0 if "g" in script.flags else 1
        return re.sub(script.find, script.replace, content, count=count, flags=flags)

    async def execute_slash_commands(self, text):
        self.slash_commands.append(text)
        return {"pipe": ""}

    # Variable stores

    async def get_local_variable(self, name):
        return self.local_variables.get(name)

    async def set_local_variable(self, name, value):
        self.local_variables[name] = value

    async def get_global_variable(self, name):
        return self.global_variables.get(name)

    async def set_global_variable(self, name, value):
        self.global_variables[name] = value

    # Interaction

    async def prompt_user(self, message, default=None):
        logger.info(f"Prompt: {message}")
        if self.prompt_answers:
            return self.prompt_answers.pop(0)
        return default

    async def confirm_user(self, message):
        logger.info(f"Confirm: {message}")
        if self.confirm_answers:
            return self.confirm_answers.pop(0)
        return False

    async def notify(self, message, level="info"):
        logger.info(f"Notification ({level}): {message}")
        self.notifications.append((level, message))

    # Host events

    def add_event_listener(self, event_type, listener):
        self.listeners.setdefault(event_type, []).append(listener)

    def remove_event_listener(self, event_type, listener):
        listeners = self.listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    async def dispatch_event(self, event_type: str, *args: Any) -> list[Any]:
        """Fire a host event; returns whatever the listeners returned (awaited)."""
        results = []
        for listener in list(self.listeners.get(event_type, [])):
            result = listener(*args)
            if hasattr(result, "__await__"):
                result = await result
            results.append(result)
        return results
