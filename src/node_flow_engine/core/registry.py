"""Node definition registry with auto-discovery."""

from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Type, TYPE_CHECKING

from pydantic import ValidationError

from .errors import RegistrationError, UnknownNodeTypeError
from .flow import SpecNode

if TYPE_CHECKING:
    from .node import NodeDefinition

logger = logging.getLogger(__name__)

# Extra indices checked past the configured variadic count
_VARIADIC_CHECK_EXTRA = 3


class NodeRegistry:
    """
    Registry mapping node type strings to node definitions.

    Flows reference nodes by type string (e.g. "logic/for_each"); the engine
    and validator look the definition up here and call through its interface.
    """

    _instance: "NodeRegistry | None" = None

    def __init__(self):
        self._definitions: dict[str, "NodeDefinition"] = {}

    @classmethod
    def get_instance(cls) -> "NodeRegistry":
        """Get the singleton registry instance."""
        if cls._instance is None:
            cls._instance = NodeRegistry()
        return cls._instance

    def register(self, definition: "NodeDefinition", replace: bool = False) -> None:
        """
        Register a node definition under its type string.

        Args:
            definition: The definition instance to register
            replace: Allow overriding an existing registration (logged)

        Raises:
            RegistrationError: Duplicate type without replace, missing type,
                or a variadic handle family that contradicts itself
        """
        node_type = definition.type
        if not node_type:
            raise RegistrationError(f"{definition.__class__.__name__} has no type")

        if node_type in self._definitions:
            if not replace:
                raise RegistrationError(f"Node type already registered: {node_type}")
            previous = self._definitions[node_type]
            logger.warning(
                f"Node type '{node_type}' re-registered: "
                f"{previous.__class__.__name__} replaced by {definition.__class__.__name__}"
            )

        self._check_variadic_consistency(definition)
        self._definitions[node_type] = definition

    def _check_variadic_consistency(self, definition: "NodeDefinition") -> None:
        """get_dynamic_handle_id and is_dynamic_handle must agree."""
        if definition.variadic_prefix is None:
            return

        try:
            defaults = definition.data_schema().model_dump(by_alias=True)
        except ValidationError as e:
            raise RegistrationError(
                f"{definition.type}: variadic node data schema needs defaults ({e})"
            ) from e
        sample = SpecNode(id="__sample__", type=definition.type, data=defaults)
        count = definition.variadic_count(sample)

        for i in range(count + _VARIADIC_CHECK_EXTRA):
            handle_id = definition.get_dynamic_handle_id(i)
            accepted = definition.is_dynamic_handle(sample, handle_id)
            if i < count and not accepted:
                raise RegistrationError(
                    f"{definition.type}: dynamic handle '{handle_id}' (index {i}) "
                    f"is not recognized by is_dynamic_handle"
                )
            if i >= count and accepted:
                raise RegistrationError(
                    f"{definition.type}: is_dynamic_handle accepts '{handle_id}' "
                    f"beyond the configured count of {count}"
                )

        for handle in list(definition.inputs) + list(definition.outputs):
            if definition.is_dynamic_handle(sample, handle.id):
                raise RegistrationError(
                    f"{definition.type}: static handle '{handle.id}' collides with "
                    f"the dynamic handle family"
                )

    def unregister(self, node_type: str) -> None:
        self._definitions.pop(node_type, None)

    def get(self, node_type: str) -> "NodeDefinition | None":
        """Get a definition by type string."""
        return self._definitions.get(node_type)

    def require(self, node_type: str) -> "NodeDefinition":
        definition = self.get(node_type)
        if definition is None:
            raise UnknownNodeTypeError(node_type)
        return definition

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._definitions

    def definitions(self) -> list["NodeDefinition"]:
        return [self._definitions[t] for t in self.list_types()]

    def list_types(self) -> list[str]:
        """List all registered node types."""
        return sorted(self._definitions.keys())

    def list_by_category(self, category: str) -> list[str]:
        """List node types in a category (trigger, logic, ...)."""
        return [t for t in self.list_types() if self._definitions[t].category == category]

    def get_manifest(self, node_type: str) -> dict | None:
        """Get the manifest for a node type."""
        definition = self.get(node_type)
        if definition is None:
            return None
        return definition.describe().to_dict()

    def generate_docs(self, category: str | None = None) -> str:
        """Generate markdown documentation for registered node types."""
        lines = []

        types = self.list_by_category(category) if category else self.list_types()

        by_category: dict[str, list[str]] = {}
        for t in types:
            by_category.setdefault(self._definitions[t].category, []).append(t)

        for cat in sorted(by_category.keys()):
            lines.append(f"## {cat.title()}\n")

            for node_type in sorted(by_category[cat]):
                manifest = self.get_manifest(node_type)
                if not manifest:
                    continue

                lines.append(f"### `{node_type}` - {manifest['label']}")
                if manifest["description"]:
                    lines.append(f"{manifest['description']}\n")

                properties = manifest["data_schema"].get("properties", {})
                config_fields = {k: v for k, v in properties.items() if k not in ("disabled", "version")}
                if config_fields:
                    lines.append("**Data:**")
                    for name, spec in config_fields.items():
                        default = f" = `{spec['default']}`" if spec.get("default") not in (None, "") else ""
                        lines.append(f"- `{name}`{default}")
                    lines.append("")

                if manifest["inputs"]:
                    lines.append("**Inputs:**")
                    for handle in manifest["inputs"]:
                        lines.append(f"- `{handle['id']}`: {handle['type']}")
                    lines.append("")

                if manifest["variadic_prefix"]:
                    lines.append(f"**Variadic inputs:** `{manifest['variadic_prefix']}N`\n")

                if manifest["outputs"]:
                    lines.append("**Outputs:**")
                    for handle in manifest["outputs"]:
                        lines.append(f"- `{handle['id']}`: {handle['type']}")
                    lines.append("")

                lines.append("---\n")

        return "\n".join(lines)


def register_node(cls: Type["NodeDefinition"]) -> Type["NodeDefinition"]:
    """
    Decorator to register a node definition class.

    Usage:
        @register_node
        class LogNode(NodeDefinition):
            type = "utility/log"
            ...
    """
    NodeRegistry.get_instance().register(cls())
    return cls


def auto_discover_nodes(components_path: Path | str, base_package: str) -> list[str]:
    """
    Import every node module under a components package.

    Modules with @register_node decorators register themselves on import.

    Args:
        components_path: Path to the components package directory
        base_package: Dotted package name of that directory

    Returns:
        List of newly registered node types
    """
    components_path = Path(components_path)
    if not components_path.exists():
        return []

    registry = NodeRegistry.get_instance()
    before = set(registry.list_types())

    for category_dir in sorted(components_path.iterdir()):
        if not category_dir.is_dir() or category_dir.name.startswith("_"):
            continue

        category_package = f"{base_package}.{category_dir.name}"

        for py_file in sorted(category_dir.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            importlib.import_module(f"{category_package}.{py_file.stem}")

    after = set(registry.list_types())
    return sorted(after - before)
