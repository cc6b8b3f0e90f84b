"""Built-in node types - auto-discovered on import."""

from pathlib import Path

from ..core.registry import auto_discover_nodes

# Auto-discover all node modules in this package
_components_dir = Path(__file__).parent
_discovered = auto_discover_nodes(_components_dir, __name__)
