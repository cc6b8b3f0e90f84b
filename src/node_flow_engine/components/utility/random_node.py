"""Random node - a random number in a range, or a random element of an array."""

from __future__ import annotations

import random
from typing import Any, Literal

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node


class RandomData(FlowNodeData):
    mode: Literal["number", "array"] = "number"
    min: float = 0
    max: float = 100


@register_node
class RandomNode(NodeDefinition):
    """
    Random value.

    ``number`` mode gives a float in ``[min, max)``; ``array`` mode picks
    one element of the connected ``array``.
    """

    type = "utility/random"
    label = "Random"
    category = "utility"
    data_schema = RandomData
    inputs = [
        HandleSpec("mode", FlowDataType.STRING),
        HandleSpec("min", FlowDataType.NUMBER),
        HandleSpec("max", FlowDataType.NUMBER),
        HandleSpec("array", FlowDataType.ARRAY),
    ]
    outputs = [HandleSpec("result", FlowDataType.ANY)]

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        mode = resolve_input(input, data, "mode") or "number"

        if mode == "number":
            low = resolve_input(input, data, "min")
            high = resolve_input(input, data, "max")
            return {"result": self.rng.random() * (high - low) + low}
        if mode == "array":
            array = input.get("array")
            if not isinstance(array, list) or not array:
                raise ValueError("Input is not a non-empty array.")
            return {"result": self.rng.choice(array)}
        raise ValueError(f"Unknown random mode: {mode}")
