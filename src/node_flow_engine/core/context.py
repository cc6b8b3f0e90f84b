"""Per-run execution context handed to every node call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from .cancellation import AbortSignal
from .flow import SpecFlow
from .host import HostDependencies

if TYPE_CHECKING:
    from .engine import ExecutionReport, FlowEngine


@dataclass
class NodeExecutorContext:
    """
    Run-scoped bundle passed to NodeDefinition.execute().

    ``execution_variables`` is owned by the top-level run and shared by
    reference with every nested sub-flow run, so a sub-flow's writes are
    visible to its caller and to later siblings. Node steps never overlap
    within a run tree, so the dict needs no locking.
    """
    run_id: str
    flow: SpecFlow
    dependencies: HostDependencies
    engine: "FlowEngine"
    flow_id: str | None = None
    execution_variables: dict[str, Any] = field(default_factory=dict)
    depth: int = 0
    execution_path: list[str] = field(default_factory=list)
    signal: AbortSignal | None = None
    in_loop: bool = False

    @property
    def aborted(self) -> bool:
        return self.signal is not None and self.signal.aborted

    def raise_if_aborted(self, partial_results: list | None = None) -> None:
        if self.signal is not None:
            self.signal.raise_if_aborted(partial_results)

    def get_variable(self, name: str, default: Any = None) -> Any:
        return self.execution_variables.get(name, default)

    def set_variable(self, name: str, value: Any) -> None:
        self.execution_variables[name] = value

    async def execute_sub_flow(
        self,
        flow_id: str,
        input: dict[str, Any],
        *,
        loop: bool = False,
    ) -> "ExecutionReport":
        """
        Run another flow nested inside this one.

        The nested run shares this run's id, variables and signal, and runs
        one level deeper. With ``loop=True`` it may end with Break/Continue,
        reported on ExecutionReport.control.
        """
        return await self.engine.execute_sub_flow(self, flow_id, input, loop=loop)
