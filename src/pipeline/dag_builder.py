# src/pipeline/dag_builder.py — v1
"""DAG builder — build the execution plan from step dependencies.

Produces a topologically sorted plan. Ties between independent steps are
broken by registration order, so the same registry always yields the same
plan. Detects cycles and unknown dependencies before anything runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import networkx as nx

from provisioner.core.errors import CyclicDependency, UnknownDependency
from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.registry import StepRegistry

logger = logging.getLogger(__name__)


@dataclass
class ExecutionPlan:
    """Ordered execution plan for provisioning steps.

    steps is the flat execution order. stages groups steps into "levels":
    steps in the same level have no mutual dependencies.
    """

    steps: list[BaseStep] = field(default_factory=list)
    stages: list[list[str]] = field(default_factory=list)
    graph: nx.DiGraph = field(default_factory=nx.DiGraph)

    @property
    def order(self) -> list[str]:
        """Return the flat step-id ordering."""
        return [step.id for step in self.steps]

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def dependencies_of(self, step_id: str) -> list[str]:
        """Direct dependencies of a step."""
        return list(self.graph.predecessors(step_id))

    def dependents_of(self, step_id: str) -> set[str]:
        """Every step that transitively depends on step_id."""
        return set(nx.descendants(self.graph, step_id))


def build_dependency_graph(dependency_map: dict[str, list[str]]) -> nx.DiGraph:
    """Build a DiGraph with an edge dep -> step for each declared dependency.

    Raises:
        UnknownDependency: If a dependency is not in the map.
    """
    graph = nx.DiGraph()
    for index, step_id in enumerate(dependency_map):
        graph.add_node(step_id, index=index)

    for step_id, deps in dependency_map.items():
        for dep in deps:
            if dep not in dependency_map:
                raise UnknownDependency(step_id, dep)
            graph.add_edge(dep, step_id)
    return graph


def build_dag(dependency_map: dict[str, list[str]]) -> tuple[list[str], list[list[str]], nx.DiGraph]:
    """Topologically sort a dependency map.

    Ordering is Kahn's algorithm where, among ready steps, the one that
    appears first in dependency_map wins.

    Returns:
        (flat order, stages, graph)

    Raises:
        CyclicDependency: If the dependencies contain a cycle.
        UnknownDependency: If a dependency is not in the map.
    """
    graph = build_dependency_graph(dependency_map)

    if not nx.is_directed_acyclic_graph(graph):
        cycle = [edge[0] for edge in nx.find_cycle(graph)]
        cycle.append(cycle[0])
        raise CyclicDependency(cycle)

    position = nx.get_node_attributes(graph, "index")
    order = list(nx.lexicographical_topological_sort(graph, key=lambda n: position[n]))
    stages = [
        sorted(generation, key=lambda n: position[n])
        for generation in nx.topological_generations(graph)
    ]
    return order, stages, graph


def build_plan(registry: StepRegistry) -> ExecutionPlan:
    """Build an execution plan from a loaded registry.

    Raises:
        CyclicDependency: If a cycle is detected.
        UnknownDependency: If a step depends on an unregistered id.
    """
    if len(registry) == 0:
        return ExecutionPlan()

    order, stages, graph = build_dag(registry.dependency_map())
    plan = ExecutionPlan(
        steps=[registry.get_or_raise(step_id) for step_id in order],
        stages=stages,
        graph=graph,
    )
    logger.info(
        "Plan built: %d steps in %d stages -> %s",
        plan.total_steps,
        len(plan.stages),
        plan.order,
    )
    return plan
