from typing import Dict, List

from workpilot.models import FlowGraph


class InvalidFlowError(ValueError):
    """The drawn flow is not a single linear chain of stages."""
    code = "INVALID_FLOW"


def stage_sequence_from_flow(flow: FlowGraph) -> List[int]:
    """Collapse a flow-builder graph into the ordered list of stage ids.

    The walk starts at the only node without an incoming edge and follows the
    single outgoing edge of each node. Branches, merges, cycles, dangling
    edges, disconnected nodes and repeated stages are rejected.
    """
    if not flow.nodes:
        if flow.edges:
            raise InvalidFlowError("Flow has connections but no stages.")
        return []

    nodes = {}
    for node in flow.nodes:
        if node.id in nodes:
            raise InvalidFlowError(f"Duplicate node id '{node.id}'.")
        nodes[node.id] = node

    successor: Dict[str, str] = {}
    predecessor: Dict[str, str] = {}
    for edge in flow.edges:
        if edge.source not in nodes or edge.target not in nodes:
            raise InvalidFlowError(f"Connection {edge.source} -> {edge.target} references an unknown node.")
        if edge.source == edge.target:
            raise InvalidFlowError(f"Node '{edge.source}' is connected to itself.")
        if edge.source in successor:
            raise InvalidFlowError(f"Node '{edge.source}' has more than one outgoing connection.")
        if edge.target in predecessor:
            raise InvalidFlowError(f"Node '{edge.target}' has more than one incoming connection.")
        successor[edge.source] = edge.target
        predecessor[edge.target] = edge.source

    starts = [node_id for node_id in nodes if node_id not in predecessor]
    if len(starts) != 1:
        raise InvalidFlowError(
            "Flow must be a single chain with exactly one starting stage "
            f"(found {len(starts)})."
        )

    sequence: List[int] = []
    visited = set()
    current = starts[0]
    while current is not None:
        visited.add(current)
        stage_id = nodes[current].stage_id
        if stage_id in sequence:
            raise InvalidFlowError(f"Stage {stage_id} appears more than once in the flow.")
        sequence.append(stage_id)
        current = successor.get(current)

    if len(visited) != len(nodes):
        raise InvalidFlowError("Every stage in the flow must be connected into one chain.")
    return sequence
