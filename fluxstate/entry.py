"""
Entry Resolver

Computes which leaf states become active when a node is entered. This is
the single definition of "being in state X" used by the execution engine,
the format converter and the code generator.
"""

from typing import List, Optional, Set

from .graph_index import GraphIndex
from .machine import PARALLEL


def enter(node_id: str, index: GraphIndex, visited: Optional[Set[str]] = None) -> List[str]:
    """
    Leaf node ids activated by entering node_id, in entry order

    - initial marker: follow its single outgoing edge
    - no non-marker children: the node itself is the leaf
    - parallel: every region is entered, each with its own copy of the
      visited path so sibling regions never block each other
    - compound: enter the child chosen by index.initial_target

    A cycle through markers or initial targets yields no leaves.

    Args:
        node_id: Node being entered
        index: GraphIndex of the document
        visited: Node ids already on the current entry path

    Returns:
        Ordered list of distinct leaf ids (empty for unknown ids and cycles)
    """
    if visited is None:
        visited = set()
    if node_id in visited:
        return []
    visited.add(node_id)

    node = index.node_by_id.get(node_id)
    if node is None:
        return []

    if node.is_marker:
        edges = index.outgoing(node.id)
        if not edges:
            return []
        return enter(edges[0].target, index, visited)

    children = index.state_children(node.id)
    if not children:
        return [node.id]

    if node.kind == PARALLEL:
        leaves: List[str] = []
        for child in children:
            for leaf in enter(child.id, index, set(visited)):
                if leaf not in leaves:
                    leaves.append(leaf)
        return leaves

    target = index.initial_target(node.id)
    return enter(target, index, visited)
