"""
Graph Index

Id-keyed lookup tables built from a MachineDocument, plus the traversal
primitives every consumer shares: ancestor chains, initial-target
selection and sibling key assignment.

Indexes are cheap to build and are rebuilt per operation; they hold no
references back into the caller's document beyond the node/edge values.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .ids import slugify
from .machine import MachineDocument, StateNode, TransitionEdge

# children_by_parent key for top-level nodes
ROOT = None


@dataclass
class GraphIndex:
    node_by_id: Dict[str, StateNode] = field(default_factory=dict)
    children_by_parent: Dict[Optional[str], List[StateNode]] = field(default_factory=dict)
    edges_by_source: Dict[str, List[TransitionEdge]] = field(default_factory=dict)

    def children(self, parent_id: Optional[str]) -> List[StateNode]:
        """Immediate children of parent_id (ROOT for top level), markers included"""
        return self.children_by_parent.get(parent_id, [])

    def state_children(self, parent_id: Optional[str]) -> List[StateNode]:
        """Immediate non-marker children in declaration order"""
        return [node for node in self.children(parent_id) if not node.is_marker]

    def outgoing(self, node_id: str) -> List[TransitionEdge]:
        return self.edges_by_source.get(node_id, [])

    def ancestors(self, node_id: str) -> List[str]:
        """
        Ancestor chain of node_id, starting with node_id itself

        Stops at the root, at an unknown parent id, or if a parent cycle
        is found.
        """
        chain = []
        seen = set()
        current = node_id
        while current is not None and current not in seen:
            chain.append(current)
            seen.add(current)
            node = self.node_by_id.get(current)
            current = node.parent_id if node is not None else None
        return chain

    def marker_target(self, parent_id: Optional[str]) -> Optional[str]:
        """Target of the initial marker among parent_id's children, if it resolves"""
        for node in self.children(parent_id):
            if not node.is_marker:
                continue
            edges = self.outgoing(node.id)
            if edges and edges[0].target in self.node_by_id:
                return edges[0].target
            return None
        return None

    def initial_target(self, parent_id: Optional[str]) -> Optional[str]:
        """
        Child entered first when parent_id (ROOT for the machine) is entered

        The explicit marker's target wins; the first declared non-marker
        child is the fallback. Returns None for a node with no children.
        """
        target = self.marker_target(parent_id)
        if target is not None:
            return target
        children = self.state_children(parent_id)
        return children[0].id if children else None

    def child_keys(self, parent_id: Optional[str]) -> Dict[str, str]:
        """
        Map each non-marker child id to its key among its siblings

        Keys are label slugs; the second and later occurrences of the same
        slug get a numeric suffix counting occurrence order (idle, idle_2).
        """
        counts: Dict[str, int] = {}
        keys: Dict[str, str] = {}
        used = set()
        for child in self.state_children(parent_id):
            base = slugify(child.label)
            count = counts.get(base, 0) + 1
            key = base if count == 1 else f"{base}_{count}"
            # A label like "Idle 2" can already own the suffixed key
            while key in used:
                count += 1
                key = f"{base}_{count}"
            counts[base] = count
            used.add(key)
            keys[child.id] = key
        return keys


def build_index(document: MachineDocument) -> GraphIndex:
    """Build node, children and outgoing-edge lookups in one pass over the document"""
    index = GraphIndex()

    for node in document.nodes:
        index.node_by_id[node.id] = node
        index.children_by_parent.setdefault(node.parent_id, []).append(node)

    for edge in document.edges:
        index.edges_by_source.setdefault(edge.source, []).append(edge)

    return index
