"""
Machine Document Model

Plain dataclasses for the editable statechart graph and their conversion
to and from the editor's JSON document shape:

    {
      "version": 1,
      "machineId": "trafficLight",
      "nodes": [{"id", "type", "position", "parentNode"?, "style"?, "data": {"label", "kind"}}],
      "edges": [{"id", "type", "source", "target", "data": {"event", "guard", "actions"}}],
      "viewport": {"x", "y", "zoom"}
    }

Core operations take a MachineDocument and return new derived values;
nothing in this package mutates a document it was given.
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import FLUX_CONFIG
from .ids import create_id

ATOMIC = 'atomic'
INITIAL = 'initial'
FINAL = 'final'
PARALLEL = 'parallel'

NODE_KINDS = (ATOMIC, INITIAL, FINAL, PARALLEL)


class MachineFormatError(ValueError):
    """Raised when a document or interchange payload cannot be read"""


@dataclass
class Position:
    x: float = 0
    y: float = 0


@dataclass
class StateNode:
    """
    One node of the statechart graph

    Nodes of kind 'initial' are markers, not real states: the single
    outgoing edge of a marker names the child entered first when the
    marker's parent is entered.
    """
    id: str
    kind: str = ATOMIC
    label: str = ''
    parent_id: Optional[str] = None  # enclosing compound/parallel node, None at root
    position: Position = field(default_factory=Position)
    style: Optional[Dict[str, Any]] = None  # presentation only (parallel container size)

    @property
    def is_marker(self) -> bool:
        return self.kind == INITIAL


@dataclass
class TransitionEdge:
    id: str
    source: str
    target: str
    event: str = ''
    guard: str = ''  # opaque boolean expression, empty means always true
    actions: List[str] = field(default_factory=list)


@dataclass
class MachineDocument:
    machine_id: str
    nodes: List[StateNode] = field(default_factory=list)
    edges: List[TransitionEdge] = field(default_factory=list)
    viewport: Dict[str, float] = field(default_factory=lambda: dict(FLUX_CONFIG['viewport']))
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """Serialize into the editor's JSON document shape"""
        return {
            'version': self.version,
            'machineId': self.machine_id,
            'nodes': [_node_to_dict(node) for node in self.nodes],
            'edges': [_edge_to_dict(edge) for edge in self.edges],
            'viewport': dict(self.viewport),
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MachineDocument':
        return document_from_dict(data)

    @classmethod
    def from_json(cls, text: str) -> 'MachineDocument':
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MachineFormatError(f"Document is not valid JSON: {e}") from e
        return document_from_dict(data)


def _node_to_dict(node: StateNode) -> Dict[str, Any]:
    result = {
        'id': node.id,
        'type': 'stateNode',
        'position': {'x': node.position.x, 'y': node.position.y},
        'data': {'label': node.label, 'kind': node.kind},
    }
    if node.parent_id is not None:
        result['parentNode'] = node.parent_id
        result['extent'] = 'parent'
    if node.style is not None:
        result['style'] = copy.deepcopy(node.style)
    return result


def _edge_to_dict(edge: TransitionEdge) -> Dict[str, Any]:
    return {
        'id': edge.id,
        'type': 'transitionEdge',
        'source': edge.source,
        'target': edge.target,
        'data': {
            'event': edge.event,
            'guard': edge.guard,
            'actions': list(edge.actions),
        },
    }


def is_document_payload(value: Any) -> bool:
    """True if value has the shape of a serialized document (nodes, edges, machineId)"""
    return (
        isinstance(value, dict)
        and isinstance(value.get('nodes'), list)
        and isinstance(value.get('edges'), list)
        and isinstance(value.get('machineId'), str)
    )


def _read_field(raw: Dict[str, Any], name: str):
    """Fields may sit under 'data' (editor shape) or directly on the item"""
    data = raw.get('data')
    if isinstance(data, dict) and data.get(name) is not None:
        return data[name]
    return raw.get(name)


def _node_from_dict(raw: Any, index: int) -> StateNode:
    if not isinstance(raw, dict):
        raise MachineFormatError(f"Node #{index} is not an object")
    node_id = raw.get('id')
    if not isinstance(node_id, str) or not node_id:
        raise MachineFormatError(f"Node #{index} has no id")

    kind = _read_field(raw, 'kind') or ATOMIC
    if kind not in NODE_KINDS:
        raise MachineFormatError(
            f"Node '{node_id}' has unknown kind '{kind}' (expected one of {', '.join(NODE_KINDS)})"
        )

    label = _read_field(raw, 'label')
    parent_id = raw.get('parentNode', raw.get('parentId'))
    if parent_id is not None and not isinstance(parent_id, str):
        raise MachineFormatError(f"Node '{node_id}' has a parent reference that is not a string")

    position = raw.get('position')
    if position is None:
        position = {}
    if not isinstance(position, dict):
        raise MachineFormatError(f"Node '{node_id}' position must be an object with x and y")

    style = raw.get('style')
    if style is not None and not isinstance(style, dict):
        raise MachineFormatError(f"Node '{node_id}' style must be an object")

    return StateNode(
        id=node_id,
        kind=kind,
        label=str(label) if label is not None else node_id,
        parent_id=parent_id or None,
        position=Position(x=position.get('x', 0), y=position.get('y', 0)),
        style=copy.deepcopy(style),
    )


def _edge_from_dict(raw: Any, index: int) -> TransitionEdge:
    if not isinstance(raw, dict):
        raise MachineFormatError(f"Edge #{index} is not an object")
    source = raw.get('source')
    target = raw.get('target')
    if not isinstance(source, str) or not source or not isinstance(target, str) or not target:
        raise MachineFormatError(f"Edge #{index} needs both a source and a target")

    edge_id = raw.get('id')
    if edge_id is not None and not isinstance(edge_id, str):
        raise MachineFormatError(f"Edge #{index} id must be a string")

    event = _read_field(raw, 'event')
    guard = _read_field(raw, 'guard')
    actions = _read_field(raw, 'actions')
    if isinstance(actions, str):
        actions = [actions]
    if actions is not None and not isinstance(actions, list):
        raise MachineFormatError(f"Edge #{index} actions must be a string or a list")

    return TransitionEdge(
        id=edge_id or create_id('edge'),
        source=source,
        target=target,
        event=FLUX_CONFIG['interchange']['default_event'] if event is None else str(event),
        guard='' if guard is None else str(guard),
        actions=[str(action) for action in (actions or [])],
    )


def document_from_dict(data: Any) -> MachineDocument:
    """
    Build a normalized MachineDocument from its JSON dict shape

    Missing labels, kinds, events, guards, actions and viewport are filled
    with defaults. Missing ids, unknown kinds, edges without endpoints and
    fields of the wrong JSON type raise MachineFormatError.
    """
    if not isinstance(data, dict):
        raise MachineFormatError("Document must be a JSON object")
    if not isinstance(data.get('nodes'), list) or not isinstance(data.get('edges'), list):
        raise MachineFormatError("Document needs 'nodes' and 'edges' lists")

    machine_id = data.get('machineId')
    if machine_id is not None and not isinstance(machine_id, str):
        raise MachineFormatError("Document 'machineId' must be a string")

    viewport = data.get('viewport')
    if not isinstance(viewport, dict):
        viewport = dict(FLUX_CONFIG['viewport'])

    return MachineDocument(
        machine_id=machine_id or FLUX_CONFIG['interchange']['default_machine_id'],
        nodes=[_node_from_dict(raw, i) for i, raw in enumerate(data['nodes'])],
        edges=[_edge_from_dict(raw, i) for i, raw in enumerate(data['edges'])],
        viewport=dict(viewport),
        version=FLUX_CONFIG['project']['document_version'],
    )


def normalize_document(document: MachineDocument) -> MachineDocument:
    """Return a normalized deep copy of document (defaults filled, shapes canonical)"""
    return document_from_dict(document.to_dict())


def edge_label(edge: TransitionEdge) -> str:
    """Display text for a transition: EVENT [guard] / action1, action2"""
    parts = [edge.event or FLUX_CONFIG['interchange']['default_event']]
    if edge.guard.strip():
        parts.append(f"[{edge.guard.strip()}]")
    if edge.actions:
        parts.append(f"/ {', '.join(edge.actions)}")
    return ' '.join(parts)
