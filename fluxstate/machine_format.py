"""
Nested Statechart Format Converter

Exports a MachineDocument as a nested statechart definition compatible
with XState's machine config (states / initial / on / type), and imports
such a definition back into a document.

Export embeds a copy of the whole document under meta.fluxState on the
root, so importing an exported definition is exact. Definitions without
that payload (hand written or produced elsewhere) are reconstructed from
the nested tree: one node per declared state, one initial marker per
declared `initial`, one edge per resolvable transition target.
"""

import copy
import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import FLUX_CONFIG, get_layout_position
from .graph_index import ROOT, GraphIndex, build_index
from .ids import create_id
from .machine import (ATOMIC, FINAL, INITIAL, PARALLEL, MachineDocument, MachineFormatError,
                      Position, StateNode, TransitionEdge, document_from_dict,
                      is_document_payload, normalize_document)

logger = logging.getLogger(__name__)

INTERCHANGE = FLUX_CONFIG['interchange']


class StateTreeBuilder:
    """
    Builds the nested definition tree from a document

    The same tree feeds the JSON export and the nested-machine code target.
    Child keys and initial selection come from the GraphIndex primitives.

    With explicit_initial (the interchange form) a parent gets `initial`
    only when it owns an initial marker, parallel parents included, so an
    import recreates exactly the markers the document had. Without it (the
    code form) every compound parent and the root name the child entered
    first, and parallel parents never carry `initial`.
    """

    def __init__(self, document: MachineDocument, include_meta: bool = True,
                 explicit_initial: bool = True):
        self.document = document
        self.index: GraphIndex = build_index(document)
        self.include_meta = include_meta
        self.explicit_initial = explicit_initial

    def build_root(self) -> Dict[str, Any]:
        states, keys = self._build_states(ROOT)

        root: Dict[str, Any] = {'id': self.document.machine_id}
        initial = self._initial_key(ROOT, keys, parallel=False)
        if initial is not None:
            root['initial'] = initial
        root['states'] = states
        if self.include_meta:
            root['meta'] = {INTERCHANGE['meta_key']: self.document.to_dict()}
        return root

    def _initial_key(self, parent_id: Optional[str], keys: Dict[str, str],
                     parallel: bool) -> Optional[str]:
        """
        Key written as `initial` for parent_id's children, or None

        The first child key stands in when the selected target is not an
        immediate child, since `initial` can only name immediate children.
        """
        if not keys:
            return None
        if self.explicit_initial:
            target = self.index.marker_target(parent_id)
            if target is None:
                return None
        elif parallel:
            return None
        else:
            target = self.index.initial_target(parent_id)

        if target in keys:
            return keys[target]
        return next(iter(keys.values()))

    def _build_states(self, parent_id: Optional[str]) -> Tuple[Dict[str, Any], Dict[str, str]]:
        keys = self.index.child_keys(parent_id)
        states = {}

        for child in self.index.state_children(parent_id):
            config: Dict[str, Any] = {'id': child.id}

            if child.kind in (FINAL, PARALLEL):
                config['type'] = child.kind

            nested, nested_keys = self._build_states(child.id)
            initial = self._initial_key(child.id, nested_keys, parallel=child.kind == PARALLEL)
            if initial is not None:
                config['initial'] = initial
            if nested:
                config['states'] = nested

            on = self._build_transitions(child.id)
            if on:
                config['on'] = on

            if self.include_meta:
                meta: Dict[str, Any] = {
                    'kind': child.kind,
                    'position': {'x': child.position.x, 'y': child.position.y},
                }
                if child.style is not None:
                    meta['style'] = copy.deepcopy(child.style)
                config['meta'] = meta

            states[keys[child.id]] = config

        return states, keys

    def _build_transitions(self, node_id: str) -> Dict[str, Any]:
        grouped: Dict[str, List[Dict[str, Any]]] = {}

        for edge in self.index.outgoing(node_id):
            event = edge.event.strip()
            if not event or edge.target not in self.index.node_by_id:
                continue
            grouped.setdefault(event, []).append(self._transition_value(edge))

        return {
            event: entries[0] if len(entries) == 1 else entries
            for event, entries in grouped.items()
        }

    @staticmethod
    def _transition_value(edge: TransitionEdge) -> Dict[str, Any]:
        transition: Dict[str, Any] = {'target': f"{INTERCHANGE['absolute_prefix']}{edge.target}"}

        guard = edge.guard.strip()
        if guard:
            transition['guard'] = guard

        actions = [action.strip() for action in edge.actions if action.strip()]
        if len(actions) == 1:
            transition['actions'] = actions[0]
        elif actions:
            transition['actions'] = actions

        return transition


def build_state_tree(document: MachineDocument, include_meta: bool = True,
                     explicit_initial: bool = True) -> Dict[str, Any]:
    """Nested definition of document as plain dicts (JSON serializable)"""
    return StateTreeBuilder(document, include_meta=include_meta,
                            explicit_initial=explicit_initial).build_root()


def export_machine(document: MachineDocument) -> Dict[str, Any]:
    """Nested definition with the embedded document for exact round trips"""
    return build_state_tree(document, include_meta=True)


def export_machine_json(document: MachineDocument, indent: Optional[int] = 2) -> str:
    return json.dumps(export_machine(document), indent=indent)


def _as_transition_list(value: Any) -> List[Dict[str, Any]]:
    """A transition value may be a target string, an object, or a list of either"""
    if isinstance(value, list):
        entries = value
    elif value is None:
        entries = []
    else:
        entries = [value]

    transitions = []
    for entry in entries:
        if isinstance(entry, str):
            transitions.append({'target': entry})
        elif isinstance(entry, dict):
            transitions.append(entry)
    return transitions


def _read_targets(transition: Dict[str, Any]) -> List[str]:
    target = transition.get('target')
    if isinstance(target, list):
        return [entry for entry in target if isinstance(entry, str)]
    if isinstance(target, str):
        return [target]
    return []


def _read_guard(transition: Dict[str, Any]) -> str:
    # Older definitions name the guard 'cond'
    for field in ('guard', 'cond'):
        value = transition.get(field)
        if isinstance(value, str):
            return value
    return ''


def _read_actions(value: Any) -> List[str]:
    if not value:
        return []
    entries = value if isinstance(value, list) else [value]
    actions = []
    for entry in entries:
        if isinstance(entry, dict):
            entry = entry.get('type', '')
        if entry:
            actions.append(str(entry))
    return actions


class NestedDefinitionImporter:
    """
    Reconstructs a document from a nested definition without embedded metadata

    States are keyed by dotted path (parent.child.grandchild) while walking,
    so transition targets can be resolved relative to where they appear.
    """

    def __init__(self, definition: Dict[str, Any]):
        self.definition = definition
        self.nodes: List[StateNode] = []
        self.edges: List[TransitionEdge] = []
        self.path_to_id: Dict[str, str] = {}
        self.used_ids = set()

    def build(self) -> MachineDocument:
        states = self.definition.get('states')

        self._walk_states(states, None, '')

        initial = self.definition.get('initial')
        if isinstance(initial, str) and initial:
            self._create_initial_marker(None, '', initial)

        self._walk_transitions(states, '')

        machine_id = self.definition.get('id')
        return MachineDocument(
            machine_id=machine_id if isinstance(machine_id, str) and machine_id
            else INTERCHANGE['default_machine_id'],
            nodes=self.nodes,
            edges=self.edges,
        )

    @staticmethod
    def _state_items(states: Any, parent_path: str) -> List[Tuple[str, Dict[str, Any]]]:
        if states is None:
            return []
        if not isinstance(states, dict):
            raise MachineFormatError(f"'states' of '{parent_path or 'root'}' must be an object")

        items = []
        for key, config in states.items():
            if config is None:
                config = {}
            if not isinstance(config, dict):
                path = f"{parent_path}.{key}" if parent_path else key
                raise MachineFormatError(f"State '{path}' must be an object")
            items.append((key, config))
        return items

    def _claim_id(self, config: Dict[str, Any], path: str) -> str:
        for candidate in (config.get('id'), path):
            if isinstance(candidate, str) and candidate and candidate not in self.used_ids:
                self.used_ids.add(candidate)
                return candidate
        node_id = create_id('state')
        self.used_ids.add(node_id)
        return node_id

    def _create_node(self, key: str, config: Dict[str, Any], parent_id: Optional[str],
                     path: str, index: int) -> str:
        state_type = config.get('type')
        kind = state_type if state_type in (FINAL, PARALLEL) else ATOMIC

        meta = config.get('meta') if isinstance(config.get('meta'), dict) else {}
        position = meta.get('position')
        if not (isinstance(position, dict) and 'x' in position and 'y' in position):
            position = get_layout_position(index)

        style = meta.get('style')
        if not isinstance(style, dict):
            style = dict(FLUX_CONFIG['layout']['parallel_size']) if kind == PARALLEL else None

        node_id = self._claim_id(config, path)
        self.nodes.append(StateNode(
            id=node_id,
            kind=kind,
            label=key,
            parent_id=parent_id,
            position=Position(position['x'], position['y']),
            style=copy.deepcopy(style),
        ))
        self.path_to_id[path] = node_id
        return node_id

    def _walk_states(self, states: Any, parent_id: Optional[str], parent_path: str):
        for index, (key, config) in enumerate(self._state_items(states, parent_path)):
            path = f"{parent_path}.{key}" if parent_path else key
            node_id = self._create_node(key, config, parent_id, path, index)
            self._walk_states(config.get('states'), node_id, path)

    def _create_initial_marker(self, parent_id: Optional[str], parent_path: str, initial_key: str):
        target_path = f"{parent_path}.{initial_key}" if parent_path else initial_key
        target_id = self.path_to_id.get(target_path)
        if target_id is None:
            logger.debug(f"Initial '{initial_key}' of '{parent_path or 'root'}' does not resolve, skipped")
            return

        layout = FLUX_CONFIG['layout']
        position = layout['child_marker_position'] if parent_id else layout['root_marker_position']
        marker_id = create_id('initial_child' if parent_id else 'initial_root')

        self.nodes.append(StateNode(
            id=marker_id,
            kind=INITIAL,
            label=INTERCHANGE['marker_label'],
            parent_id=parent_id,
            position=Position(position['x'], position['y']),
        ))
        self.edges.append(TransitionEdge(
            id=create_id('edge'),
            source=marker_id,
            target=target_id,
            event=INTERCHANGE['marker_event'],
        ))

    def resolve_target(self, target: str, current_path: str) -> Optional[str]:
        """
        Resolve a transition target reference to a node id

        Tried in order:
        1. '#id' absolute reference against the known ids
        2. exact dotted path
        3. sibling: path relative to the current state's parent
        4. child: path relative to the current state
        """
        if not target:
            return None

        prefix = INTERCHANGE['absolute_prefix']
        if target.startswith(prefix):
            absolute_id = target[len(prefix):]
            return absolute_id if absolute_id in self.used_ids else None

        if target in self.path_to_id:
            return self.path_to_id[target]

        parent_path = current_path.rsplit('.', 1)[0] if '.' in current_path else ''
        sibling = f"{parent_path}.{target}" if parent_path else target
        if sibling in self.path_to_id:
            return self.path_to_id[sibling]

        child = f"{current_path}.{target}"
        return self.path_to_id.get(child)

    def _walk_transitions(self, states: Any, parent_path: str):
        for key, config in self._state_items(states, parent_path):
            state_path = f"{parent_path}.{key}" if parent_path else key
            source_id = self.path_to_id[state_path]

            initial = config.get('initial')
            if isinstance(initial, str) and initial:
                self._create_initial_marker(source_id, state_path, initial)

            on = config.get('on') or {}
            if not isinstance(on, dict):
                raise MachineFormatError(f"'on' of state '{state_path}' must be an object")

            for event, value in on.items():
                for transition in _as_transition_list(value):
                    for target in _read_targets(transition):
                        target_id = self.resolve_target(target, state_path)
                        if target_id is None:
                            logger.debug(f"Target '{target}' of {state_path}.{event} does not resolve, dropped")
                            continue
                        self.edges.append(TransitionEdge(
                            id=create_id('edge'),
                            source=source_id,
                            target=target_id,
                            event=event,
                            guard=_read_guard(transition),
                            actions=_read_actions(transition.get('actions')),
                        ))

            self._walk_transitions(config.get('states'), state_path)


def _parse_payload(raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MachineFormatError(f"Definition is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MachineFormatError("Definition root must be a JSON object")
    return raw


def import_machine(raw: Union[str, bytes, Dict[str, Any]]) -> MachineDocument:
    """
    Import a nested definition (JSON text or parsed dict) as a new document

    The embedded document under meta.fluxState is recovered when present;
    otherwise the structure is reconstructed from the nested states.
    Either a complete document is returned or MachineFormatError is raised.

    Args:
        raw: Definition JSON text, or an already parsed mapping

    Returns:
        Normalized MachineDocument
    """
    definition = _parse_payload(raw)

    meta = definition.get('meta')
    embedded = meta.get(INTERCHANGE['meta_key']) if isinstance(meta, dict) else None
    if is_document_payload(embedded):
        document = document_from_dict(copy.deepcopy(embedded))
        logger.info(f"Imported '{document.machine_id}' from embedded document "
                    f"({len(document.nodes)} nodes, {len(document.edges)} edges)")
        return document

    if not isinstance(definition.get('states'), dict):
        raise MachineFormatError(
            "Definition has neither an embedded document nor a 'states' object"
        )

    document = normalize_document(NestedDefinitionImporter(definition).build())
    logger.info(f"Reconstructed '{document.machine_id}' from nested states "
                f"({len(document.nodes)} nodes, {len(document.edges)} edges)")
    return document
