"""
Statechart Code Generator (Python + Jinja2)

Renders a MachineDocument as TypeScript source in one of three shapes:

- nested-machine: XState createMachine() config built from the same
  nested tree as the JSON export
- switch: enum of states, union of events and a transition() function
  with one switch arm per state and per event
- store: Zustand store holding the current state and a bounded history,
  with send(event) dispatching like the switch target

The switch and store targets render one dispatch table, so their
first-match rule is the execution engine's ancestor-chain search.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import FLUX_CONFIG, get_generated_code_header, get_target_config
from .entry import enter
from .graph_index import ROOT, GraphIndex, build_index
from .ids import enum_name, to_identifier
from .machine import MachineDocument, StateNode
from .machine_format import build_state_tree
from .simulation import initial_configuration

logger = logging.getLogger(__name__)


class CodeTarget(str, Enum):
    NESTED_MACHINE = 'nested-machine'
    SWITCH = 'switch'
    STORE = 'store'


@dataclass
class DispatchRow:
    """One candidate transition: taken if guard holds (or is empty)"""
    edge_id: str
    guard: str
    target: str       # node id the state moves to
    target_name: str  # enum member of target
    actions: List[str] = field(default_factory=list)


@dataclass
class EventArm:
    event: str
    rows: List[DispatchRow] = field(default_factory=list)

    @property
    def reachable_rows(self) -> List[DispatchRow]:
        """Rows up to and including the first unguarded one"""
        reachable = []
        for row in self.rows:
            reachable.append(row)
            if not row.guard:
                break
        return reachable

    @property
    def falls_through(self) -> bool:
        """True if every reachable row is guarded, so no transition is possible"""
        return all(row.guard for row in self.reachable_rows)


@dataclass
class StateArm:
    id: str
    name: str
    label: str
    events: List[EventArm] = field(default_factory=list)

    def arm(self, event: str) -> Optional[EventArm]:
        for candidate in self.events:
            if candidate.event == event:
                return candidate
        return None


def _unique_enum_names(states: List[StateNode]) -> Dict[str, str]:
    """Enum member per state id; repeated names get _2, _3 suffixes"""
    counts: Dict[str, int] = {}
    used = set()
    names = {}
    for node in states:
        base = enum_name(node.label or node.id)
        count = counts.get(base, 0) + 1
        name = base if count == 1 else f"{base}_{count}"
        while name in used:
            count += 1
            name = f"{base}_{count}"
        counts[base] = count
        used.add(name)
        names[node.id] = name
    return names


def _settle_target(target: str, index: GraphIndex) -> Optional[str]:
    """
    State a transition to target lands in, as a single switch value

    The single leaf entry produces when there is one; the entered node
    itself (markers followed) when entry activates several parallel
    leaves; None when entry produces nothing.
    """
    leaves = enter(target, index)
    if not leaves:
        return None
    if len(leaves) == 1:
        return leaves[0]

    seen = set()
    node = index.node_by_id.get(target)
    while node is not None and node.is_marker and node.id not in seen:
        seen.add(node.id)
        edges = index.outgoing(node.id)
        node = index.node_by_id.get(edges[0].target) if edges else None
    return node.id if node is not None else None


def build_dispatch_table(document: MachineDocument) -> List[StateArm]:
    """
    Per-state, per-event candidate transitions in first-match order

    A leaf's rows for an event are its own outgoing edges followed by
    those of each ancestor, nearest first, each in declaration order.
    A container stands for the leaves entering it activates, so its rows
    are those leaves' rows in entry order, each edge listed once.
    Marker nodes get no arm; unresolvable targets get no row.
    """
    index = build_index(document)
    states = [node for node in document.nodes if not node.is_marker]
    names = _unique_enum_names(states)

    table = []
    for node in states:
        state_arm = StateArm(id=node.id, name=names[node.id], label=node.label)
        arms: Dict[str, EventArm] = {}
        listed = set()

        sources = []
        for leaf in enter(node.id, index) or [node.id]:
            sources.extend(index.ancestors(leaf))

        for source in sources:
            for edge in index.outgoing(source):
                event = edge.event.strip()
                if not event or edge.id in listed:
                    continue
                target = _settle_target(edge.target, index)
                if target not in names:
                    continue
                listed.add(edge.id)
                if event not in arms:
                    arms[event] = EventArm(event=event)
                    state_arm.events.append(arms[event])
                arms[event].rows.append(DispatchRow(
                    edge_id=edge.id,
                    guard=edge.guard.strip(),
                    target=target,
                    target_name=names[target],
                    actions=[action.strip() for action in edge.actions if action.strip()],
                ))

        table.append(state_arm)

    return table


def collect_events(document: MachineDocument) -> List[str]:
    """Distinct non-empty event names of non-marker edges, in declaration order"""
    index = build_index(document)
    events = []
    for edge in document.edges:
        source = index.node_by_id.get(edge.source)
        if source is not None and source.is_marker:
            continue
        event = edge.event.strip()
        if event and event not in events:
            events.append(event)
    return events


class CodeGenerator:
    """
    Static code generator for statechart documents

    Uses Jinja2 templates to generate TypeScript from a MachineDocument.
    """

    def __init__(self, template_dir=None):
        if template_dir is None:
            template_dir = Path(__file__).parent / 'templates'

        # Setup Jinja2 environment
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True
        )

        # Add custom filters
        self.env.filters['escape_ts'] = self._escape_ts_string
        self.env.filters['ts_key'] = self._ts_key
        self.env.filters['ts_string_list'] = self._ts_string_list
        self.env.filters['as_list'] = self._as_list

    @staticmethod
    def _escape_ts_string(text):
        """Escape text for a single-quoted TypeScript string literal"""
        if not text:
            return ""
        text = str(text)
        # Escape backslashes first
        text = text.replace('\\', '\\\\')
        text = text.replace("'", "\\'")
        text = text.replace('\n', '\\n')
        text = text.replace('\r', '\\r')
        text = text.replace('\t', '\\t')
        return text

    def _ts_key(self, key):
        """Object key: bare when it is a valid identifier, quoted otherwise"""
        if re.match(r'^[A-Za-z_$][\w$]*$', key):
            return key
        return f"'{self._escape_ts_string(key)}'"

    def _ts_string_list(self, values):
        return '[' + ', '.join(f"'{self._escape_ts_string(value)}'" for value in values) + ']'

    @staticmethod
    def _as_list(value):
        if value is None:
            return []
        if isinstance(value, list):
            return value
        return [value]

    def _store_initial_state(self, document: MachineDocument, index: GraphIndex) -> str:
        leaves = initial_configuration(document)
        if len(leaves) == 1:
            return leaves[0]
        target = index.initial_target(ROOT)
        return target if target is not None else 'unknown'

    def build_context(self, document: MachineDocument, target: CodeTarget) -> Dict:
        """Template variables for target"""
        index = build_index(document)
        context = {
            'header': get_generated_code_header(document.machine_id, target),
            'machine_id': document.machine_id,
            'machine_name': to_identifier(document.machine_id),
        }

        if target == CodeTarget.NESTED_MACHINE:
            context['tree'] = build_state_tree(document, include_meta=False, explicit_initial=False)
        else:
            context['states'] = build_dispatch_table(document)
            context['events'] = collect_events(document)

        if target == CodeTarget.STORE:
            context['initial_state'] = self._store_initial_state(document, index)
            context['history_limit'] = FLUX_CONFIG['store']['history_limit']

        return context

    def generate(self, document: MachineDocument, target) -> str:
        """
        Generate TypeScript source for document

        Args:
            document: Machine document
            target: CodeTarget or its string value

        Returns:
            Generated source text, ending with a newline
        """
        target = CodeTarget(target)
        template = self.env.get_template(get_target_config(target)['template'])
        output = template.render(**self.build_context(document, target))

        logger.info(f"Generated {target.value} code for '{document.machine_id}' "
                    f"({len(document.nodes)} nodes, {len(document.edges)} edges)")
        return output.rstrip('\n') + '\n'


def generate_code(document: MachineDocument, target) -> str:
    """Render document for target with the bundled templates"""
    return CodeGenerator().generate(document, target)
