"""
Execution Engine

Computes active configurations (sets of active leaf ids) and resolves
events against them. Every function takes the document and the current
configuration by value and returns new values; nothing is cached between
calls.

Firing a transition replaces the whole configuration with the leaves of
its target, including concurrently active parallel regions the transition
did not target.
"""

import logging
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from .entry import enter
from .graph_index import ROOT, GraphIndex, build_index
from .guards import evaluate_guard
from .machine import MachineDocument

logger = logging.getLogger(__name__)


class Resolution(NamedTuple):
    """Outcome of resolving one event"""
    configuration: List[str]
    fired_edge_id: Optional[str]


def initial_configuration(document: MachineDocument) -> List[str]:
    """Leaves active when the machine starts (root initial target, entered)"""
    index = build_index(document)
    target = index.initial_target(ROOT)
    if target is None:
        return []
    return enter(target, index)


def available_events(document: MachineDocument, configuration: Iterable[str]) -> List[str]:
    """
    Events with at least one outgoing edge on an active leaf or any of its ancestors

    Returns:
        Distinct, trimmed, non-empty event names in sorted order
    """
    index = build_index(document)
    events = set()
    for leaf in configuration:
        for source in index.ancestors(leaf):
            for edge in index.outgoing(source):
                name = edge.event.strip()
                if name:
                    events.add(name)
    return sorted(events)


def _find_transition(leaf: str, event_type: str, index: GraphIndex,
                     context: Optional[Dict[str, Any]]) -> Optional[Resolution]:
    """First enabled edge for event_type found walking up from leaf, with its target leaves"""
    for source in index.ancestors(leaf):
        for edge in index.outgoing(source):
            if edge.event.strip() != event_type:
                continue
            if not evaluate_guard(edge.guard, event_type, context):
                continue
            leaves = enter(edge.target, index)
            if not leaves:
                # Dangling target or an entry cycle: not fireable
                logger.debug(f"Edge {edge.id} skipped: entering {edge.target} yields no leaves")
                continue
            return Resolution(leaves, edge.id)
    return None


def resolve(document: MachineDocument, configuration: Iterable[str], event_type: str,
            context: Optional[Dict[str, Any]] = None) -> Resolution:
    """
    Resolve event_type against the active configuration

    Leaves are tried in their configuration order; for each, the ancestor
    chain is searched from the leaf upward and each ancestor's edges in
    declaration order. The first edge whose event matches and whose guard
    holds fires, and the configuration becomes the leaves of its target.

    Args:
        document: Machine document
        configuration: Active leaf ids
        event_type: Event name
        context: Mapping visible to guards as `context`

    Returns:
        Resolution(configuration, fired_edge_id); the input configuration
        and None when nothing fires
    """
    index = build_index(document)
    current = list(configuration)
    event_type = event_type.strip()

    for leaf in current:
        step = _find_transition(leaf, event_type, index, context)
        if step is not None:
            logger.debug(f"{event_type}: edge {step.fired_edge_id} fired, {current} -> {step.configuration}")
            return step

    return Resolution(current, None)


def is_active(node_id: str, configuration: Iterable[str], document: MachineDocument) -> bool:
    """True if node_id is an active leaf or a strict ancestor of one"""
    index = build_index(document)
    for leaf in configuration:
        if node_id in index.ancestors(leaf):
            return True
    return False


def run_events(document: MachineDocument, events: Iterable[str],
               configuration: Optional[Iterable[str]] = None,
               context: Optional[Dict[str, Any]] = None) -> List[Resolution]:
    """
    Apply events in order and return every step

    Starts from configuration, or from the initial configuration when none
    is given. Events that fire nothing still produce a step.
    """
    current = list(configuration) if configuration is not None else initial_configuration(document)
    steps = []
    for event_type in events:
        step = resolve(document, current, event_type, context)
        steps.append(step)
        current = step.configuration
    return steps
