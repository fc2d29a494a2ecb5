"""Shared fixtures: bundled examples plus small nested and parallel machines."""

import pytest

from fluxstate.examples import get_example
from fluxstate.machine import (ATOMIC, FINAL, INITIAL, PARALLEL, MachineDocument, Position,
                               StateNode, TransitionEdge)


def make_node(node_id, kind=ATOMIC, label=None, parent_id=None):
    return StateNode(id=node_id, kind=kind, label=label or node_id.title(),
                     parent_id=parent_id, position=Position(0, 0))


def make_edge(edge_id, source, target, event, guard='', actions=None):
    return TransitionEdge(id=edge_id, source=source, target=target, event=event,
                          guard=guard, actions=list(actions or []))


@pytest.fixture
def traffic_light():
    return get_example('traffic')


@pytest.fixture
def auth_flow():
    return get_example('auth')


@pytest.fixture
def checkout():
    return get_example('checkout')


@pytest.fixture
def all_examples(traffic_light, auth_flow, checkout):
    return [traffic_light, auth_flow, checkout]


@pytest.fixture
def player():
    """
    Compound machine:

        stopped --PLAY--> active
        active (initial: playing)
            paused  --PLAY--> playing
            playing --PAUSE--> paused
            paused  --FINISH [1 === 2]--> ended
        active --STOP--> stopped
        active --FINISH [context.done]--> ended
        active --FINISH--> ended
    """
    return MachineDocument(
        machine_id='player',
        nodes=[
            make_node('p_init', INITIAL, 'Initial'),
            make_node('stopped'),
            make_node('active'),
            make_node('active_init', INITIAL, 'Initial', parent_id='active'),
            make_node('paused', parent_id='active'),
            make_node('playing', parent_id='active'),
            make_node('ended', FINAL),
        ],
        edges=[
            make_edge('e_init', 'p_init', 'stopped', 'INIT'),
            make_edge('e_play', 'stopped', 'active', 'PLAY', actions=['load']),
            make_edge('e_active_init', 'active_init', 'playing', 'INIT'),
            make_edge('e_pause', 'playing', 'paused', 'PAUSE'),
            make_edge('e_resume', 'paused', 'playing', 'PLAY'),
            make_edge('e_paused_finish', 'paused', 'ended', 'FINISH', guard='1 === 2'),
            make_edge('e_stop', 'active', 'stopped', 'STOP', actions=['rewind', 'unload']),
            make_edge('e_finish_guarded', 'active', 'ended', 'FINISH', guard='context.done'),
            make_edge('e_finish', 'active', 'ended', 'FINISH'),
        ],
    )


@pytest.fixture
def formatter():
    """
    Parallel machine with two compound regions:

        format (parallel)
            bold:   bold_off (first child) | bold_on
            italic: italic_off | italic_on (marker target)
        format --RESET--> format
    """
    return MachineDocument(
        machine_id='formatter',
        nodes=[
            make_node('format', PARALLEL, 'Format'),
            make_node('bold', parent_id='format'),
            make_node('bold_off', label='Off', parent_id='bold'),
            make_node('bold_on', label='On', parent_id='bold'),
            make_node('italic', parent_id='format'),
            make_node('italic_init', INITIAL, 'Initial', parent_id='italic'),
            make_node('italic_off', label='Off', parent_id='italic'),
            make_node('italic_on', label='On', parent_id='italic'),
        ],
        edges=[
            make_edge('e_italic_init', 'italic_init', 'italic_on', 'INIT'),
            make_edge('e_bold_toggle', 'bold_off', 'bold_on', 'TOGGLE_BOLD'),
            make_edge('e_bold_untoggle', 'bold_on', 'bold_off', 'TOGGLE_BOLD'),
            make_edge('e_italic_toggle', 'italic_on', 'italic_off', 'TOGGLE_ITALIC'),
            make_edge('e_reset', 'format', 'format', 'RESET'),
        ],
    )
