"""Bundled example machines: traffic light, auth flow and a checkout with a parallel review."""

import copy
from typing import List, Optional

from .machine import (ATOMIC, FINAL, INITIAL, PARALLEL, MachineDocument, Position,
                      StateNode, TransitionEdge)


def _node(node_id, label, kind, x, y, parent_id=None, width=None, height=None):
    return StateNode(
        id=node_id,
        kind=kind,
        label=label,
        parent_id=parent_id,
        position=Position(x, y),
        style={'width': width, 'height': height} if width and height else None,
    )


def _edge(edge_id, source, target, event, guard='', actions=None):
    return TransitionEdge(
        id=edge_id,
        source=source,
        target=target,
        event=event,
        guard=guard,
        actions=list(actions or []),
    )


TRAFFIC_LIGHT = MachineDocument(
    machine_id='trafficLight',
    nodes=[
        _node('tl_init', 'Initial', INITIAL, 40, 165),
        _node('red', 'Red', ATOMIC, 220, 140),
        _node('green', 'Green', ATOMIC, 460, 140),
        _node('yellow', 'Yellow', ATOMIC, 700, 140),
    ],
    edges=[
        _edge('e_tl_init_red', 'tl_init', 'red', 'INIT'),
        _edge('e_tl_red_green', 'red', 'green', 'TIMER', '', ['startGoTimer']),
        _edge('e_tl_green_yellow', 'green', 'yellow', 'TIMER', '', ['warnDrivers']),
        _edge('e_tl_yellow_red', 'yellow', 'red', 'TIMER', '', ['stopTraffic']),
    ],
)

AUTH_FLOW = MachineDocument(
    machine_id='authFlow',
    nodes=[
        _node('auth_init', 'Initial', INITIAL, 40, 160),
        _node('logged_out', 'Logged Out', ATOMIC, 220, 120),
        _node('authenticating', 'Authenticating', ATOMIC, 430, 120),
        _node('logged_in', 'Logged In', ATOMIC, 670, 120),
        _node('denied', 'Denied', FINAL, 430, 300),
    ],
    edges=[
        _edge('e_auth_init_out', 'auth_init', 'logged_out', 'INIT'),
        _edge('e_out_login', 'logged_out', 'authenticating', 'LOGIN', '', ['requestToken']),
        _edge('e_auth_success', 'authenticating', 'logged_in', 'AUTH_SUCCESS',
              "event.type === 'AUTH_SUCCESS'", ['saveSession']),
        _edge('e_auth_fail', 'authenticating', 'denied', 'AUTH_FAIL', '', ['captureError']),
        _edge('e_logout', 'logged_in', 'logged_out', 'LOGOUT', '', ['clearSession']),
    ],
)

CHECKOUT = MachineDocument(
    machine_id='checkoutFlow',
    nodes=[
        _node('co_init', 'Initial', INITIAL, 30, 210),
        _node('cart', 'Cart', ATOMIC, 190, 180),
        _node('review', 'Review (Parallel)', PARALLEL, 420, 80, None, 520, 320),
        _node('review_shipping', 'Shipping', ATOMIC, 40, 70, 'review'),
        _node('review_payment', 'Payment', ATOMIC, 260, 70, 'review'),
        _node('review_init_shipping', 'Initial', INITIAL, 18, 22, 'review'),
        _node('confirm', 'Confirm', ATOMIC, 1020, 180),
        _node('done', 'Done', FINAL, 1240, 180),
    ],
    edges=[
        _edge('e_co_init_cart', 'co_init', 'cart', 'INIT'),
        _edge('e_cart_review', 'cart', 'review', 'BEGIN_CHECKOUT', '', ['lockInventory']),
        _edge('e_review_init_shipping', 'review_init_shipping', 'review_shipping', 'INIT'),
        _edge('e_shipping_payment', 'review_shipping', 'review_payment', 'SHIPPING_OK'),
        _edge('e_payment_confirm', 'review_payment', 'confirm', 'PAYMENT_OK', 'true', ['capturePayment']),
        _edge('e_confirm_done', 'confirm', 'done', 'PLACE_ORDER', '', ['emitOrderPlaced']),
    ],
)

# (id, display name, machine)
EXAMPLE_MACHINES = [
    ('traffic', 'Traffic Light', TRAFFIC_LIGHT),
    ('auth', 'Auth Flow', AUTH_FLOW),
    ('checkout', 'Shopping Cart', CHECKOUT),
]


def example_ids() -> List[str]:
    return [example_id for example_id, _, _ in EXAMPLE_MACHINES]


def get_example(example_id: str) -> Optional[MachineDocument]:
    """Deep copy of a bundled machine, so callers may edit it freely"""
    for candidate_id, _, machine in EXAMPLE_MACHINES:
        if candidate_id == example_id:
            return copy.deepcopy(machine)
    return None
