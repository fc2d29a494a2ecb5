"""Tests for GraphIndex lookups and traversal primitives"""

from conftest import make_edge, make_node

from fluxstate.graph_index import ROOT, build_index
from fluxstate.machine import INITIAL, MachineDocument


class TestLookups:
    def test_children_keep_declaration_order(self, traffic_light):
        index = build_index(traffic_light)
        assert [node.id for node in index.children(ROOT)] == ['tl_init', 'red', 'green', 'yellow']
        assert [node.id for node in index.state_children(ROOT)] == ['red', 'green', 'yellow']

    def test_nested_children(self, checkout):
        index = build_index(checkout)
        assert [node.id for node in index.state_children('review')] == ['review_shipping', 'review_payment']
        assert index.children('cart') == []

    def test_outgoing(self, player):
        index = build_index(player)
        assert [edge.id for edge in index.outgoing('active')] == ['e_stop', 'e_finish_guarded', 'e_finish']
        assert index.outgoing('missing') == []

    def test_dangling_references_are_kept(self):
        document = MachineDocument(
            machine_id='m',
            nodes=[make_node('a', parent_id='ghost')],
            edges=[make_edge('e', 'nowhere', 'a', 'GO')],
        )
        index = build_index(document)
        assert index.children('ghost')[0].id == 'a'
        assert index.outgoing('nowhere')[0].id == 'e'


class TestAncestors:
    def test_chain_starts_with_node(self, checkout):
        index = build_index(checkout)
        assert index.ancestors('review_payment') == ['review_payment', 'review']
        assert index.ancestors('cart') == ['cart']

    def test_stops_at_unknown_parent(self):
        index = build_index(MachineDocument(machine_id='m', nodes=[make_node('a', parent_id='ghost')]))
        assert index.ancestors('a') == ['a', 'ghost']

    def test_parent_cycle_terminates(self):
        index = build_index(MachineDocument(machine_id='m', nodes=[
            make_node('a', parent_id='b'),
            make_node('b', parent_id='a'),
        ]))
        assert index.ancestors('a') == ['a', 'b']


class TestInitialTarget:
    def test_marker_wins_over_declaration_order(self, player):
        index = build_index(player)
        assert index.initial_target('active') == 'playing'
        assert index.initial_target(ROOT) == 'stopped'

    def test_first_child_fallback(self, formatter):
        index = build_index(formatter)
        assert index.initial_target('bold') == 'bold_off'
        assert index.initial_target(ROOT) == 'format'

    def test_marker_with_missing_target_falls_back(self):
        index = build_index(MachineDocument(
            machine_id='m',
            nodes=[make_node('init', INITIAL), make_node('a'), make_node('b')],
            edges=[make_edge('e', 'init', 'ghost', 'INIT')],
        ))
        assert index.marker_target(ROOT) is None
        assert index.initial_target(ROOT) == 'a'

    def test_leaf_has_no_initial_target(self, traffic_light):
        assert build_index(traffic_light).initial_target('red') is None


class TestChildKeys:
    def test_label_slugs(self, checkout):
        index = build_index(checkout)
        assert index.child_keys(ROOT) == {
            'cart': 'cart',
            'review': 'review_parallel',
            'confirm': 'confirm',
            'done': 'done',
        }

    def test_duplicate_labels_get_suffixes(self):
        index = build_index(MachineDocument(machine_id='m', nodes=[
            make_node('a', label='Idle'),
            make_node('b', label='Idle'),
            make_node('c', label='Idle 2'),
            make_node('d', label='idle!'),
        ]))
        assert index.child_keys(ROOT) == {
            'a': 'idle',
            'b': 'idle_2',
            'c': 'idle_2_2',
            'd': 'idle_3',
        }
