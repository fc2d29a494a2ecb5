"""Tests for the document model and its JSON shape"""

import pytest

from fluxstate.machine import (FINAL, MachineDocument, MachineFormatError, edge_label,
                               is_document_payload, normalize_document)


class TestSerialization:
    def test_node_shape(self, checkout):
        data = checkout.to_dict()
        nodes = {node['id']: node for node in data['nodes']}

        assert data['machineId'] == 'checkoutFlow'
        assert data['version'] == 1
        assert nodes['cart'] == {
            'id': 'cart',
            'type': 'stateNode',
            'position': {'x': 190, 'y': 180},
            'data': {'label': 'Cart', 'kind': 'atomic'},
        }
        assert nodes['review_shipping']['parentNode'] == 'review'
        assert nodes['review_shipping']['extent'] == 'parent'
        assert nodes['review']['style'] == {'width': 520, 'height': 320}

    def test_edge_shape(self, auth_flow):
        edge = auth_flow.to_dict()['edges'][2]
        assert edge == {
            'id': 'e_auth_success',
            'type': 'transitionEdge',
            'source': 'authenticating',
            'target': 'logged_in',
            'data': {
                'event': 'AUTH_SUCCESS',
                'guard': "event.type === 'AUTH_SUCCESS'",
                'actions': ['saveSession'],
            },
        }

    def test_dict_round_trip(self, all_examples, player, formatter):
        for document in all_examples + [player, formatter]:
            assert MachineDocument.from_dict(document.to_dict()) == document

    def test_json_round_trip(self, checkout):
        assert MachineDocument.from_json(checkout.to_json()) == checkout

    def test_is_document_payload(self, traffic_light):
        assert is_document_payload(traffic_light.to_dict())
        assert not is_document_payload({'states': {}})
        assert not is_document_payload(None)


class TestDefaults:
    def test_missing_fields_are_filled(self):
        document = MachineDocument.from_dict({
            'machineId': 'm',
            'nodes': [{'id': 'a'}],
            'edges': [{'source': 'a', 'target': 'a'}],
        })

        node = document.nodes[0]
        edge = document.edges[0]
        assert node.label == 'a'
        assert node.kind == 'atomic'
        assert node.parent_id is None
        assert edge.id.startswith('edge_')
        assert edge.event == 'EVENT'
        assert edge.guard == ''
        assert edge.actions == []
        assert document.viewport == {'x': 0, 'y': 0, 'zoom': 1}

    def test_flat_fields_and_parent_alias(self):
        document = MachineDocument.from_dict({
            'machineId': 'm',
            'nodes': [
                {'id': 'a'},
                {'id': 'b', 'kind': 'final', 'label': 'B', 'parentId': 'a'},
            ],
            'edges': [{'source': 'a', 'target': 'b', 'event': 'GO', 'actions': 'log'}],
        })

        assert document.nodes[1].kind == FINAL
        assert document.nodes[1].label == 'B'
        assert document.nodes[1].parent_id == 'a'
        assert document.edges[0].event == 'GO'
        assert document.edges[0].actions == ['log']

    def test_missing_machine_id(self):
        document = MachineDocument.from_dict({'nodes': [], 'edges': []})
        assert document.machine_id == 'importedMachine'

    def test_normalize_returns_copy(self, traffic_light):
        normalized = normalize_document(traffic_light)
        assert normalized == traffic_light
        assert normalized is not traffic_light
        normalized.nodes[1].label = 'Changed'
        assert traffic_light.nodes[1].label == 'Red'


class TestMalformedDocuments:
    @pytest.mark.parametrize('payload', [
        [],
        {'machineId': 'm'},
        {'machineId': 'm', 'nodes': {}, 'edges': []},
        {'machineId': 'm', 'nodes': [{'label': 'no id'}], 'edges': []},
        {'machineId': 'm', 'nodes': [{'id': 'a', 'kind': 'history'}], 'edges': []},
        {'machineId': 'm', 'nodes': [{'id': 'a'}], 'edges': [{'source': 'a'}]},
        {'machineId': 'm', 'nodes': ['a'], 'edges': []},
    ])
    def test_rejected(self, payload):
        with pytest.raises(MachineFormatError):
            MachineDocument.from_dict(payload)

    def test_invalid_json(self):
        with pytest.raises(MachineFormatError, match='not valid JSON'):
            MachineDocument.from_json('{')

    def test_format_error_is_value_error(self):
        assert issubclass(MachineFormatError, ValueError)


class TestEdgeLabel:
    def test_event_and_actions(self, traffic_light):
        assert edge_label(traffic_light.edges[1]) == 'TIMER / startGoTimer'

    def test_guard(self, auth_flow):
        assert edge_label(auth_flow.edges[2]) == "AUTH_SUCCESS [event.type === 'AUTH_SUCCESS'] / saveSession"

    def test_bare_event(self, checkout):
        assert edge_label(checkout.edges[3]) == 'SHIPPING_OK'
