#!/usr/bin/env python3
"""
Unit tests for shipment rules and the pallet export of a shipment.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.schemas import Shipment
from utils import shipments
from utils.api_client import ApiError
from utils.shipments import ShipmentRuleError

TODAY = '2024-01-15'


def shipment(**overrides):
    data = {
        '_id': 's1',
        'kind': 'import',
        'status': 'on_water',
        'reference': 'PO1',
        'warehouseId': 'w1',
        'estDeliveryDate': '2024-01-10T00:00:00Z',
    }
    data.update(overrides)
    return Shipment.model_validate(data)


class TestShipmentRules(unittest.TestCase):

    def test_deliver_books_on_edd(self):
        self.assertEqual(shipments.validate_deliver(shipment(), TODAY), '2024-01-10')

    def test_deliver_rules(self):
        with self.assertRaises(ShipmentRuleError) as ctx:
            shipments.validate_deliver(shipment(status='delivered'), TODAY)
        self.assertEqual(str(ctx.exception), 'Only on-water shipments can be delivered')

        with self.assertRaises(ShipmentRuleError) as ctx:
            shipments.validate_deliver(shipment(estDeliveryDate=''), TODAY)
        self.assertEqual(str(ctx.exception), 'Set EDD first')

        with self.assertRaises(ShipmentRuleError) as ctx:
            shipments.validate_deliver(shipment(estDeliveryDate='2024-02-01'), TODAY)
        self.assertEqual(str(ctx.exception), 'EDD cannot be in the future')

    def test_edd_locked_after_delivery(self):
        for status in ('delivered', 'transferred'):
            with self.assertRaises(ShipmentRuleError):
                shipments.validate_edd_update(shipment(status=status), '2024-02-01')
        self.assertEqual(shipments.validate_edd_update(shipment(), '2024-02-01'), '2024-02-01')

    def test_edd_required_is_reported_before_lock(self):
        with self.assertRaises(ShipmentRuleError) as ctx:
            shipments.validate_edd_update(shipment(status='delivered'), '')
        self.assertEqual(str(ctx.exception), 'EDD is required')

        with self.assertRaises(ShipmentRuleError) as ctx:
            shipments.validate_edd_update(shipment(status='delivered'), '2024-02-01')
        self.assertEqual(str(ctx.exception), 'EDD is locked for delivered shipments')

    def test_deliver_posts_only_when_allowed(self):
        client = MagicMock()
        with self.assertRaises(ShipmentRuleError):
            shipments.deliver(client, shipment(status='delivered'), TODAY)
        client.post.assert_not_called()

        shipments.deliver(client, shipment(), TODAY)
        client.post.assert_called_once_with('/shipments/s1/deliver')

    def test_update_edd(self):
        client = MagicMock()
        shipments.update_edd(client, shipment(), '2024-03-01')
        client.put.assert_called_once_with('/shipments/s1/edd', json={'estDeliveryDate': '2024-03-01'})


class TestShipmentDisplay(unittest.TestCase):

    def test_reference_and_kind(self):
        self.assertEqual(shipments.display_reference(shipment()), 'PO - PO1')
        self.assertEqual(shipments.display_reference(shipment(kind='other', reference='')), 's1')
        self.assertEqual(shipments.display_kind(shipment(notes='From On-Process batch PO1')), 'on-process')
        self.assertEqual(shipments.display_kind(shipment(kind='transfer')), 'transfer')

    def test_parse_pallet_notes(self):
        notes = 'pallet-group:A; pallets:3|pallet-group:B; pallets:0|pallet-group: C ;pallets:2'
        self.assertEqual(shipments.parse_pallet_notes(notes), [('A', 3), ('C', 2)])
        self.assertEqual(shipments.parse_pallet_notes(None), [])


class TestShipmentExport(unittest.TestCase):

    def test_on_process_import_uses_notes(self):
        s = shipment(notes='on-process | pallet-group:A; pallets:3')
        body = shipments.pallet_export_body(s, lambda code: self.fail('lookup not expected'))
        self.assertEqual(body, [['A', 3]])

    def test_pallet_transfer_uses_notes(self):
        s = shipment(kind='transfer', notes='pallet-group:B; pallets:4')
        self.assertEqual(shipments.pallet_export_body(s, lambda code: ''), [['B', 4]])

    def test_fallback_is_one_row_per_item(self):
        s = shipment(kind='transfer', notes='', items=[
            {'itemCode': 'X1', 'qtyPieces': 10},
            {'itemCode': 'X2', 'qtyPieces': 5},
            {'itemCode': 'X1', 'qtyPieces': 2},
        ])
        lookup = MagicMock(side_effect=lambda code: {'X1': 'Group 1'}.get(code))
        body = shipments.pallet_export_body(s, lookup)
        self.assertEqual(body, [['Group 1', 10], ['', 5], ['Group 1', 2]])
        self.assertEqual(lookup.call_count, 2)

    def test_meta_rows_and_filename(self):
        names = {'w1': 'Main/East', 'w2': 'West'}
        s = shipment(kind='transfer', sourceWarehouseId={'_id': 'w2'})
        meta = dict(shipments.export_meta_rows(s, names))
        self.assertEqual(meta['To Warehouse'], 'Main/East')
        self.assertEqual(meta['From Warehouse'], 'West')
        self.assertEqual(meta['Estimated Date'], '2024-01-10')
        self.assertEqual(
            shipments.export_filename(s, names, '20240101-000000'),
            'shipment-pallets-PO1-(on_water)-(Main-East)-(20240101-000000).xlsx',
        )

    def test_item_group_lookup_caches_and_tolerates_errors(self):
        client = MagicMock()
        client.get.side_effect = [{'itemGroup': 'G'}, ApiError('missing', status_code=404)]
        lookup = shipments.item_group_lookup_for(client)
        self.assertEqual(lookup('A 1'), 'G')
        self.assertEqual(lookup('A 1'), 'G')
        self.assertEqual(lookup('B'), '')
        client.get.assert_any_call('/items/A%201')
        self.assertEqual(client.get.call_count, 2)

    def test_list_shipments(self):
        client = MagicMock()
        client.get.return_value = {'items': [{'_id': 's1', 'kind': 'import', 'status': 'on_water'}], 'total': 7}
        items, total = shipments.list_shipments(client, page=1, status='on_water')
        self.assertEqual(total, 7)
        self.assertEqual(items[0].id, 's1')
        client.get.assert_called_once_with('/shipments', params={'page': 1, 'pageSize': 25, 'status': 'on_water', 'q': ''})


if __name__ == '__main__':
    unittest.main(verbosity=2)
