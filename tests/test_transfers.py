#!/usr/bin/env python3
"""
Unit tests for pallet transfers between warehouses.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.schemas import PalletGroupStock, Warehouse
from utils import transfers
from utils.spreadsheets import TEMPLATE_HEADER_ERROR, SpreadsheetError
from utils.transfers import NO_VALID_ROWS_ERROR, TransferValidationError

TODAY = '2024-01-15'


class TestParseTransferRows(unittest.TestCase):

    def test_keeps_only_usable_lines(self):
        rows = [
            ['Pallet Description', 'Total Pallet'],
            ['A', 2],
            ['B', 0],
            ['', 3],
            ['C', 'x'],
            [' D ', 1.5],
        ]
        self.assertEqual(transfers.parse_transfer_rows(rows), [
            {'groupName': 'A', 'pallets': 2},
            {'groupName': 'D', 'pallets': 1.5},
        ])

    def test_header_is_case_insensitive(self):
        rows = [['pallet description', 'TOTAL PALLET', ''], ['A', 1]]
        self.assertEqual(transfers.parse_transfer_rows(rows), [{'groupName': 'A', 'pallets': 1}])

    def test_wrong_header(self):
        with self.assertRaises(SpreadsheetError) as ctx:
            transfers.parse_transfer_rows([['Group', 'Qty'], ['A', 1]])
        self.assertEqual(str(ctx.exception), TEMPLATE_HEADER_ERROR)

    def test_no_valid_rows(self):
        with self.assertRaises(SpreadsheetError) as ctx:
            transfers.parse_transfer_rows([['Pallet Description', 'Total Pallet'], ['A', 0]])
        self.assertEqual(str(ctx.exception), NO_VALID_ROWS_ERROR)


class TestTransferForm(unittest.TestCase):

    def setUp(self):
        self.items = [{'groupName': 'A', 'pallets': 2}]
        self.available = {'A': 5, 'B': 1}

    def validate(self, **overrides):
        args = {
            'source_id': 'w2',
            'destination_id': 'w1',
            'po_number': 'PO-7',
            'edd': '2024-04-15',
            'items': self.items,
            'available': self.available,
            'today': TODAY,
        }
        args.update(overrides)
        return transfers.validate_transfer(**args)

    def assertRejected(self, message, **overrides):
        with self.assertRaises(TransferValidationError) as ctx:
            self.validate(**overrides)
        self.assertEqual(str(ctx.exception), message)

    def test_valid_payload(self):
        self.assertEqual(self.validate(), {
            'sourceWarehouseId': 'w2',
            'warehouseId': 'w1',
            'pallets': [{'groupName': 'A', 'pallets': 2}],
            'reference': 'PO-7',
            'estDeliveryDate': '2024-04-15',
        })

    def test_edd_is_optional(self):
        self.assertNotIn('estDeliveryDate', self.validate(edd=''))

    def test_rules_in_order(self):
        self.assertRejected('Select both source and destination warehouses', source_id='')
        self.assertRejected('Source and destination must be different', destination_id='w2')
        self.assertRejected('PO# is required', po_number='  ')
        self.assertRejected('Estimated Delivery cannot be earlier than today', edd='2024-01-14')
        self.assertRejected('Import at least one valid pallet row (Pallet Description, Total Pallet)', items=[])
        self.assertRejected('Insufficient pallet stock for: B, C',
                            items=[{'groupName': 'B', 'pallets': 2}, {'groupName': 'C', 'pallets': 1}])


class TestTransferHelpers(unittest.TestCase):

    def test_default_warehouses(self):
        warehouses = [
            Warehouse.model_validate({'_id': 'w1', 'name': 'Main', 'isPrimary': True}),
            Warehouse.model_validate({'_id': 'w2', 'name': 'Second'}),
        ]
        self.assertEqual(transfers.default_warehouses(warehouses), ('w2', 'w1'))
        self.assertEqual(transfers.default_warehouses([]), ('', ''))

    def test_default_edd(self):
        self.assertEqual(transfers.default_edd(TODAY), '2024-04-15')

    def test_available_by_group(self):
        groups = [
            PalletGroupStock.model_validate({'groupName': 'A', 'perWarehouse': [
                {'warehouseId': 'w1', 'pallets': 4},
                {'warehouseId': {'_id': 'w2'}, 'pallets': 2},
            ]}),
            PalletGroupStock.model_validate({'groupName': 'B', 'perWarehouse': []}),
        ]
        self.assertEqual(transfers.available_by_group(groups, 'w2'), {'A': 2.0, 'B': 0.0})
        self.assertEqual(transfers.available_by_group(groups, ''), {})

    def test_preview_frame(self):
        df = transfers.preview_frame([{'groupName': 'A', 'pallets': 2}, {'groupName': 'B', 'pallets': 3}], {'A': 5})
        self.assertEqual(list(df.columns), ['Pallet Description', 'Total Pallet', 'Available', 'Status'])
        self.assertEqual(df['Status'].tolist(), ['OK', 'Insufficient'])

    def test_row_status(self):
        self.assertEqual(transfers.row_status(0, 5), 'Insufficient')
        self.assertEqual(transfers.row_status(-1, 5), 'Insufficient')
        self.assertEqual(transfers.row_status(3, 3), 'OK')
        self.assertEqual(transfers.row_status(4, 3), 'Insufficient')

    def test_preview_frame_statuses_follow_row_status(self):
        items = [{'groupName': 'A', 'pallets': 0}, {'groupName': 'B', 'pallets': 3}, {'groupName': 'C', 'pallets': 4}]
        available = {'A': 5, 'B': 3, 'C': 3}
        df = transfers.preview_frame(items, available)
        self.assertEqual(df['Status'].tolist(), ['Insufficient', 'OK', 'Insufficient'])
        self.assertEqual(
            df['Status'].tolist(),
            [transfers.row_status(i['pallets'], available[i['groupName']]) for i in items],
        )

    def test_preview_frame_empty(self):
        df = transfers.preview_frame([], {})
        self.assertEqual(len(df), 0)
        self.assertIn('Status', df.columns)

    def test_submit(self):
        client = MagicMock()
        payload = {'reference': 'PO-7', 'pallets': [{'groupName': 'A', 'pallets': 2}]}
        transfers.submit_transfer(client, payload)
        client.post.assert_called_once_with('/shipments/transfer-pallet', json=payload)


if __name__ == '__main__':
    unittest.main(verbosity=2)
