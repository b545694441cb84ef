#!/usr/bin/env python3
"""
Unit tests for the pallet summary, the inventory grid exports and the
record-loss form.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.schemas import ItemGroup, PalletGroupStock, Warehouse
from utils import pallet_summary


def warehouses():
    return [
        Warehouse.model_validate({'_id': 'w2', 'name': 'Second'}),
        Warehouse.model_validate({'_id': 'w1', 'name': 'Main', 'isPrimary': True}),
        Warehouse.model_validate({'_id': 'w3', 'name': 'Third'}),
    ]


def group_stock():
    return [
        PalletGroupStock.model_validate({'groupName': 'A', 'totalPallets': 6, 'perWarehouse': [
            {'warehouseId': 'w1', 'pallets': 4},
            {'warehouseId': {'_id': 'w3'}, 'pallets': 2},
        ]}),
        PalletGroupStock.model_validate({'groupName': 'B', 'totalPallets': 0, 'perWarehouse': []}),
    ]


class TestSummaryRows(unittest.TestCase):

    def setUp(self):
        self.raw = [
            {'itemGroup': 'A', 'warehouses': {'w1': 4, 'w2': 1}, 'onWaterQty': 2, 'onProcessQty': 3},
            {'itemGroup': 'B', 'warehouses': {}, 'onWaterQty': None, 'onProcessQty': 'x'},
        ]
        self.rows = pallet_summary.build_summary_rows(self.raw, warehouses(), {'A': 'P-1'})

    def test_totals_include_every_bucket(self):
        self.assertEqual(self.rows[0]['palletId'], 'P-1')
        self.assertEqual(self.rows[0]['warehouses'], {'w2': 1.0, 'w1': 4.0, 'w3': 0.0})
        self.assertEqual(self.rows[0]['totalQty'], 10)
        self.assertEqual(self.rows[1]['totalQty'], 0)
        self.assertEqual(self.rows[1]['palletId'], '')

    def test_column_order(self):
        headers = [h for h, _ in pallet_summary.summary_columns(warehouses())]
        self.assertEqual(headers, [
            'Pallet ID', 'Pallet Description', 'Main', 'On-Water', 'Second', 'On-Process', 'Third', 'Total Qty',
        ])

    def test_frame(self):
        df = pallet_summary.summary_frame(self.rows, warehouses())
        self.assertEqual(df.iloc[0]['Main'], 4)
        self.assertEqual(df.iloc[0]['Second'], 1)
        self.assertEqual(df.iloc[0]['Total Qty'], 10)

    def test_filter_matches_description_or_pallet_id(self):
        self.assertEqual(len(pallet_summary.filter_summary_rows(self.rows, 'p-1')), 1)
        self.assertEqual(len(pallet_summary.filter_summary_rows(self.rows, ' b ')), 1)
        self.assertEqual(len(pallet_summary.filter_summary_rows(self.rows, '')), 2)

    def test_chart(self):
        fig = pallet_summary.summary_chart(self.rows, top_n=1)
        self.assertEqual(len(fig.data), 3)
        self.assertEqual(list(fig.data[0].x), ['A'])

    def test_export_filename(self):
        self.assertEqual(pallet_summary.summary_export_filename('20240101_120000'),
                         'Pallet_Quantity_Summary_20240101_120000.xlsx')

    def test_pallet_id_map(self):
        groups = [ItemGroup.model_validate({'name': ' A ', 'lineItem': ' P-1 '}), ItemGroup(name='')]
        self.assertEqual(pallet_summary.pallet_id_map(groups), {'A': 'P-1'})


class TestWarehouseExports(unittest.TestCase):

    def test_inventory_grid(self):
        df = pallet_summary.inventory_grid_frame(group_stock(), warehouses())
        self.assertEqual(list(df.columns), ['Pallet Description', 'Total Pallets', 'Second', 'Main', 'Third'])
        self.assertEqual(df.iloc[0]['Third'], 2)
        self.assertEqual(df.iloc[1]['Main'], 0)

    def test_single_warehouse_skips_empty_groups(self):
        self.assertEqual(pallet_summary.warehouse_stock_rows(group_stock(), 'w1'), [['A', 4.0]])
        self.assertEqual(pallet_summary.warehouse_stock_rows(group_stock(), 'w2'), [])

    def test_all_warehouses(self):
        header, rows = pallet_summary.all_warehouses_rows(group_stock(), warehouses())
        self.assertEqual(header, ['Pallet Description', 'Total Pallet', 'Second', 'Main', 'Third'])
        self.assertEqual(rows[0], ['A', 6.0, 0.0, 4.0, 2.0])
        self.assertEqual(rows[1], ['B', 0.0, 0.0, 0.0, 0.0])

    def test_filenames(self):
        self.assertEqual(pallet_summary.warehouse_stock_filename('Main/East', 'ts'),
                         'warehouse-pallet-inventory-(Main-East)-(ts).xlsx')
        self.assertEqual(pallet_summary.all_warehouses_filename('ts'), 'all-warehouses-pallet-inventory-(ts).xlsx')


class TestGroupDetails(unittest.TestCase):

    def test_movement_status_label(self):
        label = pallet_summary.movement_status_label
        self.assertEqual(label({'status': 'On-Water', 'committedBy': 'transfer'}), 'on_transfer | on_water')
        self.assertEqual(label({'status': 'Adjustment', 'reason': 'LOSS'}), 'adjustment | loss')
        self.assertEqual(label({'status': 'Adjustment', 'reason': 'count'}), 'adjustment')
        self.assertEqual(label({'status': 'Delivered', 'committedBy': 'transfer'}), 'transfered | Delivered')
        self.assertEqual(label({'status': 'Delivered', 'committedBy': 'existing_inventory'}),
                         'existing_inventory | Delivered')
        self.assertEqual(label({'status': 'Delivered', 'wasOnWater': True}), 'On-Water | Delivered')
        self.assertEqual(label({'status': 'Delivered'}), 'on_process | Delivered')
        self.assertEqual(label({'status': 'On-Water'}), 'On-Water')

    def test_detail_frames(self):
        details = {
            'items': [{'itemCode': 'X1', 'description': 'Pot', 'color': 'Red', 'packSize': 4}],
            'recentTransactions': [
                {'createdAt': '2024-01-01', 'poNumber': 'PO1', 'warehouseId': 'w1', 'palletsDelta': -2,
                 'status': 'Adjustment', 'reason': 'loss'},
                {'createdAt': '2024-01-02', 'warehouseId': 'zz', 'palletsDelta': 3, 'status': 'Delivered'},
            ],
        }
        items, movements = pallet_summary.group_detail_frames(details, warehouses())
        self.assertEqual(items.iloc[0]['Item Code'], 'X1')
        self.assertEqual(movements['Type'].tolist(), ['OUT', 'IN'])
        self.assertEqual(movements['Warehouse'].tolist(), ['Main', '-'])


class TestRecordLoss(unittest.TestCase):

    def test_valid_payload(self):
        payload = pallet_summary.validate_loss('w1', ' damaged ', [
            {'groupName': ' A ', 'qty': '2'},
            {'groupName': '', 'qty': 5},
        ])
        self.assertEqual(payload, {'warehouseId': 'w1', 'items': [{'groupName': 'A', 'qty': 2}], 'reference': 'damaged'})

    def test_rules(self):
        cases = [
            ('', [{'groupName': 'A', 'qty': 1}], 'Warehouse is required'),
            ('w1', [{'groupName': '', 'qty': 1}], 'At least one Pallet Description is required'),
            ('w1', [{'groupName': 'A', 'qty': 0}], 'Qty must be > 0'),
            ('w1', [{'groupName': 'A', 'qty': 'x'}], 'Qty must be > 0'),
            ('w1', [{'groupName': 'A', 'qty': 1}, {'groupName': 'a', 'qty': 1}], 'Duplicate Pallet Description: a'),
        ]
        for warehouse_id, items, message in cases:
            with self.assertRaises(ValueError) as ctx:
                pallet_summary.validate_loss(warehouse_id, '', items)
            self.assertEqual(str(ctx.exception), message)

    def test_record_loss_posts_adjustment(self):
        client = MagicMock()
        payload = {'warehouseId': 'w1', 'items': [{'groupName': 'A', 'qty': 2}]}
        pallet_summary.record_loss(client, payload)
        client.post.assert_called_once_with('/pallet-inventory/adjustments', json=payload)


class TestSummaryApiCalls(unittest.TestCase):

    def test_load_summary(self):
        client = MagicMock()
        responses = {
            '/reports/pallet-summary-by-group': {
                'warehouses': [{'_id': 'w1', 'name': 'Main', 'isPrimary': True}],
                'rows': [{'itemGroup': 'A', 'warehouses': {'w1': 2}}],
            },
            '/item-groups': [{'name': 'A', 'lineItem': 'P-1'}],
        }
        client.get.side_effect = lambda path, params=None: responses[path]
        found, rows = pallet_summary.load_summary(client)
        self.assertEqual([w.name for w in found], ['Main'])
        self.assertEqual(rows[0]['palletId'], 'P-1')
        self.assertEqual(rows[0]['totalQty'], 2)

    def test_group_details_url_quotes_name(self):
        client = MagicMock()
        client.get.return_value = {}
        pallet_summary.load_group_details(client, 'A/B C')
        client.get.assert_called_once_with('/pallet-inventory/groups/A%2FB%20C')

    def test_drilldowns_skip_blank_input(self):
        client = MagicMock()
        self.assertEqual(pallet_summary.load_on_water_details(client, '', 'A'), [])
        self.assertEqual(pallet_summary.load_on_process_details(client, ' '), [])
        client.get.assert_not_called()


if __name__ == '__main__':
    unittest.main(verbosity=2)
