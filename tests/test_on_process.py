#!/usr/bin/env python3
"""
Unit tests for on-process batch bookkeeping: grid row reconciliation,
batch status and the finished-pallet transfer request.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.schemas import OnProcessBatch, OnProcessPallet, Warehouse
from utils import on_process
from utils.on_process import OnProcessRuleError

TODAY = '2024-01-15'


def pallet_row(**overrides):
    data = {
        'groupName': 'A',
        'totalPallet': 10,
        'finishedPallet': 0,
        'transferredPallet': 0,
        'status': 'in_progress',
        'locked': False,
    }
    data.update(overrides)
    return OnProcessPallet.model_validate(data)


class TestApplyRowEdit(unittest.TestCase):

    def test_partial_finish(self):
        row = on_process.apply_row_edit(pallet_row(), finished=4)
        self.assertEqual(row.finished_pallet, 4)
        self.assertEqual(row.status, 'partial')

    def test_finished_is_capped_and_completes(self):
        row = on_process.apply_row_edit(pallet_row(), finished=20)
        self.assertEqual(row.finished_pallet, 10)
        self.assertEqual(row.status, 'completed')

    def test_negative_finished_keeps_current(self):
        row = on_process.apply_row_edit(pallet_row(finishedPallet=3), finished=-1)
        self.assertEqual(row.finished_pallet, 3)

    def test_cancel_zeroes_untouched_row(self):
        row = on_process.apply_row_edit(pallet_row(finishedPallet=2), status='cancelled')
        self.assertEqual(row.status, 'cancelled')
        self.assertEqual(row.total_pallet, 0)
        self.assertEqual(row.finished_pallet, 0)

    def test_cancel_refused_after_transfer(self):
        row = on_process.apply_row_edit(pallet_row(transferredPallet=2), status='cancelled')
        self.assertEqual(row.status, 'in_progress')
        self.assertEqual(row.total_pallet, 10)

    def test_total_never_drops_below_one(self):
        row = on_process.apply_row_edit(pallet_row(), total=0)
        self.assertEqual(row.total_pallet, 1)

    def test_total_never_drops_below_transferred(self):
        row = on_process.apply_row_edit(pallet_row(transferredPallet=6), total=2)
        self.assertEqual(row.total_pallet, 6)
        self.assertEqual(row.status, 'completed')

    def test_unknown_status_is_ignored(self):
        row = on_process.apply_row_edit(pallet_row(), status='bogus')
        self.assertEqual(row.status, 'in_progress')

    def test_locked_row_total_only_grows(self):
        locked = pallet_row(totalPallet=5, transferredPallet=5, status='completed', locked=True)
        self.assertTrue(on_process.effective_locked(locked))

        shrunk = on_process.apply_row_edit(locked, total=3)
        self.assertEqual(shrunk.total_pallet, 5)
        self.assertTrue(shrunk.locked)

        grown = on_process.apply_row_edit(locked, total=8)
        self.assertEqual(grown.total_pallet, 8)
        self.assertFalse(grown.locked)
        self.assertEqual(grown.status, 'in_progress')

    def test_original_row_is_not_mutated(self):
        row = pallet_row()
        on_process.apply_row_edit(row, finished=4)
        self.assertEqual(row.finished_pallet, 0)


class TestBatchStatus(unittest.TestCase):

    def test_all_done_completes_today(self):
        rows = [pallet_row(status='completed'), pallet_row(status='cancelled')]
        self.assertEqual(on_process.derive_batch_status(rows, TODAY), ('completed', TODAY))

    def test_untouched_batch_is_in_progress(self):
        self.assertEqual(on_process.derive_batch_status([pallet_row(), pallet_row()], TODAY), ('in-progress', None))

    def test_mixed_batch_is_partial(self):
        rows = [pallet_row(finishedPallet=2, status='partial'), pallet_row()]
        self.assertEqual(on_process.derive_batch_status(rows, TODAY), ('partial-done', None))

    def test_default_finish_date(self):
        self.assertEqual(on_process.default_batch_finish_date(TODAY), '2024-03-15')

    def test_est_finish_cannot_be_past(self):
        with self.assertRaises(OnProcessRuleError):
            on_process.validate_est_finish('2024-01-14', TODAY)
        self.assertEqual(on_process.validate_est_finish('2024-02-01T00:00:00Z', TODAY), '2024-02-01')
        self.assertEqual(on_process.validate_est_finish('', TODAY), '')


class TestTransferPayload(unittest.TestCase):

    def setUp(self):
        self.rows = [
            pallet_row(groupName='A', finishedPallet=3, status='partial'),
            pallet_row(groupName='B', finishedPallet=0),
            pallet_row(groupName='C', totalPallet=4, finishedPallet=0, transferredPallet=4, locked=True),
        ]

    def test_only_rows_with_finished_pallets_move(self):
        payload = on_process.build_transfer_payload(self.rows, 'delivered', 'w2', None, TODAY)
        self.assertEqual(payload, {
            'mode': 'delivered',
            'warehouseId': 'w2',
            'items': [{'groupName': 'A', 'pallets': 3}],
        })

    def test_on_water_needs_future_edd(self):
        with self.assertRaises(OnProcessRuleError) as ctx:
            on_process.build_transfer_payload(self.rows, 'on_water', 'w1', '', TODAY)
        self.assertEqual(str(ctx.exception), 'EDD is required for On-Water')

        with self.assertRaises(OnProcessRuleError):
            on_process.build_transfer_payload(self.rows, 'on_water', 'w1', '2024-01-01', TODAY)

        payload = on_process.build_transfer_payload(self.rows, 'on_water', 'w1', '2024-02-01', TODAY)
        self.assertEqual(payload['estDeliveryDate'], '2024-02-01')

    def test_nothing_eligible(self):
        with self.assertRaises(OnProcessRuleError) as ctx:
            on_process.build_transfer_payload(self.rows[1:], 'delivered', 'w2', None, TODAY)
        self.assertEqual(str(ctx.exception), 'No selected rows have finished pallets to transfer.')

    def test_warehouse_required(self):
        with self.assertRaises(OnProcessRuleError):
            on_process.build_transfer_payload(self.rows, 'delivered', '', None, TODAY)

    def test_default_transfer_warehouse(self):
        warehouses = [
            Warehouse.model_validate({'_id': 'w1', 'name': 'Main', 'isPrimary': True}),
            Warehouse.model_validate({'_id': 'w2', 'name': 'Second'}),
        ]
        self.assertEqual(on_process.default_transfer_warehouse('on_water', warehouses), 'w1')
        self.assertEqual(on_process.default_transfer_warehouse('delivered', warehouses), 'w2')


class TestOnProcessApiCalls(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()

    def test_save_rows(self):
        on_process.save_batch_rows(self.client, 'b1', [pallet_row(finishedPallet=2, status='partial')])
        self.client.patch.assert_called_once_with('/on-process/batches/b1/pallets', json={'pallets': [
            {'groupName': 'A', 'totalPallet': 10, 'finishedPallet': 2, 'status': 'partial'},
        ]})

    def test_add_group_validation(self):
        with self.assertRaises(OnProcessRuleError):
            on_process.add_batch_group(self.client, 'b1', ' ', 3)
        with self.assertRaises(OnProcessRuleError):
            on_process.add_batch_group(self.client, 'b1', 'A', 0)
        self.client.post.assert_not_called()

        on_process.add_batch_group(self.client, 'b1', 'A', 3)
        self.client.post.assert_called_once_with('/on-process/batches/b1/pallets', json={'groupName': 'A', 'totalPallet': 3.0})

    def test_load_batches(self):
        self.client.get.return_value = [{'_id': 'b1', 'reference': 'PO1', 'status': 'partial-done'}]
        batches = on_process.load_batches(self.client)
        self.assertEqual(batches[0].reference, 'PO1')

    def test_export_batch_filename(self):
        self.client.download.return_value = b'xlsx'
        name, content = on_process.export_batch(self.client, OnProcessBatch.model_validate({'_id': 'b1', 'reference': 'PO1'}))
        self.assertEqual(name, 'PO1.xlsx')
        self.assertEqual(content, b'xlsx')

    def test_import_message(self):
        self.assertEqual(on_process.import_message({'created': 2}), ('success', 'Import completed. Created: 2.'))
        kind, text = on_process.import_message({'created': 1, 'errorCount': 3})
        self.assertEqual(kind, 'warning')
        self.assertIn('Issues: 3', text)


if __name__ == '__main__':
    unittest.main(verbosity=2)
