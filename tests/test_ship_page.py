#!/usr/bin/env python3
"""
Page tests for the Ship screen's list paging, driven through Streamlit's
AppTest with a mocked inventory API client.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock, patch

from streamlit.testing.v1 import AppTest

# Add the parent directory to the path to access pages and utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

PAGE = os.path.join(os.path.dirname(__file__), '..', 'pages', '5_ship.py')


def fake_get(path, params=None):
    if path == '/shipments':
        return {'items': [], 'total': 40}
    return []


class TestShipPaging(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.client.get.side_effect = fake_get
        patchers = [
            patch('utils.auth.get_client', return_value=self.client),
            patch('utils.auth.require_auth'),
        ]
        for p in patchers:
            p.start()
            self.addCleanup(p.stop)
        self.at = AppTest.from_file(PAGE, default_timeout=30)
        self.at.session_state['ship_page'] = 3

    def last_list_params(self):
        calls = [c for c in self.client.get.call_args_list if c.args and c.args[0] == '/shipments']
        return calls[-1].kwargs['params']

    def test_open_page_is_requested(self):
        self.at.run()
        self.assertEqual(self.last_list_params()['page'], 3)

    def test_status_filter_returns_to_first_page(self):
        self.at.run()
        self.at.selectbox(key='ship_status').select('on_water').run()

        self.assertFalse(self.at.exception)
        self.assertEqual(self.last_list_params()['page'], 0)
        self.assertEqual(self.last_list_params()['status'], 'on_water')

    def test_search_returns_to_first_page(self):
        self.at.run()
        self.at.text_input(key='ship_q').input('PO-9').run()
        self.assertEqual(self.last_list_params()['page'], 0)

    def test_page_size_returns_to_first_page(self):
        self.at.run()
        self.at.selectbox(key='ship_page_size').select(50).run()
        self.assertEqual(self.last_list_params()['page'], 0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
