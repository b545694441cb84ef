#!/usr/bin/env python3
"""
Unit tests for the REST client, with the HTTP session mocked out.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock, patch

import requests

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from utils import api_client
from utils.api_client import ApiError, InventoryApiClient


def fake_response(ok=True, status_code=200, content=b'', payload=None, reason='OK'):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.reason = reason
    response.content = content
    if payload is None:
        response.json.side_effect = ValueError('no json')
    else:
        response.json.return_value = payload
    response.text = content.decode('utf-8', 'replace')
    return response


class TestInventoryApiClient(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.client = InventoryApiClient(token='tok', base_url='http://api.test/api/', timeout=5, session=self.session)

    def test_bearer_token_header(self):
        headers = self.session.headers.update.call_args.args[0]
        self.assertEqual(headers['Authorization'], 'Bearer tok')

    def test_get_returns_json_and_drops_empty_params(self):
        self.session.request.return_value = fake_response(content=b'{"a": 1}', payload={'a': 1})
        self.assertEqual(self.client.get('/items', params={'q': '', 'page': 2, 'x': None}), {'a': 1})
        self.session.request.assert_called_once_with(
            'GET', 'http://api.test/api/items', params={'page': 2}, json=None, files=None, timeout=5)

    def test_empty_body_is_none(self):
        self.session.request.return_value = fake_response(content=b'')
        self.assertIsNone(self.client.delete('/items/X1'))

    def test_download_returns_bytes(self):
        self.session.request.return_value = fake_response(content=b'PK\x03\x04')
        self.assertEqual(self.client.download('/on-process/batches/b1/export'), b'PK\x03\x04')

    def test_upload_sends_multipart_file(self):
        self.session.request.return_value = fake_response(content=b'{}', payload={})
        self.client.upload('/items/import', 'a.xlsx', b'data', params={'warehouseId': 'w1'})
        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(kwargs['files'], {'file': ('a.xlsx', b'data')})
        self.assertEqual(kwargs['params'], {'warehouseId': 'w1'})

    def test_error_carries_server_message(self):
        self.session.request.return_value = fake_response(
            ok=False, status_code=400, reason='Bad Request', content=b'{}', payload={'message': 'Qty must be > 0'})
        with self.assertRaises(ApiError) as ctx:
            self.client.post('/pallet-inventory/adjustments', json={})
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.server_message, 'Qty must be > 0')
        self.assertEqual(api_client.error_message(ctx.exception, 'Failed'), 'Qty must be > 0')

    def test_error_without_json_body(self):
        self.session.request.return_value = fake_response(ok=False, status_code=502, reason='Bad Gateway', content=b'<html>')
        with self.assertRaises(ApiError) as ctx:
            self.client.get('/warehouses')
        self.assertIsNone(ctx.exception.server_message)
        self.assertEqual(api_client.error_message(ctx.exception, 'Failed to load'), 'Failed to load')

    def test_network_failure(self):
        self.session.request.side_effect = requests.exceptions.ConnectionError('refused')
        with self.assertRaises(ApiError) as ctx:
            self.client.get('/warehouses')
        self.assertIsNone(ctx.exception.status_code)


class TestApiConfig(unittest.TestCase):

    def test_api_base_from_env(self):
        with patch.dict(os.environ, {'INVENTORY_API_BASE': 'http://inventory.local/api/'}):
            self.assertEqual(api_client.get_api_base(), 'http://inventory.local/api')

    def test_api_base_default(self):
        with patch.dict(os.environ, {'INVENTORY_API_BASE': ''}):
            self.assertEqual(api_client.get_api_base(), api_client.DEFAULT_API_BASE)

    def test_bad_timeout_falls_back(self):
        with patch.dict(os.environ, {'INVENTORY_API_TIMEOUT': 'soon'}):
            self.assertEqual(api_client.get_api_timeout(), float(api_client.DEFAULT_TIMEOUT))

    def test_headers_without_token(self):
        self.assertNotIn('Authorization', api_client.get_api_headers())

    def test_error_message_for_other_exceptions(self):
        self.assertEqual(api_client.error_message(RuntimeError('x'), 'Fallback'), 'Fallback')


if __name__ == '__main__':
    unittest.main(verbosity=2)
