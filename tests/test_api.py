#!/usr/bin/env python3
"""
Unit tests for the FastAPI sidecar endpoints.
"""

import os
import sys
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

# Add the parent directory to the path to access api
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import api

SECRET = 'test-secret'


class TestApiEndpoints(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(api.app)
        self.env = patch.dict(os.environ, {'TRIGGER_SECRET_KEY': SECRET, 'INVENTORY_API_TOKEN': 'svc'})
        self.env.start()
        self.addCleanup(self.env.stop)

    def test_root(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')

    def test_health_reports_configuration(self):
        body = self.client.get('/api/health').json()
        self.assertEqual(body['status'], 'healthy')
        self.assertTrue(body['environment']['service_token'])
        self.assertTrue(body['environment']['trigger_secret_key'])

    def test_due_today(self):
        with patch('api.due_today_counts', return_value={'shipments': 1, 'on_process': 2}) as counts:
            response = self.client.get('/api/due-today', params={'key': SECRET})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': True, 'shipments': 1, 'on_process': 2})
        self.assertEqual(counts.call_args.args[0].token, 'svc')

    def test_due_today_rejects_wrong_key(self):
        with patch('api.due_today_counts') as counts:
            response = self.client.get('/api/due-today', params={'key': 'nope'})
        self.assertEqual(response.status_code, 401)
        counts.assert_not_called()

    def test_due_today_requires_key(self):
        self.assertEqual(self.client.get('/api/due-today').status_code, 422)

    def test_due_today_unexpected_error(self):
        with patch('api.due_today_counts', side_effect=RuntimeError('boom')):
            response = self.client.get('/api/due-today', params={'key': SECRET})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'success': False, 'error': 'boom'})


if __name__ == '__main__':
    unittest.main(verbosity=2)
