#!/usr/bin/env python3
"""
Unit tests for warehouse and user administration calls.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from utils import users, warehouses


class TestWarehouses(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()

    def test_load_and_names(self):
        self.client.get.return_value = [{'_id': 'w1', 'name': 'Main', 'isPrimary': True}, {'_id': 'w2', 'name': 'West'}]
        found = warehouses.load_warehouses(self.client, ' ma ')
        self.client.get.assert_called_once_with('/warehouses', params={'q': 'ma'})
        self.assertTrue(found[0].is_primary)
        self.assertEqual(warehouses.warehouse_names(found), {'w1': 'Main', 'w2': 'West'})

    def test_name_required(self):
        with self.assertRaises(ValueError) as ctx:
            warehouses.create_warehouse(self.client, ' ')
        self.assertEqual(str(ctx.exception), 'Name is required')
        with self.assertRaises(ValueError):
            warehouses.update_warehouse(self.client, 'w1', '')
        self.client.post.assert_not_called()
        self.client.put.assert_not_called()

    def test_create_update_delete(self):
        warehouses.create_warehouse(self.client, ' Main ', '1 Dock Rd')
        self.client.post.assert_called_once_with('/warehouses', json={'name': 'Main', 'address': '1 Dock Rd'})
        warehouses.update_warehouse(self.client, 'w1', 'Main', None)
        self.client.put.assert_called_once_with('/warehouses/w1', json={'name': 'Main', 'address': ''})
        warehouses.delete_warehouse(self.client, 'w1')
        self.client.delete.assert_called_once_with('/warehouses/w1')


class TestUsers(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()

    def test_create_user_rules(self):
        with self.assertRaises(ValueError) as ctx:
            users.create_user(self.client, 'bob', '')
        self.assertEqual(str(ctx.exception), 'username and password required')
        with self.assertRaises(ValueError):
            users.create_user(self.client, 'bob', 'pw', role='root')
        users.create_user(self.client, ' bob ', 'pw')
        self.client.post.assert_called_once_with('/users', json={'username': 'bob', 'password': 'pw', 'role': 'user'})

    def test_role_and_status(self):
        users.set_role(self.client, 'u1', 'admin')
        self.client.patch.assert_called_with('/users/u1/role', json={'role': 'admin'})
        users.set_enabled(self.client, 'u1', 0)
        self.client.patch.assert_called_with('/users/u1/status', json={'enabled': False})
        with self.assertRaises(ValueError):
            users.set_role(self.client, 'u1', 'owner')

    def test_reset_password(self):
        with self.assertRaises(ValueError) as ctx:
            users.reset_password(self.client, 'u1', '')
        self.assertEqual(str(ctx.exception), 'new password required')
        users.reset_password(self.client, 'u1', 'n3w')
        self.client.post.assert_called_once_with('/users/u1/reset-password', json={'newPassword': 'n3w'})

    def test_load_users(self):
        self.client.get.return_value = [{'_id': 'u1', 'username': 'ann', 'role': 'admin'}]
        self.assertEqual(users.load_users(self.client)[0].role, 'admin')


if __name__ == '__main__':
    unittest.main(verbosity=2)
