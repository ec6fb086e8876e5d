#!/usr/bin/env python3
"""
Database manager tests - configuration, adapter cache and statistics
"""

import json
import unittest

import pytest

from core.database_manager import DatabaseManager, DatabaseResult
from core.errors import ConfigurationError
from extensions.plugins.sqlite_adapter import SQLiteAdapter


class TestDatabaseManager(unittest.TestCase):
    """Database manager with the built-in default configuration"""

    def setUp(self):
        self.manager = DatabaseManager(config_path='/nonexistent/database_config.json')

    def tearDown(self):
        self.manager.close_all()

    def test_defaults(self):
        self.assertEqual(self.manager.default_backend, "sqlite")
        self.assertEqual(self.manager.get_available_backends(), ["sqlite"])

    def test_adapter_is_cached(self):
        adapter = self.manager.get_adapter()
        self.assertIsInstance(adapter, SQLiteAdapter)
        self.assertIs(self.manager.get_adapter("sqlite"), adapter)

    def test_execute_query(self):
        result = self.manager.get_adapter().execute_query("SELECT 1 AS one")
        self.assertTrue(result.success)
        self.assertEqual(result.data, [{'one': 1}])

    def test_unknown_backend(self):
        with self.assertRaises(ConfigurationError):
            self.manager.get_adapter("oracle")

    def test_statistics(self):
        self.manager.get_adapter().execute_query("SELECT 1")
        self.manager.get_adapter().execute_query("SELECT broken FROM")
        stats = self.manager.get_statistics()
        backend = stats['backend_stats']['sqlite']
        self.assertEqual(stats['initialized_backends'], ['sqlite'])
        self.assertEqual(backend['queries_executed'], 1)
        self.assertEqual(backend['failed_queries'], 1)
        self.assertAlmostEqual(backend['success_rate'], 0.5)

    def test_close_all(self):
        self.manager.get_adapter()
        self.manager.close_all()
        self.assertEqual(self.manager.adapters, {})


@pytest.mark.database
class TestDatabaseManagerConfig:

    def test_config_file_with_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv('DMADMIN_TEST_DB', str(tmp_path / 'admin.db'))
        monkeypatch.delenv('DMADMIN_TEST_TIMEOUT', raising=False)
        config_path = tmp_path / 'database_config.json'
        config_path.write_text(json.dumps({
            'default_backend': 'local',
            'backends': {
                'local': {'type': 'sqlite', 'path': '${DMADMIN_TEST_DB}', 'timeout': '${DMADMIN_TEST_TIMEOUT:5}'},
            },
        }), encoding='utf-8')

        manager = DatabaseManager(config_path=str(config_path))
        try:
            adapter = manager.get_adapter()
            assert adapter.database == str(tmp_path / 'admin.db')
            assert adapter.timeout == 5.0
        finally:
            manager.close_all()

    def test_invalid_json_uses_defaults(self, tmp_path):
        config_path = tmp_path / 'broken.json'
        config_path.write_text('{not json', encoding='utf-8')
        assert DatabaseManager(config_path=str(config_path)).get_available_backends() == ['sqlite']

    def test_unsupported_type(self):
        manager = DatabaseManager(config={'default_backend': 'x', 'backends': {'x': {'type': 'db2'}}})
        with pytest.raises(ConfigurationError):
            manager.get_adapter()

    def test_backend_info_redacts_secrets(self):
        manager = DatabaseManager(config={
            'default_backend': 'pg',
            'backends': {'pg': {'type': 'postgresql', 'host': 'db', 'password': 'pw', 'api_token': 't'}},
        })
        info = manager.get_backend_info()
        assert info['type'] == 'postgresql'
        assert info['initialized'] is False
        assert info['config']['host'] == 'db'
        assert info['config']['password'] == '***REDACTED***'
        assert info['config']['api_token'] == '***REDACTED***'

    def test_result_to_dict(self):
        result = DatabaseResult(success=False, error_message='boom', backend='sqlite')
        data = result.to_dict()
        assert data['success'] is False
        assert data['error_message'] == 'boom'
        assert data['metadata'] == {}
