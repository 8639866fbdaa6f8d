#!/usr/bin/env python3
"""Tests for configuration loading and the helper utilities."""
import json
import os
import tempfile
import unittest

from tdsql.core.errors import ConfigError
from tdsql.utils.config import Config
from tdsql.utils.string_utils import (
    escape_identifier, escape_literal, format_duration, strip_quotes, unquote_identifier,
)


class ConfigTests(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'sub', 'config.json')

    def tearDown(self):
        self.tmp.cleanup()

    def test_defaults(self):
        cfg = Config(self.path, environ={})
        self.assertEqual(cfg.get('database'), 'main')
        self.assertEqual(cfg.get('page_size'), 20)
        self.assertEqual(cfg.get('output_format'), 'table')
        self.assertIsNone(cfg.get('limit'))

    def test_save_and_reload(self):
        cfg = Config(self.path, environ={})
        cfg.set('page_size', 50)
        cfg.save()
        with open(self.path) as f:
            self.assertEqual(json.load(f)['page_size'], 50)
        self.assertEqual(Config(self.path, environ={}).get('page_size'), 50)

    def test_environment_overrides_file(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, 'w') as f:
            json.dump({'database': 'from_file', 'page_size': 5}, f)
        cfg = Config(self.path, environ={'TDSQL_DATABASE': 'from_env', 'TDSQL_LIMIT': '100'})
        self.assertEqual(cfg.get('database'), 'from_env')
        self.assertEqual(cfg.get('page_size'), 5)
        self.assertEqual(cfg.get('limit'), 100)

    def test_bad_integer_is_ignored(self):
        cfg = Config(self.path, environ={'TDSQL_PAGE_SIZE': 'lots'})
        self.assertEqual(cfg.get('page_size'), 20)

    def test_get_int(self):
        cfg = Config(self.path, environ={})
        self.assertEqual(cfg.get_int('page_size'), 20)
        self.assertIsNone(cfg.get_int('limit'))
        cfg.set('page_size', 'twenty')
        with self.assertRaises(ConfigError):
            cfg.get_int('page_size')

    def test_corrupt_file_falls_back_to_defaults(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, 'w') as f:
            f.write('{not json')
        self.assertEqual(Config(self.path, environ={}).get('database'), 'main')


class StringUtilsTests(unittest.TestCase):

    def test_identifiers(self):
        self.assertEqual(escape_identifier('test_db'), '"test_db"')
        self.assertEqual(escape_identifier('we"ird'), '"we""ird"')
        self.assertEqual(unquote_identifier('"we""ird"'), 'we"ird')
        self.assertEqual(unquote_identifier('plain'), 'plain')

    def test_literals(self):
        self.assertEqual(escape_literal("it's"), "'it''s'")

    def test_strip_quotes(self):
        for raw in ('test_db', '"test_db"', "'test_db'", ' `test_db` '):
            self.assertEqual(strip_quotes(raw), 'test_db')

    def test_format_duration(self):
        self.assertEqual(format_duration(0.5121), '512ms')
        self.assertEqual(format_duration(3.214), '3.21s')
        self.assertEqual(format_duration(125.3), '2m05.3s')


if __name__ == '__main__':
    unittest.main()
