#!/usr/bin/env python3
"""Tests for context-aware completion and the identifier cache."""
import unittest
from types import SimpleNamespace

from tdsql.core.completion import (
    SQLCompleter, current_word, is_from_context, is_use_context,
)
from tdsql.core.errors import CacheRefreshError, EngineConnectionError
from tdsql.utils.cache_manager import IdentifierCache
from tdsql.cli import repl as repl_mod

from fake_engine import FakeClient


class _Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _session(database='sample_datasets', catalog=None, clock=None):
    catalog = catalog or {
        'sample_datasets': ['nasdaq', 'www_access'],
        'information_schema': ['tables', 'columns'],
    }
    client = FakeClient(database, catalog)
    cache = IdentifierCache(ttl=30, clock=clock or _Clock())
    return SimpleNamespace(client=client, database=database, identifier_cache=cache)


class WordAndContextTests(unittest.TestCase):

    def test_current_word(self):
        self.assertEqual(current_word('SELECT * FR', 11), 'FR')
        self.assertEqual(current_word('SEL', 3), 'SEL')
        self.assertEqual(current_word('SELECT ', 7), '')
        self.assertEqual(current_word('SELECT id', 4), 'SELE')
        self.assertEqual(current_word('', 0), '')
        self.assertEqual(current_word('a.b_c', 5), 'b_c')

    def test_from_context(self):
        self.assertTrue(is_from_context('select * from '))
        self.assertTrue(is_from_context('SELECT * FROM nas'))
        self.assertFalse(is_from_context('select * from nasdaq where '))
        self.assertFalse(is_from_context('select fromage'))

    def test_use_context(self):
        self.assertTrue(is_use_context('use '))
        self.assertTrue(is_use_context('  USE samp'))
        self.assertFalse(is_use_context('select use'))
        self.assertFalse(is_use_context('use a b'))


class KeywordCompletionTests(unittest.TestCase):

    def setUp(self):
        self.completer = SQLCompleter(_session(), keywords=['SELECT', 'SHOW'])

    def test_single_match(self):
        result = self.completer.complete('SEL')
        self.assertEqual(result.candidates, ['SELECT'])
        self.assertEqual(result.replace_length, 3)

    def test_sorted_matches(self):
        self.assertEqual(self.completer.complete('S').candidates, ['SELECT', 'SHOW'])

    def test_case_insensitive_prefix(self):
        self.assertEqual(self.completer.complete('sh').candidates, ['SHOW'])

    def test_no_word_no_candidates(self):
        result = self.completer.complete('SELECT ')
        self.assertEqual(result.candidates, [])
        self.assertEqual(result.replace_length, 0)


class TableCompletionTests(unittest.TestCase):

    def setUp(self):
        self.clock = _Clock()
        self.session = _session(clock=self.clock)
        self.completer = SQLCompleter(self.session, keywords=['SELECT', 'SHOW'])

    def test_tables_offered_after_from(self):
        result = self.completer.complete('SELECT * FROM na')
        self.assertEqual(result.candidates, ['nasdaq'])
        self.assertEqual(result.replace_length, 2)

    def test_tables_not_offered_outside_from(self):
        self.assertEqual(self.completer.complete('SELECT na').candidates, [])

    def test_stale_cache_refreshes(self):
        cache = self.session.identifier_cache
        cache.tables['sample_datasets'] = ['old_table']
        cache.last_refresh = self.clock.now - 35
        self.completer.complete('SELECT * FROM n')
        self.assertEqual(cache.refresh_count, 1)
        self.assertEqual(cache.tables['sample_datasets'], ['nasdaq', 'www_access'])

    def test_fresh_cache_is_used_as_is(self):
        cache = self.session.identifier_cache
        cache.tables['sample_datasets'] = ['old_table']
        cache.last_refresh = self.clock.now - 5
        result = self.completer.complete('SELECT * FROM o')
        self.assertEqual(cache.refresh_count, 0)
        self.assertEqual(result.candidates, ['old_table'])
        self.assertNotIn('SHOW TABLES FROM "sample_datasets"', self.session.client.statements)

    def test_refresh_failure_is_swallowed(self):
        client = self.session.client
        client.errors['SHOW TABLES FROM "sample_datasets"'] = EngineConnectionError('down')
        self.assertEqual(self.completer.complete('SELECT * FROM n').candidates, [])
        self.assertEqual(self.session.identifier_cache.last_refresh, 0.0)


class DatabaseCompletionTests(unittest.TestCase):

    def setUp(self):
        self.session = _session()
        self.completer = SQLCompleter(self.session, keywords=['SELECT', 'SHOW'])

    def test_databases_after_use(self):
        self.assertEqual(self.completer.complete('use sa').candidates, ['sample_datasets'])
        self.assertEqual(self.completer.complete('USE i').candidates, ['information_schema'])

    def test_databases_are_fetched_live(self):
        self.completer.complete('use s')
        self.completer.complete('use s')
        self.assertEqual(self.session.client.statements.count('SHOW SCHEMAS'), 2)

    def test_database_listing_failure(self):
        self.session.client.errors['SHOW SCHEMAS'] = EngineConnectionError('down')
        self.assertEqual(self.completer.complete('use s').candidates, ['SELECT', 'SHOW'])


class IdentifierCacheTests(unittest.TestCase):

    def test_staleness(self):
        clock = _Clock(100.0)
        cache = IdentifierCache(ttl=30, clock=clock)
        self.assertTrue(cache.is_stale())
        cache.refresh('db', lambda db: ['t'])
        self.assertFalse(cache.is_stale())
        clock.now += 31
        self.assertTrue(cache.is_stale())

    def test_invalidate_forces_refresh(self):
        cache = IdentifierCache(ttl=30, clock=_Clock())
        calls = []
        loader = lambda db: calls.append(db) or [db + '_t']
        cache.tables_for('a', loader)
        cache.tables_for('a', loader)
        cache.invalidate()
        self.assertEqual(cache.tables_for('b', loader), ['b_t'])
        self.assertEqual(calls, ['a', 'b'])

    def test_failed_refresh_keeps_previous_entries(self):
        cache = IdentifierCache(ttl=30, clock=_Clock())
        cache.tables['a'] = ['kept']

        def broken(db):
            raise RuntimeError('nope')
        self.assertFalse(cache.refresh('a', broken))
        self.assertIsInstance(cache.last_error, CacheRefreshError)
        self.assertEqual(cache.tables_for('a', broken), ['kept'])


class ReadlineAdapterTests(unittest.TestCase):
    """The (text, state) protocol readline expects."""

    def setUp(self):
        self._saved = repl_mod.readline

    def tearDown(self):
        repl_mod.readline = self._saved

    def _install(self, buf):
        class _FakeReadline:
            def get_line_buffer(self):
                return buf

            def get_endidx(self):
                return len(buf)
        repl_mod.readline = _FakeReadline()

    def test_states_enumerate_candidates(self):
        completer = repl_mod._ReadlineCompleter(SQLCompleter(_session(), keywords=['SELECT', 'SHOW']))
        self._install('s')
        self.assertEqual(completer('s', 0), 'SELECT')
        self.assertEqual(completer('s', 1), 'SHOW')
        self.assertIsNone(completer('s', 2))

    def test_table_names_from_line_buffer(self):
        completer = repl_mod._ReadlineCompleter(SQLCompleter(_session(), keywords=['SELECT', 'SHOW']))
        self._install('select * from ww')
        self.assertEqual(completer('ww', 0), 'www_access')
        self.assertIsNone(completer('ww', 1))


if __name__ == '__main__':
    unittest.main()
