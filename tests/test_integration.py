"""
Integration Tests for the Email Triage Rules store

1. Database Integration:
   - Rule persistence (create, update, toggle, delete, replace)
   - Execution counters and rules configuration
   - Debug log storage, retention and listing
   - Sender scores, markers, summaries and processed email tracking

2. End-to-End Flows:
   - Stored rules → Engine pass → Counters and debug log written back
   - Import backup → Store → Export

Test Coverage:
- Real SQLAlchemy sessions on an in-memory SQLite database
- Gmail client mocked at the action host
"""

import unittest
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine

from src.config import Settings
from src.database import SqlDebugLogSink, SqlRuleRepository, SqlTriageStore, get_db_session, init_db
from src.gmail.host import GmailActionHost
from src.rules.engine import RulesEngine
from src.rules.errors import RuleNotFoundError, RulesError
from src.rules.portability import export_rules, import_rules
from src.rules.schema import DebugLogEntry, EmailMessage, Rule, RulesConfig

NOW = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000


def make_rule(rule_id, name, **fields):
    data = {
        'id': rule_id,
        'name': name,
        'conditions': [{'id': f'{rule_id}_c1', 'type': 'subject', 'operator': 'contains', 'value': 'report'}],
        'actions': [
            {'id': f'{rule_id}_a1', 'type': 'add_score', 'parameters': {'points': 5, 'reason': 'reports'}},
            {'id': f'{rule_id}_a2', 'type': 'mark_email', 'parameters': {'marker': 'reports'}},
        ],
    }
    data.update(fields)
    return Rule.model_validate(data)


class DatabaseTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine('sqlite://')
        init_db(self.engine)
        self.db = get_db_session(self.engine)
        self.clock = MagicMock(return_value=NOW)
        self.repository = SqlRuleRepository(self.db, clock=self.clock)
        self.store = SqlTriageStore(self.db)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()


class TestRuleRepository(DatabaseTestCase):
    def test_create_and_list_in_creation_order(self):
        self.clock.return_value = NOW
        self.repository.create_rule(make_rule('b', 'Second letter, created first'))
        self.clock.return_value = NOW + 1
        self.repository.create_rule(make_rule('a', 'First letter, created second', enabled=False))

        self.assertEqual([rule.id for rule in self.repository.list_rules()], ['b', 'a'])
        self.assertEqual([rule.id for rule in self.repository.list_enabled_rules()], ['b'])

    def test_create_resets_counters_and_keeps_order_of_children(self):
        rule = make_rule('r1', 'Reports', execution_count=9, last_executed=123)
        created = self.repository.create_rule(rule)
        stored = self.repository.get_rule('r1')

        self.assertEqual(created, stored)
        self.assertEqual(stored.execution_count, 0)
        self.assertIsNone(stored.last_executed)
        self.assertEqual(stored.created_at, NOW)
        self.assertEqual([action.id for action in stored.actions], ['r1_a1', 'r1_a2'])
        self.assertEqual(stored.actions[0].parameters, {'points': 5, 'reason': 'reports'})

    def test_create_duplicate_rejected(self):
        self.repository.create_rule(make_rule('r1', 'Reports'))
        with self.assertRaises(RulesError):
            self.repository.create_rule(make_rule('r1', 'Again'))

    def test_update_rule(self):
        self.repository.create_rule(make_rule('r1', 'Reports'))
        self.clock.return_value = NOW + 1000

        updated = self.repository.update_rule(
            'r1', name='Renamed', created_at=1, logic_operator='OR',
            conditions=[{'type': 'sender_score', 'operator': 'greater_than', 'value': 3}],
        )

        self.assertEqual(updated.name, 'Renamed')
        self.assertEqual(updated.created_at, NOW)
        self.assertEqual(updated.last_modified, NOW + 1000)
        stored = self.repository.get_rule('r1')
        self.assertEqual(stored.logic_operator.value, 'OR')
        self.assertEqual(len(stored.conditions), 1)
        self.assertEqual(stored.conditions[0].value, 3)

    def test_toggle_and_delete(self):
        self.repository.create_rule(make_rule('r1', 'Reports'))

        self.assertFalse(self.repository.toggle_rule('r1').enabled)
        self.assertTrue(self.repository.toggle_rule('r1').enabled)
        self.assertTrue(self.repository.delete_rule('r1'))
        self.assertFalse(self.repository.delete_rule('r1'))
        with self.assertRaises(RuleNotFoundError):
            self.repository.get_rule('r1')

    def test_replace_rules_keeps_counters(self):
        self.repository.create_rule(make_rule('old', 'Old'))
        imported = [make_rule('new', 'New', execution_count=4, last_executed=NOW - 5, created_at=7)]

        self.assertEqual(self.repository.replace_rules(imported), 1)

        rules = self.repository.list_rules()
        self.assertEqual([rule.id for rule in rules], ['new'])
        self.assertEqual(rules[0].execution_count, 4)
        self.assertEqual(rules[0].created_at, 7)

    def test_record_fire(self):
        self.repository.create_rule(make_rule('r1', 'Reports'))
        self.repository.record_fire('r1', NOW + 5)
        self.repository.record_fire('r1', NOW + 6)
        self.repository.record_fire('missing', NOW)

        rule = self.repository.get_rule('r1')
        self.assertEqual(rule.execution_count, 2)
        self.assertEqual(rule.last_executed, NOW + 6)

    def test_config(self):
        self.assertEqual(self.repository.get_config(), RulesConfig())

        self.repository.set_config(RulesConfig(debug_mode=True, debug_retention_days=3))
        self.assertEqual(self.repository.get_config(), RulesConfig(debug_mode=True, debug_retention_days=3))

    def test_statistics(self):
        self.repository.create_rule(make_rule('r1', 'One'))
        self.repository.create_rule(make_rule('r2', 'Two', enabled=False))
        self.repository.record_fire('r1', NOW)

        stats = self.repository.statistics()
        self.assertEqual(stats.total_rules, 2)
        self.assertEqual(stats.enabled_rules, 1)
        self.assertEqual(stats.disabled_rules, 1)
        self.assertEqual(stats.total_executions, 1)
        self.assertEqual(stats.rules_with_executions, 1)
        self.assertEqual(stats.debug_logs_count, 0)


class TestDebugLogSink(DatabaseTestCase):
    def make_entry(self, email_id, timestamp):
        return DebugLogEntry(
            timestamp=timestamp, email_id=email_id, email_subject='s', email_from='f',
            total_rules_checked=1, total_rules_fired=0,
        )

    def test_append_purges_and_lists_newest_first(self):
        sink = SqlDebugLogSink(self.db, retention_days=7, clock=lambda: NOW)
        sink.append(self.make_entry('stale', NOW - 8 * DAY_MS))
        sink.append(self.make_entry('older', NOW - DAY_MS))
        sink.append(self.make_entry('newer', NOW))

        self.assertEqual([entry.email_id for entry in sink.list_entries()], ['newer', 'older'])
        self.assertEqual([entry.email_id for entry in sink.list_entries(limit=1)], ['newer'])

    def test_clear(self):
        sink = SqlDebugLogSink(self.db, clock=lambda: NOW)
        sink.append(self.make_entry('m1', NOW))

        self.assertEqual(sink.clear(), 1)
        self.assertEqual(sink.list_entries(), [])


class TestTriageStore(DatabaseTestCase):
    def test_sender_scores(self):
        self.assertIsNone(self.store.get_sender_score('alice@example.com'))

        self.store.adjust_sender_score('Alice@Example.com', 'Alice', 10)
        total = self.store.adjust_sender_score('alice@example.com', None, -3)

        self.assertEqual(total, 7)
        self.assertEqual(self.store.get_sender_score('ALICE@example.com'), 7)
        with self.assertRaises(ValueError):
            self.store.adjust_sender_score('', 'Nobody', 1)

    def test_markers(self):
        self.assertTrue(self.store.add_marker('m1', 'newsletter'))
        self.assertFalse(self.store.add_marker('m1', 'newsletter'))
        self.assertTrue(self.store.add_marker('m2', 'newsletter'))

        self.assertEqual(sorted(self.store.emails_with_marker('newsletter')), ['m1', 'm2'])

    def test_summaries_and_processed(self):
        self.store.save_summary('m1', 'Subject', 'Email saved for later review', True)
        summary = self.store.get_summary('m1')
        self.assertTrue(summary.saved_for_later)

        self.assertFalse(self.store.is_processed('m1'))
        self.store.mark_processed('m1', 2)
        self.store.mark_processed('m1', 3)
        self.assertTrue(self.store.is_processed('m1'))


class TestEndToEnd(DatabaseTestCase):
    def test_stored_rules_drive_engine(self):
        self.repository.create_rule(make_rule('r1', 'Reports'))
        self.repository.set_config(RulesConfig(debug_mode=True))

        client = MagicMock()
        client.add_label.return_value = True
        host = GmailActionHost(client, self.store, Settings())
        sink = SqlDebugLogSink(self.db, clock=lambda: NOW)
        engine = RulesEngine(self.repository, host, debug_sink=sink, clock=lambda: NOW)

        email = EmailMessage(id='g1', subject='Monthly report', from_address='Bob <bob@corp.example>', body='Hi')
        result = engine.process_email(email, sender_score=self.store.get_sender_score('bob@corp.example')).result

        self.assertEqual(result.total_rules_fired, 1)
        self.assertTrue(all(a.success for a in result.results[0].action_results))
        self.assertEqual(self.store.get_sender_score('bob@corp.example'), 5)
        self.assertEqual(self.store.emails_with_marker('reports'), ['g1'])
        client.add_label.assert_called_once_with('g1', 'reports')

        rule = self.repository.get_rule('r1')
        self.assertEqual(rule.execution_count, 1)
        self.assertEqual(rule.last_executed, NOW)

        entries = sink.list_entries()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].results[0].rule_id, 'r1')

    def test_import_store_export(self):
        backup = export_rules([make_rule('r1', 'Reports', execution_count=2, last_executed=NOW)],
                              RulesConfig(debug_mode=True), exported_at=NOW)
        rules, rules_config = import_rules(backup)
        self.repository.replace_rules(rules)
        self.repository.set_config(rules_config)

        exported, exported_config = import_rules(export_rules(self.repository.list_rules(),
                                                              self.repository.get_config()))
        self.assertEqual(exported, rules)
        self.assertTrue(exported_config.debug_mode)


if __name__ == '__main__':
    unittest.main()
