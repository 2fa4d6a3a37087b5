"""
Tests for the action executor.

The host and the script runner are mocked; each test checks the action result
returned and the host calls made.
"""

import unittest
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.rules.actions import UNKNOWN_ACTION_TYPE, ActionExecutor, PassState
from src.rules.context import build_context
from src.rules.errors import HostActionError
from src.rules.sandbox import ScriptOutcome
from src.rules.schema import EmailMessage, NavigationDirective, RuleAction


class TestActionExecutor(unittest.TestCase):
    def setUp(self):
        self.host = MagicMock()
        self.script_runner = MagicMock()
        self.executor = ActionExecutor(self.host, self.script_runner)
        self.email = EmailMessage(
            id='m1',
            subject='Order #4521 confirmed',
            from_address='Shop Team <orders@shop.example>',
            body='Track it at https://shop.example/track/4521',
        )
        self.context = build_context(self.email, sender_score=5)
        self.state = PassState(self.context.variables)

    def run_action(self, action_type, **parameters):
        action = RuleAction(id='a1', type=action_type, parameters=parameters)
        return self.executor.execute(action, self.context, self.state)

    def test_log_message(self):
        result = self.run_action('log_message', message='From ${senderInfo.name}: ${email.subject}')

        self.assertTrue(result.success)
        self.assertEqual(result.action_id, 'a1')
        self.assertEqual(result.output, {'message': 'From Shop Team: Order #4521 confirmed'})

    def test_add_score(self):
        test_cases = [
            {'parameters': {'points': 10, 'reason': 'bonus'}, 'points': 10.0, 'reason': 'bonus'},
            {'parameters': {'amount': '-5'}, 'points': -5.0, 'reason': None},
        ]

        for case in test_cases:
            with self.subTest(case=case):
                self.host.reset_mock()
                result = self.run_action('add_score', **case['parameters'])
                self.assertTrue(result.success)
                self.host.adjust_score.assert_called_once_with(
                    'orders@shop.example', 'Shop Team', case['points'], case['reason']
                )

    def test_invalid_parameters(self):
        test_cases = [
            {'type': 'add_score', 'parameters': {'points': 'lots'}},
            {'type': 'add_score', 'parameters': {}},
            {'type': 'mark_email', 'parameters': {'marker': '   '}},
            {'type': 'log_message', 'parameters': {}},
            {'type': 'javascript_code', 'parameters': {'code': ''}},
        ]

        for case in test_cases:
            with self.subTest(case=case):
                self.host.reset_mock()
                result = self.run_action(case['type'], **case['parameters'])
                self.assertFalse(result.success)
                self.assertTrue(result.error.startswith('Invalid parameters'))
                self.assertEqual(self.host.method_calls, [])

    def test_mark_email(self):
        result = self.run_action('mark_email', marker=' receipts ')

        self.assertTrue(result.success)
        self.host.mark_email.assert_called_once_with('m1', 'receipts')

    def test_host_reports_failure(self):
        self.host.notify.return_value = False
        result = self.run_action('notify', title='Hi', body='${email.subject}')

        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Notification permission denied')
        self.host.notify.assert_called_once_with('Hi', 'Order #4521 confirmed')

    def test_host_raises(self):
        test_cases = [
            {'error': HostActionError('Trash is full'), 'expected': 'Trash is full'},
            {'error': RuntimeError('connection reset'), 'expected': 'connection reset'},
        ]

        for case in test_cases:
            with self.subTest(case=case):
                self.host.delete_email.side_effect = case['error']
                result = self.run_action('delete_email')
                self.assertFalse(result.success)
                self.assertEqual(result.error, case['expected'])

    def test_open_url(self):
        result = self.run_action('open_url', url='https://crm.example/lookup?from=${senderInfo.email}')

        self.assertTrue(result.success)
        self.host.open_url.assert_called_once_with('https://crm.example/lookup?from=orders@shop.example', '_blank')

    def test_open_url_rejects_non_http(self):
        for url in ('javascript:alert(1)', '${variables.nothing}', 'file:///etc/passwd'):
            with self.subTest(url=url):
                self.host.reset_mock()
                result = self.run_action('open_url', url=url)
                self.assertFalse(result.success)
                self.assertIn('Invalid URL', result.error)
                self.host.open_url.assert_not_called()

    def test_save_variable(self):
        test_cases = [
            {'parameters': {'variableName': 'who', 'directValue': '${senderInfo.email}'},
             'expected': 'orders@shop.example', 'description': 'Direct value with template'},
            {'parameters': {'name': 'limit', 'value': 3}, 'expected': 3,
             'description': 'Non-string value stored as is'},
            {'parameters': {'variableName': 'order', 'regexPattern': r'#(\d+)', 'source': 'subject'},
             'expected': '4521', 'description': 'Regex from subject'},
            {'parameters': {'variableName': 'order', 'regexPattern': r'track/(\d+)', 'groupIndex': '',
                            'directValue': ''},
             'expected': '4521', 'description': 'Regex from content, blank group index'},
            {'parameters': {'variableName': 'host', 'regexPattern': r'https://([^/]+)', 'source': 'urls'},
             'expected': 'shop.example', 'description': 'Regex over extracted urls'},
            {'parameters': {'variableName': 'order', 'regexPattern': r'invoice (\d+)'},
             'expected': None, 'description': 'Regex without a match'},
            {'parameters': {'variableName': 'order', 'regexPattern': r'#(\d+)', 'groupIndex': 4,
                            'source': 'subject'},
             'expected': None, 'description': 'Missing capture group'},
        ]

        for case in test_cases:
            with self.subTest(case=case['description']):
                result = self.run_action('save_variable', **case['parameters'])
                name = case['parameters'].get('variableName') or case['parameters'].get('name')
                self.assertTrue(result.success)
                self.assertEqual(self.state.variables[name], case['expected'])
                self.assertIs(self.context.variables, self.state.variables)

    def test_save_variable_invalid_regex(self):
        result = self.run_action('save_variable', variableName='x', regexPattern='(unclosed')

        self.assertFalse(result.success)
        self.assertIn('Invalid regex', result.error)
        self.assertNotIn('x', self.state.variables)

    def test_javascript_code(self):
        self.script_runner.run.return_value = ScriptOutcome(
            ok=True, result=7, opened_urls=['https://shop.example/track/4521']
        )
        result = self.run_action('javascript_code', code='window.open(extractedLinks[0].url); return 7;')

        self.assertTrue(result.success)
        self.assertEqual(result.output['result'], 7)
        self.script_runner.run.assert_called_once_with(
            'window.open(extractedLinks[0].url); return 7;', self.context, self.state.variables
        )
        self.host.open_url.assert_called_once_with('https://shop.example/track/4521', '_blank')

    def test_javascript_skips_invalid_urls(self):
        self.script_runner.run.return_value = ScriptOutcome(
            ok=True, result=None, variables={'seen': True},
            opened_urls=['https://shop.example/a', 'javascript:alert(1)', 'https://shop.example/b'],
        )
        result = self.run_action('javascript_code', code='window.open("javascript:alert(1)");')

        self.assertTrue(result.success)
        self.assertEqual(result.output['openedUrls'], ['https://shop.example/a', 'https://shop.example/b'])
        self.assertEqual(result.output['skippedUrls'], ['javascript:alert(1)'])
        self.assertEqual(
            [call.args for call in self.host.open_url.call_args_list],
            [('https://shop.example/a', '_blank'), ('https://shop.example/b', '_blank')],
        )

    def test_javascript_error(self):
        self.script_runner.run.return_value = ScriptOutcome(ok=False, error='ReferenceError: nope is not defined')
        result = self.run_action('javascript_code', code='nope()')

        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Script error: ReferenceError: nope is not defined')

    def test_request_summary(self):
        self.host.request_summary.return_value = {'emailId': 'm1', 'savedForLater': True}
        result = self.run_action('request_summary')

        self.assertTrue(result.success)
        self.assertEqual(result.output, {'emailId': 'm1', 'savedForLater': True})
        self.host.request_summary.assert_called_once_with(self.email, self.context.sender_info)

    def test_mailbox_actions(self):
        for action_type, method in (('delete_email', 'delete_email'), ('mark_as_read', 'mark_as_read')):
            with self.subTest(action=action_type):
                result = self.run_action(action_type)
                self.assertTrue(result.success)
                getattr(self.host, method).assert_called_once_with('m1')

    def test_navigation(self):
        result = self.run_action('goto_previous_email')
        self.assertTrue(result.success)
        self.assertEqual(self.state.navigation, NavigationDirective.PREVIOUS)

        # Last directive wins
        self.run_action('goto_next_email')
        self.assertEqual(self.state.navigation, NavigationDirective.NEXT)

    def test_unknown_action_type(self):
        result = self.run_action('teleport', destination='mars')

        self.assertFalse(result.success)
        self.assertEqual(result.type, 'teleport')
        self.assertEqual(result.error, UNKNOWN_ACTION_TYPE)
        self.assertEqual(self.host.method_calls, [])


if __name__ == '__main__':
    unittest.main()
