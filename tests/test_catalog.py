"""
Tests for the condition/action catalogs, parameter parsing, rule validation
and the bundled example rules.
"""

import unittest

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError

from src.rules.catalog import (
    get_action_type,
    get_condition_type,
    list_action_types,
    list_condition_types,
    parse_parameters,
)
from src.rules.examples import example_rules
from src.rules.schema import ActionType, ConditionType, Operator, Rule
from src.rules.validation import validate_rule


class TestCatalog(unittest.TestCase):
    def test_condition_types(self):
        types = [definition.type for definition in list_condition_types()]

        self.assertEqual(len(types), len(ConditionType))
        self.assertEqual(set(types), set(ConditionType))
        self.assertEqual(get_condition_type('sender_score').value_type, 'number')
        self.assertEqual(get_condition_type('has_links').supported_operators, [Operator.EQUALS])
        self.assertIsNone(get_condition_type('moon_phase'))

    def test_custom_variable_lookup(self):
        definition = get_condition_type('custom_variable_orderId')
        self.assertEqual(definition.type, ConditionType.CUSTOM_VARIABLE)
        self.assertEqual(set(definition.supported_operators), set(Operator))

    def test_action_types(self):
        types = [definition.type for definition in list_action_types()]

        self.assertEqual(types, list(ActionType))
        self.assertEqual(
            [param.name for param in get_action_type('open_url').parameters], ['url', 'target']
        )
        self.assertEqual(get_action_type('delete_email').parameters, [])
        self.assertIsNone(get_action_type('teleport'))

    def test_catalog_dumps_camel_case(self):
        dumped = get_condition_type('subject').model_dump(by_alias=True)
        self.assertIn('supportedOperators', dumped)
        self.assertIn('valueType', dumped)


class TestParameterParsing(unittest.TestCase):
    def test_save_variable_aliases(self):
        parameters = parse_parameters(ActionType.SAVE_VARIABLE, {
            'variableName': 'orderId',
            'regexPattern': r'#(\d+)',
            'groupIndex': '',
            'source': '',
            'directValue': '',
        })

        self.assertEqual(parameters.name, 'orderId')
        self.assertEqual(parameters.regex_pattern, r'#(\d+)')
        self.assertEqual(parameters.group_index, 1)
        self.assertEqual(parameters.source, 'content')
        self.assertEqual(parameters.value, '')

    def test_defaults_and_extra_keys(self):
        notify = parse_parameters(ActionType.NOTIFY, {'unused': 1})
        self.assertEqual(notify.title, 'Email Triage Rule')

        open_url = parse_parameters(ActionType.OPEN_URL, {'url': 'https://example.com'})
        self.assertEqual(open_url.target, '_blank')

    def test_rejected_parameters(self):
        test_cases = [
            (ActionType.ADD_SCORE, {'points': 'NaN'}),
            (ActionType.SAVE_VARIABLE, {'variableName': 'x', 'source': 'headers'}),
            (ActionType.SAVE_VARIABLE, {'variableName': 'x', 'groupIndex': -1}),
            (ActionType.OPEN_URL, {}),
        ]

        for action_type, parameters in test_cases:
            with self.subTest(action_type=action_type, parameters=parameters):
                with self.assertRaises(ValidationError):
                    parse_parameters(action_type, parameters)


class TestValidateRule(unittest.TestCase):
    def make_rule(self, **fields):
        data = {
            'name': 'Valid',
            'conditions': [{'id': 'c1', 'type': 'subject', 'operator': 'contains', 'value': 'x'}],
            'actions': [{'id': 'a1', 'type': 'mark_as_read'}],
        }
        data.update(fields)
        return Rule.model_validate(data)

    def test_valid_rule(self):
        self.assertEqual(validate_rule(self.make_rule()), [])

    def test_problems_reported(self):
        test_cases = [
            {'fields': {'name': '  '}, 'expected': 'Rule name must not be empty'},
            {'fields': {'executionCount': 2}, 'expected': 'lastExecuted'},
            {'fields': {'conditions': [{'id': 'c1', 'type': 'moon_phase'}]}, 'expected': 'unknown type'},
            {'fields': {'conditions': [{'id': 'c1', 'type': 'subject', 'operator': 'near'}]},
             'expected': 'unknown operator'},
            {'fields': {'conditions': [{'id': 'c1', 'type': 'has_links', 'operator': 'contains'}]},
             'expected': 'not supported'},
            {'fields': {'conditions': [{'id': 'c1', 'type': 'subject', 'operator': 'regex_match',
                                        'value': '(oops'}]},
             'expected': 'invalid regex'},
            {'fields': {'actions': [{'id': 'a1', 'type': 'teleport'}]}, 'expected': 'unknown type'},
            {'fields': {'actions': [{'id': 'a1', 'type': 'add_score', 'parameters': {}}]},
             'expected': 'Action a1: points'},
        ]

        for case in test_cases:
            with self.subTest(case=case['expected']):
                problems = validate_rule(self.make_rule(**case['fields']))
                self.assertEqual(len(problems), 1, problems)
                self.assertIn(case['expected'], problems[0])


class TestExampleRules(unittest.TestCase):
    def test_examples_are_valid_and_disabled(self):
        rules = example_rules()

        self.assertEqual(len(rules), 7)
        self.assertEqual(len({rule.id for rule in rules}), 7)
        for rule in rules:
            with self.subTest(rule=rule.name):
                self.assertFalse(rule.enabled)
                self.assertEqual(validate_rule(rule), [])

    def test_examples_are_fresh_copies(self):
        first, second = example_rules(), example_rules()
        first[0].name = 'Changed'
        self.assertNotEqual(second[0].name, 'Changed')


if __name__ == '__main__':
    unittest.main()
