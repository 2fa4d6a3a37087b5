"""
Save-time checks for rules

The engine tolerates every problem reported here; these checks exist so that
editors and importers can warn about rules that will never behave as written.
"""
import re
from typing import List

from pydantic import ValidationError

from .catalog import get_condition_type, parse_parameters
from .schema import ActionType, Operator, Rule


def validate_rule(rule: Rule) -> List[str]:
    """Return a list of human readable problems; empty when the rule is well formed"""
    problems = []

    if not rule.name.strip():
        problems.append('Rule name must not be empty')
    if (rule.last_executed is not None) != (rule.execution_count > 0):
        problems.append('lastExecuted must be set exactly when executionCount is positive')

    for condition in rule.conditions:
        definition = get_condition_type(condition.type)
        if definition is None:
            problems.append(f"Condition {condition.id}: unknown type {condition.type!r}")
            continue
        try:
            operator = Operator(condition.operator)
        except ValueError:
            problems.append(f"Condition {condition.id}: unknown operator {condition.operator!r}")
            continue
        if operator not in definition.supported_operators:
            problems.append(
                f"Condition {condition.id}: operator {operator.value!r} is not supported by {condition.type!r}"
            )
        if operator == Operator.REGEX_MATCH and condition.value is not None:
            try:
                re.compile(str(condition.value))
            except re.error as e:
                problems.append(f"Condition {condition.id}: invalid regex: {e}")

    for action in rule.actions:
        try:
            action_type = ActionType(action.type)
        except ValueError:
            problems.append(f"Action {action.id}: unknown type {action.type!r}")
            continue
        try:
            parse_parameters(action_type, action.parameters)
        except ValidationError as e:
            for error in e.errors():
                location = '.'.join(str(part) for part in error['loc']) or 'parameters'
                problems.append(f"Action {action.id}: {location}: {error['msg']}")

    return problems
