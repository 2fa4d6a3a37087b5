"""
Condition evaluation and AND/OR combination
"""
import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .catalog import CUSTOM_VARIABLE_PREFIX, get_condition_type
from .schema import (
    ConditionResult,
    ConditionType,
    EvaluationContext,
    LogicOperator,
    Operator,
    RuleCondition,
)
from .substitution import format_value

logger = logging.getLogger(__name__)

CONTENT_CONDITION_TYPES = {ConditionType.CONTENT.value, ConditionType.CONTENT_REGEX.value}

_TRUE_STRINGS = {'true', 'yes', '1'}
_FALSE_STRINGS = {'false', 'no', '0', ''}


def _email_content(context: EvaluationContext) -> Optional[str]:
    return context.email.body or context.email.html_body


FIELD_RESOLVERS: Dict[ConditionType, Callable[[EvaluationContext], Any]] = {
    ConditionType.SENDER_EMAIL: lambda context: context.sender_info.email,
    ConditionType.SENDER_NAME: lambda context: context.sender_info.name,
    ConditionType.SUBJECT: lambda context: context.email.subject,
    ConditionType.CONTENT: _email_content,
    ConditionType.CONTENT_REGEX: _email_content,
    ConditionType.URL_CONTAINS: lambda context: ' '.join(link.url for link in context.extracted_links),
    ConditionType.LINK_DOMAIN: lambda context: ' '.join(link.domain for link in context.extracted_links),
    ConditionType.SENDER_SCORE: lambda context: context.sender_score,
    ConditionType.HAS_LINKS: lambda context: len(context.extracted_links) > 0,
    # Bare custom_variable has no name to read
    ConditionType.CUSTOM_VARIABLE: lambda context: None,
}


def effective_operator(condition: RuleCondition) -> Operator:
    """The operator to apply, falling back to ``contains`` when it is not valid for the type"""
    definition = get_condition_type(condition.type)
    try:
        operator = Operator(condition.operator)
    except ValueError:
        operator = None

    if definition is not None and operator in definition.supported_operators:
        return operator

    logger.debug(f"Operator {condition.operator!r} not supported for {condition.type!r}, using 'contains'")
    return Operator.CONTAINS


def _is_absent(value: Any) -> bool:
    return value is None or value == ''


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _equals(actual: Any, expected: Any, case_sensitive: bool) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        actual_bool = _as_bool(actual)
        return actual_bool is not None and actual_bool == _as_bool(expected)

    if isinstance(actual, (int, float)) or isinstance(expected, (int, float)):
        actual_number = _as_number(actual)
        expected_number = _as_number(expected)
        if actual_number is not None and expected_number is not None:
            return actual_number == expected_number

    actual_text = format_value(actual)
    expected_text = format_value(expected)
    if not case_sensitive:
        return actual_text.casefold() == expected_text.casefold()
    return actual_text == expected_text


def apply_operator(actual: Any, operator: Union[Operator, str], expected: Any, case_sensitive: bool = False) -> bool:
    """Compare a field value against a condition value; never raises"""
    operator = Operator(operator)

    if operator == Operator.EXISTS:
        return not _is_absent(actual)
    if operator == Operator.NOT_EXISTS:
        return _is_absent(actual)

    # Every remaining operator needs something to compare
    if actual is None or expected is None:
        return False

    if operator in (Operator.GREATER_THAN, Operator.LESS_THAN):
        actual_number = _as_number(actual)
        expected_number = _as_number(expected)
        if actual_number is None or expected_number is None:
            return False
        if operator == Operator.GREATER_THAN:
            return actual_number > expected_number
        return actual_number < expected_number

    if operator == Operator.EQUALS:
        return _equals(actual, expected, case_sensitive)

    actual_text = format_value(actual)
    expected_text = format_value(expected)

    if operator == Operator.REGEX_MATCH:
        flags = 0 if case_sensitive else re.IGNORECASE
        try:
            return re.search(expected_text, actual_text, flags) is not None
        except re.error as e:
            logger.warning(f"Invalid regex pattern {expected_text!r}: {e}")
            return False

    if not case_sensitive:
        actual_text = actual_text.casefold()
        expected_text = expected_text.casefold()

    if operator == Operator.CONTAINS:
        return expected_text in actual_text
    if operator == Operator.STARTS_WITH:
        return actual_text.startswith(expected_text)
    return actual_text.endswith(expected_text)


def resolve_field(condition_type: str, context: EvaluationContext) -> Any:
    """Value of the field a condition type tests; raises KeyError for unknown types"""
    if condition_type.startswith(CUSTOM_VARIABLE_PREFIX):
        return context.variables.get(condition_type[len(CUSTOM_VARIABLE_PREFIX):])
    try:
        resolver = FIELD_RESOLVERS[ConditionType(condition_type)]
    except ValueError:
        raise KeyError(condition_type) from None
    return resolver(context)


def evaluate_condition(condition: RuleCondition, context: EvaluationContext) -> ConditionResult:
    """Evaluate a single condition against an evaluation context"""
    if condition.type in CONTENT_CONDITION_TYPES and not context.email.content_loaded:
        return ConditionResult(
            condition_id=condition.id,
            type=condition.type,
            matched=False,
            expected_value=condition.value,
            error='Content not loaded - condition skipped',
        )

    try:
        actual = resolve_field(condition.type, context)
    except KeyError:
        logger.warning(f"Unknown condition type: {condition.type}")
        return ConditionResult(
            condition_id=condition.id,
            type=condition.type,
            matched=False,
            expected_value=condition.value,
            error=f"Unknown condition type: {condition.type}",
        )

    operator = effective_operator(condition)
    matched = apply_operator(actual, operator, condition.value, condition.case_sensitive)
    logger.debug(f"Condition: {condition.type} {operator.value} {condition.value!r} (actual {actual!r}) -> {matched}")

    return ConditionResult(
        condition_id=condition.id,
        type=condition.type,
        matched=matched,
        actual_value=actual,
        expected_value=condition.value,
    )


def evaluate(condition: RuleCondition, context: EvaluationContext) -> bool:
    return evaluate_condition(condition, context).matched


def combine_with_results(
    conditions: Sequence[RuleCondition],
    operator: Union[LogicOperator, str],
    context: EvaluationContext,
) -> Tuple[bool, List[ConditionResult]]:
    """Fold conditions with AND/OR, short-circuiting, and return the evaluated results"""
    if not conditions:
        logger.debug("No conditions to evaluate")
        return False, []

    operator = LogicOperator(operator)
    results = []
    for condition in conditions:
        result = evaluate_condition(condition, context)
        results.append(result)
        if operator == LogicOperator.AND and not result.matched:
            return False, results
        if operator == LogicOperator.OR and result.matched:
            return True, results

    return operator == LogicOperator.AND, results


def combine(
    conditions: Sequence[RuleCondition],
    operator: Union[LogicOperator, str],
    context: EvaluationContext,
) -> bool:
    """True when the conditions match under ``operator``; an empty list never matches"""
    matched, _ = combine_with_results(conditions, operator, context)
    return matched
