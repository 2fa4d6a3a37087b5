"""
Rule automation engine for email triage
"""
from .catalog import list_action_types, list_condition_types
from .conditions import combine, evaluate
from .context import build_context
from .engine import RulesEngine
from .repository import InMemoryDebugLogSink, InMemoryRuleRepository, RecordingActionHost
from .sandbox import ScriptRunner
from .schema import (
    ActionResult,
    DebugLogEntry,
    EmailMessage,
    EvaluationContext,
    PassOutcome,
    PassResult,
    Rule,
    RuleAction,
    RuleCondition,
    RulesConfig,
)
from .substitution import resolve

__all__ = [
    'RulesEngine',
    'ScriptRunner',
    'Rule',
    'RuleAction',
    'RuleCondition',
    'RulesConfig',
    'EmailMessage',
    'EvaluationContext',
    'ActionResult',
    'PassResult',
    'PassOutcome',
    'DebugLogEntry',
    'InMemoryRuleRepository',
    'InMemoryDebugLogSink',
    'RecordingActionHost',
    'build_context',
    'combine',
    'evaluate',
    'resolve',
    'list_condition_types',
    'list_action_types',
]
