"""
Database package for the email triage rules store
"""
from .connection import get_db_session, get_engine, init_db
from .models import Base, DebugLog, EmailMarker, EmailSummary, ProcessedEmail, Rule, RuleAction, RuleCondition, SenderScore
from .repository import SqlDebugLogSink, SqlRuleRepository
from .store import SqlTriageStore

__all__ = [
    'Base',
    'Rule',
    'RuleCondition',
    'RuleAction',
    'DebugLog',
    'SenderScore',
    'EmailMarker',
    'EmailSummary',
    'ProcessedEmail',
    'SqlRuleRepository',
    'SqlDebugLogSink',
    'SqlTriageStore',
    'init_db',
    'get_db_session',
    'get_engine',
]
