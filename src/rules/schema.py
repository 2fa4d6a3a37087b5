"""
Data model for email triage rules, evaluation contexts and execution records
"""
import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current time in milliseconds since the epoch"""
    return int(time.time() * 1000)


def generate_id(prefix: str) -> str:
    return f"{prefix}_{now_ms()}_{uuid.uuid4().hex[:9]}"


class CamelModel(BaseModel):
    """Base model reading and writing the camelCase keys used in rule exports"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LogicOperator(str, Enum):
    AND = 'AND'
    OR = 'OR'


class Operator(str, Enum):
    EQUALS = 'equals'
    CONTAINS = 'contains'
    STARTS_WITH = 'starts_with'
    ENDS_WITH = 'ends_with'
    REGEX_MATCH = 'regex_match'
    GREATER_THAN = 'greater_than'
    LESS_THAN = 'less_than'
    EXISTS = 'exists'
    NOT_EXISTS = 'not_exists'


class ConditionType(str, Enum):
    SENDER_EMAIL = 'sender_email'
    SENDER_NAME = 'sender_name'
    SUBJECT = 'subject'
    CONTENT = 'content'
    CONTENT_REGEX = 'content_regex'
    URL_CONTAINS = 'url_contains'
    LINK_DOMAIN = 'link_domain'
    SENDER_SCORE = 'sender_score'
    HAS_LINKS = 'has_links'
    CUSTOM_VARIABLE = 'custom_variable'


class ActionType(str, Enum):
    JAVASCRIPT_CODE = 'javascript_code'
    OPEN_URL = 'open_url'
    SAVE_VARIABLE = 'save_variable'
    LOG_MESSAGE = 'log_message'
    ADD_SCORE = 'add_score'
    MARK_EMAIL = 'mark_email'
    NOTIFY = 'notify'
    DELETE_EMAIL = 'delete_email'
    MARK_AS_READ = 'mark_as_read'
    REQUEST_SUMMARY = 'request_summary'
    GOTO_NEXT_EMAIL = 'goto_next_email'
    GOTO_PREVIOUS_EMAIL = 'goto_previous_email'


class NavigationDirective(str, Enum):
    NEXT = 'next'
    PREVIOUS = 'previous'


ConditionValue = Optional[Union[bool, int, float, str]]


class RuleCondition(CamelModel):
    """A single predicate over one email field"""
    id: str = Field(default_factory=lambda: generate_id('cond'))
    # Plain strings so that unknown types and operators survive loading
    type: str
    operator: str = Operator.CONTAINS.value
    value: ConditionValue = None
    case_sensitive: bool = False


class RuleAction(CamelModel):
    """A single step executed when a rule matches"""
    id: str = Field(default_factory=lambda: generate_id('action'))
    type: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    description: Optional[str] = None


class Rule(CamelModel):
    """Schema for a single rule"""
    id: str = Field(default_factory=lambda: generate_id('rule'))
    name: str
    description: Optional[str] = None
    enabled: bool = True
    conditions: List[RuleCondition] = Field(default_factory=list)
    logic_operator: LogicOperator = LogicOperator.AND
    actions: List[RuleAction] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)
    last_modified: int = Field(default_factory=now_ms)
    execution_count: int = Field(default=0, ge=0)
    last_executed: Optional[int] = None


class RulesConfig(CamelModel):
    """Settings controlling debug logging of rule passes"""
    debug_mode: bool = False
    debug_retention_days: int = Field(default=7, ge=0)


class EmailMessage(CamelModel):
    """The message under evaluation"""
    id: str
    thread_id: Optional[str] = None
    subject: str = ''
    from_address: str = Field(default='', alias='from')
    to: str = ''
    date: Optional[str] = None
    body: Optional[str] = None
    html_body: Optional[str] = None
    snippet: Optional[str] = None
    is_read: bool = False
    labels: List[str] = Field(default_factory=list)
    # False while only the message metadata has been fetched
    content_loaded: bool = True


class SenderInfo(CamelModel):
    email: str = ''
    name: str = ''


class ExtractedLink(CamelModel):
    url: str
    text: str = ''
    domain: str = ''


class EvaluationContext(CamelModel):
    """Everything a processing pass can see about one email"""
    email: EmailMessage
    sender_info: SenderInfo = Field(default_factory=SenderInfo)
    extracted_links: List[ExtractedLink] = Field(default_factory=list)
    sender_score: Optional[float] = None
    variables: Dict[str, Any] = Field(default_factory=dict)


class ConditionResult(CamelModel):
    model_config = ConfigDict(frozen=True)

    condition_id: str
    type: str
    matched: bool
    actual_value: Any = None
    expected_value: Any = None
    error: Optional[str] = None


class ActionResult(CamelModel):
    model_config = ConfigDict(frozen=True)

    action_id: Optional[str] = None
    type: str
    success: bool
    error: Optional[str] = None
    output: Any = None


class RuleResult(CamelModel):
    model_config = ConfigDict(frozen=True)

    rule_id: str
    rule_name: str
    matched: bool
    execution_time_ms: float
    condition_results: List[ConditionResult] = Field(default_factory=list)
    action_results: List[ActionResult] = Field(default_factory=list)


class PassResult(CamelModel):
    """Outcome of running the enabled rule set against one email"""
    model_config = ConfigDict(frozen=True)

    total_rules_checked: int = 0
    total_rules_fired: int = 0
    results: List[RuleResult] = Field(default_factory=list)
    navigation: Optional[NavigationDirective] = None
    deferred: bool = False


class DebugLogEntry(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id('log'))
    timestamp: int
    email_id: str
    email_subject: str
    email_from: str
    total_rules_checked: int
    total_rules_fired: int
    results: List[RuleResult] = Field(default_factory=list)


class PassOutcome(CamelModel):
    model_config = ConfigDict(frozen=True)

    result: PassResult
    debug_entry: Optional[DebugLogEntry] = None


class RulesStatistics(CamelModel):
    total_rules: int
    enabled_rules: int
    disabled_rules: int
    total_executions: int
    rules_with_executions: int
    debug_logs_count: int
