"""
Database models for the email triage rules store
"""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class Rule(Base):
    """Rule model for storing automation rules"""
    __tablename__ = 'rules'

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    enabled = Column(Boolean, nullable=False, default=True)
    logic_operator = Column(String(3), nullable=False, default='AND')  # 'AND' or 'OR'
    created_at = Column(BigInteger, nullable=False)  # ms since epoch
    last_modified = Column(BigInteger, nullable=False)
    execution_count = Column(Integer, nullable=False, default=0)
    last_executed = Column(BigInteger)

    conditions = relationship(
        'RuleCondition', back_populates='rule', cascade='all, delete-orphan',
        order_by='RuleCondition.position',
    )
    actions = relationship(
        'RuleAction', back_populates='rule', cascade='all, delete-orphan',
        order_by='RuleAction.position',
    )


class RuleCondition(Base):
    """Condition model for storing rule conditions"""
    __tablename__ = 'rule_conditions'

    id = Column(Integer, primary_key=True)
    rule_id = Column(String(64), ForeignKey('rules.id'), nullable=False)
    condition_id = Column(String(64), nullable=False)  # unique within its rule only
    position = Column(Integer, nullable=False)
    type = Column(String(100), nullable=False)
    operator = Column(String(50), nullable=False)
    value = Column(JSON)
    case_sensitive = Column(Boolean, nullable=False, default=False)

    rule = relationship('Rule', back_populates='conditions')


class RuleAction(Base):
    """Action model for storing rule actions, kept in execution order"""
    __tablename__ = 'rule_actions'

    id = Column(Integer, primary_key=True)
    rule_id = Column(String(64), ForeignKey('rules.id'), nullable=False)
    action_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False)
    type = Column(String(50), nullable=False)
    parameters = Column(JSON, nullable=False, default=dict)
    description = Column(Text)

    rule = relationship('Rule', back_populates='actions')


class RulesSetting(Base):
    """Key/value settings for the rules engine (debug mode, retention)"""
    __tablename__ = 'rules_settings'

    key = Column(String(100), primary_key=True)
    value = Column(JSON)


class DebugLog(Base):
    """One processing pass recorded while debug mode is on"""
    __tablename__ = 'rule_debug_logs'

    id = Column(String(64), primary_key=True)
    timestamp = Column(BigInteger, nullable=False, index=True)
    email_id = Column(String(255), nullable=False)
    email_subject = Column(Text)
    email_from = Column(Text)
    total_rules_checked = Column(Integer, nullable=False, default=0)
    total_rules_fired = Column(Integer, nullable=False, default=0)
    results = Column(JSON, nullable=False, default=list)


class SenderScore(Base):
    """Accumulated score per sender address"""
    __tablename__ = 'sender_scores'

    sender_email = Column(String(255), primary_key=True)
    sender_name = Column(String(255))
    total_score = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class EmailMarker(Base):
    """Custom tags applied by mark_email actions"""
    __tablename__ = 'email_markers'

    id = Column(Integer, primary_key=True)
    marker = Column(String(255), nullable=False)
    email_id = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint('marker', 'email_id', name='uix_marker_email'),
    )


class EmailSummary(Base):
    """Summaries generated, or emails saved for later, by request_summary actions"""
    __tablename__ = 'email_summaries'

    email_id = Column(String(255), primary_key=True)
    subject = Column(Text)
    summary = Column(Text, nullable=False)
    saved_for_later = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class ProcessedEmail(Base):
    """Model for tracking which emails have already been through a rules pass"""
    __tablename__ = 'processed_emails'

    id = Column(Integer, primary_key=True)
    gmail_id = Column(String(255), nullable=False, unique=True)
    rules_fired = Column(Integer, nullable=False, default=0)
    processed_at = Column(DateTime(timezone=True), default=_utcnow)
