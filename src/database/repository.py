"""
SQLAlchemy implementations of the rule repository and debug log sink
"""
import logging
from typing import Any, Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from src.rules.errors import RuleNotFoundError, RulesError
from src.rules.schema import (
    DebugLogEntry,
    Rule,
    RuleAction,
    RuleCondition,
    RulesConfig,
    RulesStatistics,
    now_ms,
)

from . import models

logger = logging.getLogger(__name__)

CONFIG_KEY = 'rules_config'
DAY_MS = 24 * 60 * 60 * 1000


def _to_schema(record: models.Rule) -> Rule:
    """Convert a stored rule and its children into the rules schema"""
    return Rule(
        id=record.id,
        name=record.name,
        description=record.description,
        enabled=record.enabled,
        logic_operator=record.logic_operator,
        created_at=record.created_at,
        last_modified=record.last_modified,
        execution_count=record.execution_count,
        last_executed=record.last_executed,
        conditions=[
            RuleCondition(
                id=condition.condition_id,
                type=condition.type,
                operator=condition.operator,
                value=condition.value,
                case_sensitive=condition.case_sensitive,
            )
            for condition in record.conditions
        ],
        actions=[
            RuleAction(
                id=action.action_id,
                type=action.type,
                parameters=action.parameters or {},
                description=action.description,
            )
            for action in record.actions
        ],
    )


def _apply(record: models.Rule, rule: Rule) -> None:
    """Copy a schema rule onto a stored record, replacing its conditions and actions"""
    record.name = rule.name
    record.description = rule.description
    record.enabled = rule.enabled
    record.logic_operator = rule.logic_operator.value
    record.created_at = rule.created_at
    record.last_modified = rule.last_modified
    record.execution_count = rule.execution_count
    record.last_executed = rule.last_executed
    record.conditions = [
        models.RuleCondition(
            condition_id=condition.id,
            position=position,
            type=condition.type,
            operator=condition.operator,
            value=condition.value,
            case_sensitive=condition.case_sensitive,
        )
        for position, condition in enumerate(rule.conditions)
    ]
    record.actions = [
        models.RuleAction(
            action_id=action.id,
            position=position,
            type=action.type,
            parameters=action.parameters,
            description=action.description,
        )
        for position, action in enumerate(rule.actions)
    ]


class SqlRuleRepository:
    """Rule repository backed by a SQLAlchemy session"""

    def __init__(self, db: Session, clock: Callable[[], int] = now_ms):
        self.db = db
        self.clock = clock

    def _get_record(self, rule_id: str) -> models.Rule:
        record = self.db.get(models.Rule, rule_id)
        if record is None:
            raise RuleNotFoundError(rule_id)
        return record

    def list_rules(self) -> List[Rule]:
        """All rules in creation order"""
        records = self.db.query(models.Rule).order_by(models.Rule.created_at, models.Rule.id).all()
        return [_to_schema(record) for record in records]

    def list_enabled_rules(self) -> List[Rule]:
        records = (
            self.db.query(models.Rule)
            .filter(models.Rule.enabled.is_(True))
            .order_by(models.Rule.created_at, models.Rule.id)
            .all()
        )
        return [_to_schema(record) for record in records]

    def get_rule(self, rule_id: str) -> Rule:
        return _to_schema(self._get_record(rule_id))

    def create_rule(self, rule: Rule) -> Rule:
        """Store a new rule; counters start from zero"""
        if self.db.get(models.Rule, rule.id) is not None:
            raise RulesError(f"Rule already exists: {rule.id}")

        timestamp = self.clock()
        rule = rule.model_copy(update={
            'created_at': timestamp,
            'last_modified': timestamp,
            'execution_count': 0,
            'last_executed': None,
        })
        record = models.Rule(id=rule.id)
        _apply(record, rule)
        self.db.add(record)
        self.db.commit()
        logger.info(f"Created new rule: {rule.name}")
        return rule

    def update_rule(self, rule_id: str, **updates: Any) -> Rule:
        """Apply field updates (snake_case names); id and createdAt cannot change"""
        updates.pop('id', None)
        updates.pop('created_at', None)

        record = self._get_record(rule_id)
        current = _to_schema(record).model_dump()
        current.update(updates)
        current['last_modified'] = self.clock()
        rule = Rule.model_validate(current)

        _apply(record, rule)
        self.db.commit()
        logger.info(f"Updated rule: {rule.name}")
        return rule

    def delete_rule(self, rule_id: str) -> bool:
        record = self.db.get(models.Rule, rule_id)
        if record is None:
            logger.error(f"Rule not found for deletion: {rule_id}")
            return False
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Deleted rule: {rule_id}")
        return True

    def toggle_rule(self, rule_id: str) -> Rule:
        record = self._get_record(rule_id)
        return self.update_rule(rule_id, enabled=not record.enabled)

    def replace_rules(self, rules: Iterable[Rule]) -> int:
        """Replace every stored rule, keeping ids, timestamps and counters as given"""
        # Clear existing rules
        for record in self.db.query(models.Rule).all():
            self.db.delete(record)
        self.db.flush()

        count = 0
        for rule in rules:
            record = models.Rule(id=rule.id)
            _apply(record, rule)
            self.db.add(record)
            count += 1
        self.db.commit()
        logger.info(f"Replaced stored rules with {count} rules")
        return count

    def record_fire(self, rule_id: str, timestamp: int) -> None:
        """Count one execution of a rule"""
        record = self.db.get(models.Rule, rule_id)
        if record is None:
            logger.warning(f"Cannot record execution of unknown rule {rule_id}")
            return
        record.execution_count = (record.execution_count or 0) + 1
        record.last_executed = timestamp
        self.db.commit()

    def get_config(self) -> RulesConfig:
        setting = self.db.get(models.RulesSetting, CONFIG_KEY)
        if setting is None or not setting.value:
            return RulesConfig()
        return RulesConfig.model_validate(setting.value)

    def set_config(self, config: RulesConfig) -> None:
        setting = self.db.get(models.RulesSetting, CONFIG_KEY)
        if setting is None:
            setting = models.RulesSetting(key=CONFIG_KEY)
            self.db.add(setting)
        setting.value = config.model_dump(mode='json', by_alias=True)
        self.db.commit()
        logger.info("Rules configuration updated")

    def statistics(self) -> RulesStatistics:
        rules = self.db.query(models.Rule).all()
        enabled = sum(1 for rule in rules if rule.enabled)
        return RulesStatistics(
            total_rules=len(rules),
            enabled_rules=enabled,
            disabled_rules=len(rules) - enabled,
            total_executions=sum(rule.execution_count or 0 for rule in rules),
            rules_with_executions=sum(1 for rule in rules if rule.execution_count),
            debug_logs_count=self.db.query(models.DebugLog).count(),
        )


class SqlDebugLogSink:
    """Debug log sink that stores entries and purges those past retention"""

    def __init__(self, db: Session, retention_days: int = 7, clock: Callable[[], int] = now_ms):
        self.db = db
        self.retention_days = retention_days
        self.clock = clock

    def append(self, entry: DebugLogEntry) -> None:
        data = entry.model_dump(mode='json', by_alias=True)
        self.db.add(models.DebugLog(
            id=entry.id,
            timestamp=entry.timestamp,
            email_id=entry.email_id,
            email_subject=entry.email_subject,
            email_from=entry.email_from,
            total_rules_checked=entry.total_rules_checked,
            total_rules_fired=entry.total_rules_fired,
            results=data['results'],
        ))
        self.purge()
        self.db.commit()

    def purge(self) -> int:
        """Delete entries older than the retention window"""
        cutoff = self.clock() - self.retention_days * DAY_MS
        removed = (
            self.db.query(models.DebugLog)
            .filter(models.DebugLog.timestamp < cutoff)
            .delete(synchronize_session=False)
        )
        if removed:
            logger.debug(f"Purged {removed} debug log entries older than {self.retention_days} days")
        return removed

    def list_entries(self, limit: Optional[int] = None) -> List[DebugLogEntry]:
        """Stored entries, newest first"""
        query = self.db.query(models.DebugLog).order_by(models.DebugLog.timestamp.desc())
        if limit:
            query = query.limit(limit)
        return [
            DebugLogEntry.model_validate({
                'id': log.id,
                'timestamp': log.timestamp,
                'emailId': log.email_id,
                'emailSubject': log.email_subject or '',
                'emailFrom': log.email_from or '',
                'totalRulesChecked': log.total_rules_checked,
                'totalRulesFired': log.total_rules_fired,
                'results': log.results or [],
            })
            for log in query.all()
        ]

    def clear(self) -> int:
        removed = self.db.query(models.DebugLog).delete(synchronize_session=False)
        self.db.commit()
        logger.info("Debug logs cleared")
        return removed
