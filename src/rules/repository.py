"""
Boundary contracts between the rules engine and its host, with in-memory implementations
"""
import logging
from typing import Any, Callable, List, Optional, Protocol, Sequence, Set, Tuple

from .errors import RuleNotFoundError
from .schema import DebugLogEntry, EmailMessage, Rule, RulesConfig, SenderInfo, now_ms

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class RuleRepository(Protocol):
    def list_enabled_rules(self) -> List[Rule]: ...

    def record_fire(self, rule_id: str, timestamp: int) -> None: ...

    def get_config(self) -> RulesConfig: ...


class DebugLogSink(Protocol):
    def append(self, entry: DebugLogEntry) -> None: ...


class ActionHost(Protocol):
    """Side effects requested by actions; return False (or raise) to report a failure"""

    def open_url(self, url: str, target: str) -> bool: ...

    def adjust_score(self, sender_email: str, sender_name: str, points: float, reason: Optional[str]) -> bool: ...

    def mark_email(self, email_id: str, marker: str) -> bool: ...

    def notify(self, title: str, body: str) -> bool: ...

    def delete_email(self, email_id: str) -> bool: ...

    def mark_as_read(self, email_id: str) -> bool: ...

    def request_summary(self, email: EmailMessage, sender_info: SenderInfo) -> Any: ...


class InMemoryRuleRepository:
    """Rule repository holding rules in a list, in the order given"""

    def __init__(self, rules: Optional[Sequence[Rule]] = None, config: Optional[RulesConfig] = None):
        self.rules = list(rules or [])
        self.config = config or RulesConfig()

    def list_rules(self) -> List[Rule]:
        return list(self.rules)

    def list_enabled_rules(self) -> List[Rule]:
        return [rule for rule in self.rules if rule.enabled]

    def get_rule(self, rule_id: str) -> Rule:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        raise RuleNotFoundError(rule_id)

    def record_fire(self, rule_id: str, timestamp: int) -> None:
        rule = self.get_rule(rule_id)
        rule.execution_count += 1
        rule.last_executed = timestamp

    def get_config(self) -> RulesConfig:
        return self.config


class InMemoryDebugLogSink:
    """Debug log kept in memory, purged by retention on every append"""

    def __init__(self, retention_days: int = 7, clock: Callable[[], int] = now_ms):
        self.retention_days = retention_days
        self.clock = clock
        self.entries: List[DebugLogEntry] = []

    def append(self, entry: DebugLogEntry) -> None:
        cutoff = self.clock() - self.retention_days * DAY_MS
        self.entries = [existing for existing in self.entries if existing.timestamp >= cutoff]
        self.entries.append(entry)


class RecordingActionHost:
    """Action host that records requests instead of performing them

    Used for dry runs and tests. Methods named in ``failing`` report failure.
    """

    def __init__(self, failing: Optional[Set[str]] = None):
        self.failing = set(failing or ())
        self.calls: List[Tuple[str, tuple]] = []

    def _record(self, name: str, *args) -> bool:
        self.calls.append((name, args))
        logger.info(f"[dry-run] {name}{args!r}")
        return name not in self.failing

    def called(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]

    def open_url(self, url, target):
        return self._record('open_url', url, target)

    def adjust_score(self, sender_email, sender_name, points, reason):
        return self._record('adjust_score', sender_email, sender_name, points, reason)

    def mark_email(self, email_id, marker):
        return self._record('mark_email', email_id, marker)

    def notify(self, title, body):
        return self._record('notify', title, body)

    def delete_email(self, email_id):
        return self._record('delete_email', email_id)

    def mark_as_read(self, email_id):
        return self._record('mark_as_read', email_id)

    def request_summary(self, email, sender_info):
        return self._record('request_summary', email.id)
