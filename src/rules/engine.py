"""
Rules engine for processing emails based on configured rules
"""
import logging
import time
from typing import Callable, Dict, List, Optional

from .actions import ActionExecutor, PassState
from .conditions import CONTENT_CONDITION_TYPES, combine_with_results
from .context import build_context
from .links import extract_links
from .repository import ActionHost, DebugLogSink, RuleRepository
from .sandbox import ScriptRunner
from .schema import (
    ActionResult,
    DebugLogEntry,
    EmailMessage,
    EvaluationContext,
    ExtractedLink,
    PassOutcome,
    PassResult,
    Rule,
    RuleResult,
    now_ms,
)

logger = logging.getLogger(__name__)


def needs_content(rules: List[Rule]) -> bool:
    """True when any rule tests the email body"""
    return any(
        condition.type in CONTENT_CONDITION_TYPES
        for rule in rules
        for condition in rule.conditions
    )


class RulesEngine:
    """Engine for processing emails based on rules

    One call to :meth:`process` is one pass: every enabled rule is evaluated
    in repository order against the same context, sharing its ``variables``.
    """

    def __init__(
        self,
        repository: RuleRepository,
        host: ActionHost,
        debug_sink: Optional[DebugLogSink] = None,
        script_runner: Optional[ScriptRunner] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.repository = repository
        self.debug_sink = debug_sink
        self.executor = ActionExecutor(host, script_runner)
        self.clock = clock
        self._pending: Dict[str, EvaluationContext] = {}

    def process_email(
        self,
        email: EmailMessage,
        sender_score: Optional[float] = None,
        extracted_links: Optional[List[ExtractedLink]] = None,
    ) -> PassOutcome:
        """Process a single email against all enabled rules

        When a rule inspects the body but only the metadata has been loaded,
        the pass is parked until :meth:`process_loaded_content` is called.
        """
        context = build_context(email, sender_score, extracted_links)
        rules = self.repository.list_enabled_rules()

        if not email.content_loaded and needs_content(rules):
            logger.info(f"Deferring rule execution for {email.id}: content-based rules need the body")
            self._pending[email.id] = context
            return PassOutcome(result=PassResult(deferred=True))

        return self._run_pass(context, rules)

    def process(self, context: EvaluationContext) -> PassOutcome:
        """Run one pass of the enabled rules against a prepared context"""
        return self._run_pass(context, self.repository.list_enabled_rules())

    def process_loaded_content(self, email_id: str, body: str, html_body: Optional[str] = None) -> Optional[PassOutcome]:
        """Run a deferred pass now that the body is available; None if nothing was pending"""
        context = self._pending.pop(email_id, None)
        if context is None:
            return None

        email = context.email.model_copy(update={
            'body': body,
            'html_body': html_body or context.email.html_body,
            'content_loaded': True,
        })
        links = context.extracted_links or extract_links(email.body, email.html_body)
        logger.info(f"Executing deferred rules for email with loaded content: {email.subject}")
        return self.process(context.model_copy(update={'email': email, 'extracted_links': links}))

    def clear_pending(self, email_id: str) -> None:
        self._pending.pop(email_id, None)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _run_pass(self, context: EvaluationContext, rules: List[Rule]) -> PassOutcome:
        timestamp = self.clock()
        state = PassState(context.variables)
        results = []
        fired = 0

        logger.info(f"Processing email: {context.email.subject} (From: {context.email.from_address})")
        logger.debug(f"Executing {len(rules)} enabled rules")

        for rule in rules:
            result = self._execute_rule(rule, context, state)
            results.append(result)

            if result.matched:
                fired += 1
                self._record_fire(rule, timestamp)

            if state.navigation is not None:
                logger.info(f"Rule {rule.name} requested navigation ({state.navigation.value}), stopping")
                break

        pass_result = PassResult(
            total_rules_checked=len(results),
            total_rules_fired=fired,
            results=results,
            navigation=state.navigation,
        )
        entry = DebugLogEntry(
            timestamp=timestamp,
            email_id=context.email.id,
            email_subject=context.email.subject,
            email_from=context.email.from_address,
            total_rules_checked=pass_result.total_rules_checked,
            total_rules_fired=pass_result.total_rules_fired,
            results=results,
        )
        self._publish(entry)
        return PassOutcome(result=pass_result, debug_entry=entry)

    def _execute_rule(self, rule: Rule, context: EvaluationContext, state: PassState) -> RuleResult:
        """Evaluate one rule and run its actions if it matches"""
        start = time.perf_counter()
        matched = False
        condition_results = []
        action_results = []

        logger.debug(f"Checking rule: {rule.name} ({rule.logic_operator.value})")
        try:
            matched, condition_results = combine_with_results(rule.conditions, rule.logic_operator, context)
            if matched:
                logger.info(f'Rule "{rule.name}" matched - executing {len(rule.actions)} actions')
                for action in rule.actions:
                    action_results.append(self.executor.execute(action, context, state))
            else:
                logger.debug("Rule conditions did not match")
        except Exception as e:
            logger.exception(f'Error executing rule "{rule.name}"')
            action_results.append(ActionResult(action_id='error', type='error', success=False, error=str(e)))

        return RuleResult(
            rule_id=rule.id,
            rule_name=rule.name,
            matched=matched,
            execution_time_ms=(time.perf_counter() - start) * 1000,
            condition_results=condition_results,
            action_results=action_results,
        )

    def _record_fire(self, rule: Rule, timestamp: int) -> None:
        try:
            self.repository.record_fire(rule.id, timestamp)
        except Exception:
            logger.exception(f"Failed to record execution of rule {rule.id}")

    def _publish(self, entry: DebugLogEntry) -> None:
        if self.debug_sink is None:
            return
        try:
            if self.repository.get_config().debug_mode:
                self.debug_sink.append(entry)
        except Exception:
            logger.exception("Failed to save debug log")
