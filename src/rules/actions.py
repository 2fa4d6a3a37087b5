"""
Execution of rule actions
"""
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from .catalog import (
    ActionParameters,
    AddScoreParameters,
    JavaScriptCodeParameters,
    LogMessageParameters,
    MarkEmailParameters,
    NotifyParameters,
    OpenUrlParameters,
    SaveVariableParameters,
    parse_parameters,
)
from .errors import ActionError, HostActionError
from .sandbox import ScriptRunner
from .schema import ActionResult, ActionType, EvaluationContext, NavigationDirective, RuleAction
from .substitution import resolve

logger = logging.getLogger(__name__)

UNKNOWN_ACTION_TYPE = 'unknown action type'


class PassState:
    """Mutable state shared by every rule of one processing pass"""

    def __init__(self, variables: Optional[Dict[str, Any]] = None):
        self.variables = {} if variables is None else variables
        self.navigation: Optional[NavigationDirective] = None


def _describe_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item['loc']) or 'parameters'
        problems.append(f"{location}: {item['msg']}")
    return 'Invalid parameters: ' + '; '.join(problems)


def _is_web_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


class ActionExecutor:
    """Dispatches rule actions to their handlers and side effects to the host"""

    def __init__(self, host, script_runner: Optional[ScriptRunner] = None):
        self.host = host
        self.script_runner = script_runner or ScriptRunner()
        self._handlers = {
            ActionType.JAVASCRIPT_CODE: self._run_script,
            ActionType.OPEN_URL: self._open_url,
            ActionType.SAVE_VARIABLE: self._save_variable,
            ActionType.LOG_MESSAGE: self._log_message,
            ActionType.ADD_SCORE: self._add_score,
            ActionType.MARK_EMAIL: self._mark_email,
            ActionType.NOTIFY: self._notify,
            ActionType.DELETE_EMAIL: self._delete_email,
            ActionType.MARK_AS_READ: self._mark_as_read,
            ActionType.REQUEST_SUMMARY: self._request_summary,
            ActionType.GOTO_NEXT_EMAIL: self._goto_next_email,
            ActionType.GOTO_PREVIOUS_EMAIL: self._goto_previous_email,
        }

    def execute(self, action: RuleAction, context: EvaluationContext, state: PassState) -> ActionResult:
        """Run one action; always returns a result, never raises"""
        try:
            action_type = ActionType(action.type)
        except ValueError:
            logger.error(f"Unknown action type: {action.type}")
            return ActionResult(action_id=action.id, type=action.type, success=False, error=UNKNOWN_ACTION_TYPE)

        logger.debug(f"Executing action: {action_type.value}")
        try:
            parameters = parse_parameters(action_type, action.parameters)
            output = self._handlers[action_type](parameters, context, state)
        except ValidationError as e:
            error = _describe_validation_error(e)
        except ActionError as e:
            error = str(e)
        except Exception as e:
            logger.exception(f"Action {action_type.value} raised an unexpected error")
            error = str(e) or type(e).__name__
        else:
            logger.debug(f"Action {action_type.value} succeeded")
            return ActionResult(action_id=action.id, type=action_type.value, success=True, output=output)

        logger.error(f"Action {action_type.value} failed: {error}")
        return ActionResult(action_id=action.id, type=action_type.value, success=False, error=error)

    def _call_host(self, method: str, *args, failure: str) -> Any:
        result = getattr(self.host, method)(*args)
        if result is False:
            raise HostActionError(failure)
        return result

    def _open(self, url: str, target: str) -> None:
        if not _is_web_url(url):
            raise ActionError(f"Invalid URL: {url!r}")
        self._call_host('open_url', url, target, failure=f"Failed to open {url}")

    def _run_script(self, parameters: JavaScriptCodeParameters, context: EvaluationContext, state: PassState):
        outcome = self.script_runner.run(parameters.code, context, state.variables)
        if not outcome.ok:
            raise ActionError(f"Script error: {outcome.error}")

        opened, skipped = [], []
        for url in outcome.opened_urls:
            if not _is_web_url(url):
                logger.warning(f"Script tried to open invalid URL {url!r}, skipping")
                skipped.append(url)
                continue
            self._open(url, '_blank')
            opened.append(url)

        output = {'result': outcome.result, 'openedUrls': opened}
        if skipped:
            output['skippedUrls'] = skipped
        return output

    def _open_url(self, parameters: OpenUrlParameters, context: EvaluationContext, state: PassState):
        url = resolve(parameters.url, context, state.variables).strip()
        self._open(url, parameters.target)
        return {'openedUrl': url}

    def _save_variable(self, parameters: SaveVariableParameters, context: EvaluationContext, state: PassState):
        if parameters.regex_pattern and parameters.value in (None, ''):
            value = self._extract(parameters, context)
        elif isinstance(parameters.value, str):
            value = resolve(parameters.value, context, state.variables)
        else:
            value = parameters.value

        state.variables[parameters.name] = value
        logger.debug(f"Saved variable {parameters.name} = {value!r}")
        return {'variables': {parameters.name: value}}

    def _extract(self, parameters: SaveVariableParameters, context: EvaluationContext) -> Optional[str]:
        if parameters.source == 'subject':
            text = context.email.subject
        elif parameters.source == 'from':
            text = context.email.from_address
        elif parameters.source == 'urls':
            text = ' '.join(link.url for link in context.extracted_links)
        else:
            text = context.email.body or context.email.html_body or ''

        try:
            match = re.search(parameters.regex_pattern, text)
        except re.error as e:
            raise ActionError(f"Invalid regex pattern {parameters.regex_pattern!r}: {e}") from e
        if not match:
            return None
        try:
            return match.group(parameters.group_index)
        except IndexError:
            return None

    def _log_message(self, parameters: LogMessageParameters, context: EvaluationContext, state: PassState):
        message = resolve(parameters.message, context, state.variables)
        logger.info(f"[Rule Action] {message}")
        return {'message': message}

    def _add_score(self, parameters: AddScoreParameters, context: EvaluationContext, state: PassState):
        sender = context.sender_info
        self._call_host(
            'adjust_score', sender.email, sender.name, parameters.points, parameters.reason,
            failure=f"Failed to adjust score for {sender.email}",
        )
        return {'pointsAdded': parameters.points}

    def _mark_email(self, parameters: MarkEmailParameters, context: EvaluationContext, state: PassState):
        self._call_host(
            'mark_email', context.email.id, parameters.marker,
            failure=f"Failed to mark email with {parameters.marker!r}",
        )
        return {'marker': parameters.marker, 'emailId': context.email.id}

    def _notify(self, parameters: NotifyParameters, context: EvaluationContext, state: PassState):
        title = resolve(parameters.title, context, state.variables)
        body = resolve(parameters.body, context, state.variables)
        self._call_host('notify', title, body, failure='Notification permission denied')
        return {'title': title, 'body': body}

    def _delete_email(self, parameters: ActionParameters, context: EvaluationContext, state: PassState):
        self._call_host('delete_email', context.email.id, failure='Failed to delete email')
        logger.info(f"[Rule Action] Deleted email: {context.email.subject}")
        return {'deleted': True, 'emailId': context.email.id}

    def _mark_as_read(self, parameters: ActionParameters, context: EvaluationContext, state: PassState):
        self._call_host('mark_as_read', context.email.id, failure='Failed to mark email as read')
        logger.info(f"[Rule Action] Marked email as read: {context.email.subject}")
        return {'markedAsRead': True, 'emailId': context.email.id}

    def _request_summary(self, parameters: ActionParameters, context: EvaluationContext, state: PassState):
        result = self._call_host(
            'request_summary', context.email, context.sender_info,
            failure='Failed to request email summary',
        )
        if isinstance(result, dict):
            return result
        return {'emailId': context.email.id}

    def _goto_next_email(self, parameters: ActionParameters, context: EvaluationContext, state: PassState):
        state.navigation = NavigationDirective.NEXT
        logger.info("[Rule Action] Navigating to next email")
        return {'navigatedTo': NavigationDirective.NEXT.value}

    def _goto_previous_email(self, parameters: ActionParameters, context: EvaluationContext, state: PassState):
        state.navigation = NavigationDirective.PREVIOUS
        logger.info("[Rule Action] Navigating to previous email")
        return {'navigatedTo': NavigationDirective.PREVIOUS.value}
