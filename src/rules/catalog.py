"""
Static registries of condition types and action types

Each action type also owns a pydantic model describing its parameters; the
executor parses ``RuleAction.parameters`` through it before running a handler.
"""
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .schema import ActionType, CamelModel, ConditionType, Operator

CUSTOM_VARIABLE_PREFIX = 'custom_variable_'

STRING_OPERATORS = [
    Operator.EQUALS,
    Operator.CONTAINS,
    Operator.STARTS_WITH,
    Operator.ENDS_WITH,
    Operator.REGEX_MATCH,
]


class ConditionTypeDef(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: ConditionType
    label: str
    description: str
    value_type: Literal['string', 'number', 'boolean']
    supported_operators: List[Operator]


class ParamDef(CamelModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    type: Literal['string', 'number', 'boolean', 'textarea']
    required: bool
    description: str
    placeholder: Optional[str] = None


class ActionTypeDef(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: ActionType
    label: str
    description: str
    parameters: List[ParamDef] = Field(default_factory=list)


_CONDITION_TYPES = [
    ConditionTypeDef(
        type=ConditionType.SENDER_EMAIL,
        label='Sender Email',
        description='The email address of the sender',
        value_type='string',
        supported_operators=STRING_OPERATORS,
    ),
    ConditionTypeDef(
        type=ConditionType.SENDER_NAME,
        label='Sender Name',
        description='The display name of the sender',
        value_type='string',
        supported_operators=STRING_OPERATORS + [Operator.EXISTS, Operator.NOT_EXISTS],
    ),
    ConditionTypeDef(
        type=ConditionType.SUBJECT,
        label='Subject',
        description='The email subject line',
        value_type='string',
        supported_operators=STRING_OPERATORS,
    ),
    ConditionTypeDef(
        type=ConditionType.CONTENT,
        label='Email Content',
        description='The body text of the email',
        value_type='string',
        supported_operators=[Operator.CONTAINS, Operator.REGEX_MATCH, Operator.EXISTS, Operator.NOT_EXISTS],
    ),
    ConditionTypeDef(
        type=ConditionType.CONTENT_REGEX,
        label='Content (Regex)',
        description='Match email content using regular expressions',
        value_type='string',
        supported_operators=[Operator.REGEX_MATCH],
    ),
    ConditionTypeDef(
        type=ConditionType.URL_CONTAINS,
        label='URLs Contain',
        description='Check if any extracted URLs contain text',
        value_type='string',
        supported_operators=[Operator.CONTAINS, Operator.REGEX_MATCH],
    ),
    ConditionTypeDef(
        type=ConditionType.LINK_DOMAIN,
        label='Link Domain',
        description='Check domains of extracted links',
        value_type='string',
        supported_operators=[Operator.EQUALS, Operator.CONTAINS, Operator.STARTS_WITH, Operator.ENDS_WITH],
    ),
    ConditionTypeDef(
        type=ConditionType.SENDER_SCORE,
        label='Sender Score',
        description='The scoring points of the sender',
        value_type='number',
        supported_operators=[Operator.EQUALS, Operator.GREATER_THAN, Operator.LESS_THAN],
    ),
    ConditionTypeDef(
        type=ConditionType.HAS_LINKS,
        label='Has Links',
        description='Whether the email contains any links',
        value_type='boolean',
        supported_operators=[Operator.EQUALS],
    ),
    ConditionTypeDef(
        type=ConditionType.CUSTOM_VARIABLE,
        label='Custom Variable',
        description=(
            'A variable saved earlier in the same pass; use the type '
            f'"{CUSTOM_VARIABLE_PREFIX}<name>" to read variables.<name>'
        ),
        value_type='string',
        supported_operators=list(Operator),
    ),
]

_CONDITION_TYPES_BY_NAME = {definition.type.value: definition for definition in _CONDITION_TYPES}


def list_condition_types() -> List[ConditionTypeDef]:
    """Return every registered condition type"""
    return list(_CONDITION_TYPES)


def get_condition_type(condition_type: str) -> Optional[ConditionTypeDef]:
    """Look up a condition type; ``custom_variable_<name>`` maps to the custom variable entry"""
    if condition_type.startswith(CUSTOM_VARIABLE_PREFIX):
        condition_type = ConditionType.CUSTOM_VARIABLE.value
    return _CONDITION_TYPES_BY_NAME.get(condition_type)


# Parameter models -----------------------------------------------------------

class ActionParameters(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class JavaScriptCodeParameters(ActionParameters):
    code: str = Field(min_length=1)


class OpenUrlParameters(ActionParameters):
    url: str = Field(min_length=1)
    target: str = '_blank'


class SaveVariableParameters(ActionParameters):
    name: str = Field(min_length=1, validation_alias=AliasChoices('name', 'variableName'))
    value: Any = Field(default=None, validation_alias=AliasChoices('value', 'directValue'))
    regex_pattern: Optional[str] = Field(default=None, validation_alias=AliasChoices('regex_pattern', 'regexPattern'))
    group_index: int = Field(default=1, ge=0, validation_alias=AliasChoices('group_index', 'groupIndex'))
    source: Literal['content', 'subject', 'from', 'urls'] = 'content'

    @field_validator('group_index', 'source', mode='before')
    @classmethod
    def _blank_means_default(cls, value, info):
        # Editors submit untouched optional inputs as empty strings
        if value in ('', None):
            return 1 if info.field_name == 'group_index' else 'content'
        return value


class LogMessageParameters(ActionParameters):
    message: str = Field(min_length=1)


class AddScoreParameters(ActionParameters):
    points: float = Field(validation_alias=AliasChoices('points', 'amount'), allow_inf_nan=False)
    reason: Optional[str] = None


class MarkEmailParameters(ActionParameters):
    marker: str = Field(min_length=1)

    @field_validator('marker')
    @classmethod
    def _strip_marker(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('marker must not be blank')
        return value


class NotifyParameters(ActionParameters):
    title: str = 'Email Triage Rule'
    body: str = 'A rule was triggered'


class NoParameters(ActionParameters):
    pass


PARAMETER_MODELS: Dict[ActionType, Type[ActionParameters]] = {
    ActionType.JAVASCRIPT_CODE: JavaScriptCodeParameters,
    ActionType.OPEN_URL: OpenUrlParameters,
    ActionType.SAVE_VARIABLE: SaveVariableParameters,
    ActionType.LOG_MESSAGE: LogMessageParameters,
    ActionType.ADD_SCORE: AddScoreParameters,
    ActionType.MARK_EMAIL: MarkEmailParameters,
    ActionType.NOTIFY: NotifyParameters,
    ActionType.DELETE_EMAIL: NoParameters,
    ActionType.MARK_AS_READ: NoParameters,
    ActionType.REQUEST_SUMMARY: NoParameters,
    ActionType.GOTO_NEXT_EMAIL: NoParameters,
    ActionType.GOTO_PREVIOUS_EMAIL: NoParameters,
}


def parse_parameters(action_type: ActionType, parameters: Dict[str, Any]) -> ActionParameters:
    """Validate raw action parameters; raises pydantic.ValidationError"""
    return PARAMETER_MODELS[action_type].model_validate(parameters or {})


_TEMPLATE_HINT = 'Can use variables: ${email.subject}, ${senderInfo.email}, ${variables.variableName}'

_ACTION_TYPES = [
    ActionTypeDef(
        type=ActionType.JAVASCRIPT_CODE,
        label='Execute JavaScript',
        description='Run custom JavaScript code with access to email context',
        parameters=[
            ParamDef(
                name='code',
                label='JavaScript Code',
                type='textarea',
                required=True,
                description=(
                    'JavaScript code to execute. Available: email, senderInfo, extractedLinks, '
                    'senderScore, variables, console, window, utils'
                ),
                placeholder=(
                    'console.log("Email from:", senderInfo.email);\n'
                    'if (extractedLinks.length > 0) {\n  window.open(extractedLinks[0].url);\n}'
                ),
            ),
        ],
    ),
    ActionTypeDef(
        type=ActionType.OPEN_URL,
        label='Open URL',
        description='Open a URL in a new window or tab',
        parameters=[
            ParamDef(name='url', label='URL', type='string', required=True,
                     description=f'URL to open. {_TEMPLATE_HINT}',
                     placeholder='https://example.com?from=${senderInfo.email}'),
            ParamDef(name='target', label='Target', type='string', required=False,
                     description='Window target (_blank, _self, etc.)', placeholder='_blank'),
        ],
    ),
    ActionTypeDef(
        type=ActionType.SAVE_VARIABLE,
        label='Save Variable',
        description='Extract and save data to a variable for use in other actions',
        parameters=[
            ParamDef(name='variableName', label='Variable Name', type='string', required=True,
                     description='Name of the variable to save', placeholder='extractedUrl'),
            ParamDef(name='regexPattern', label='Regex Pattern', type='string', required=False,
                     description='Regex pattern to extract value (leave empty for direct value)',
                     placeholder='href=["\']([^"\']*google\\.com[^"\']*)["\']'),
            ParamDef(name='groupIndex', label='Regex Group Index', type='number', required=False,
                     description='Which regex capture group to use (default: 1)', placeholder='1'),
            ParamDef(name='source', label='Source', type='string', required=False,
                     description='Source to extract from: content, subject, from, urls', placeholder='content'),
            ParamDef(name='directValue', label='Direct Value', type='string', required=False,
                     description=f'Direct value to save (instead of regex extraction). {_TEMPLATE_HINT}',
                     placeholder='Some fixed value'),
        ],
    ),
    ActionTypeDef(
        type=ActionType.LOG_MESSAGE,
        label='Log Message',
        description='Write a message to the application log',
        parameters=[
            ParamDef(name='message', label='Message', type='string', required=True,
                     description=f'Message to log. {_TEMPLATE_HINT}',
                     placeholder='Rule triggered for ${senderInfo.name}: ${email.subject}'),
        ],
    ),
    ActionTypeDef(
        type=ActionType.ADD_SCORE,
        label='Add Score Points',
        description="Add points to the sender's quality score",
        parameters=[
            ParamDef(name='points', label='Points', type='number', required=True,
                     description='Number of points to add (negative values subtract)', placeholder='10'),
            ParamDef(name='reason', label='Reason', type='string', required=False,
                     description='Reason for adding points', placeholder='Rule-based bonus'),
        ],
    ),
    ActionTypeDef(
        type=ActionType.MARK_EMAIL,
        label='Mark Email',
        description='Mark the email with a custom tag for later reference',
        parameters=[
            ParamDef(name='marker', label='Marker Tag', type='string', required=True,
                     description='Tag to mark the email with', placeholder='newsletter'),
        ],
    ),
    ActionTypeDef(
        type=ActionType.NOTIFY,
        label='Notification',
        description='Show a desktop notification',
        parameters=[
            ParamDef(name='title', label='Title', type='string', required=False,
                     description='Notification title', placeholder='Email Triage Rule'),
            ParamDef(name='body', label='Message', type='string', required=False,
                     description='Notification message. Can use variables: ${email.subject}, ${senderInfo.email}',
                     placeholder='New email from ${senderInfo.name}'),
        ],
    ),
    ActionTypeDef(type=ActionType.DELETE_EMAIL, label='Delete Email',
                  description='Delete the email (move to trash)'),
    ActionTypeDef(type=ActionType.MARK_AS_READ, label='Mark as Read',
                  description='Mark the email as read'),
    ActionTypeDef(type=ActionType.REQUEST_SUMMARY, label='Request Summary',
                  description='Generate an email summary or save for later (based on mode setting)'),
    ActionTypeDef(type=ActionType.GOTO_NEXT_EMAIL, label='Go to Next Email',
                  description='Navigate to the next email in the list'),
    ActionTypeDef(type=ActionType.GOTO_PREVIOUS_EMAIL, label='Go to Previous Email',
                  description='Navigate to the previous email in the list'),
]

_ACTION_TYPES_BY_NAME = {definition.type.value: definition for definition in _ACTION_TYPES}


def list_action_types() -> List[ActionTypeDef]:
    """Return every registered action type"""
    return list(_ACTION_TYPES)


def get_action_type(action_type: str) -> Optional[ActionTypeDef]:
    return _ACTION_TYPES_BY_NAME.get(action_type)
