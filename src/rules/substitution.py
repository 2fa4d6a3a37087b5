"""
Expansion of ${path.to.value} tokens in action parameters

Supported roots are ``email``, ``senderInfo``, ``senderScore``,
``extractedLinks`` and ``variables``. A token may list fallbacks separated by
``||`` (``${senderInfo.name || senderInfo.email}``); the first alternative that
resolves to a non-empty value wins, and quoted alternatives are literals.
Anything that cannot be resolved becomes an empty string.
"""
import json
import re
from collections.abc import Mapping
from typing import Any, Dict, Optional

from .schema import EvaluationContext

TOKEN_PATTERN = re.compile(r'\$\{([^{}]*)\}')


def format_value(value: Any) -> str:
    """Render a resolved value the way it appears inside a template"""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def template_namespace(context: EvaluationContext, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build the lookup tree that tokens are resolved against"""
    return {
        'email': context.email.model_dump(by_alias=True),
        'senderInfo': context.sender_info.model_dump(by_alias=True),
        'senderScore': context.sender_score,
        'extractedLinks': [link.model_dump(by_alias=True) for link in context.extracted_links],
        'variables': context.variables if variables is None else variables,
    }


def lookup_path(namespace: Any, path: str) -> Any:
    """Walk a dotted path through mappings and sequences; None when any step is missing"""
    current = namespace
    for part in path.split('.'):
        if isinstance(current, Mapping):
            if part not in current:
                return None
            current = current[part]
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


def _resolve_alternative(namespace: Dict[str, Any], alternative: str) -> str:
    alternative = alternative.strip()
    if len(alternative) >= 2 and alternative[0] == alternative[-1] and alternative[0] in '\'"':
        return alternative[1:-1]
    if not alternative:
        return ''
    return format_value(lookup_path(namespace, alternative))


def resolve(template: Any, context: EvaluationContext, variables: Optional[Dict[str, Any]] = None) -> str:
    """Replace every ${...} token in ``template``; never raises for bad paths"""
    if not isinstance(template, str):
        return format_value(template)

    namespace = template_namespace(context, variables)

    def replace(match):
        for alternative in match.group(1).split('||'):
            text = _resolve_alternative(namespace, alternative)
            if text:
                return text
        return ''

    return TOKEN_PATTERN.sub(replace, template)
