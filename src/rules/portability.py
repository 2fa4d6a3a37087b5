"""
JSON backup format for rules
"""
import json
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .errors import RulesImportError
from .schema import Rule, RulesConfig, now_ms

EXPORT_VERSION = '1.0'


def export_rules(rules: Sequence[Rule], config: Optional[RulesConfig] = None, exported_at: Optional[int] = None) -> str:
    """Serialize rules (and optionally the debug config) to a JSON document"""
    data = {
        'version': EXPORT_VERSION,
        'exportedAt': exported_at if exported_at is not None else now_ms(),
        'rules': [rule.model_dump(mode='json', by_alias=True) for rule in rules],
    }
    if config is not None:
        data['config'] = config.model_dump(mode='json', by_alias=True)
    return json.dumps(data, indent=2)


def import_rules(text: str) -> Tuple[List[Rule], Optional[RulesConfig]]:
    """Parse a backup document or a flat array of rules

    Only the rule shape is checked here; stricter checks belong to the caller
    (see ``validate_rule``).
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise RulesImportError(f"Invalid JSON: {e}") from e

    raw_config = None
    if isinstance(data, list):
        raw_rules = data
    elif isinstance(data, dict) and isinstance(data.get('rules'), list):
        raw_rules = data['rules']
        raw_config = data.get('config')
    else:
        raise RulesImportError('Invalid import data: missing or invalid rules array')

    try:
        rules = [Rule.model_validate(item) for item in raw_rules]
        config = RulesConfig.model_validate(raw_config) if raw_config is not None else None
    except ValidationError as e:
        raise RulesImportError(f"Invalid rule structure in import data: {e}") from e

    return rules, config
