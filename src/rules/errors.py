"""
Exceptions raised by the rules package
"""


class RulesError(Exception):
    """Base class for rules errors"""


class RulesImportError(RulesError):
    """Raised when a rules backup cannot be parsed"""


class RuleNotFoundError(RulesError):
    """Raised by repositories when a rule id does not exist"""

    def __init__(self, rule_id: str):
        super().__init__(f"Rule not found: {rule_id}")
        self.rule_id = rule_id


class ActionError(RulesError):
    """An action could not be carried out; becomes a failed action result"""


class HostActionError(ActionError):
    """Raised by an action host when a requested side effect failed"""
