"""
Example rules offered to new users; all start disabled
"""
from typing import List

from .schema import Rule

SENDER = '${senderInfo.name || senderInfo.email}'

EXAMPLE_RULES = [
    {
        'name': 'High Scorer Auto-Summary',
        'description': 'Log emails from high-scoring senders',
        'conditions': [{'type': 'sender_score', 'operator': 'greater_than', 'value': 50}],
        'actions': [
            {'type': 'log_message',
             'parameters': {'message': f'High-scoring sender detected: {SENDER} (Score: ${{senderScore}})'},
             'description': 'Log high-scoring sender'},
        ],
    },
    {
        'name': 'Newsletter Link Detector',
        'description': 'Detects newsletters with unsubscribe links and tags them',
        'conditions': [{'type': 'url_contains', 'operator': 'contains', 'value': 'unsubscribe'}],
        'actions': [
            {'type': 'log_message',
             'parameters': {'message': f'Newsletter detected from {SENDER}: ${{email.subject}}'},
             'description': 'Log newsletter detection'},
            {'type': 'mark_email', 'parameters': {'marker': 'newsletter'}, 'description': 'Mark as newsletter'},
        ],
    },
    {
        'name': 'Auto-delete Low Quality Emails',
        'description': 'Automatically delete emails from very low-scoring senders',
        'conditions': [{'type': 'sender_score', 'operator': 'less_than', 'value': -10}],
        'actions': [
            {'type': 'log_message',
             'parameters': {'message': f'Auto-deleting low quality email from {SENDER}: ${{email.subject}}'},
             'description': 'Log deletion action'},
            {'type': 'delete_email', 'description': 'Delete the email'},
        ],
    },
    {
        'name': 'Auto-mark Newsletters as Read',
        'description': 'Automatically mark newsletter emails as read',
        'conditions': [{'type': 'url_contains', 'operator': 'contains', 'value': 'unsubscribe'}],
        'actions': [
            {'type': 'log_message',
             'parameters': {'message': f'Auto-marking newsletter as read from {SENDER}: ${{email.subject}}'},
             'description': 'Log mark as read action'},
            {'type': 'mark_as_read', 'description': 'Mark email as read'},
        ],
    },
    {
        'name': 'Auto-summarize Important Emails',
        'description': 'Automatically request summary for high-scoring senders',
        'conditions': [{'type': 'sender_score', 'operator': 'greater_than', 'value': 75}],
        'actions': [
            {'type': 'log_message',
             'parameters': {'message': f'Auto-summarizing important email from {SENDER}: ${{email.subject}}'},
             'description': 'Log summary request action'},
            {'type': 'request_summary', 'description': 'Request email summary or save for later'},
        ],
    },
    {
        'name': 'Skip Low Quality Emails',
        'description': 'Automatically navigate to next email for very low-scoring senders',
        'conditions': [{'type': 'sender_score', 'operator': 'less_than', 'value': -20}],
        'actions': [
            {'type': 'log_message',
             'parameters': {'message': f'Skipping very low quality email from {SENDER}: ${{email.subject}}'},
             'description': 'Log skip action'},
            {'type': 'goto_next_email', 'description': 'Navigate to next email'},
        ],
    },
    {
        'name': 'Review VIP Emails',
        'description': 'Summarize emails from very high-scoring senders',
        'conditions': [{'type': 'sender_score', 'operator': 'greater_than', 'value': 95}],
        'actions': [
            {'type': 'log_message',
             'parameters': {
                 'message': f'VIP email detected from {SENDER}: ${{email.subject}} - Score: ${{senderScore}}'
             },
             'description': 'Log VIP detection'},
            {'type': 'request_summary', 'description': 'Generate summary for VIP email'},
        ],
    },
]


def example_rules() -> List[Rule]:
    """Fresh, disabled copies of the example rules"""
    rules = []
    for data in EXAMPLE_RULES:
        rules.append(Rule.model_validate({
            'enabled': False,
            'logicOperator': 'AND',
            **data,
        }))
    return rules
