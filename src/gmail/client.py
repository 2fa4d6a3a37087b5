"""
Gmail API client for email operations
"""
import base64
import binascii
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import logging

from dateutil import parser as date_parser
from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from src.rules.schema import EmailMessage

logger = logging.getLogger(__name__)


def decode_body(data: Optional[str]) -> str:
    """Decode a base64url message part body as sent by the Gmail API"""
    if not data:
        return ''
    padded = data + '=' * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode('utf-8', errors='replace')
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Could not decode message body: {e}")
        return ''


def extract_bodies(payload: Dict) -> Tuple[Optional[str], Optional[str]]:
    """Walk a message payload and return its first text/plain and text/html bodies"""
    plain, html = None, None
    mime_type = payload.get('mimeType', '')
    data = payload.get('body', {}).get('data')

    if data and mime_type == 'text/plain':
        plain = decode_body(data)
    elif data and mime_type == 'text/html':
        html = decode_body(data)

    for part in payload.get('parts', []) or []:
        part_plain, part_html = extract_bodies(part)
        if plain is None:
            plain = part_plain
        if html is None:
            html = part_html
        if plain is not None and html is not None:
            break

    return plain, html


def parse_date(date_header: Optional[str], internal_date: Optional[str] = None) -> Optional[str]:
    """Normalise a Date header to ISO 8601, falling back to Gmail's internalDate (ms)"""
    if date_header:
        try:
            return date_parser.parse(date_header).isoformat()
        except (ValueError, OverflowError) as e:
            logger.debug(f"Unparseable Date header {date_header!r}: {e}")
    if internal_date:
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc).isoformat()
        except (TypeError, ValueError):
            return None
    return None


class GmailClient:
    """Gmail API client for email operations"""

    def __init__(self, service: Resource):
        self.service = service
        self.user_id = 'me'

    def list_messages(self, query: str = None, max_results: int = None, page_token: str = None) -> Dict:
        """List messages in the user's mailbox"""
        try:
            request = self.service.users().messages().list(
                userId=self.user_id,
                q=query,
                maxResults=max_results,
                pageToken=page_token
            )

            response = request.execute()
            return {
                'messages': response.get('messages', []),
                'nextPageToken': response.get('nextPageToken')
            }
        except HttpError as e:
            logger.error(f"Error listing messages: {e}")
            return {'messages': [], 'nextPageToken': None}

    def list_all_messages(self, query: str = None, max_total: int = None) -> List[Dict]:
        """List all messages, handling pagination"""
        messages = []
        page_token = None

        while True:
            remaining = max_total - len(messages) if max_total else None
            if remaining is not None and remaining <= 0:
                break

            response = self.list_messages(
                query=query,
                max_results=remaining,
                page_token=page_token
            )

            messages.extend(response['messages'])
            page_token = response.get('nextPageToken')

            logger.info(f"Fetched {len(messages)} messages so far...")

            if not page_token or (max_total and len(messages) >= max_total):
                break

        return messages

    def get_message(self, msg_id: str, message_format: str = 'full') -> Optional[Dict]:
        """Get a specific message by ID"""
        try:
            return self.service.users().messages().get(
                userId=self.user_id,
                id=msg_id,
                format=message_format
            ).execute()
        except HttpError as e:
            logger.error(f"Error getting message {msg_id}: {e}")
            return None

    def mark_as_read(self, msg_id: str) -> bool:
        """Mark a message as read"""
        logger.debug(f"Attempting to mark message {msg_id} as read")
        try:
            self.service.users().messages().modify(
                userId=self.user_id,
                id=msg_id,
                body={'removeLabelIds': ['UNREAD']}
            ).execute()
            return True
        except HttpError as e:
            logger.error(f"HTTP error marking message {msg_id} as read: {e.resp.status} - {e.content}")
            return False

    def trash_message(self, msg_id: str) -> bool:
        """Move a message to the trash"""
        logger.debug(f"Moving message {msg_id} to trash")
        try:
            self.service.users().messages().trash(userId=self.user_id, id=msg_id).execute()
            return True
        except HttpError as e:
            logger.error(f"HTTP error trashing message {msg_id}: {e.resp.status} - {e.content}")
            return False

    def get_label_id(self, label_name: str) -> Optional[str]:
        """Get the ID of a Gmail label by name"""
        try:
            results = self.service.users().labels().list(userId=self.user_id).execute()
        except HttpError as e:
            logger.error(f"Error getting label ID: {e}")
            return None

        for label in results.get('labels', []):
            if label['name'] == label_name:
                return label['id']

        logger.debug(f"Label {label_name} not found")
        return None

    def create_label(self, label_name: str) -> Optional[str]:
        """Create a Gmail label, returning its ID (existing labels are reused)"""
        existing_id = self.get_label_id(label_name)
        if existing_id:
            return existing_id

        label = {
            'name': label_name,
            'labelListVisibility': 'labelShow',
            'messageListVisibility': 'show'
        }
        try:
            result = self.service.users().labels().create(
                userId=self.user_id,
                body=label
            ).execute()
        except HttpError as e:
            logger.error(f"Error creating label {label_name}: {e}")
            return None

        logger.debug(f"Created label {label_name} with ID {result['id']}")
        return result['id']

    def add_label(self, msg_id: str, label_name: str) -> bool:
        """Apply a label to a message, creating the label when missing"""
        label_id = self.create_label(label_name)
        if not label_id:
            return False
        try:
            self.service.users().messages().modify(
                userId=self.user_id,
                id=msg_id,
                body={'addLabelIds': [label_id]}
            ).execute()
            return True
        except HttpError as e:
            logger.error(f"Failed to label message {msg_id} with {label_name}: {e}")
            return False

    def message_to_email(self, message: Dict, content_loaded: bool = True) -> EmailMessage:
        """Convert a Gmail message resource to an EmailMessage"""
        payload = message.get('payload', {})
        headers = {h['name'].lower(): h['value'] for h in payload.get('headers', [])}
        labels = message.get('labelIds', [])

        body, html_body = (None, None)
        if content_loaded:
            body, html_body = extract_bodies(payload)

        return EmailMessage(
            id=message['id'],
            thread_id=message.get('threadId'),
            subject=headers.get('subject', ''),
            from_address=headers.get('from', ''),
            to=headers.get('to', ''),
            date=parse_date(headers.get('date'), message.get('internalDate')),
            body=body,
            html_body=html_body,
            snippet=message.get('snippet'),
            is_read='UNREAD' not in labels,
            labels=labels,
            content_loaded=content_loaded,
        )
