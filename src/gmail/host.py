"""
Action host performing rule side effects against Gmail and the local store
"""
import logging
import webbrowser
from typing import Callable, Optional

from src.config import Settings
from src.database.store import SqlTriageStore
from src.rules.errors import HostActionError
from src.rules.schema import EmailMessage, SenderInfo

from .client import GmailClient

logger = logging.getLogger(__name__)

SAVED_FOR_LATER = 'Email saved for later review'


class GmailActionHost:
    """Carries out host actions requested by rules for one mailbox"""

    def __init__(
        self,
        client: GmailClient,
        store: SqlTriageStore,
        settings: Settings,
        summarizer: Optional[Callable[[EmailMessage], str]] = None,
    ):
        self.client = client
        self.store = store
        self.settings = settings
        self.summarizer = summarizer

    def open_url(self, url: str, target: str) -> bool:
        if not self.settings.open_urls:
            logger.info(f"Would open {url} ({target}); browser opening is disabled")
            return True
        return webbrowser.open(url, new=2 if target == '_blank' else 0)

    def adjust_score(self, sender_email: str, sender_name: str, points: float, reason: Optional[str]) -> bool:
        if not sender_email:
            raise HostActionError('Sender has no email address')
        total = self.store.adjust_sender_score(sender_email, sender_name, points)
        logger.info(f"Score for {sender_email} changed by {points} ({reason or 'no reason'}), now {total}")
        return True

    def mark_email(self, email_id: str, marker: str) -> bool:
        if not self.store.add_marker(email_id, marker):
            logger.debug(f"Email {email_id} already marked {marker!r}")
        return self.client.add_label(email_id, marker)

    def notify(self, title: str, body: str) -> bool:
        if not self.settings.notifications_enabled:
            return False
        logger.warning(f"[Notification] {title}: {body}")
        return True

    def delete_email(self, email_id: str) -> bool:
        return self.client.trash_message(email_id)

    def mark_as_read(self, email_id: str) -> bool:
        return self.client.mark_as_read(email_id)

    def request_summary(self, email: EmailMessage, sender_info: SenderInfo) -> dict:
        """Store a summary (or a saved-for-later placeholder) and credit the sender"""
        if self.settings.summary_mode == 'generate':
            if self.summarizer is None:
                raise HostActionError('No summarizer configured')
            summary = self.summarizer(email)
            saved_for_later = False
        else:
            summary = SAVED_FOR_LATER
            saved_for_later = True

        self.store.save_summary(email.id, email.subject, summary, saved_for_later)
        if sender_info.email and self.settings.summary_points:
            self.store.adjust_sender_score(sender_info.email, sender_info.name, self.settings.summary_points)

        return {'emailId': email.id, 'summary': summary, 'savedForLater': saved_for_later}
