"""
Host-side state touched by rule actions: sender scores, markers, summaries
and processed-email tracking
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


class SqlTriageStore:
    """Persistence for the side effects of rule actions"""

    def __init__(self, db: Session):
        self.db = db

    def get_sender_score(self, sender_email: str) -> Optional[float]:
        if not sender_email:
            return None
        record = self.db.get(models.SenderScore, sender_email.lower())
        return record.total_score if record else None

    def adjust_sender_score(self, sender_email: str, sender_name: Optional[str], points: float) -> float:
        """Add ``points`` (may be negative) to a sender's score and return the new total"""
        if not sender_email:
            raise ValueError('sender email is required to adjust a score')

        record = self.db.get(models.SenderScore, sender_email.lower())
        if record is None:
            record = models.SenderScore(sender_email=sender_email.lower(), total_score=0.0)
            self.db.add(record)
        if sender_name:
            record.sender_name = sender_name
        record.total_score = (record.total_score or 0.0) + points
        self.db.commit()
        logger.debug(f"Score for {sender_email} is now {record.total_score}")
        return record.total_score

    def add_marker(self, email_id: str, marker: str) -> bool:
        """Tag an email; returns False if it already carried the marker"""
        existing = (
            self.db.query(models.EmailMarker)
            .filter(models.EmailMarker.marker == marker, models.EmailMarker.email_id == email_id)
            .first()
        )
        if existing:
            return False
        self.db.add(models.EmailMarker(marker=marker, email_id=email_id))
        self.db.commit()
        return True

    def emails_with_marker(self, marker: str) -> List[str]:
        rows = self.db.query(models.EmailMarker).filter(models.EmailMarker.marker == marker).all()
        return [row.email_id for row in rows]

    def save_summary(self, email_id: str, subject: str, summary: str, saved_for_later: bool) -> None:
        record = self.db.get(models.EmailSummary, email_id)
        if record is None:
            record = models.EmailSummary(email_id=email_id)
            self.db.add(record)
        record.subject = subject
        record.summary = summary
        record.saved_for_later = saved_for_later
        self.db.commit()

    def get_summary(self, email_id: str) -> Optional[models.EmailSummary]:
        return self.db.get(models.EmailSummary, email_id)

    def is_processed(self, gmail_id: str) -> bool:
        """Check if an email already went through a rules pass"""
        return self.db.query(models.ProcessedEmail).filter(
            models.ProcessedEmail.gmail_id == gmail_id
        ).first() is not None

    def mark_processed(self, gmail_id: str, rules_fired: int) -> None:
        processed = self.db.query(models.ProcessedEmail).filter(
            models.ProcessedEmail.gmail_id == gmail_id
        ).first()
        if processed is None:
            processed = models.ProcessedEmail(gmail_id=gmail_id)
            self.db.add(processed)
        processed.rules_fired = rules_fired
        self.db.commit()
        logger.debug(f"Marked email {gmail_id} as processed ({rules_fired} rules fired)")
