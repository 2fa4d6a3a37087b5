"""
Construction of per-email evaluation contexts
"""
from email.utils import parseaddr
from typing import Any, Dict, List, Optional

from .links import extract_links
from .schema import EmailMessage, EvaluationContext, ExtractedLink, SenderInfo


def parse_sender(from_header: str) -> SenderInfo:
    """Split a From header such as 'Alice <alice@example.com>' into name and address"""
    name, address = parseaddr(from_header or '')
    if '@' not in address:
        # Display name only, e.g. "Mailer Daemon"
        return SenderInfo(email='', name=name or (from_header or '').strip())
    return SenderInfo(email=address, name=name)


def build_context(
    email: EmailMessage,
    sender_score: Optional[float] = None,
    extracted_links: Optional[List[ExtractedLink]] = None,
    variables: Optional[Dict[str, Any]] = None,
) -> EvaluationContext:
    """Derive sender details and links for ``email``"""
    if extracted_links is None:
        extracted_links = extract_links(email.body, email.html_body)

    return EvaluationContext(
        email=email,
        sender_info=parse_sender(email.from_address),
        extracted_links=extracted_links,
        sender_score=sender_score,
        variables=variables or {},
    )
