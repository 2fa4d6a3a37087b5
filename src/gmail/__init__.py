"""
Gmail API integration package
"""
from .auth import get_gmail_service, get_user_email
from .client import GmailClient
from .host import GmailActionHost

__all__ = ['get_gmail_service', 'get_user_email', 'GmailClient', 'GmailActionHost']
