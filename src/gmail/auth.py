"""
Gmail API authentication module
"""
import logging
import os
from typing import Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

# If modifying these scopes, delete the token file.
SCOPES = [
    'https://www.googleapis.com/auth/gmail.modify',  # Read, label and trash messages
    'https://www.googleapis.com/auth/gmail.labels',  # Create marker labels
]


def get_client_config():
    """Get OAuth client configuration from environment variables"""
    return {
        "installed": {
            "client_id": os.getenv("GMAIL_CLIENT_ID"),
            "project_id": os.getenv("GMAIL_PROJECT_ID"),
            "auth_uri": os.getenv("GMAIL_AUTH_URI", "https://accounts.google.com/o/oauth2/auth"),
            "token_uri": os.getenv("GMAIL_TOKEN_URI", "https://oauth2.googleapis.com/token"),
            "auth_provider_x509_cert_url": os.getenv("GMAIL_AUTH_PROVIDER_CERT_URL"),
            "client_secret": os.getenv("GMAIL_CLIENT_SECRET"),
            "redirect_uris": ["http://localhost"]
        }
    }


def get_gmail_service(token_file: Optional[str] = None):
    """Get an authorized Gmail API service instance."""
    creds = None
    token_file = token_file or os.getenv('GMAIL_TOKEN_FILE', '.secrets/token.json')

    token_dir = os.path.dirname(token_file)
    if token_dir:
        os.makedirs(token_dir, exist_ok=True)

    if os.path.exists(token_file):
        creds = Credentials.from_authorized_user_file(token_file, SCOPES)

    # If there are no (valid) credentials available, let the user log in.
    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            flow = InstalledAppFlow.from_client_config(get_client_config(), SCOPES)
            creds = flow.run_local_server(port=0)

        with open(token_file, 'w') as token:
            token.write(creds.to_json())

    return build('gmail', 'v1', credentials=creds)


def get_user_email(service) -> Optional[str]:
    """Get the email address of the authenticated user"""
    try:
        profile = service.users().getProfile(userId='me').execute()
        return profile.get('emailAddress')
    except Exception as e:
        logger.error(f"Error getting user email: {e}")
        return None
