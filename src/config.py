"""
Environment-driven settings for the email triage command line
"""
import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    database_url: str = 'sqlite:///email_triage.db'
    rules_file: str = 'config/rules.json'
    script_timeout_ms: int = Field(default=1000, gt=0)
    script_max_memory_mb: int = Field(default=64, gt=0)
    summary_mode: Literal['save_for_later', 'generate'] = 'save_for_later'
    # When false, open_url actions are logged instead of opening a browser
    open_urls: bool = False
    notifications_enabled: bool = True
    summary_points: float = 1.0
    gmail_token_file: str = '.secrets/token.json'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Read settings from upper-cased environment variables (DATABASE_URL, SUMMARY_MODE, ...)"""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = name.upper()
            if environ.get(key) not in (None, ''):
                values[name] = environ[key]
        return cls(**values)

    @property
    def script_max_memory(self) -> int:
        return self.script_max_memory_mb * 1024 * 1024
