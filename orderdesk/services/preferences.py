"""
Language Preference

Remembers the customer's UI language in client storage.

Version: 1.0.0
"""

import logging
from typing import Optional

from orderdesk.core.config import Settings, get_settings
from orderdesk.core.exceptions import ValidationError
from orderdesk.services.storage.base import BaseKeyValueStorage

logger = logging.getLogger(__name__)


class LanguagePreferences:
    """Get and set the preferred language of one session."""

    def __init__(
        self,
        storage: BaseKeyValueStorage,
        key: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        self.storage = storage
        self.settings = settings or get_settings()
        self.key = key or self.settings.language_storage_key

    def get(self) -> str:
        """Stored language, or the default if unset or no longer supported."""
        language = self.storage.get(self.key)
        if language in self.settings.supported_languages_list:
            return language
        return self.settings.default_language

    def set(self, language: str) -> str:
        """
        Store a language code.

        Raises:
            ValidationError: Unsupported language
        """
        language = (language or "").strip().lower()
        if language not in self.settings.supported_languages_list:
            raise ValidationError(
                f"Unsupported language '{language}'. "
                f"Choose one of: {', '.join(self.settings.supported_languages_list)}",
                field="language",
            )
        self.storage.set(self.key, language)
        logger.debug(f"Language preference '{self.key}' set to {language}")
        return language
