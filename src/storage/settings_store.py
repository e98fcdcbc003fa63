from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from signal2noise.models import UserProfile

logger = logging.getLogger(__name__)

SETTINGS_PATH = os.getenv("SETTINGS_PATH", "data/settings.json")


class SettingsStore:
    """User profiles (voice output / notification toggles) kept in one JSON file keyed by user id."""

    def __init__(self, path: str = SETTINGS_PATH):
        self.path = Path(path)

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}

    def load(self, user_id: str) -> UserProfile:
        try:
            raw = self._read_all().get(user_id)
            if raw is None:
                return UserProfile()
            return UserProfile.model_validate(raw)
        except Exception as e:
            logger.warning(f"Unreadable settings for {user_id}, using defaults: {e}")
            return UserProfile()

    def save(self, user_id: str, profile: UserProfile) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            data = self._read_all()
        except ValueError:
            data = {}
        data[user_id] = profile.model_dump(mode="json", by_alias=True)
        self.path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
