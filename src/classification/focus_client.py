from __future__ import annotations

import logging
import os
from typing import List, Optional

import httpx
from pydantic import ValidationError

from signal2noise.errors import MissingInput, SchemaViolation
from signal2noise.http import post_json
from signal2noise.models import FocusVerdict

logger = logging.getLogger(__name__)

SIGNAL_OR_NOISE_URL = os.getenv("SIGNAL_OR_NOISE_URL", "").strip()


class FocusServiceClient:
    def __init__(self, url: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.url = (url or SIGNAL_OR_NOISE_URL).strip()
        if not self.url:
            raise RuntimeError("SIGNAL_OR_NOISE_URL is missing")
        self._http = http_client

    async def classify(self, user_id: str, current_activity: str, important_tasks: List[str]) -> FocusVerdict:
        if not user_id or not user_id.strip():
            raise MissingInput("userId is required")
        if not current_activity or not current_activity.strip():
            raise MissingInput("currentActivity is required")

        payload = {
            "userId": user_id,
            "currentActivity": current_activity.strip(),
            "importantTasks": list(important_tasks),
        }
        data = await post_json(self.url, payload, client=self._http)

        try:
            return FocusVerdict.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Focus response failed schema validation: {e.errors()} raw={data!r}")
            raise SchemaViolation("focus response did not match schema", payload=data) from e
