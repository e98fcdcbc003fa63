from __future__ import annotations

import logging
import os
from typing import Optional

import httpx
from pydantic import ValidationError

from signal2noise.errors import MissingInput, SchemaViolation
from signal2noise.http import post_json
from signal2noise.models import FRESH, ConversationContext, ExtractionResult

logger = logging.getLogger(__name__)

PROCESS_TASK_URL = os.getenv("PROCESS_TASK_URL", "").strip()


class ExtractionServiceClient:
    """Stateless client for the task extraction endpoint.

    Safe to call again with the same input; retry policy is up to the caller.
    """

    def __init__(self, url: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.url = (url or PROCESS_TASK_URL).strip()
        if not self.url:
            raise RuntimeError("PROCESS_TASK_URL is missing")
        self._http = http_client

    @staticmethod
    def build_payload(user_id: str, text: str, context: ConversationContext = FRESH) -> dict:
        if not user_id or not user_id.strip():
            raise MissingInput("userId is required")
        if not text or not text.strip():
            raise MissingInput("text is required")
        return {"userId": user_id, "text": text.strip(), "context": context.to_wire()}

    async def extract(
        self,
        user_id: str,
        text: str,
        context: ConversationContext = FRESH,
    ) -> ExtractionResult:
        payload = self.build_payload(user_id, text, context)
        data = await post_json(self.url, payload, client=self._http)

        try:
            return ExtractionResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Extraction response failed schema validation: {e.errors()} raw={data!r}")
            raise SchemaViolation("extraction response did not match schema", payload=data) from e
