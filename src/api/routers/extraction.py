import asyncio
import json
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.dependencies import get_llm_client
from api.metrics import SCHEMA_VIOLATIONS_TOTAL, observe_request
from llm.llm_client import LLMClient, ModelOutputError
from llm.prompts import EXTRACTION_SYSTEM, build_extraction_prompt
from signal2noise.models import ExtractionResult, WireModel

router = APIRouter()
logger = logging.getLogger(__name__)

ENDPOINT = "/processTaskText"


class ProcessTaskIn(WireModel):
    user_id: Optional[str] = None
    text: Optional[str] = None
    context: Optional[dict] = None


def _error(status: int, started: float, **body) -> JSONResponse:
    observe_request(ENDPOINT, status, started)
    return JSONResponse(status_code=status, content=body)


@router.post(ENDPOINT)
async def process_task_text(
    payload: ProcessTaskIn,
    llm: LLMClient = Depends(get_llm_client),
):
    started = time.time()
    if not (payload.user_id or "").strip() or not (payload.text or "").strip():
        return _error(400, started, error="Missing userId or text")

    prior = (payload.context or {}).get("prior")
    prompt = build_extraction_prompt(payload.text, prior=prior)
    logger.info(f"Extracting task for user {payload.user_id} (follow-up: {prior is not None})")

    try:
        parsed = await asyncio.to_thread(llm.complete_json, system=EXTRACTION_SYSTEM, user=prompt)
    except ModelOutputError as e:
        logger.warning(f"Model returned non-JSON output: {e.raw[:200]!r}")
        return _error(502, started, error="Model returned non-JSON output", raw=e.raw)
    except Exception:
        logger.exception("Extraction failed")
        return _error(500, started, error="Internal error")

    try:
        result = ExtractionResult.model_validate(parsed)
    except ValidationError as e:
        SCHEMA_VIOLATIONS_TOTAL.labels(endpoint=ENDPOINT).inc()
        logger.warning(f"Model JSON did not match schema: {e.errors(include_url=False)}")
        return _error(
            502,
            started,
            error="Model JSON did not match schema",
            issues=json.loads(e.json(include_url=False)),
            raw=parsed,
        )

    observe_request(ENDPOINT, 200, started)
    return result.model_dump(by_alias=True)
