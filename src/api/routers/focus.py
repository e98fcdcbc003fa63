import asyncio
import json
import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError

from api.dependencies import get_llm_client
from api.metrics import FOCUS_VERDICTS_TOTAL, SCHEMA_VIOLATIONS_TOTAL, observe_request
from llm.llm_client import LLMClient, ModelOutputError
from llm.prompts import FOCUS_SYSTEM, build_focus_prompt
from signal2noise.models import FocusVerdict, WireModel

router = APIRouter()
logger = logging.getLogger(__name__)

ENDPOINT = "/signalOrNoise"


class SignalOrNoiseIn(WireModel):
    user_id: Optional[str] = None
    current_activity: Optional[str] = None
    important_tasks: List[str] = Field(default_factory=list)


def _error(status: int, started: float, **body) -> JSONResponse:
    observe_request(ENDPOINT, status, started)
    return JSONResponse(status_code=status, content=body)


@router.post(ENDPOINT)
async def signal_or_noise(
    payload: SignalOrNoiseIn,
    llm: LLMClient = Depends(get_llm_client),
):
    started = time.time()
    if not (payload.user_id or "").strip() or not (payload.current_activity or "").strip():
        return _error(400, started, error="Missing userId or currentActivity")

    prompt = build_focus_prompt(payload.current_activity, payload.important_tasks)
    try:
        parsed = await asyncio.to_thread(llm.complete_json, system=FOCUS_SYSTEM, user=prompt)
    except ModelOutputError as e:
        logger.warning(f"Model returned non-JSON output: {e.raw[:200]!r}")
        return _error(502, started, error="Model returned non-JSON output", raw=e.raw)
    except Exception:
        logger.exception("Focus classification failed")
        return _error(500, started, error="Internal error")

    try:
        verdict = FocusVerdict.model_validate(parsed)
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

    FOCUS_VERDICTS_TOTAL.labels(verdict=verdict.verdict).inc()
    observe_request(ENDPOINT, 200, started)
    return verdict.model_dump(by_alias=True)
