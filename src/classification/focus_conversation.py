from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from classification.focus_client import FocusServiceClient
from extraction.conversation import EXTRACTION_TIMEOUT_S, Abandoned
from signal2noise.errors import TURN_ERRORS, CaptureError, InvalidTransition, TransportError
from signal2noise.models import IMPORTANT_PRIORITIES, StoredTask, TaskRecord, Verdict
from storage.task_store import TaskFeed
from voice.capture import CAPTURE_LOCALE, CaptureArbiter, UtteranceCapture
from voice.output import LoggingNotifier, Notifier

logger = logging.getLogger(__name__)

FOCUS_TITLE = "Focus Check"
VERDICT_MESSAGES = {
    "Signal": "That's Signal. You're working on what matters, keep going.",
    "Noise": "That's Noise. Time to get back to your top tasks.",
}


def important_task_names(tasks: Iterable[TaskRecord]) -> List[str]:
    """Names of Top/Medium tasks, in the order given, skipping unnamed ones."""
    return [
        t.task_name
        for t in tasks
        if t.priority in IMPORTANT_PRIORITIES and t.task_name.strip()
    ]


@dataclass(frozen=True)
class FocusResult:
    verdict: Verdict
    message: str
    important_tasks: List[str]


FocusOutcome = Union[FocusResult, Abandoned]


class FocusCheckConversation:
    """Single-shot Signal/Noise check of what the user says they are doing.

    Nothing carries over between checks; the important-tasks list is read
    from the feed's latest snapshot each time.
    """

    OWNER = "focus-check"

    def __init__(
        self,
        user_id: str,
        client: FocusServiceClient,
        feed: TaskFeed,
        arbiter: CaptureArbiter,
        notifier: Optional[Notifier] = None,
        timeout_s: float = EXTRACTION_TIMEOUT_S,
        locale: str = CAPTURE_LOCALE,
    ):
        self.user_id = user_id
        self.client = client
        self.feed = feed
        self.notifier = notifier or LoggingNotifier()
        self.timeout_s = timeout_s
        self.capture = UtteranceCapture(
            arbiter,
            owner=self.OWNER,
            locale=locale,
            on_capture_error=self._on_capture_error,
        )
        self.processing = False
        self._capturing = False
        self._starting = False
        self._start_error: Optional[CaptureError] = None

    @property
    def listening(self) -> bool:
        return self.capture.listening

    def begin(self) -> None:
        if self.listening or self.processing:
            raise InvalidTransition("focus check already in progress")
        self._start_error = None
        self._starting = True
        try:
            self.capture.start()
        except CaptureError as e:
            self._fail(e)
            return
        finally:
            self._starting = False

        if self._start_error is not None or not self.capture.listening:
            self._fail(self._start_error or CaptureError("device stopped before listening began"))
            return
        self._capturing = True

    async def finish(self) -> FocusOutcome:
        if not self.listening:
            raise InvalidTransition("focus check is not listening")
        self._capturing = False
        try:
            transcript = self.capture.stop()
        except CaptureError as e:
            return self._fail(e)

        important = important_task_names(self._snapshot())
        self.processing = True
        try:
            verdict = await asyncio.wait_for(
                self.client.classify(self.user_id, transcript, important),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            return self._fail(TransportError(f"focus check timed out after {self.timeout_s}s"))
        except TURN_ERRORS as e:
            return self._fail(e)
        finally:
            self.processing = False

        message = VERDICT_MESSAGES[verdict.verdict]
        logger.info(f"{self.user_id}: focus verdict {verdict.verdict} against {len(important)} important tasks")
        self.notifier.notify(FOCUS_TITLE, message)
        return FocusResult(verdict=verdict.verdict, message=message, important_tasks=important)

    def close(self) -> None:
        self._capturing = False
        self.capture.close()

    def _snapshot(self) -> List[StoredTask]:
        return list(self.feed.latest)

    def _fail(self, error: Exception) -> Abandoned:
        logger.warning(f"{self.user_id}: focus check failed: {type(error).__name__}: {error}")
        self._capturing = False
        self.capture.close()
        self.notifier.notify("Error", "Unable to run Focus Check.")
        return Abandoned(error=error)

    def _on_capture_error(self, error: CaptureError) -> None:
        if self._starting:
            self._start_error = error
        elif self._capturing:
            self._fail(error)
        else:
            logger.debug(f"{self.user_id}: ignoring capture error outside a focus check: {error}")
