"""
Task extraction conversation.

    Idle -> Capturing -> Extracting -> Committing -> Idle
                 ^            |
                 |            v
                 +------- FollowUp

Any turn error lands in Aborted, which notifies the user and drops straight
back to Idle. Nothing is written to the task store until an extraction comes
back without a follow-up question.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from extraction.service_client import ExtractionServiceClient
from signal2noise.errors import (
    TURN_ERRORS,
    CaptureError,
    InvalidTransition,
    SchemaViolation,
    TransportError,
)
from signal2noise.models import (
    FRESH,
    ConversationContext,
    ExtractionResult,
    Resuming,
    StoredTask,
    UserSettings,
    finalize,
)
from storage.task_store import TaskStore
from voice.capture import CAPTURE_LOCALE, CaptureArbiter, UtteranceCapture
from voice.output import LoggingNotifier, Notifier, Speaker

logger = logging.getLogger(__name__)

EXTRACTION_TIMEOUT_S = float(os.getenv("EXTRACTION_TIMEOUT_S", "30"))

ERROR_TITLE = "Error"
ERROR_MESSAGE = "Unable to process your request."


class ConversationState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    EXTRACTING = "extracting"
    FOLLOW_UP = "follow_up"
    COMMITTING = "committing"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Committed:
    task: StoredTask


@dataclass(frozen=True)
class FollowUpRequested:
    question: str
    context: Resuming


@dataclass(frozen=True)
class Abandoned:
    error: Exception


TurnOutcome = Union[Committed, FollowUpRequested, Abandoned]


@dataclass
class ConversationSession:
    transcript: str = ""
    processing: bool = False
    context: ConversationContext = field(default=FRESH)


class TaskExtractionConversation:
    OWNER = "task-extraction"

    def __init__(
        self,
        user_id: str,
        client: ExtractionServiceClient,
        store: TaskStore,
        arbiter: CaptureArbiter,
        notifier: Optional[Notifier] = None,
        speaker: Optional[Speaker] = None,
        settings: Optional[UserSettings] = None,
        timeout_s: float = EXTRACTION_TIMEOUT_S,
        locale: str = CAPTURE_LOCALE,
    ):
        self.user_id = user_id
        self.client = client
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.speaker = speaker
        self.settings = settings or UserSettings()
        self.timeout_s = timeout_s
        self.capture = UtteranceCapture(
            arbiter,
            owner=self.OWNER,
            locale=locale,
            on_capture_error=self._on_capture_error,
        )

        self.state = ConversationState.IDLE
        self.session = ConversationSession()
        self.pending_question: Optional[str] = None
        self._starting = False
        self._start_error: Optional[CaptureError] = None

    @property
    def listening(self) -> bool:
        return self.capture.listening

    @property
    def processing(self) -> bool:
        return self.session.processing

    @property
    def partial(self) -> str:
        return self.capture.partial

    def begin(self) -> None:
        """Start listening for a new utterance, or for the answer to a follow-up question."""
        if self.state not in (ConversationState.IDLE, ConversationState.FOLLOW_UP):
            raise InvalidTransition(f"cannot start listening while {self.state.value}")

        if self.state == ConversationState.IDLE:
            self.session = ConversationSession()
        else:
            # keep the carried context, only the transcript is per-utterance
            self.session.transcript = ""

        # a device may report failure (e.g. permission denied) from inside start()
        self._start_error = None
        self._starting = True
        try:
            self.capture.start()
        except CaptureError as e:
            self._abort(e)
            return
        finally:
            self._starting = False

        if self._start_error is not None or not self.capture.listening:
            self._abort(self._start_error or CaptureError("device stopped before listening began"))
            return

        self.state = ConversationState.CAPTURING
        logger.debug(f"{self.user_id}: capturing ({type(self.session.context).__name__} context)")

    async def finish(self) -> TurnOutcome:
        """Stop listening and run the extraction for what was said."""
        if self.state != ConversationState.CAPTURING:
            raise InvalidTransition(f"cannot finish a turn while {self.state.value}")

        try:
            transcript = self.capture.stop()
        except CaptureError as e:
            return self._abort(e)

        session = self.session
        session.transcript = transcript
        self.state = ConversationState.EXTRACTING
        session.processing = True
        try:
            result = await asyncio.wait_for(
                self.client.extract(self.user_id, transcript, session.context),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            error = TransportError(f"extraction timed out after {self.timeout_s}s")
            if self._is_stale(session):
                return self._discard(error)
            return self._abort(error)
        except TURN_ERRORS as e:
            if self._is_stale(session):
                return self._discard(e)
            return self._abort(e)
        finally:
            session.processing = False

        # close() while the request was in flight: the result belongs to a dead session
        if self._is_stale(session):
            return self._discard(InvalidTransition("conversation was closed while extracting"))

        if not result.is_complete:
            return self._ask_follow_up(result)
        return await self._commit(result)

    def abandon(self) -> None:
        """User walked away from the conversation (e.g. dismissed the follow-up question)."""
        if self.state in (ConversationState.EXTRACTING, ConversationState.COMMITTING):
            raise InvalidTransition(f"cannot abandon while {self.state.value}")
        self.capture.close()
        self._reset()

    def close(self) -> None:
        """Screen teardown: release the device and forget the session."""
        self.capture.close()
        self._reset()

    def _reset(self) -> None:
        self.session = ConversationSession()
        self.pending_question = None
        self.state = ConversationState.IDLE

    def _ask_follow_up(self, result: ExtractionResult) -> FollowUpRequested:
        question = result.follow_up_question
        context = Resuming(prior=result)
        self.session.context = context
        self.session.transcript = ""
        self.pending_question = question
        self.state = ConversationState.FOLLOW_UP
        logger.info(f"{self.user_id}: follow-up requested: {question!r}")

        self.notifier.notify("Nova asks", question)
        if self.speaker is not None and self.settings.voice_output == "enabled":
            try:
                self.speaker.speak(question)
            except Exception as e:
                logger.warning(f"Could not speak follow-up question: {e}")
        return FollowUpRequested(question=question, context=context)

    async def _commit(self, result: ExtractionResult) -> TurnOutcome:
        session = self.session
        self.state = ConversationState.COMMITTING
        record = finalize(result)
        try:
            task = await self.store.create(self.user_id, record)
        except Exception as e:
            logger.exception(f"{self.user_id}: failed to store task")
            if self._is_stale(session):
                return self._discard(e)
            return self._abort(e)

        if self._is_stale(session):
            # the write landed, but a newer turn owns the conversation now
            logger.info(f"{self.user_id}: stored task {task.id} after the conversation was closed")
            return Committed(task=task)

        self._reset()
        if self.settings.notifications == "enabled":
            self.notifier.notify("Task added", task.task_name or "New task")
        return Committed(task=task)

    def _abort(self, error: Exception) -> Abandoned:
        previous = self.state
        self.state = ConversationState.ABORTED
        if isinstance(error, SchemaViolation):
            logger.warning(f"{self.user_id}: extraction backend schema violation ({previous.value}): {error}")
        else:
            logger.warning(f"{self.user_id}: turn aborted in {previous.value}: {type(error).__name__}: {error}")

        self.capture.close()
        self._reset()
        self.notifier.notify(ERROR_TITLE, ERROR_MESSAGE)
        return Abandoned(error=error)

    def _is_stale(self, session: ConversationSession) -> bool:
        return self.session is not session

    def _discard(self, error: Exception) -> Abandoned:
        logger.info(f"{self.user_id}: dropping result of a closed turn: {type(error).__name__}: {error}")
        return Abandoned(error=error)

    def _on_capture_error(self, error: CaptureError) -> None:
        if self._starting:
            self._start_error = error
        elif self.state == ConversationState.CAPTURING:
            self._abort(error)
        else:
            logger.debug(f"{self.user_id}: ignoring capture error while {self.state.value}: {error}")
