from __future__ import annotations

import logging
from typing import List, Optional

from classification.focus_client import FocusServiceClient
from classification.focus_conversation import FocusCheckConversation
from extraction.conversation import TaskExtractionConversation
from extraction.service_client import ExtractionServiceClient
from signal2noise.models import StoredTask
from storage.settings_store import SettingsStore
from storage.task_store import TaskFeed, TaskStore
from voice.capture import CaptureArbiter, CaptureDevice
from voice.output import LoggingNotifier, Notifier, Speaker

logger = logging.getLogger(__name__)


class NovaAssistant:
    """Wires both conversations, the capture device and the live task feed for one signed-in user.

    The two conversations share a single CaptureArbiter, so only one of them
    can be listening at any time; `listening_owner` tells which.
    """

    def __init__(
        self,
        user_id: str,
        device: CaptureDevice,
        store: TaskStore,
        extraction_client: Optional[ExtractionServiceClient] = None,
        focus_client: Optional[FocusServiceClient] = None,
        notifier: Optional[Notifier] = None,
        speaker: Optional[Speaker] = None,
        settings_store: Optional[SettingsStore] = None,
    ):
        self.user_id = user_id
        self.store = store
        self.arbiter = CaptureArbiter(device)
        self.feed = TaskFeed()
        self.notifier = notifier or LoggingNotifier()
        self.profile = (settings_store or SettingsStore()).load(user_id)

        self.tasks = TaskExtractionConversation(
            user_id,
            client=extraction_client or ExtractionServiceClient(),
            store=store,
            arbiter=self.arbiter,
            notifier=self.notifier,
            speaker=speaker,
            settings=self.profile.settings,
        )
        self.focus = FocusCheckConversation(
            user_id,
            client=focus_client or FocusServiceClient(),
            feed=self.feed,
            arbiter=self.arbiter,
            notifier=self.notifier,
        )

    @property
    def listening_owner(self) -> Optional[str]:
        return self.arbiter.owner

    @property
    def task_list(self) -> List[StoredTask]:
        return self.feed.latest

    async def open(self) -> None:
        await self.feed.attach(self.store, self.user_id)
        logger.info(f"Assistant ready for {self.user_id} ({len(self.feed.latest)} tasks)")

    def close(self) -> None:
        self.tasks.close()
        self.focus.close()
        self.feed.detach()
