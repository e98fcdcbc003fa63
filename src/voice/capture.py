"""
Utterance capture on top of a speech-recognition device.

The device is shared by every conversation on the screen, so access goes
through a CaptureArbiter: a conversation must hold the lease before it can
start or stop listening, and asking for a lease that someone else holds
fails with CaptureBusy instead of silently taking over the device.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from signal2noise.errors import CaptureBusy, CaptureError, InvalidTransition

logger = logging.getLogger(__name__)

CAPTURE_LOCALE = os.getenv("CAPTURE_LOCALE", "en-US").strip() or "en-US"


class CaptureListener(ABC):
    """Receives recognition events for one start/stop cycle."""

    @abstractmethod
    def on_partial(self, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_final(self, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_error(self, error: Exception) -> None:
        raise NotImplementedError


class CaptureDevice(ABC):
    @abstractmethod
    def start(self, locale: str, listener: CaptureListener) -> None:
        """
        Begin recognition. Events for this cycle go to `listener` only.
        """
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """
        End recognition. A device may deliver its final result from inside this call.
        """
        raise NotImplementedError


class CaptureLease:
    """Exclusive right to drive the capture device."""

    def __init__(self, arbiter: "CaptureArbiter", owner: str):
        self._arbiter = arbiter
        self.owner = owner
        self.active = True

    def _check(self) -> None:
        if not self.active:
            raise CaptureBusy(f"lease for {self.owner!r} was already released")

    def start(self, locale: str, listener: CaptureListener) -> None:
        self._check()
        self._arbiter.device.start(locale, listener)

    def stop(self) -> None:
        self._check()
        self._arbiter.device.stop()

    def release(self) -> None:
        if self.active:
            self._arbiter._release(self)


class CaptureArbiter:
    def __init__(self, device: CaptureDevice):
        self.device = device
        self._lease: Optional[CaptureLease] = None
        self._lock = threading.Lock()

    @property
    def owner(self) -> Optional[str]:
        """Name of the conversation currently holding the device, if any."""
        lease = self._lease
        return lease.owner if lease is not None else None

    def acquire(self, owner: str) -> CaptureLease:
        with self._lock:
            if self._lease is not None:
                if self._lease.owner == owner:
                    return self._lease
                raise CaptureBusy(
                    f"capture device is held by {self._lease.owner!r}, {owner!r} cannot start listening"
                )
            self._lease = CaptureLease(self, owner)
            logger.debug(f"Capture lease acquired by {owner}")
            return self._lease

    def _release(self, lease: CaptureLease) -> None:
        with self._lock:
            lease.active = False
            if self._lease is lease:
                self._lease = None
                logger.debug(f"Capture lease released by {lease.owner}")


class UtteranceCapture(CaptureListener):
    """One conversation's view of the microphone.

    Every start()/stop() cycle yields at most one transcript. Partial results
    are exposed through `partial` (and the optional `on_partial_text` hook)
    while listening; device errors put capture back to idle and are reported
    through `on_capture_error`.
    """

    def __init__(
        self,
        arbiter: CaptureArbiter,
        owner: str,
        locale: str = CAPTURE_LOCALE,
        on_capture_error: Optional[Callable[[CaptureError], None]] = None,
        on_partial_text: Optional[Callable[[str], None]] = None,
    ):
        self.arbiter = arbiter
        self.owner = owner
        self.locale = locale
        self.on_capture_error = on_capture_error
        self.on_partial_text = on_partial_text

        self.listening = False
        self.partial = ""
        self.final: Optional[str] = None
        self._stopping = False
        self._unconsumed = False
        self._lease: Optional[CaptureLease] = None

    def _reset(self) -> None:
        self.partial = ""
        self.final = None
        self._unconsumed = False

    def _drop_lease(self) -> None:
        if self._lease is not None:
            self._lease.release()
            self._lease = None

    def start(self) -> None:
        if self.listening or self._unconsumed:
            logger.warning(
                f"{self.owner}: start() called before the previous transcript was consumed, discarding it"
            )
            if self.listening and self._lease is not None:
                self._stopping = True
                try:
                    self._lease.stop()
                except Exception as e:
                    logger.warning(f"{self.owner}: failed to stop device before restart: {e}")
                finally:
                    self._stopping = False
            self.listening = False

        self._reset()
        self._lease = self.arbiter.acquire(self.owner)
        self.listening = True
        try:
            self._lease.start(self.locale, self)
        except Exception as e:
            self.listening = False
            self._drop_lease()
            raise CaptureError(f"failed to start listening: {e}") from e

    def stop(self) -> str:
        """Stop listening and hand back the transcript for this cycle."""
        if not self.listening:
            raise InvalidTransition(f"{self.owner}: stop() called while not listening")

        self._stopping = True
        try:
            self._lease.stop()
        except Exception as e:
            raise CaptureError(f"failed to stop listening: {e}") from e
        finally:
            self._stopping = False
            self.listening = False
            self._drop_lease()

        transcript = self.final if self.final is not None else self.partial
        self._reset()
        return transcript.strip()

    def close(self) -> None:
        if self.listening and self._lease is not None:
            self._stopping = True
            try:
                self._lease.stop()
            except Exception as e:
                logger.warning(f"{self.owner}: failed to stop device on close: {e}")
            finally:
                self._stopping = False
        self.listening = False
        self._drop_lease()
        self._reset()

    # CaptureListener

    def on_partial(self, text: str) -> None:
        if not self.listening or self.final is not None:
            return
        self.partial = text or ""
        if self.on_partial_text is not None:
            self.on_partial_text(self.partial)

    def on_final(self, text: str) -> None:
        if not (self.listening or self._stopping):
            logger.debug(f"{self.owner}: dropping final result outside a capture cycle")
            return
        if self.final is not None:
            logger.debug(f"{self.owner}: ignoring second final result")
            return
        self.final = text or ""
        self._unconsumed = True

    def on_error(self, error: Exception) -> None:
        logger.warning(f"{self.owner}: recognition error: {error}")
        self.listening = False
        self._drop_lease()
        self._reset()
        err = error if isinstance(error, CaptureError) else CaptureError(str(error))
        if self.on_capture_error is not None:
            self.on_capture_error(err)
