from __future__ import annotations
from abc import ABC, abstractmethod

class LLMProvider(ABC):
    @abstractmethod
    def generate(self, *, system: str, user: str) -> str:
        """
        Return the raw model output as TEXT; LLMClient pulls the JSON out of it.
        """
        raise NotImplementedError
