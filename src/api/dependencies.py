from typing import Optional

from llm.llm_client import LLMClient

_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Provider is chosen from LLM_PROVIDER on first use."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
