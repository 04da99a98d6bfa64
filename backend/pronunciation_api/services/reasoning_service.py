import logging
from typing import Optional, Protocol

from openai import OpenAI, OpenAIError

from ..core.config import settings
from ..core.exceptions import ConfigurationError, ReasoningBackendError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a Korean language pronunciation expert. You answer only with a JSON object."


class Reasoner(Protocol):
    def invoke(self, prompt: str) -> str:
        """Sends one prompt and returns the raw text of the reply."""
        ...


class OpenAIReasoner:
    """Chat-completions call with a bounded timeout; the client retries with backoff."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = settings.REASONING_MODEL_NAME,
        temperature: float = settings.REASONING_TEMPERATURE,
        timeout: float = settings.REASONING_TIMEOUT_SECONDS,
        max_retries: int = settings.REASONING_MAX_RETRIES,
    ):
        api_key = api_key or settings.OPENAI_API_KEY
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
        self.model = model
        self.temperature = temperature
        self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)

    def invoke(self, prompt: str) -> str:
        logger.info(f"Sending prompt to {self.model} for analysis")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except OpenAIError as e:
            raise ReasoningBackendError(f"Reasoning backend call failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        return content or ""
