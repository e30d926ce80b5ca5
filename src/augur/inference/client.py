"""
External Inference Client

The engine talks to the inference service through the InferenceProvider
protocol: one async call taking a prompt and returning the raw answer
text. HttpInferenceClient is the HTTP implementation; tests and callers
may supply any object with the same shape.

No retry is attempted; the engine bounds the call with its own timeout
and degrades to the statistical path on any failure.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from ..config import InferenceConfig
from ..exceptions import ExternalTimeoutError, InferenceError
from ..logger import get_inference_logger


logger = get_inference_logger()


@runtime_checkable
class InferenceProvider(Protocol):
    """Anything that can answer a prompt asynchronously."""
    
    async def complete(self, prompt: str) -> str:
        ...


def extract_text(payload: Any) -> Optional[str]:
    """
    Pull the answer text out of common response envelopes.
    
    Accepts {"text": ...}, {"content": ...}, {"output": ...},
    {"response": ...} and OpenAI-style {"choices": [{"message": {"content": ...}}]}.
    """
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return None
    
    for key in ("text", "content", "output", "response"):
        value = payload.get(key)
        if isinstance(value, str):
            return value
    
    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0]
        if isinstance(first, dict):
            message = first.get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]
            if isinstance(first.get("text"), str):
                return first["text"]
    return None


class HttpInferenceClient:
    """Posts prompts as JSON to the configured inference endpoint."""
    
    def __init__(self, config: InferenceConfig):
        if not config.endpoint:
            raise InferenceError("Inference endpoint is not configured")
        self.config = config
        self._headers = {"Content-Type": "application/json"}
        if config.api_key:
            self._headers["Authorization"] = f"Bearer {config.api_key}"
    
    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.config.model,
            "prompt": prompt,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
    
    async def complete(self, prompt: str) -> str:
        """
        Send the prompt and return the answer text.
        
        Raises:
            ExternalTimeoutError: the HTTP request timed out
            InferenceError: transport error or non-2xx status
        """
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self.config.endpoint,
                    headers=self._headers,
                    json=self._payload(prompt),
                    timeout=self.config.timeout_seconds,
                )
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise ExternalTimeoutError(f"Inference request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise InferenceError(f"Inference service returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise InferenceError(f"Inference request failed: {e}") from e
        
        try:
            text = extract_text(resp.json())
        except ValueError:
            text = None
        if text is None:
            text = resp.text
        
        logger.debug(f"Inference answer received ({len(text)} chars)")
        return text
