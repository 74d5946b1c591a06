import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.genai import types

from clinic_ingest.core.exceptions import APIClientError, APITimeoutError
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)

OPENROUTER_CHAT_URL = "https://openrouter.ai/api/v1/chat/completions"
JSON_MIME_TYPE = "application/json"


@dataclass
class GenerationOptions:
    """Provider-neutral view of a ``generation_config`` dict."""

    temperature: float = 0.0
    max_output_tokens: Optional[int] = None
    json_output: bool = False

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "GenerationOptions":
        config = config or {}
        return cls(
            temperature=config.get("temperature", 0.0),
            max_output_tokens=config.get("max_output_tokens"),
            json_output=config.get("response_mime_type") == JSON_MIME_TYPE,
        )


def is_retryable_status(status_code: int) -> bool:
    """Server errors and rate limiting are worth another attempt."""
    return status_code == 429 or status_code >= 500


class BaseLLMClient:
    """JSON-over-HTTP caller with exponential backoff.

    A 4xx other than 429 fails immediately. Anything else is retried until
    ``max_retries`` attempts have been made.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: float = 2,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = LOGGER

    def _headers(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": JSON_MIME_TYPE,
        }
        headers.update(extra or {})
        return headers

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise APIClientError(
                f"LLM API returned a non-JSON body: {response.text[:200]}", e
            ) from e
        if not isinstance(body, dict):
            raise APIClientError(f"LLM API returned {type(body).__name__} instead of an object")
        return body

    async def call_api(
        self,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST ``payload`` and return the decoded JSON body.

        Raises:
            APIClientError: On a final HTTP or transport failure
            APITimeoutError: When every attempt timed out
        """
        request_headers = self._headers(headers)
        last_error: Optional[Exception] = None

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    response = await client.post(self.base_url, headers=request_headers, json=payload)
                    response.raise_for_status()
                    return self._decode(response)
                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    body = e.response.text[:500]
                    self.logger.warning(
                        f"LLM API returned {status_code} (attempt {attempt}/{self.max_retries})",
                        extra={"url": self.base_url, "error_body": body},
                    )
                    if not is_retryable_status(status_code):
                        raise APIClientError(f"LLM API rejected the request ({status_code}): {body}", e) from e
                    last_error = e
                except httpx.TimeoutException as e:
                    self.logger.warning(f"LLM API timed out (attempt {attempt}/{self.max_retries})")
                    last_error = e
                except httpx.HTTPError as e:
                    self.logger.warning(
                        f"LLM API transport error (attempt {attempt}/{self.max_retries}): {e}",
                        extra={"url": self.base_url},
                    )
                    last_error = e

                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay * 2 ** (attempt - 1))

        if isinstance(last_error, httpx.TimeoutException):
            raise APITimeoutError(f"LLM API timed out {self.max_retries} times", last_error) from last_error
        raise APIClientError(
            f"LLM API call failed after {self.max_retries} attempts: {last_error}", last_error
        ) from last_error


class GeminiClient:
    """Google Gemini through the google-genai async API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: int = 60,
        max_retries: int = 3,
    ):
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        try:
            self.client = genai.Client(api_key=api_key)
        except Exception as e:
            raise APIClientError(f"Could not create Gemini client: {e}", e) from e
        LOGGER.info(f"Gemini client ready ({self.model})")

    def _config(self, system_instruction: Optional[str], options: GenerationOptions):
        return types.GenerateContentConfig(
            temperature=options.temperature,
            max_output_tokens=options.max_output_tokens,
            response_mime_type=JSON_MIME_TYPE if options.json_output else None,
            system_instruction=system_instruction or None,
        )

    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        config = self._config(system_instruction, GenerationOptions.from_config(generation_config))

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await asyncio.wait_for(
                    self.client.aio.models.generate_content(
                        model=self.model, contents=contents, config=config
                    ),
                    timeout=self.timeout,
                )
                return response.text or ""
            except Exception as e:
                LOGGER.warning(f"Gemini call failed (attempt {attempt}/{self.max_retries}): {e}")
                if attempt < self.max_retries:
                    await asyncio.sleep(2 ** (attempt - 1))
                    continue
                if isinstance(e, asyncio.TimeoutError):
                    raise APITimeoutError(f"Gemini timed out {self.max_retries} times", e) from e
                raise APIClientError(f"Gemini generation failed: {e}", e) from e

        raise APIClientError("Gemini generation failed")


class OpenRouterClient:
    """OpenRouter chat completions over ``BaseLLMClient``."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = OPENROUTER_CHAT_URL,
        timeout: int = 60,
        max_retries: int = 3,
    ):
        self.model = model
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        LOGGER.info(f"OpenRouter client ready ({self.model})")

    def _payload(self, contents: str, system_instruction: Optional[str], options: GenerationOptions) -> Dict[str, Any]:
        messages = [{"role": "system", "content": system_instruction}] if system_instruction else []
        messages.append({"role": "user", "content": contents})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": options.temperature,
        }
        if options.max_output_tokens is not None:
            payload["max_tokens"] = options.max_output_tokens
        if options.json_output:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Return the first choice's message text.

        Raises:
            APIClientError: If the call fails or no choices come back
        """
        options = GenerationOptions.from_config(generation_config)
        response = await self.client.call_api(payload=self._payload(contents, system_instruction, options))

        choices = response.get("choices")
        if not isinstance(choices, list) or not choices:
            LOGGER.error(f"OpenRouter returned no choices: {str(response)[:500]}")
            raise APIClientError("OpenRouter response has no choices")

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if not isinstance(message, dict):
            raise APIClientError(f"OpenRouter choice has no message: {str(choices[0])[:200]}")
        content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise APIClientError(f"OpenRouter message content is {type(content).__name__}, not text")
        return content or ""
