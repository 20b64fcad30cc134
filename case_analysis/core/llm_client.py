import asyncio
from typing import Any, Dict, List, Optional, Protocol, Union

from google import genai
from google.genai import types

from case_analysis.core.config import Settings
from case_analysis.core.exceptions import APIClientError, ConfigurationError
from case_analysis.core.http_client import BaseHTTPClient
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)

Contents = Union[str, List[Union[str, Dict[str, Any]]]]

# Reasoning models reject temperature and expect max_completion_tokens
REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")


class LLMClient(Protocol):
    """Interface shared by every completion client."""

    model: str

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        ...


def _flatten_contents(contents: Contents) -> str:
    if isinstance(contents, str):
        return contents

    text = ""
    for part in contents:
        if isinstance(part, str):
            text += part
        elif isinstance(part, dict) and "text" in part:
            text += part["text"]
    return text


def is_reasoning_model(model: str) -> bool:
    return model.lower().startswith(REASONING_MODEL_PREFIXES)


class OpenAIClient:
    """Chat-completions client for the OpenAI API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1/chat/completions",
        timeout: int = 120,
        max_retries: int = 1,
        retry_delay: int = 2,
        default_temperature: float = 0.2,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model name to use
            base_url: Chat completions URL
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per request
            retry_delay: Base delay in seconds for exponential backoff
            default_temperature: Temperature used when the caller sets none
        """
        self.model = model
        self.default_temperature = default_temperature
        self.client = BaseHTTPClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

        LOGGER.info(f"Initialized OpenAI client with model {self.model}")

    def build_payload(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Build the chat-completions request body for the configured model."""
        config = generation_config or {}
        model = config.get("model") or self.model

        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": _flatten_contents(contents)})

        payload: Dict[str, Any] = {"model": model, "messages": messages}

        max_tokens = config.get("max_output_tokens")
        if is_reasoning_model(model):
            if max_tokens:
                payload["max_completion_tokens"] = max_tokens
        else:
            payload["temperature"] = config.get("temperature", self.default_temperature)
            if max_tokens:
                payload["max_tokens"] = max_tokens

        return payload

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using an OpenAI chat model.

        Args:
            contents: Input content (string or list of parts)
            system_instruction: Optional system instruction
            generation_config: Optional config (temperature, max_output_tokens, model)

        Returns:
            Generated text response

        Raises:
            APIClientError: If generation fails or returns no text
        """
        payload = self.build_payload(contents, system_instruction, generation_config)
        response = await self.client.call_api(method="POST", payload=payload)

        choices = response.get("choices") or []
        if not choices:
            LOGGER.error(f"Invalid OpenAI response structure: {str(response)[:300]}")
            raise APIClientError("Invalid response structure from OpenAI")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content.strip():
            raise APIClientError("OpenAI returned an empty completion")

        return content


class GeminiClient:
    """Wrapper for Google Gemini API client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        max_retries: int = 1,
        retry_delay: int = 2,
        default_temperature: float = 0.2,
    ):
        """Initialize Gemini client.

        Args:
            api_key: Gemini API key
            model: Model name to use
            max_retries: Maximum attempts per request
            retry_delay: Base delay in seconds for exponential backoff
            default_temperature: Temperature used when the caller sets none
        """
        self.model = model
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.default_temperature = default_temperature

        try:
            self.client = genai.Client(api_key=api_key)
            LOGGER.info(f"Initialized Gemini client with model {self.model}")
        except Exception as e:
            LOGGER.error(f"Failed to initialize Gemini client: {e}")
            raise APIClientError(f"Failed to initialize Gemini client: {e}", original_error=e)

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using Gemini model.

        Raises:
            APIClientError: If generation fails or returns no text
        """
        config = types.GenerateContentConfig(temperature=self.default_temperature)

        if generation_config:
            if "temperature" in generation_config:
                config.temperature = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                config.max_output_tokens = generation_config["max_output_tokens"]

        if system_instruction:
            config.system_instruction = system_instruction

        for attempt in range(self.max_retries):
            try:
                response = await self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config
                )
            except Exception as e:
                LOGGER.warning(
                    f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))
                    continue
                raise APIClientError(f"Gemini generation failed: {e}", original_error=e)

            if not response.text:
                raise APIClientError("Gemini returned an empty completion")
            return response.text

        raise APIClientError("Gemini generation failed")


def create_llm_client(settings: Settings) -> LLMClient:
    """Build the completion client selected by ``LLM_PROVIDER``.

    Raises:
        ConfigurationError: If the provider is unknown
    """
    provider = settings.llm_provider.lower()

    if provider == "openai":
        return OpenAIClient(
            api_key=settings.llm.openai_api_key,
            model=settings.llm.openai_model,
            base_url=settings.llm.openai_api_url,
            timeout=settings.http_timeout,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
            default_temperature=settings.llm.temperature,
        )
    if provider == "gemini":
        return GeminiClient(
            api_key=settings.llm.gemini_api_key,
            model=settings.llm.gemini_model,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
            default_temperature=settings.llm.temperature,
        )

    raise ConfigurationError(f"Unsupported LLM provider: {settings.llm_provider}")
