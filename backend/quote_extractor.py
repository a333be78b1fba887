"""
Quote extraction through interchangeable AI backends.

QuoteExtractor exposes one operation, extract(content, title), regardless of
which backend is configured. Each backend owns its client and knows how to
turn the shared prompt into a request and the response back into text:

- openai:       chat completion (system + user message)
- anthropic:    single user message
- gemini:       generate_content
- ollama:       local HTTP server, /api/generate
- transformers: local text-generation pipeline (lazy, shortened prompt)

A backend answering with the NO_QUOTE_FOUND sentinel is a normal outcome and
yields None; any failure talking to a backend raises ProviderError. Nothing
is retried here; the next scheduled run is the retry.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from anthropic import AsyncAnthropic
from google import genai
from google.genai import types
from openai import AsyncOpenAI

from config import ConfigurationError
from logger import get_logger


logger = get_logger()

NO_QUOTE_SENTINEL = "NO_QUOTE_FOUND"

SYSTEM_PROMPT = (
    "You are an expert at identifying meaningful, thought-provoking quotes in "
    "interviews. You answer with the quote text only."
)

PROMPT_TEMPLATE = """Please extract the most meaningful and impactful quote from this interview with {subject}. Focus on quotes that capture their philosophy, creative vision, or unique perspective.

Interview Title: "{title}"

Interview Content:
{content}

Instructions:
1. Choose a quote that is authentic to the speaker's own voice
2. Select something philosophically interesting or aesthetically profound
3. Avoid quotes about logistics, pricing or business details
4. The quote should be memorable and make sense on its own

Return ONLY the quote itself. Do not add quotation marks, attribution, explanations, introductions or any other commentary.
If the interview contains no suitable quote, return exactly: {sentinel}"""

# Shorter instruction for small local models that lose track of the full template
LOCAL_PROMPT_TEMPLATE = """Interview:
{content}

Copy one memorable sentence the speaker says in the interview above. Reply with that sentence only.
Sentence:"""

LOCAL_CONTENT_LIMIT = 2000

_CONTENT_SECTION = re.compile(r"Interview Content:\n(.*?)\n\nInstructions:", re.DOTALL)
_WHITESPACE_RUN = re.compile(r"\s+")

QUOTE_CHARACTERS = "\"'`“”‘’"


class ProviderError(Exception):
    """Raised when an AI backend call fails (auth, quota, timeout, bad response)."""
    pass


@dataclass(frozen=True)
class QuoteResult:
    text: str
    provider: str
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def clean_quote(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a backend response into bare quote text.

    Strips one wrapping quote character on each side and a leading "- ", and
    collapses whitespace. The pass repeats until the text stops changing, so
    cleaning an already cleaned quote returns it unchanged.

    Returns:
        The cleaned quote, or None if nothing usable (or only the sentinel)
        remains.
    """
    if not raw:
        return None

    text = raw
    while True:
        cleaned = text.strip()
        if cleaned and cleaned[0] in QUOTE_CHARACTERS:
            cleaned = cleaned[1:]
        if cleaned and cleaned[-1] in QUOTE_CHARACTERS:
            cleaned = cleaned[:-1]
        if cleaned.startswith("- "):
            cleaned = cleaned[2:]
        cleaned = _WHITESPACE_RUN.sub(" ", cleaned).strip()
        if cleaned == text:
            break
        text = cleaned

    if not text or text == NO_QUOTE_SENTINEL:
        return None
    return text


def extract_interview_body(prompt: str) -> str:
    """Pull the interview content back out of a prompt built from PROMPT_TEMPLATE."""
    match = _CONTENT_SECTION.search(prompt)
    return match.group(1).strip() if match else prompt


# ============================================================================
# Backends
# ============================================================================

class OpenAIBackend:
    """Chat-completion call against the OpenAI API."""

    def __init__(self, config):
        self.config = config
        self.client = AsyncOpenAI(api_key=config.api_key)

    async def complete(self, prompt: str) -> Optional[str]:
        completion = await self.client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        if not completion.choices:
            return None
        return completion.choices[0].message.content


class AnthropicBackend:
    """Single user message against the Anthropic Messages API."""

    def __init__(self, config):
        self.config = config
        self.client = AsyncAnthropic(api_key=config.api_key)

    async def complete(self, prompt: str) -> Optional[str]:
        message = await self.client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        for block in message.content:
            if block.type == "text":
                return block.text
        return None


class GeminiBackend:
    """generate_content call through the google-genai SDK."""

    def __init__(self, config):
        self.config = config
        self.client = genai.Client(api_key=config.api_key)

    async def complete(self, prompt: str) -> Optional[str]:
        response = await self.client.aio.models.generate_content(
            model=self.config.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                max_output_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            ),
        )
        return response.text


class OllamaBackend:
    """Non-streaming /api/generate call against a local Ollama server."""

    def __init__(self, config):
        self.config = config

    def _generate(self, prompt: str) -> Optional[str]:
        headers = {}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        response = requests.post(
            f"{self.config.base_url}/api/generate",
            json={
                "model": self.config.model,
                "prompt": prompt,
                "stream": False,
                "options": {
                    "num_predict": self.config.max_tokens,
                    "temperature": self.config.temperature,
                },
            },
            headers=headers,
        )
        response.raise_for_status()
        return response.json().get("response")

    async def complete(self, prompt: str) -> Optional[str]:
        return await asyncio.to_thread(self._generate, prompt)


class TransformersBackend:
    """
    In-process Hugging Face text-generation pipeline.

    The pipeline is built on first use, which downloads and loads the model
    once per process. Small local models cannot follow the full instruction
    template, so the interview body is pulled back out of the prompt and
    re-wrapped in LOCAL_PROMPT_TEMPLATE.
    """

    def __init__(self, config):
        self.config = config
        self._pipeline = None

    def _get_pipeline(self):
        if self._pipeline is None:
            from transformers import pipeline

            logger.info(f"Loading local text-generation model: {self.config.model}")
            self._pipeline = pipeline("text-generation", model=self.config.model)
        return self._pipeline

    def _generate(self, prompt: str) -> Optional[str]:
        body = extract_interview_body(prompt)[:LOCAL_CONTENT_LIMIT]
        local_prompt = LOCAL_PROMPT_TEMPLATE.format(content=body)

        generator = self._get_pipeline()
        outputs = generator(
            local_prompt,
            max_new_tokens=self.config.max_tokens,
            temperature=self.config.temperature if self.config.temperature > 0 else None,
            do_sample=self.config.temperature > 0,
            return_full_text=False,
        )
        if not outputs:
            return None

        text = outputs[0].get("generated_text", "")
        if text.startswith(local_prompt):
            text = text[len(local_prompt):]
        # Small models ramble; keep the first line only
        return text.strip().split("\n")[0]

    async def complete(self, prompt: str) -> Optional[str]:
        return await asyncio.to_thread(self._generate, prompt)


BACKENDS = {
    "openai": OpenAIBackend,
    "anthropic": AnthropicBackend,
    "gemini": GeminiBackend,
    "ollama": OllamaBackend,
    "transformers": TransformersBackend,
}


# ============================================================================
# Extractor
# ============================================================================

class QuoteExtractor:
    """
    Provider-agnostic quote extraction.

    Args:
        config: One of the ProviderConfig variants from config.py
        interviewee_name: Who is being quoted, woven into the prompt

    Raises:
        ConfigurationError: If no provider is configured, the provider is
            unknown, or a hosted provider has no API key
    """

    def __init__(self, config, interviewee_name: str = "the interviewee"):
        if config is None or not getattr(config, "kind", None):
            raise ConfigurationError("AI provider configuration is required")
        if config.kind not in BACKENDS:
            raise ConfigurationError(f"Unsupported AI provider: {config.kind}")
        if config.requires_api_key and not config.api_key:
            raise ConfigurationError(f"An API key is required for the {config.kind} provider")

        self.config = config
        self.interviewee_name = interviewee_name
        self.backend = BACKENDS[config.kind](config)

    @property
    def provider(self) -> str:
        return self.config.kind

    def build_prompt(self, content: str, title: str) -> str:
        return PROMPT_TEMPLATE.format(
            subject=self.interviewee_name,
            title=title,
            content=content,
            sentinel=NO_QUOTE_SENTINEL,
        )

    async def extract(self, content: str, title: str) -> Optional[QuoteResult]:
        """
        Ask the configured backend for the best quote in an interview.

        Args:
            content: Cleaned interview body
            title: Interview title

        Returns:
            QuoteResult, or None when the backend reports no suitable quote

        Raises:
            ProviderError: If the backend call fails for any reason
        """
        logger.info(
            f"Extracting quote using {self.provider} from interview: {title}",
            extra={"metadata": {"model": self.config.model, "content_length": len(content)}}
        )

        prompt = self.build_prompt(content, title)
        try:
            raw = await self.backend.complete(prompt)
        except Exception as e:
            logger.error(
                f"Quote extraction failed using {self.provider}: {e}",
                extra={"metadata": {"error_type": type(e).__name__}}
            )
            raise ProviderError(f"{self.provider} request failed: {e}") from e

        quote = clean_quote(raw)
        if quote is None:
            logger.info(f"{self.provider} found no suitable quote in: {title}")
            return None

        logger.info(f"Successfully extracted quote ({len(quote)} characters)")
        logger.debug(f'Extracted quote: "{quote[:100]}"')
        return QuoteResult(text=quote, provider=self.provider)

    def provider_info(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
