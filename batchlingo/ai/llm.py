"""
LLM adapter (OpenAI-compatible chat completions)

The batch is sent as a JSON array inside a prompt and the model is asked to
answer with a JSON array of the same length. Models do not always comply, so
the response goes through several parsing strategies before it is rejected:
1. direct JSON parse
2. parse after stripping a markdown code fence
3. bracket matching to cut the first array (or {"translations": [...]}) out of prose
"""

import contextlib
import json
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from batchlingo import language_codes as lc
from batchlingo.ai.base import ContentMode, TranslateOptions, TranslationProvider
from batchlingo.ai.exceptions import ProviderTransientError
from batchlingo.ai.providers import ensure_api_key, get_httpx_timeout, post_with_retries
from batchlingo.config import DEFAULT_SYSTEM_MESSAGE, get_prompt
from batchlingo.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LLM_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_LLM_MODEL = "gpt-4o-mini"

_CONTENT_HINTS = {
    ContentMode.HTML: "\nThe strings contain HTML. Translate text only; keep every tag and attribute unchanged.",
    ContentMode.JSON: "\nThe strings are values taken from a JSON document. Do not add quotes or escape sequences.",
}


def _strip_code_fence(text: str) -> str:
    lines = text.strip().split('\n')
    if lines and lines[0].startswith('```'):
        lines = lines[1:]
    if lines and lines[-1].strip() == '```':
        lines = lines[:-1]
    return '\n'.join(lines).strip()


def _bracket_slice(text: str, opening: str, closing: str) -> Optional[str]:
    """Return the first balanced opening..closing span, ignoring brackets inside JSON strings."""
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, char in enumerate(text):
        if escaped:
            escaped = False
            continue
        if char == '\\':
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == opening:
            if depth == 0:
                start = i
            depth += 1
        elif char == closing and depth:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _loads_or_none(text: Optional[str]) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def _translation_items(parsed: Any) -> Optional[List[Any]]:
    """Unwrap {"translations": [...]} and [{"text": ...}] into a flat list."""
    if isinstance(parsed, dict):
        parsed = parsed.get('translations')
    if not isinstance(parsed, list):
        return None
    if parsed and all(isinstance(item, dict) for item in parsed):
        return [item.get('text', '') for item in parsed]
    return parsed


def parse_translations_response(text: str) -> Optional[List[Any]]:
    """
    Parse a model response into a list of translations.

    Accepts a bare array or an object with a "translations" key whose items are
    strings or {"text": ...} objects.

    Returns:
        List of translated values, or None when nothing usable was found
    """
    if not text:
        return None

    candidates = [text.strip(), _strip_code_fence(text)]
    for candidate in candidates:
        parsed = _loads_or_none(candidate)
        if parsed is not None:
            items = _translation_items(parsed)
            if items is not None:
                return items
            break

    # Prose around the payload: try the object form first when it comes first
    array_at = text.find('[')
    object_at = text.find('{')
    spans = [('[', ']'), ('{', '}')]
    if object_at != -1 and (array_at == -1 or object_at < array_at):
        spans.reverse()
    for opening, closing in spans:
        items = _translation_items(_loads_or_none(_bracket_slice(text, opening, closing)))
        if items is not None:
            return items

    return None


class LLMProvider(TranslationProvider):
    """Chat-completions adapter for OpenAI and compatible endpoints."""

    name = "LLM"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_LLM_MODEL,
        api_url: str = DEFAULT_LLM_URL,
        timeout: Any = 120,
        max_retries: int = 3,
        system_message: str = DEFAULT_SYSTEM_MESSAGE,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.system_message = system_message
        self._client = client
        self._sleep = sleep
        # Token usage tracking
        self.total_prompt_tokens = 0
        self.total_completion_tokens = 0

    @classmethod
    def from_config(cls, config: Dict[str, Any], model_override: Optional[str] = None, **kwargs) -> "LLMProvider":
        provider_config = config.get('llm', {})
        models = [m for m in provider_config.get('models', []) if m and isinstance(m, str)]
        return cls(
            api_key=provider_config.get('api_key', ''),
            model=model_override or (models[0] if models else DEFAULT_LLM_MODEL),
            api_url=provider_config.get('api_url', DEFAULT_LLM_URL),
            timeout=provider_config.get('timeout', 120),
            max_retries=provider_config.get('max_retries', 3),
            **kwargs,
        )

    def get_total_token_usage(self) -> Dict[str, int]:
        return {
            'prompt_tokens': self.total_prompt_tokens,
            'completion_tokens': self.total_completion_tokens,
        }

    def _open_client(self):
        if self._client is not None:
            return contextlib.nullcontext(self._client)
        return httpx.Client(timeout=get_httpx_timeout(self.timeout))

    def build_prompt(self, texts: List[str], source_lang: str, target_lang: str,
                     options: TranslateOptions) -> str:
        """Fill the array translation prompt for one batch."""
        formality_section = ""
        if options.formality == "more":
            formality_section = "\nUse a formal register."
        elif options.formality == "less":
            formality_section = "\nUse an informal register."
        instructions_section = f"\nStyle instructions: {options.instructions}" if options.instructions else ""

        return get_prompt('array_translation_prompt')['prompt'].format(
            source_language_name=lc.get_language_name(source_lang) or source_lang,
            source_language_code=source_lang,
            target_language_name=lc.get_language_name(target_lang) or target_lang,
            target_language_code=target_lang,
            content_section=_CONTENT_HINTS.get(options.content_mode, ""),
            formality_section=formality_section,
            instructions_section=instructions_section,
            text_count=len(texts),
            texts_json=json.dumps(texts, ensure_ascii=False),
        )

    def _complete(self, prompt: str) -> str:
        headers = {
            "Authorization": f"Bearer {ensure_api_key(self.api_key, self.name)}",
            "Content-Type": "application/json",
        }
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_message},
                {"role": "user", "content": prompt},
            ],
        }

        logger.debug(f"  Calling LLM API (model: {self.model})...")
        with self._open_client() as client:
            response = post_with_retries(
                client,
                self.api_url,
                self.name,
                max_retries=self.max_retries,
                sleep=self._sleep,
                headers=headers,
                json=body,
            )

        try:
            result = response.json()
        except ValueError:
            raise ProviderTransientError("LLM API returned a non-JSON response")

        usage = result.get('usage', {})
        self.total_prompt_tokens += usage.get('prompt_tokens', 0)
        self.total_completion_tokens += usage.get('completion_tokens', 0)

        choices = result.get('choices') or []
        if not choices:
            raise ProviderTransientError(f"Unexpected LLM API response format: {str(result)[:200]}")
        return choices[0].get('message', {}).get('content', '') or ''

    def translate(
        self,
        unique_strings: List[str],
        source_lang: str,
        target_lang: str,
        options: TranslateOptions,
    ) -> Dict[str, Optional[str]]:
        if not unique_strings:
            return {}

        prompt = self.build_prompt(unique_strings, source_lang, target_lang, options)
        logger.debug(f"  Input to LLM (prompt):\n{prompt}")

        # A malformed answer is worth exactly one more attempt
        translations = None
        for attempt in range(2):
            response_text = self._complete(prompt)
            logger.debug(f"  Output from LLM (response):\n{response_text}")
            translations = parse_translations_response(response_text)
            if translations is not None:
                break
            logger.warning(f"  Could not parse LLM response (attempt {attempt + 1}/2)")

        if translations is None:
            raise ProviderTransientError("Could not parse translations from LLM response")

        if len(translations) != len(unique_strings):
            logger.warning(
                f"Translation count mismatch: expected {len(unique_strings)}, got {len(translations)}"
            )

        result: Dict[str, Optional[str]] = {}
        for index, source in enumerate(unique_strings):
            value = translations[index] if index < len(translations) else None
            result[source] = value if isinstance(value, str) else None
        return result
