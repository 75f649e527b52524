"""
DeepL adapter

Free-tier keys (suffix ':fx') are routed to api-free.deepl.com; everything else
goes to the pro endpoint. HTML content is sent with tag_handling=html so that
markup survives, and formality is only forwarded for languages that support it.
"""

import contextlib
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from batchlingo import language_codes as lc
from batchlingo.ai.base import ContentMode, TranslateOptions, TranslationProvider
from batchlingo.ai.exceptions import ProviderTransientError
from batchlingo.ai.providers import ensure_api_key, get_httpx_timeout, post_with_retries
from batchlingo.logger import get_logger

logger = get_logger(__name__)

DEEPL_FREE_URL = "https://api-free.deepl.com/v2/translate"
DEEPL_PRO_URL = "https://api.deepl.com/v2/translate"


def deepl_endpoint(api_key: str) -> str:
    """Pick the DeepL endpoint for a key."""
    return DEEPL_FREE_URL if api_key.endswith(":fx") else DEEPL_PRO_URL


class DeepLProvider(TranslationProvider):
    """DeepL REST v2 adapter."""

    name = "DeepL"

    def __init__(
        self,
        api_key: str,
        timeout: Any = 60,
        max_retries: int = 3,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = client
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs) -> "DeepLProvider":
        provider_config = config.get('deepl', {})
        return cls(
            api_key=provider_config.get('api_key', ''),
            timeout=provider_config.get('timeout', 60),
            max_retries=provider_config.get('max_retries', 3),
            **kwargs,
        )

    def _open_client(self):
        if self._client is not None:
            return contextlib.nullcontext(self._client)
        return httpx.Client(timeout=get_httpx_timeout(self.timeout))

    def _build_body(self, texts: List[str], source_lang: str, target_lang: str,
                    options: TranslateOptions) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "text": texts,
            "target_lang": lc.to_deepl_code(target_lang),
        }
        source_base = lc.extract_base_language(source_lang)
        if source_base:
            body["source_lang"] = source_base.upper()
        if options.formality in ("more", "less") and lc.supports_formality(target_lang):
            body["formality"] = options.formality
        if options.content_mode == ContentMode.HTML:
            body["tag_handling"] = "html"
        if options.instructions:
            body["context"] = options.instructions
        return body

    def translate(
        self,
        unique_strings: List[str],
        source_lang: str,
        target_lang: str,
        options: TranslateOptions,
    ) -> Dict[str, Optional[str]]:
        if not unique_strings:
            return {}

        api_key = ensure_api_key(self.api_key, self.name)
        body = self._build_body(unique_strings, source_lang, target_lang, options)
        headers = {
            "Authorization": f"DeepL-Auth-Key {api_key}",
            "Content-Type": "application/json",
        }

        logger.debug(f"Calling DeepL: {len(unique_strings)} strings -> {body['target_lang']}")

        with self._open_client() as client:
            response = post_with_retries(
                client,
                deepl_endpoint(api_key),
                self.name,
                max_retries=self.max_retries,
                sleep=self._sleep,
                headers=headers,
                json=body,
            )

        try:
            translations = response.json().get("translations", [])
        except ValueError:
            raise ProviderTransientError("DeepL returned a non-JSON response")

        if len(translations) != len(unique_strings):
            raise ProviderTransientError(
                f"DeepL returned {len(translations)} translations for {len(unique_strings)} strings"
            )

        return {
            source: item.get("text") if isinstance(item, dict) else None
            for source, item in zip(unique_strings, translations)
        }
