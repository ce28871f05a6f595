# api_client.py

import httpx
import asyncio
import base64
import time
from typing import Dict, List, Optional, Protocol

from openai import AsyncOpenAI, APIStatusError, APIConnectionError

from config import InferenceSettings
from errors import InferenceError
from schemas import DocumentSnapshot
from utils import log


class InferenceClient(Protocol):
    """Capability: one instruction (plus optional image) in, one JSON object as text out."""

    async def complete_json(
        self, prompt_text: str, image: Optional[DocumentSnapshot] = None, context: str = ""
    ) -> str:
        ...


class OpenAIInferenceClient:
    """An async client for the chat completions API constrained to JSON-object output."""
    def __init__(self, settings: InferenceSettings, http_client: Optional[httpx.AsyncClient] = None):
        self._settings = settings
        http_client = http_client or httpx.AsyncClient(
            http2=True, verify=settings.verify_ssl, timeout=settings.timeout
        )
        self._client = AsyncOpenAI(
            api_key=settings.api_key, base_url=settings.base_url, max_retries=0, http_client=http_client
        )
        log.info(f"Initialized AsyncOpenAI client for model '{settings.model}'.")

    def _prepare_request_messages(self, prompt_text: str, image: Optional[DocumentSnapshot]) -> List[Dict]:
        """Prepares the 'messages' payload for the OpenAI API."""
        if image is None:
            return [{"role": "user", "content": prompt_text}]
        base64_data = base64.b64encode(image.image_bytes).decode('utf-8')
        content_parts = [
            {"type": "text", "text": prompt_text},
            {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{base64_data}"}},
        ]
        return [{"role": "user", "content": content_parts}]

    async def complete_json(
        self, prompt_text: str, image: Optional[DocumentSnapshot] = None, context: str = ""
    ) -> str:
        """
        Sends one request in JSON-object mode and returns the raw message content.
        Network and API status errors are retried with exponential backoff; the content
        itself is returned unvalidated so the caller can apply its own schema.
        """
        settings = self._settings
        messages = self._prepare_request_messages(prompt_text, image)
        pages = 1 if image is not None else 0
        log.info(f"[{context}] Calling model '{settings.model}' with {pages} image(s) using JSON-object mode.")

        start_time = time.perf_counter()
        last_error: Optional[Exception] = None

        for attempt in range(settings.max_retries):
            try:
                response = await self._client.chat.completions.create(
                    model=settings.model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    temperature=0,
                )
            except (APIConnectionError, APIStatusError) as e:
                last_error = e
                log.warning(f"[{context}] Network/API error on attempt {attempt + 1}: {e}.")
                if attempt < settings.max_retries - 1:
                    await asyncio.sleep(settings.retry_base_delay * settings.backoff_factor ** attempt)
                continue

            if not (response.choices and response.choices[0].message):
                raise InferenceError("Model response did not contain a message.")
            content = response.choices[0].message.content or ""

            duration = time.perf_counter() - start_time
            if response.usage:
                log.info(f"[{context}] LLM call successful. Duration: {duration:.2f}s. "
                         f"Tokens -> Prompt: {response.usage.prompt_tokens}, "
                         f"Completion: {response.usage.completion_tokens}, "
                         f"Total: {response.usage.total_tokens}")
            else:
                log.info(f"[{context}] LLM call successful. Duration: {duration:.2f}s. Usage data not available.")
            return content

        duration = time.perf_counter() - start_time
        log.error(f"[{context}] API call failed after {settings.max_retries} attempt(s). Duration: {duration:.2f}s: {last_error}")
        raise InferenceError(f"API error after retries: {last_error}")

    async def close(self):
        await self._client.close()
        log.info("Closed OpenAI AsyncClient.")
