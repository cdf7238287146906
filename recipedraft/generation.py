from dataclasses import dataclass
import logging
from typing import Any, Iterable

import httpx

from recipedraft.config import Config
from recipedraft.decoder import DecodeResult, Tier, decode, parse_json, validate_record
from recipedraft.errors import DecodeError, GenerationError, TransportError
from recipedraft.models import RecipeDraft
from recipedraft.prompts import Prompt, build_batch_prompt


logger = logging.getLogger(__name__)


def completions_client(config: Config) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.deepseek_api_url,
        headers={
            "Authorization": f"Bearer {config.deepseek_api_key}",
            "Content-Type": "application/json",
        },
        timeout=config.long_timeout,
    )


@dataclass(frozen=True)
class Generation:
    text: str
    record: dict[str, Any]
    tier: Tier
    attempt: int
    draft: RecipeDraft


class GenerationClient:
    """Round trips to the chat completions endpoint.

    `complete` is a single call. `generate` retries until the response both
    arrives and decodes into a recipe, up to `config.max_attempts` times.
    Attempts run one after another on the caller's task, so cancelling the
    caller cancels the request in flight and no further attempt starts.
    """

    def __init__(
        self,
        config: Config,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._client = completions_client(config) if client is None else client

    def timeout_for(self, prompt: Prompt) -> float:
        if prompt.sampling.long_running:
            return self.config.long_timeout
        return self.config.short_timeout

    def payload(self, prompt: Prompt) -> dict[str, Any]:
        return {
            "model": self.config.generation_model,
            "messages": prompt.to_messages(),
            **prompt.sampling.to_dict(),
        }

    async def complete(self, prompt: Prompt) -> str:
        try:
            resp = await self._client.post(
                "chat/completions",
                json=self.payload(prompt),
                timeout=self.timeout_for(prompt),
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to send request: {e!r}") from e

        if not resp.is_success:
            raise TransportError(
                f"API request failed with status {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"Failed to decode response: {e}") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        choice = choices[0] if isinstance(choices, list) and choices else None
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise TransportError("No response from API.")
        content = message.get("content") or ""
        if not isinstance(content, str):
            raise TransportError(f"Unexpected message content: {content!r}")
        logger.debug("Raw %s response: %s", prompt.kind.value, content)
        return content

    def _validate(self, text: str, attempt: int) -> Generation:
        result: DecodeResult = decode(text)
        if result.record is None or result.tier is None:
            raise DecodeError(
                "Response is neither the structured format nor repairable JSON."
            )
        draft = validate_record(result.record)
        return Generation(
            text=text,
            record=result.record,
            tier=result.tier,
            attempt=attempt,
            draft=draft,
        )

    async def generate(self, prompt: Prompt) -> Generation:
        attempts = self.config.max_attempts
        errors: list[TransportError | DecodeError] = []
        for attempt in range(1, attempts + 1):
            logger.info("Generation attempt %d/%d", attempt, attempts)
            try:
                text = await self.complete(prompt)
                generation = self._validate(text, attempt)
            except (TransportError, DecodeError) as e:
                logger.warning("Attempt %d failed: %s", attempt, e)
                errors.append(e)
                continue
            logger.info(
                "Generated recipe on attempt %d using the %s decoder",
                attempt,
                generation.tier.name,
            )
            return generation

        raise GenerationError(attempts, errors[-1]) from errors[-1]

    async def generate_batch(self, queries: Iterable[str]) -> list[RecipeDraft]:
        """Several recipes from one call, returned as a JSON `recipes` array."""
        text = await self.complete(build_batch_prompt(queries))
        data = parse_json(text)
        recipes = None if data is None else data.get("recipes")
        if not isinstance(recipes, list):
            raise DecodeError("Failed to parse recipes array.")
        return [validate_record(r) for r in recipes if isinstance(r, dict)]

    async def close(self) -> None:
        await self._client.aclose()
