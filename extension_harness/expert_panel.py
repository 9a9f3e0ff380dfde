"""Expert panel: ask several models the same question in parallel via OpenRouter."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from .errors import ExpertPanelError

log = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
REQUEST_TIMEOUT = 120.0

SYSTEM_PROMPT = (
    "You are a senior software engineer sitting on a panel of experts. "
    "Answer the question directly and concretely. If you are unsure, say so."
)


@dataclass
class PanelAnswer:
    model: str
    content: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExpertPanel:
    def __init__(
        self,
        api_key: str,
        default_models: Sequence[str],
        concurrency: int = 3,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.default_models = list(default_models)
        self.concurrency = max(1, concurrency)
        self._client = client

    async def ask(
        self,
        question: str,
        models: Sequence[str] | None = None,
        context: str | None = None,
    ) -> list[PanelAnswer]:
        """Send `question` to every model; one failure doesn't sink the rest.

        Answers come back in the order the models were given.
        """
        if not self.api_key.strip():
            raise ExpertPanelError(
                "OPENROUTER_API_KEY is not set; the expert panel is unavailable"
            )
        targets = list(models or self.default_models)
        if not targets:
            raise ExpertPanelError("No models configured for the expert panel")

        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        if context:
            messages.append({"role": "user", "content": f"Context:\n{context}"})
        messages.append({"role": "user", "content": question})

        limit = asyncio.Semaphore(self.concurrency)

        async def _one(client: httpx.AsyncClient, model: str) -> PanelAnswer:
            async with limit:
                return await self._query(client, model, messages)

        if self._client is not None:
            return list(await asyncio.gather(*(_one(self._client, m) for m in targets)))

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            return list(await asyncio.gather(*(_one(client, m) for m in targets)))

    async def _query(
        self,
        client: httpx.AsyncClient,
        model: str,
        messages: list[dict[str, str]],
    ) -> PanelAnswer:
        try:
            resp = await client.post(
                OPENROUTER_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": model, "messages": messages},
            )
            resp.raise_for_status()
            data = resp.json()
            content = data["choices"][0]["message"]["content"] or ""
        except httpx.HTTPStatusError as exc:
            log.warning("Expert %s returned HTTP %s", model, exc.response.status_code)
            return PanelAnswer(model=model, error=f"HTTP {exc.response.status_code}")
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            log.warning("Expert %s failed: %s", model, exc)
            return PanelAnswer(model=model, error=str(exc) or type(exc).__name__)
        return PanelAnswer(model=model, content=content.strip())


def format_panel(answers: Sequence[PanelAnswer]) -> str:
    sections = []
    for answer in answers:
        body = answer.content if answer.ok else f"_Error: {answer.error}_"
        sections.append(f"## {answer.model}\n\n{body}")
    return "\n\n".join(sections)
