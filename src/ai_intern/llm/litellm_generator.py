"""LiteLLM changeset generator.

Single text completion through the litellm Python library; the response is
parsed into CodeChange entries.
"""

import asyncio
import logging
import time
from typing import List

import litellm

from .base import ChangeGenerator
from .prompts import build_plan_prompt, parse_changes
from ..core.config import LLMConfig
from ..core.models import CodeChange

logger = logging.getLogger(__name__)


class LiteLLMGenerator(ChangeGenerator):
    """Changeset generator backed by ``litellm.acompletion``.

    Errors are raised unchanged; the coordinator classifies them for retry.
    A call that exceeds ``config.timeout`` raises ``asyncio.TimeoutError``.
    """

    def __init__(self, config: LLMConfig):
        self.config = config

    async def plan_changes(
        self,
        ticket_key: str,
        summary: str,
        description: str,
        repo_context: str,
    ) -> List[CodeChange]:
        prompt = build_plan_prompt(
            ticket_key,
            summary,
            description,
            repo_context,
            allow_base64=self.config.allow_base64,
            language_hint=self.config.language_hint,
        )
        kwargs = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base

        start_time = time.time()
        response = await asyncio.wait_for(
            litellm.acompletion(**kwargs),
            timeout=self.config.timeout,
        )
        latency = time.time() - start_time

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        if usage:
            logger.info(
                f"{ticket_key}: {self.config.model} responded in {latency:.1f}s "
                f"({usage.prompt_tokens} in / {usage.completion_tokens} out)"
            )
        else:
            logger.info(f"{ticket_key}: {self.config.model} responded in {latency:.1f}s")

        changes = parse_changes(content)
        logger.info(f"{ticket_key}: generator proposed {len(changes)} changes")
        return changes
