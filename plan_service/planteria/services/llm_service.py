"""
OpenAI service: conversation threads and structured plan drafts.
Every model call goes through this module. Output is JSON only and validated against PlanDraft.
"""
import asyncio
import json
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from planteria.config import Settings
from planteria.errors import UpstreamFailure
from planteria.logging_config import get_logger
from planteria.schemas.draft import PlanDraft
from planteria.services.prompts import SYSTEM_PROMPT

logger = get_logger(__name__)

UsageInfo = Dict[str, int]  # input_tokens, output_tokens, total_tokens


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    content = (content or "").strip()
    if content.startswith("```"):
        lines = content.split("\n")
        content = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    return content.strip()


class LLMService:
    """OpenAI Responses API with server-side conversations as the plan's thread handle."""

    def __init__(self, settings: Settings, api_key: Optional[str] = None) -> None:
        """api_key: the resolved key (user's own or service default); falls back to OPENAI_API_KEY."""
        self.api_key = api_key or settings.openai_api_key
        self.model = settings.openai_model
        self.timeout_seconds = settings.openai_timeout_seconds
        self.max_retries = settings.openai_max_retries
        self.temperature = settings.openai_temperature
        self._client: Any = None

    def _get_client(self):  # noqa: ANN201
        """Lazy init of the OpenAI client."""
        if self._client is not None:
            return self._client
        if not self.api_key:
            raise UpstreamFailure("OpenAI API key is not configured")
        from openai import OpenAI

        self._client = OpenAI(
            api_key=self.api_key,
            timeout=float(self.timeout_seconds),
            max_retries=self.max_retries,
        )
        return self._client

    def _extract_usage(self, resp: Any) -> UsageInfo:
        usage = getattr(resp, "usage", None)
        if not usage:
            return {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}
        return {
            "input_tokens": getattr(usage, "input_tokens", 0) or 0,
            "output_tokens": getattr(usage, "output_tokens", 0) or 0,
            "total_tokens": getattr(usage, "total_tokens", 0) or 0,
        }

    async def create_thread(self, metadata: Optional[Dict[str, str]] = None) -> str:
        """Create a server-side conversation and return its id."""
        client = self._get_client()
        try:
            conversation = await asyncio.to_thread(client.conversations.create, metadata=metadata or {})
        except Exception as e:
            logger.warning("llm.thread_create_failed", error=str(e))
            raise UpstreamFailure(f"Could not create model conversation: {e}") from e
        logger.info("llm.thread_created", thread_id=conversation.id)
        return conversation.id

    async def generate_plan_draft(self, prompt: str, thread_id: Optional[str] = None) -> PlanDraft:
        """
        Ask for a full plan as a JSON object within the plan's conversation.
        Raises UpstreamFailure on SDK errors, invalid JSON or a draft outside schema bounds.
        """
        client = self._get_client()
        request: Dict[str, Any] = {
            "model": self.model,
            "input": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "text": {"format": {"type": "json_object"}},
            "temperature": self.temperature,
        }
        if thread_id:
            request["conversation"] = thread_id
        start = time.perf_counter()
        try:
            resp = await asyncio.to_thread(client.responses.create, **request)
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.warning("llm.plan_draft_failed", model=self.model, latency_ms=round(latency_ms), error=str(e))
            raise UpstreamFailure(f"Model call failed: {e}") from e
        latency_ms = (time.perf_counter() - start) * 1000
        content = strip_code_fences(getattr(resp, "output_text", "") or "")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("llm.plan_draft_json_failed", model=self.model, latency_ms=round(latency_ms), error=str(e))
            raise UpstreamFailure("Model returned invalid JSON") from e
        try:
            draft = PlanDraft.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "llm.plan_draft_invalid",
                model=self.model,
                latency_ms=round(latency_ms),
                errors=e.error_count(),
            )
            raise UpstreamFailure(f"Model returned a plan outside schema bounds ({e.error_count()} errors)") from e
        logger.info(
            "llm.plan_draft_success",
            model=self.model,
            latency_ms=round(latency_ms),
            outcomes=len(draft.outcomes),
            **self._extract_usage(resp),
        )
        return draft
