"""
Agent invocation adapter.

Wraps provider calls with bounded retries, strict JSON-schema validation
and an opt-in deterministic fallback.
"""

import asyncio
import json
import re
from typing import Any, Dict, Optional

from jsonschema import Draft202012Validator

from modules.agents.providers import OpenAITextProvider, TextProvider
from modules.agents.registry import AgentDefinition, get_agent
from shared.config import settings
from shared.errors import AgentInvocationFailedError, RetryableError, ServiceNotConfiguredError
from shared.logging import get_logger

logger = get_logger("agents")

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


class InvalidAgentResponseError(RetryableError):
    """Response was not a JSON object or did not match the agent's schema."""
    pass


def extract_json(raw: str) -> Dict[str, Any]:
    """
    Parse a JSON object from a model response.

    Accepts bare JSON, a fenced ```json block, or an object embedded in
    surrounding prose.

    Raises:
        InvalidAgentResponseError: If no JSON object can be parsed
    """
    text = (raw or "").strip()
    candidates = [text]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise InvalidAgentResponseError(f"Response is not a JSON object: {text[:120]!r}")


def validate_output(agent: AgentDefinition, output: Dict[str, Any]) -> None:
    """
    Raises:
        InvalidAgentResponseError: If output does not satisfy the agent's schema
    """
    errors = sorted(Draft202012Validator(agent.schema).iter_errors(output), key=lambda e: list(e.path))
    if errors:
        details = "; ".join(
            f"{'/'.join(str(p) for p in error.path) or '<root>'}: {error.message}" for error in errors[:5]
        )
        raise InvalidAgentResponseError(f"Response failed schema validation: {details}")


class AgentInvocationAdapter:
    """Invoke registered agents with retries and schema checks."""

    def __init__(
        self,
        provider: Optional[TextProvider] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None
    ):
        """
        Args:
            provider: Text provider (OpenAI by default)
            max_retries: Total attempts per invocation (default: settings.agent_max_retries)
            backoff_seconds: Linear backoff unit; attempt N waits N * backoff_seconds
        """
        self.provider = provider or OpenAITextProvider()
        self.max_retries = max_retries if max_retries is not None else settings.agent_max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.agent_backoff_seconds
        )
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    async def _attempt(self, agent: AgentDefinition, payload: Dict[str, Any]) -> Dict[str, Any]:
        raw = await self.provider.complete(agent.system_prompt, agent.build_prompt(payload))
        output = extract_json(raw)
        validate_output(agent, output)
        return output

    def _fallback(self, agent: AgentDefinition, payload: Dict[str, Any], reason: str) -> Dict[str, Any]:
        output = agent.fallback(payload)
        try:
            validate_output(agent, output)
        except InvalidAgentResponseError as e:
            raise AgentInvocationFailedError(
                f"Agent '{agent.agent_id}' failed and its default could not be built: {e.message}",
                agent_id=agent.agent_id,
                attempts=self.max_retries,
                fallback_available=False
            ) from e
        logger.warning(
            f"Using default output for agent {agent.agent_id}",
            extra={"agent_id": agent.agent_id, "reason": reason}
        )
        return output

    async def invoke(
        self,
        agent_id: str,
        payload: Dict[str, Any],
        allow_fallback: bool = False
    ) -> Dict[str, Any]:
        """
        Invoke an agent.

        Args:
            agent_id: Registered agent identifier
            payload: Agent input
            allow_fallback: Return the deterministic default when attempts are exhausted

        Returns:
            Schema-valid agent output

        Raises:
            AgentInvocationFailedError: If every attempt failed and no fallback was used
            ServiceNotConfiguredError: If the provider is not configured and no fallback was used
        """
        agent = get_agent(agent_id)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                output = await self._attempt(agent, payload)
                logger.info(
                    f"Agent {agent_id} succeeded",
                    extra={"agent_id": agent_id, "attempt": attempt}
                )
                return output
            except ServiceNotConfiguredError as e:
                if allow_fallback and agent.has_fallback:
                    return self._fallback(agent, payload, e.message)
                raise
            except RetryableError as e:
                last_error = e
                logger.warning(
                    f"Agent {agent_id} attempt {attempt}/{self.max_retries} failed: {e.message}",
                    extra={"agent_id": agent_id, "attempt": attempt}
                )
            if attempt < self.max_retries:
                await asyncio.sleep(self.backoff_seconds * attempt)

        if allow_fallback and agent.has_fallback:
            return self._fallback(agent, payload, str(last_error))

        raise AgentInvocationFailedError(
            f"Agent '{agent_id}' failed after {self.max_retries} attempts: {last_error}",
            agent_id=agent_id,
            attempts=self.max_retries,
            fallback_available=agent.has_fallback
        )
