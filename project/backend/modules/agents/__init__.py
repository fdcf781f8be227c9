"""
Agents Module.

Opaque (input JSON) -> (output JSON) AI agents with retries, schema
validation and deterministic fallbacks.
"""

from modules.agents.adapter import AgentInvocationAdapter, extract_json
from modules.agents.providers import OpenAITextProvider
from modules.agents.registry import AGENTS, AgentDefinition, get_agent

__all__ = [
    "AGENTS",
    "AgentInvocationAdapter",
    "AgentDefinition",
    "OpenAITextProvider",
    "extract_json",
    "get_agent",
]
