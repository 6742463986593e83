"""Orchestrator: LLM providers, the conversation driver and session modes."""

from orchestrator.conversation import ConversationDriver
from orchestrator.llm import LLMProvider, MockLLMProvider, create_llm_provider
from orchestrator.sessions import MAX_ITERATIONS, AutonomousSession, InteractiveSession

__all__ = [
    "ConversationDriver",
    "LLMProvider",
    "MockLLMProvider",
    "create_llm_provider",
    "MAX_ITERATIONS",
    "AutonomousSession",
    "InteractiveSession",
]
