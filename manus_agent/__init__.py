"""Manus Agent - a tool-using LLM agent loop."""

__version__ = "0.1.0"

from manus_agent.agent import AgentExecutionResult, AgentLoop
from manus_agent.config import Config

__all__ = ["AgentExecutionResult", "AgentLoop", "Config", "__version__"]
