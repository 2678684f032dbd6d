"""Agents: the episode driver and its factory."""

from stepwise_rl.agent.base import Agent
from stepwise_rl.agent.deep_agent import AgentConfig, DeepAgent
from stepwise_rl.agent.factory import create_agent, default_policy

__all__ = ["Agent", "AgentConfig", "DeepAgent", "create_agent", "default_policy"]
