"""Configuration module for the ops agent."""

from .constants import *
from .settings import AgentSettings

__all__ = ["AgentSettings"]
