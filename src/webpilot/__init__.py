"""WebPilot - LLM-directed browser agent."""

__version__ = "0.1.0"
