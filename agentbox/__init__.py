"""agentbox - cooperative sandbox policy engine for tool-using agents."""

__version__ = "0.1.0"
