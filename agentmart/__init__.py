"""AgentMart: a marketplace backend for buying and selling AI agents."""

__version__ = "0.1.0"
