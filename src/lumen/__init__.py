"""Lumen: a streaming LLM chat core with tools and tiered memory."""

__version__ = "0.1.0"
