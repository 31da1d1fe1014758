"""
Lumen Providers: one chat service per back end, behind one contract.

Each back end ships a ChatService (request building + decoding) and a
ChatServiceProvider (models, capabilities, factories). Swap back ends by
asking the registry for a different name.
"""

from lumen.providers.base import ChatService, ChatServiceOptions, ChatServiceProvider
from lumen.providers.registry import ChatServiceRegistry

__all__ = [
    "ChatService",
    "ChatServiceOptions",
    "ChatServiceProvider",
    "ChatServiceRegistry",
]
