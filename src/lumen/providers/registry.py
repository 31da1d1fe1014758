"""
Chat Service Registry: provider name -> ChatServiceProvider.

An explicit object, built once and passed to whoever needs it. The
built-in back ends are registered by with_builtins(), never at import time.
"""

from __future__ import annotations

import logging
from typing import Any

from lumen.core.errors import UnknownProviderError
from lumen.providers.base import ChatService, ChatServiceOptions, ChatServiceProvider

logger = logging.getLogger(__name__)


class ChatServiceRegistry:
    def __init__(self) -> None:
        self._providers: dict[str, ChatServiceProvider] = {}

    @classmethod
    def with_builtins(cls) -> ChatServiceRegistry:
        """A registry holding the OpenAI, Claude and Gemini providers."""
        from lumen.providers.claude_chat import ClaudeChatServiceProvider
        from lumen.providers.gemini_chat import GeminiChatServiceProvider
        from lumen.providers.openai_chat import OpenAIChatServiceProvider

        registry = cls()
        registry.register(OpenAIChatServiceProvider())
        registry.register(ClaudeChatServiceProvider())
        registry.register(GeminiChatServiceProvider())
        return registry

    def register(self, provider: ChatServiceProvider) -> None:
        if not provider.name:
            raise ValueError(f"Chat provider must have a name: {provider}")
        if provider.name in self._providers:
            raise ValueError(f"Chat provider '{provider.name}' already registered")
        self._providers[provider.name] = provider
        logger.debug("Registered chat provider: %s", provider.name)

    def get(self, name: str) -> ChatServiceProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise UnknownProviderError(name) from None

    def create_chat_service(self, name: str, options: ChatServiceOptions) -> ChatService:
        return self.get(name).create_chat_service(options)

    def create_summarizer(self, name: str, options: ChatServiceOptions) -> Any:
        return self.get(name).create_summarizer(options)

    def available_providers(self) -> list[str]:
        return list(self._providers.keys())

    def supported_models(self, name: str) -> list[str]:
        provider = self._providers.get(name)
        return provider.supported_models() if provider else []
