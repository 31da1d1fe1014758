"""
Lumen errors: the failure taxonomy shared by providers, tools and turns.

Transport errors fail fast with the provider's body attached. Capability
errors surface at construction time. Tool errors reject a whole dispatch
batch. Summarization errors never reach this module: summarizers degrade
to a fallback string instead.
"""

from __future__ import annotations


class LumenError(Exception):
    """Base class for every error raised by lumen."""


# --- Providers ---


class ProviderHTTPError(LumenError):
    """A provider answered with a non-success HTTP status.

    Raised before any decoding starts. ``body`` is the response body
    exactly as the provider sent it.
    """

    def __init__(self, provider: str, status_code: int, body: str):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} error ({status_code}): {body}")


class ProviderStreamError(LumenError):
    """The provider reported an error event inside a streamed response."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider} stream error: {message}")


class VisionNotSupportedError(LumenError):
    """A vision call was configured against a model that cannot see images."""

    def __init__(self, provider: str, model: str):
        self.provider = provider
        self.model = model
        super().__init__(f"Model {model} does not support vision capabilities.")


class UnknownProviderError(LumenError, KeyError):
    """No chat provider is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown chat provider: {name}")

    def __str__(self) -> str:
        return self.args[0]


class ToolUseNotAllowedError(LumenError):
    """The no-tool convenience path received a tool call from the model."""

    def __init__(self, method: str, once_method: str):
        super().__init__(
            f"{method} received tool calls. "
            f"Use {once_method}() and resolve the tool calls yourself when tools are enabled."
        )


class UnresolvedToolCallError(LumenError):
    """A model-requested tool call could not be resolved within the current turn."""


# --- Tools ---


class DuplicateToolError(LumenError, ValueError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' already registered")


class UnknownToolError(LumenError, LookupError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unhandled tool: {name}")


class ToolTimeoutError(LumenError, TimeoutError):
    def __init__(self, name: str, timeout_ms: int):
        self.name = name
        self.timeout_ms = timeout_ms
        super().__init__(f"{name} timed out")


class UnknownMCPServerError(LumenError, LookupError):
    def __init__(self, server: str):
        self.server = server
        super().__init__(f"MCP server '{server}' not found")
