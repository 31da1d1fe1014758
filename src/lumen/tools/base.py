"""
ToolDefinition: name + description + JSON schema + dispatch config.

Definitions are provider-agnostic. Each chat service asks for the schema
shape its back end needs (OpenAI function calling, Anthropic tools, Gemini
function declarations).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

# (input) -> result, sync or async. Non-string results are JSON-serialized.
ToolHandler = Callable[[dict[str, Any]], Union[Any, Awaitable[Any]]]


@dataclass
class ToolParam:
    """A single parameter for a tool."""
    name: str
    type: str  # "string", "integer", "number", "boolean", "array", "object"
    description: str
    required: bool = True
    enum: list[str] | None = None
    items: dict | None = None  # For array types


@dataclass(frozen=True)
class ToolConfig:
    timeout_ms: int | None = None
    serial: bool = False  # recorded only, the executor never serializes


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    config: ToolConfig = field(default_factory=ToolConfig)

    @classmethod
    def from_params(
        cls,
        name: str,
        description: str,
        params: list[ToolParam],
        timeout_ms: int | None = None,
        serial: bool = False,
    ) -> ToolDefinition:
        """Build the JSON schema from typed parameters."""
        properties: dict[str, Any] = {}
        required: list[str] = []

        for param in params:
            prop: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                prop["enum"] = param.enum
            if param.items:
                prop["items"] = param.items
            properties[param.name] = prop

            if param.required:
                required.append(param.name)

        return cls(
            name=name,
            description=description,
            parameters={"type": "object", "properties": properties, "required": required},
            config=ToolConfig(timeout_ms=timeout_ms, serial=serial),
        )

    # --- Schema export for different providers ---

    def to_openai_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_claude_schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }

    def to_gemini_declaration(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def __repr__(self) -> str:
        return f"<Tool:{self.name}>"


@dataclass(frozen=True)
class MCPServerConfig:
    """A remote tool server. Its tools are called as ``mcp_{name}_{tool}``."""

    name: str
    url: str
    authorization_token: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MCPServerConfig:
        if not isinstance(data, dict) or not data.get("name") or not data.get("url"):
            raise ValueError(f"MCP server needs a name and a url: {data!r}")
        return cls(
            name=str(data["name"]),
            url=str(data["url"]).rstrip("/"),
            authorization_token=data.get("authorization_token") or None,
        )
