"""
LLM Package: the provider-neutral message, block and stream model.

- contracts: Message, VisionMessage, blocks and Completion
- stream: CompletionStream and the StreamDecoder base
- wire: pydantic schemas for each back end's payloads
- decoders: per back end streaming and one-shot normalization
- screenplay: emotion tag parsing for finalized replies
"""

from lumen.llm.contracts import (
    ChatMessage,
    ChatResponseLength,
    Completion,
    ImagePart,
    Message,
    StopReason,
    TextBlock,
    TextPart,
    ToolCallMessage,
    ToolResultBlock,
    ToolResultMessage,
    ToolUseBlock,
    VisionMessage,
)
from lumen.llm.screenplay import Screenplay, text_to_screenplay
from lumen.llm.stream import CompletionStream, collect

__all__ = [
    "ChatMessage",
    "ChatResponseLength",
    "Completion",
    "CompletionStream",
    "ImagePart",
    "Message",
    "Screenplay",
    "StopReason",
    "TextBlock",
    "TextPart",
    "ToolCallMessage",
    "ToolResultBlock",
    "ToolResultMessage",
    "ToolUseBlock",
    "VisionMessage",
    "collect",
    "text_to_screenplay",
]
