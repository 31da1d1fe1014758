"""Model names and endpoints for the built-in back ends."""

# --- OpenAI ---

ENDPOINT_OPENAI_CHAT_COMPLETIONS = "https://api.openai.com/v1/chat/completions"

MODEL_GPT_4O_MINI = "gpt-4o-mini"
MODEL_GPT_4O = "gpt-4o"
MODEL_O3_MINI = "o3-mini"

OPENAI_MODELS = (MODEL_GPT_4O_MINI, MODEL_GPT_4O, MODEL_O3_MINI)
OPENAI_VISION_MODELS = (MODEL_GPT_4O_MINI, MODEL_GPT_4O)

# --- Claude ---

ENDPOINT_CLAUDE_MESSAGES = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

MODEL_CLAUDE_3_HAIKU = "claude-3-haiku-20240307"
MODEL_CLAUDE_3_5_HAIKU = "claude-3-5-haiku-20241022"
MODEL_CLAUDE_3_5_SONNET = "claude-3-5-sonnet-20241022"
MODEL_CLAUDE_3_7_SONNET = "claude-3-7-sonnet-20250219"

CLAUDE_MODELS = (
    MODEL_CLAUDE_3_HAIKU,
    MODEL_CLAUDE_3_5_HAIKU,
    MODEL_CLAUDE_3_5_SONNET,
    MODEL_CLAUDE_3_7_SONNET,
)
CLAUDE_VISION_MODELS = CLAUDE_MODELS

# --- Gemini ---

ENDPOINT_GEMINI = "https://generativelanguage.googleapis.com/v1beta"

MODEL_GEMINI_2_0_FLASH = "gemini-2.0-flash"
MODEL_GEMINI_2_0_FLASH_LITE = "gemini-2.0-flash-lite"
MODEL_GEMINI_1_5_FLASH = "gemini-1.5-flash"
MODEL_GEMINI_1_5_PRO = "gemini-1.5-pro"
MODEL_GEMINI_2_5_PRO_EXP = "gemini-2.5-pro-exp-03-25"

GEMINI_MODELS = (
    MODEL_GEMINI_2_0_FLASH_LITE,
    MODEL_GEMINI_2_0_FLASH,
    MODEL_GEMINI_1_5_FLASH,
    MODEL_GEMINI_1_5_PRO,
    MODEL_GEMINI_2_5_PRO_EXP,
)
GEMINI_VISION_MODELS = GEMINI_MODELS
