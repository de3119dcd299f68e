"""Default configuration settings for the pagechat package."""

from __future__ import annotations

# --- Token Budget ---
CHARS_PER_TOKEN = 4  # Rough estimate, not a tokenizer
CONTEXT_LIMIT_TOKENS = 900_000

# --- Provider (Bedrock, Anthropic Messages API) ---
DEFAULT_AWS_REGION = "us-west-2"
DEFAULT_MODEL_ID = "anthropic.claude-3-5-sonnet-20240620-v1:0"
ANTHROPIC_VERSION = "bedrock-2023-05-31"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7
PROVIDER_NAME = "Bedrock"
PROVIDER_REQUEST_TIMEOUT = 120.0

# --- Relay / Bridge ---
DEFAULT_RELAY_HOST = "127.0.0.1"
DEFAULT_RELAY_PORT = 3000
DEFAULT_BRIDGE_PORT = 3001
DEFAULT_RELAY_URL = f"http://localhost:{DEFAULT_RELAY_PORT}/api/chat"
CHAT_ROUTE = "/api/chat"
PORT_ROUTE = "/port"

INVALID_BODY_ERROR = "Invalid request body: messages array is required."
INVALID_PORT_REQUEST_ERROR = "Invalid request: Missing or invalid messages array."

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
