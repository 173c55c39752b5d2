"""Transport client — configuration, the Transport interface and LLMClient."""

from llmrelay.client.client import CallState, ChatOptions, LLMClient, endpoint_url
from llmrelay.client.config import ClientConfig
from llmrelay.client.transport import (
    Credentials,
    Endpoint,
    HttpxTransport,
    Transport,
    classify_response,
)

__all__ = [
    "CallState",
    "ChatOptions",
    "ClientConfig",
    "Credentials",
    "Endpoint",
    "HttpxTransport",
    "LLMClient",
    "Transport",
    "classify_response",
    "endpoint_url",
]
