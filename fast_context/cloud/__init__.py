"""Remote search service support."""

from fast_context.cloud.client import ProcessState, SearchServiceClient, get_process_state
from fast_context.cloud.credentials import CredentialStore
from fast_context.cloud.token_cache import TokenCache
from fast_context.cloud.transport import TlsFallbackState, Transport

__all__ = [
    "CredentialStore",
    "ProcessState",
    "SearchServiceClient",
    "TlsFallbackState",
    "TokenCache",
    "Transport",
    "get_process_state",
]
