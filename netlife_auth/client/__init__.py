from .controller import RetryController
from .errors import ERROR_MESSAGES, ErrorInfo, classify_error, format_countdown, get_error_info, get_retry_config
from .sdk import AuthClient, AuthResult

__all__ = [
    "AuthClient",
    "AuthResult",
    "ERROR_MESSAGES",
    "ErrorInfo",
    "RetryController",
    "classify_error",
    "format_countdown",
    "get_error_info",
    "get_retry_config",
]
