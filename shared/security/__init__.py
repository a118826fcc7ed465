from .tokens import create_access_token, decode_user_id
from .dependencies import INTERNAL_API_KEY, get_current_user, verify_api_key, verify_internal_api_key

__all__ = [
    "INTERNAL_API_KEY",
    "create_access_token",
    "decode_user_id",
    "get_current_user",
    "verify_api_key",
    "verify_internal_api_key",
]
