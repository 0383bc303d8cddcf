"""OAuth 장치 인증, 토큰 저장, 토큰 갱신."""
from .errors import AuthError, AuthErrorCode
from .manager import (
    discover_oauth_config,
    ensure_auth_token_presence,
    force_authorize,
    force_refresh_tokens,
)
from .tokens import Tokens, load_tokens, save_tokens

__all__ = [
    "AuthError",
    "AuthErrorCode",
    "Tokens",
    "discover_oauth_config",
    "ensure_auth_token_presence",
    "force_authorize",
    "force_refresh_tokens",
    "load_tokens",
    "save_tokens",
]
