"""
pkce.py - PKCE(RFC 7636)와 발급자별 스코프

PKCE는 발급자 도메인이 onelogin.com 일 때 장치 인증 요청에 붙는다.
"""
from __future__ import annotations

import base64
import hashlib
import os
from dataclasses import dataclass
from urllib.parse import urlparse

CODE_CHALLENGE_METHOD = "S256"
VERIFIER_LENGTH = 128

_PKCE_DOMAINS = ("onelogin.com",)

_SCOPES_BY_DOMAIN = {
    "google.com": "openid profile https://www.googleapis.com/auth/userinfo.email",
    "okta.com": "openid profile offline_access",
}
DEFAULT_SCOPES = "openid profile"


@dataclass(frozen=True)
class PkcePair:
    code_verifier: str
    code_challenge: str
    method: str = CODE_CHALLENGE_METHOD


def base64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier(length: int = VERIFIER_LENGTH) -> str:
    # 랜덤 바이트를 base64url 로 인코딩한 뒤 길이에 맞게 자른다 (43..128자)
    return base64url_encode(os.urandom(length))[:length]


def generate_code_challenge(code_verifier: str) -> str:
    return base64url_encode(hashlib.sha256(code_verifier.encode("ascii")).digest())


def generate_pkce_pair() -> PkcePair:
    verifier = generate_code_verifier()
    return PkcePair(code_verifier=verifier, code_challenge=generate_code_challenge(verifier))


# --- 발급자 도메인 ---

def _matches_domain(issuer: str, domain: str) -> bool:
    host = (urlparse(issuer).hostname or "").lower()
    return host == domain or host.endswith("." + domain)


def issuer_requires_pkce(issuer: str) -> bool:
    return any(_matches_domain(issuer, domain) for domain in _PKCE_DOMAINS)


def get_oauth_scopes(issuer: str) -> str:
    """발급자에 맞는 스코프. 사용자 이메일이 토큰에 포함되도록 일부 발급자는 추가 스코프가 필요하다."""
    for domain, scopes in _SCOPES_BY_DOMAIN.items():
        if _matches_domain(issuer, domain):
            return scopes
    return DEFAULT_SCOPES
