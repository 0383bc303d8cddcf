"""
errors.py - 인증 에러 코드

모든 인증 실패는 AuthError 하나로 표현하고, code로 원인을 구분한다.
str(err) 는 "ERR_A_NN: 메시지" 형태이며 CLI는 이것을 그대로 한 줄 출력한다.
"""
from __future__ import annotations

from enum import Enum


class AuthErrorCode(str, Enum):
    UNKNOWN = "ERR_A_00"
    TOKEN_CONFIG_FOR_AUTHORIZE = "ERR_A_01"
    AUTH_SERVER_METADATA_FETCH = "ERR_A_02"
    AUTH_SERVER_METADATA_PARSE = "ERR_A_03"
    AUTH_SERVER_MISSING_TOKEN_ENDPOINT = "ERR_A_04"
    AUTH_SERVER_MISSING_DEVICE_ENDPOINT = "ERR_A_05"
    PROTECTED_RESOURCE_FETCH = "ERR_A_06"
    PROTECTED_RESOURCE_NOT_OK = "ERR_A_07"
    PROTECTED_RESOURCE_PARSE = "ERR_A_08"
    PROTECTED_RESOURCE_MISSING_AUTH_SERVERS = "ERR_A_09"
    PROTECTED_RESOURCE_MISSING_CLIENT_ID = "ERR_A_10"
    TOKEN_CONFIG_FOR_REFRESH = "ERR_A_11"
    REFRESH_TOKENS_NOT_FOUND = "ERR_A_12"
    REFRESH_TOKEN_MISSING = "ERR_A_13"
    UNEXPECTED_TOKEN_RESPONSE = "ERR_A_14"
    TOKEN_SERVER_ERROR = "ERR_A_15"
    UNEXPECTED_AUTH_GRANT_ERROR = "ERR_A_16"
    DEVICE_FLOW_TIMEOUT = "ERR_A_17"
    NOT_INTERACTIVE = "ERR_A_18"
    INVALID_CONFIG = "ERR_A_19"
    UNEXPECTED_DEVICE_AUTH_RESPONSE = "ERR_A_20"
    NO_REFRESH_TOKEN_ISSUED = "ERR_A_23"
    DEVICE_AUTH_REQUEST_FAILED = "ERR_A_24"


class AuthError(Exception):
    """인증 실패. cause에는 원인 예외나 서버 응답(dict)을 담는다."""

    def __init__(self, message: str, code: AuthErrorCode = AuthErrorCode.UNKNOWN, cause: object = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
