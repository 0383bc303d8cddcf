"""
preflight.py - Glean 인스턴스 이름 검증

configure 전에 인스턴스 이름이 실제로 응답하는지 확인한다.
응답 내용은 보지 않고 2xx 인지만 본다.
"""
from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


async def validate_instance(http: httpx.AsyncClient, instance: str) -> bool:
    if not instance:
        logger.debug("검증할 인스턴스 이름이 없음")
        return False

    url = f"https://{instance}-be.glean.com/liveness_check"
    logger.debug("인스턴스 확인: %s", url)
    try:
        response = await http.get(url, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        logger.error("인스턴스 검증 실패 %s: %s", instance, e)
        return False

    if not response.is_success:
        logger.error("인스턴스 검증 실패 %s: %s", instance, response.status_code)
        return False
    return True
