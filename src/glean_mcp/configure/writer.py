"""
writer.py - 클라이언트 설정 파일 쓰기

    파일 없음          -> 상위 디렉토리까지 만들고 새로 쓴다
    파싱 불가          -> <path>.backup-<epoch ms> 로 백업 후 새로 쓴다
    같은 항목이 이미 있음 -> 건드리지 않는다
    그 외              -> Glean 서버 항목만 병합해서 쓴다
"""
from __future__ import annotations

import json
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

import yaml

from .clients import ConfigureOptions, MCPClient

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    action: str  # "created" | "updated" | "unchanged" | "replaced"
    path: Path
    backup_path: Path | None = None
    parse_error: str | None = None


def _loads(text: str, file_format: str) -> dict:
    if file_format == "yaml":
        data = yaml.safe_load(text)
        # 빈 YAML 파일은 None 으로 읽힌다
        data = {} if data is None else data
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("configuration root is not an object")
    return data


def _dumps(data: dict, file_format: str) -> str:
    if file_format == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, ensure_ascii=False, indent=2)


def write_config(path: Path, new_config: dict, client: MCPClient, options: ConfigureOptions) -> WriteResult:
    file_format = client.file_format

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_dumps(new_config, file_format), encoding="utf-8")
        logger.info("설정 파일 생성: %s", path)
        return WriteResult("created", path)

    try:
        existing = _loads(path.read_text(encoding="utf-8"), file_format)
    except (ValueError, yaml.YAMLError) as e:
        backup_path = path.with_name(f"{path.name}.backup-{int(time.time() * 1000)}")
        shutil.copyfile(path, backup_path)
        path.write_text(_dumps(new_config, file_format), encoding="utf-8")
        logger.warning("설정 파일 파싱 실패 %s, 백업 %s: %s", path, backup_path, e)
        return WriteResult("replaced", path, backup_path=backup_path, parse_error=str(e))

    if client.has_existing_config(existing, new_config, options):
        return WriteResult("unchanged", path)

    updated = client.update_config(existing, new_config, options)
    path.write_text(_dumps(updated, file_format), encoding="utf-8")
    logger.info("설정 파일 갱신: %s", path)
    return WriteResult("updated", path)
