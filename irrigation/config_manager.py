#!/usr/bin/env python3
"""
config_manager.py
설정 관리 클래스 - 하드웨어/시스템 설정 로드 및 저장

설정 파일 예 (settings.json):
    {
      "system":   {"settle_delay": 3, "scale": 100, "log_level": "INFO"},
      "hardware": {"i2c_bus": 1, "board": 1}
    }
파일이 없으면 기본값을 사용한다.
"""

import copy
import json
import logging
import sys
from pathlib import Path

from hardware.relay_controller import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "system": {
        "settle_delay": 3,     # Zone 전환 사이 안정화 대기 (초)
        "scale": 100,          # 관수 시간 배율 (%)
        "log_level": "INFO"
    },
    "hardware": {
        "i2c_bus": 1,          # /dev/i2c-1
        "board": 1             # 릴레이 보드 번호 (1~8)
    }
}


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level="INFO"):
    """stderr 로그 설정 (cron 실행 시 메일/로그 파일로 전달됨)"""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _merge(base, override):
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class ConfigManager:
    """설정 파일 관리"""

    def __init__(self, config_path=None):
        """
        초기화

        Args:
            config_path: 설정 파일 경로 (None이면 기본값만 사용)
        """
        self.config_path = Path(config_path) if config_path else None
        self.settings = self.load_settings()
        self._validate()

    def load_settings(self):
        """
        시스템 설정 로드 (기본값 위에 파일 내용 병합)

        Returns:
            dict: 설정 데이터
        """
        settings = copy.deepcopy(DEFAULT_SETTINGS)

        if self.config_path is None:
            return settings
        if not self.config_path.exists():
            logger.info(f"설정 파일 없음, 기본값 사용: {self.config_path}")
            return settings

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"설정 로드 실패 ({self.config_path}): {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"설정 형식 오류 ({self.config_path}): 객체가 아닙니다")

        logger.debug(f"설정 로드: {self.config_path}")
        return _merge(settings, data)

    def save_settings(self, path=None):
        """
        시스템 설정 저장

        Args:
            path: 저장 경로 (None이면 config_path)

        Returns:
            Path: 저장한 파일 경로
        """
        target = Path(path) if path else self.config_path
        if target is None:
            raise ConfigError("저장할 설정 파일 경로가 없습니다")

        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            json.dump(self.settings, f, indent=2, ensure_ascii=False)
        logger.info(f"✓ 설정 저장 완료: {target}")
        return target

    def get_setting(self, key, default=None):
        """
        특정 설정값 조회

        Args:
            key: 설정 키 (예: "system.settle_delay")
            default: 기본값

        Returns:
            설정값
        """
        value = self.settings
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def _validate(self):
        delay = self.get_setting("system.settle_delay")
        if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
            raise ConfigError(f"system.settle_delay 오류: {delay!r}")

        for key in ("system.scale", "hardware.i2c_bus", "hardware.board"):
            value = self.get_setting(key)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"{key} 오류: {value!r}")

    @property
    def settle_delay(self):
        return self.get_setting("system.settle_delay")
