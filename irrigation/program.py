#!/usr/bin/env python3
"""
program.py
관수 프로그램 - (Zone, 시간) 이벤트를 순서대로 하나씩 실행

동작 원리:
  1. 이벤트 = Zone 번호(0 = 휴지) + 관수 시간
  2. 프로그램 = 이벤트 목록 (목록 순서 = 실행 순서)
  3. 이벤트마다: Zone ON → 관수 시간 대기 → 전체 OFF → 안정화 대기
  4. 한 번에 릴레이 하나만 동작 (다음 이벤트는 이전 이벤트의 OFF/안정화 후 시작)

프로그램 문자열 형식: "1:10m,2:5m30s,0:1m,3:90s"
"""

import logging
import re
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable

import pytimeparse

from hardware.relay_controller import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 3  # Zone 전환 사이 안정화 대기 (초)
MAX_ZONES = 8
EVENT_SEPARATOR = ":"
PROGRAM_SEPARATOR = ","

# 시간 단위 필수 (h/m/s, 초 미만 단위 ms/us 없음)
UNITLESS_NUMBER = re.compile(r"[+-]?[\d.]+")


class InvalidEventSpec(ConfigError):
    """잘못된 이벤트 문자열"""

    def __init__(self, spec, field, reason):
        self.spec = spec
        self.field = field
        super().__init__(f"잘못된 이벤트 {spec!r} ({field}): {reason}")


class EmptyProgramError(ConfigError):
    """이벤트가 없는 프로그램"""


def format_duration(seconds):
    """
    초 → "1h2m3s" 형식 문자열 (parse_event로 다시 읽을 수 있음)

    Args:
        seconds: 시간 (초)

    Returns:
        str: 예) 330 → "5m30s", 1.5 → "1.5s", 0 → "0s"
    """
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    if hours:
        parts.append(f"{int(hours)}h")
    if minutes:
        parts.append(f"{int(minutes)}m")
    if secs or not parts:
        parts.append(f"{_format_seconds(secs)}s")
    return "".join(parts)


def _format_seconds(secs):
    if secs == int(secs):
        return str(int(secs))
    # repr = float를 그대로 복원하는 최단 자릿수, 지수 표기만 풀어 쓴다
    return format(Decimal(repr(float(secs))), "f")


@dataclass(frozen=True)
class Event:
    """Zone 하나의 관수 이벤트"""

    zone: int        # Zone 번호 (1~8), 0 = 릴레이 없음
    duration: float  # 관수 시간 (초)

    def __post_init__(self):
        if not 0 <= self.zone <= MAX_ZONES:
            raise InvalidEventSpec(str(self), "id", f"Zone 번호는 0~{MAX_ZONES}")

    @property
    def mask(self):
        """이 이벤트가 켜는 논리 마스크"""
        if self.zone == 0:
            return 0
        return 1 << (self.zone - 1)

    def __str__(self):
        return f"{self.zone}{EVENT_SEPARATOR}{format_duration(self.duration)}"


def parse_event(spec, settle_delay=DEFAULT_SETTLE_DELAY):
    """
    "Zone:시간" 문자열 → Event

    Args:
        spec: 예) "2:5m30s"
        settle_delay: 최소 관수 시간 (초)

    Returns:
        Event

    Raises:
        InvalidEventSpec: 형식/시간/Zone 번호 오류
    """
    parts = spec.split(EVENT_SEPARATOR)
    if len(parts) != 2:
        raise InvalidEventSpec(spec, "event", "'n:t' 형식이어야 합니다")
    zone_text, duration_text = (p.strip() for p in parts)

    if UNITLESS_NUMBER.fullmatch(duration_text):
        raise InvalidEventSpec(spec, "duration", f"단위가 없습니다 {duration_text!r} (예: 10s, 5m)")

    duration = pytimeparse.parse(duration_text)
    if duration is None:
        raise InvalidEventSpec(spec, "duration", f"시간 형식 오류 {duration_text!r}")
    if duration < settle_delay:
        raise InvalidEventSpec(
            spec, "duration",
            f"{format_duration(duration)} - 최소 {format_duration(settle_delay)} 이상")

    try:
        zone = int(zone_text)
    except ValueError:
        raise InvalidEventSpec(spec, "id", f"정수가 아닙니다 {zone_text!r}") from None
    if not 0 <= zone <= MAX_ZONES:
        raise InvalidEventSpec(spec, "id", f"Zone 번호는 0~{MAX_ZONES}")

    return Event(zone, duration)


def parse_program(spec, settle_delay=DEFAULT_SETTLE_DELAY):
    """
    "e1,e2,..." 문자열 → Program (첫 오류에서 중단)

    Args:
        spec: 예) "1:10m,2:10m"
        settle_delay: 안정화 대기 (초)

    Returns:
        Program
    """
    if not spec or not spec.strip():
        raise EmptyProgramError("프로그램이 지정되지 않았습니다")

    events = [parse_event(item, settle_delay) for item in spec.split(PROGRAM_SEPARATOR)]
    return Program(events, settle_delay)


class Program:
    """순차 실행되는 Zone 이벤트 목록 (생성 후 불변)"""

    def __init__(self, events: Iterable[Event], settle_delay=DEFAULT_SETTLE_DELAY):
        """
        초기화

        Args:
            events: Event 목록 (순서 유지)
            settle_delay: Zone 전환 사이 안정화 대기 (초)
        """
        if settle_delay < 0:
            raise ConfigError(f"안정화 대기 시간 오류: {settle_delay}")

        self.events = tuple(events)
        self.settle_delay = settle_delay

        if not self.events:
            raise EmptyProgramError("프로그램이 비어 있습니다")

        for event in self.events:
            if event.duration < settle_delay:
                raise InvalidEventSpec(
                    str(event), "duration",
                    f"최소 {format_duration(settle_delay)} 이상")

    def __len__(self):
        return len(self.events)

    def __iter__(self):
        return iter(self.events)

    def __str__(self):
        return PROGRAM_SEPARATOR.join(str(e) for e in self.events)

    def __repr__(self):
        return f"Program({str(self)!r}, settle_delay={self.settle_delay})"

    def scale(self, duration, percent):
        """
        관수 시간 배율 적용 (최소값 = 안정화 대기 시간)

        Args:
            duration: 원래 시간 (초)
            percent: 배율 (%), 0이면 최소 시간으로 실행

        Returns:
            float: 적용된 시간 (초)
        """
        return max(self.settle_delay, duration * percent / 100)

    def total_duration(self, percent=100):
        """
        전체 실행 시간 계산

        Returns:
            float: 관수 시간 합 + 이벤트 수 × 안정화 대기 (초)
        """
        watering = sum(self.scale(e.duration, percent) for e in self.events)
        return watering + len(self.events) * self.settle_delay

    def run(self, channel, percent=100, sleep: Callable[[float], None] = time.sleep):
        """
        프로그램 실행

        Args:
            channel: RelayChannel
            percent: 관수 시간 배율 (%)
            sleep: 대기 함수 (중단 가능한 대기를 주입할 수 있음)

        Raises:
            RelayError: 릴레이 쓰기 실패 시 즉시 중단
        """
        logger.info(
            f"프로그램 시작: {self} (배율 {percent}%, "
            f"예상 {format_duration(self.total_duration(percent))})")

        for index, event in enumerate(self.events, 1):
            duration = self.scale(event.duration, percent)

            channel.set(event.mask)
            logger.info(f"[{index}/{len(self.events)}] Zone {event.zone} ON ({format_duration(duration)})")
            sleep(duration)

            logger.info(f"[{index}/{len(self.events)}] Zone {event.zone} OFF")
            channel.set(0)
            sleep(self.settle_delay)

        logger.info("프로그램 완료")
