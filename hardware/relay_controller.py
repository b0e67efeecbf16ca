#!/usr/bin/env python3
"""
relay_controller.py
적층형 8채널 I2C 릴레이 보드 제어 클래스

하드웨어 구성:
- 버스: /dev/i2c-N (라즈베리파이 기본 1번)
- 보드: 최대 8장 적층, 보드 번호 1~8
- 슬레이브 주소: 0x27 - ((보드 번호 - 1) & 7)  → 보드 1 = 0x27, 보드 8 = 0x20

전송 형식:
- 쓰기: [0x01, 와이어 마스크]          (출력 레지스터)
- 읽기: [0x00] 쓰기 후 2바이트 읽기      (두 번째 바이트 = 출력 레지스터)
"""

import fcntl
import logging
import os
import threading

import smbus2
from smbus2.smbus2 import I2C_SLAVE

from hardware.bit_mapper import DEFAULT_MAPPER

logger = logging.getLogger(__name__)

BASE_ADDRESS = 0x27   # 보드 1 슬레이브 주소
READ_POINTER = 0x00   # 읽기 준비 (레지스터 포인터)
WRITE_REGISTER = 0x01 # 출력 레지스터
MAX_BOARDS = 8


# ===== 예외 =====

class SprinklerError(Exception):
    """모든 오류의 기반 클래스"""


class ConfigError(SprinklerError):
    """잘못된 설정/입력 (하드웨어 접근 전에 검출)"""


class InvalidBoardError(ConfigError):
    """보드 번호 범위 오류 (1~8)"""


class RelayError(SprinklerError):
    """하드웨어 오류 - 재시도하지 않음"""


class DeviceOpenError(RelayError):
    """I2C 버스 장치를 열 수 없음"""


class BoardSelectError(RelayError):
    """슬레이브 주소 설정 실패"""


class TransportError(RelayError):
    """읽기/쓰기 트랜잭션 실패 또는 부분 전송"""


def board_address(board):
    """보드 번호(1~8) → I2C 슬레이브 주소"""
    return BASE_ADDRESS - ((board - 1) & 7)


class I2CDevice:
    """/dev/i2c-N 원시 읽기/쓰기 핸들 (smbus2)"""

    def __init__(self, bus=1):
        """
        초기화

        Args:
            bus: I2C 버스 번호
        """
        self.bus = bus
        try:
            self._smbus = smbus2.SMBus(bus)
        except OSError as e:
            raise DeviceOpenError(f"I2C 버스 {bus} 열기 실패: {e}") from e

    def select(self, address):
        """I2C_SLAVE ioctl로 대상 슬레이브 주소 설정"""
        fcntl.ioctl(self._smbus.fd, I2C_SLAVE, address)

    def write(self, data):
        """원시 쓰기 (쓴 바이트 수 반환)"""
        return os.write(self._smbus.fd, bytes(data))

    def read(self, length):
        """원시 읽기"""
        return os.read(self._smbus.fd, length)

    def close(self):
        self._smbus.close()


class RelayChannel:
    """릴레이 보드 1장과 연결된 채널 (논리 마스크만 노출)"""

    def __init__(self, device, board=None, mapper=DEFAULT_MAPPER):
        """
        초기화

        Args:
            device: 열린 I2C 장치 (select/write/read/close)
            board: 보드 번호 (1~8), None이면 주소 미지정 상태
            mapper: BitMapper 인스턴스
        """
        self.device = device
        self.mapper = mapper
        self.board = 0  # 0 = 주소 미지정
        self._lock = threading.Lock()
        self._closed = False

        if board is not None:
            self.select_board(board)

    @classmethod
    def open(cls, bus=1, board=1, mapper=DEFAULT_MAPPER):
        """
        버스를 열고 보드를 선택한 채널 생성

        Args:
            bus: I2C 버스 번호
            board: 보드 번호 (1~8)

        Returns:
            RelayChannel
        """
        _check_board(board)
        device = I2CDevice(bus)
        try:
            return cls(device, board, mapper=mapper)
        except RelayError:
            device.close()
            raise

    def select_board(self, board):
        """
        같은 버스의 다른 보드로 주소 변경

        Args:
            board: 보드 번호 (1~8)
        """
        _check_board(board)
        address = board_address(board)

        with self._lock:
            self.board = board
            try:
                self.device.select(address)
            except OSError as e:
                self.board = 0
                raise BoardSelectError(
                    f"슬레이브 주소 설정 실패: 0x{I2C_SLAVE:04x}, 0x{address:02x}: {e}"
                ) from e

        logger.debug(f"보드 {board} 선택 (주소 0x{address:02x})")

    def set(self, mask):
        """
        릴레이 상태 쓰기

        Args:
            mask: 논리 마스크 (bit i = Zone i+1, 0 = 전체 OFF)
        """
        with self._lock:
            self._check_usable()
            self._write_mask(mask)

    def _write_mask(self, mask):
        # 호출자가 락을 잡고 있어야 함
        wire = self.mapper.to_wire(mask)
        buf = bytes([WRITE_REGISTER, wire])

        try:
            written = self.device.write(buf)
        except OSError as e:
            raise TransportError(f"쓰기 오류: {e}") from e

        if written != len(buf):
            raise TransportError(f"쓰기 오류: {written}/{len(buf)} 바이트 전송")

        logger.debug(f"set 0x{mask:02x} (wire 0x{wire:02x})")

    def get(self):
        """
        현재 릴레이 상태 읽기

        Returns:
            int: 논리 마스크
        """
        with self._lock:
            self._check_usable()
            try:
                written = self.device.write(bytes([READ_POINTER]))
                if written != 1:
                    raise TransportError(f"읽기 준비 오류: {written}/1 바이트 전송")
                data = self.device.read(2)
            except OSError as e:
                raise TransportError(f"읽기 오류: {e}") from e

        if len(data) != 2:
            raise TransportError(f"읽기 오류: {len(data)}/2 바이트 수신")

        mask = self.mapper.to_logical(data[1])
        logger.debug(f"get 0x{mask:02x} (wire 0x{data[1]:02x})")
        return mask

    def close(self):
        """장치 핸들 해제 (두 번째 호출부터는 무시)"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self.board = 0
            self.device.close()
        logger.debug("채널 닫힘")

    def shutdown(self):
        """
        긴급 정지: 전체 OFF 쓰기와 닫기를 한 번의 락 안에서 처리
        (그 사이에 다른 스레드의 쓰기가 끼어들 수 없음)

        Raises:
            TransportError: OFF 쓰기 실패 (채널은 그래도 닫힘)
        """
        with self._lock:
            if self._closed:
                raise TransportError("채널이 이미 닫혀 있습니다")
            try:
                if not self.board:
                    raise TransportError("선택된 보드가 없습니다")
                self._write_mask(0)
            finally:
                self._closed = True
                self.board = 0
                try:
                    self.device.close()
                except OSError as e:
                    logger.error(f"장치 닫기 실패: {e}")
        logger.debug("채널 긴급 정지 완료")

    @property
    def closed(self):
        return self._closed

    def _check_usable(self):
        if self._closed:
            raise TransportError("채널이 닫혀 있습니다")
        if not self.board:
            raise TransportError("선택된 보드가 없습니다")

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def _check_board(board):
    if not 1 <= board <= MAX_BOARDS:
        raise InvalidBoardError(f"잘못된 보드 번호: {board} (1~{MAX_BOARDS}만 가능)")
