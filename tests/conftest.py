"""
conftest.py
테스트용 가짜 릴레이 보드 (레지스터 포인터 + 출력 래치 흉내)
"""

import errno

import pytest

from hardware.bit_mapper import DEFAULT_MAPPER
from hardware.relay_controller import RelayChannel, WRITE_REGISTER


class FakeBoard:
    """I2CDevice 대역 - 메모리 상의 릴레이 보드"""

    def __init__(self, output=0, fail_select=False, short_write=False,
                 short_read=False, fail_after=None):
        self.output = output          # 와이어 마스크 (출력 레지스터)
        self.pointer = 0
        self.address = None
        self.selects = []
        self.writes = []
        self.closed = False

        self.fail_select = fail_select
        self.short_write = short_write
        self.short_read = short_read
        self.fail_after = fail_after  # 쓰기 N회 이후 I/O 오류
        self.on_write = None          # 쓰기 직후 호출 (data)

    def select(self, address):
        self.selects.append(address)
        if self.fail_select:
            raise OSError(errno.EBUSY, "Device or resource busy")
        self.address = address

    def write(self, data):
        data = bytes(data)
        if self.fail_after is not None and len(self.writes) >= self.fail_after:
            raise OSError(errno.EIO, "Input/output error")
        self.writes.append(data)
        if self.on_write:
            self.on_write(data)
        if self.short_write:
            return len(data) - 1

        self.pointer = data[0]
        if len(data) == 2 and data[0] == WRITE_REGISTER:
            self.output = data[1]
        return len(data)

    def read(self, length):
        data = bytes([0x00, self.output])[:length]
        if self.short_read:
            return data[:1]
        return data

    def close(self):
        self.closed = True

    def set_masks(self):
        """set 트랜잭션으로 쓴 논리 마스크 목록"""
        return [DEFAULT_MAPPER.to_logical(w[1]) for w in self.writes
                if len(w) == 2 and w[0] == WRITE_REGISTER]


@pytest.fixture
def board():
    return FakeBoard()


@pytest.fixture
def channel(board):
    return RelayChannel(board, 1)
