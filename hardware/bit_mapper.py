#!/usr/bin/env python3
"""
bit_mapper.py
릴레이 비트마스크 ↔ I2C 와이어 비트마스크 변환

릴레이 보드 내부 IO 확장칩의 핀 배선이 릴레이 번호 순서와 다르다.
아래 테이블은 보드를 직접 측정해서 얻은 값(리버스 엔지니어링)이며
공식으로 유도할 수 없으므로 프로토콜 상수로 취급한다.

    릴레이 번호 : 1 2 3 4 5 6 7 8
    와이어 비트 : 0 2 1 3 6 4 5 7
"""


class BitMapper:
    """논리 마스크(bit i = Zone i+1)와 와이어 마스크 간 변환 (순수 함수)"""

    # 논리 비트 → 와이어 비트 (실측값, 수정 금지)
    WIRE_ORDER = (0, 2, 1, 3, 6, 4, 5, 7)

    def __init__(self, wire_order=WIRE_ORDER):
        """
        초기화

        Args:
            wire_order: 논리 비트 위치별 와이어 비트 위치 (8개 순열)
        """
        if sorted(wire_order) != list(range(8)):
            raise ValueError(f"잘못된 비트 순열: {wire_order}")

        self.wire_order = tuple(wire_order)

        # 역변환 테이블 (와이어 비트 → 논리 비트)
        inverse = [0] * 8
        for logical, wire in enumerate(self.wire_order):
            inverse[wire] = logical
        self.logical_order = tuple(inverse)

    @staticmethod
    def _remap(mask, order):
        value = 0
        for bit in range(8):
            if mask & (1 << bit):
                value |= 1 << order[bit]
        return value

    def to_wire(self, logical_mask):
        """
        논리 마스크 → 와이어 마스크

        Args:
            logical_mask: bit i = Zone i+1 (0~255, 상위 비트 무시)

        Returns:
            int: 보드에 쓸 와이어 마스크
        """
        return self._remap(logical_mask, self.wire_order)

    def to_logical(self, wire_mask):
        """
        와이어 마스크 → 논리 마스크

        Args:
            wire_mask: 보드에서 읽은 와이어 마스크

        Returns:
            int: 논리 마스크
        """
        return self._remap(wire_mask, self.logical_order)


# 기본 보드 매퍼 (프로세스 수명 동안 공유, 불변)
DEFAULT_MAPPER = BitMapper()
