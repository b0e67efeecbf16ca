#!/usr/bin/env python3
"""
릴레이 보드 기본 테스트 도구
------------------------------------------------------
사용법:
  relay-board get              # 현재 켜진 릴레이 마스크 출력
  relay-board set 5            # Zone 1, 3 ON (0b101)
  relay-board set 0x80         # Zone 8 ON
  relay-board set 0            # 전체 OFF
  relay-board --board 2 get    # 2번 보드
"""

import argparse
import logging
import sys

from hardware.relay_controller import ConfigError, RelayChannel, RelayError
from irrigation.config_manager import setup_logging

logger = logging.getLogger("relay-board")


def mask_value(text):
    """0~0xFF 정수 (10진수 또는 0x 접두사)"""
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"정수가 아닙니다: {text!r}") from None
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"범위 오류 (0~0xFF): {text}")
    return value


def build_parser():
    parser = argparse.ArgumentParser(prog='relay-board', description='I2C 릴레이 보드 get/set')
    parser.add_argument('--board', type=int, default=1, help='릴레이 보드 번호 1~8 (기본: 1)')
    parser.add_argument('--i2c-bus', type=int, default=1, help='I2C 버스 번호 (기본: 1)')
    parser.add_argument('--log-level', default='WARNING', help='로그 레벨 (기본: WARNING)')

    commands = parser.add_subparsers(dest='command', required=True)
    commands.add_parser('get', help='현재 켜진 릴레이 마스크 출력')
    set_cmd = commands.add_parser('set', help='릴레이 마스크 쓰기')
    set_cmd.add_argument('mask', type=mask_value, help='논리 마스크 (bit 0 = Zone 1)')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        channel = RelayChannel.open(args.i2c_bus, args.board)
    except ConfigError as e:
        logger.error(f"❌ {e}")
        return 2
    except RelayError as e:
        logger.error(f"❌ 버스 {args.i2c_bus} 에서 보드 {args.board} 를 찾을 수 없습니다: {e}")
        return 1

    with channel:
        try:
            if args.command == 'set':
                channel.set(args.mask)
            else:
                print(channel.get())
        except RelayError as e:
            logger.error(f"❌ {args.command} 실패: {e}")
            return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
