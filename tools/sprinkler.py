#!/usr/bin/env python3
"""
스프링클러 프로그램 실행 도구
------------------------------------------------------
사용법:
  sprinkler --program 1:10m,2:10m,3:5m30s          # 프로그램 실행
  sprinkler --program 1:10m,2:10m --total-time     # 전체 실행 시간만 계산
  sprinkler --program 1:10m --scale 50             # 관수 시간 50%로 실행
  sprinkler --config settings.json --write-config settings.json

cron 예 (매일 06:00):
  0 6 * * * sprinkler --program 1:10m,2:10m,3:10m

실행 중 상태 확인:
  kill -USR1 <pid>     → 현재 켜진 릴레이 로그 출력
  kill <pid>           → 모든 릴레이 OFF 후 종료
"""

import argparse
import logging
import sys

from hardware.relay_controller import ConfigError, RelayChannel, RelayError
from irrigation.config_manager import ConfigManager, setup_logging
from irrigation.program import format_duration, parse_program
from irrigation.supervisor import AlreadyActiveError, Supervisor

logger = logging.getLogger("sprinkler")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def build_parser():
    parser = argparse.ArgumentParser(
        prog='sprinkler',
        description='I2C 릴레이 보드 스프링클러 프로그램 실행 (한 번에 Zone 하나)',
        epilog="'kill -USR1 $pid' 로 현재 동작 중인 Zone 확인",
    )
    parser.add_argument('--program', help='Zone:시간 목록 (예: 1:10m,2:5m30s,0:1m)')
    parser.add_argument('--board', type=int, help='릴레이 보드 번호 1~8 (기본: 설정값 1)')
    parser.add_argument('--i2c-bus', type=int, help='I2C 버스 번호 (기본: 설정값 1)')
    parser.add_argument('--scale', type=int, help='모든 관수 시간 배율 %% (테스트용 0, 기본: 100)')
    parser.add_argument('--total-time', action='store_true', help='프로그램 전체 실행 시간만 출력')
    parser.add_argument('--config', help='설정 파일 (JSON)')
    parser.add_argument('--write-config', metavar='PATH', help='현재 설정을 파일로 저장하고 종료')
    parser.add_argument('--log-level', help='로그 레벨 (DEBUG/INFO/WARNING/ERROR)')
    return parser


def _pick(value, config, key):
    return value if value is not None else config.get_setting(key)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ConfigManager(args.config)
    except ConfigError as e:
        setup_logging(args.log_level or "INFO")
        logger.error(f"❌ {e}")
        return EXIT_CONFIG

    setup_logging(_pick(args.log_level, config, "system.log_level"))

    if args.write_config:
        config.save_settings(args.write_config)
        return EXIT_OK

    if not args.program:
        logger.error("프로그램이 지정되지 않았습니다")
        parser.print_usage(sys.stderr)
        return EXIT_CONFIG

    bus = _pick(args.i2c_bus, config, "hardware.i2c_bus")
    board = _pick(args.board, config, "hardware.board")
    scale = _pick(args.scale, config, "system.scale")
    if scale < 0:
        logger.error(f"❌ 잘못된 배율: {scale}")
        return EXIT_CONFIG

    try:
        program = parse_program(args.program, config.settle_delay)
    except ConfigError as e:
        logger.error(f"❌ {e}")
        return EXIT_CONFIG

    if args.total_time:
        print(format_duration(program.total_duration(scale)))
        return EXIT_OK

    try:
        channel = RelayChannel.open(bus, board)
    except ConfigError as e:
        logger.error(f"❌ {e}")
        return EXIT_CONFIG
    except RelayError as e:
        logger.error(f"❌ 버스 {bus} 에서 보드 {board} 를 찾을 수 없습니다: {e}")
        return EXIT_FAILURE

    with channel:
        supervisor = Supervisor(channel)
        try:
            completed = supervisor.run(program, scale)
        except AlreadyActiveError as e:
            logger.error(f"❌ {e}")
            return EXIT_FAILURE
        except RelayError as e:
            logger.error(f"❌ 실행 실패: {e}")
            return EXIT_FAILURE

    if not completed:
        logger.error("❌ 프로그램이 끝까지 실행되지 않았습니다")
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
