#!/usr/bin/env python3
"""
supervisor.py
프로그램 실행 감시 - 시그널 처리 및 안전 종료

안전 규칙:
  - 시작 전 릴레이 상태 확인: 이미 켜져 있으면 실행 거부 (이전 실행이 정상 종료되지 않음)
  - 종료 시그널(INT/TERM/HUP/QUIT): 즉시 전체 OFF → 채널 닫기 → 프로세스 종료
  - 상태 시그널(USR1): 현재 릴레이 상태 로그 출력 후 계속 실행
    예) kill -USR1 <pid>

동기화:
  - 시그널 핸들러는 큐에 시그널 번호만 넣는다
  - 감시 스레드가 큐에서 하나씩 꺼내 처리 (재진입 없음)
  - 메인 루프는 대기할 때마다 정지 이벤트를 확인
  - 채널 접근은 RelayChannel 내부 락으로 직렬화
"""

import logging
import os
import queue
import signal
import threading

from hardware.relay_controller import RelayError, SprinklerError

logger = logging.getLogger(__name__)


class AlreadyActiveError(SprinklerError):
    """시작 전 릴레이가 이미 켜져 있음"""

    def __init__(self, mask):
        self.mask = mask
        super().__init__(f"릴레이가 이미 사용 중입니다 (mask=0x{mask:02x})")


class RunInterrupted(SprinklerError):
    """종료 시그널로 실행 중단"""


class Supervisor:
    """프로그램 실행 감시자"""

    TERMINATE_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP, signal.SIGQUIT)
    STATUS_SIGNALS = (signal.SIGUSR1,)

    def __init__(self, channel, exit_func=os._exit):
        """
        초기화

        Args:
            channel: RelayChannel
            exit_func: 종료 함수 (기본 os._exit, 테스트에서 교체)
        """
        self.channel = channel
        self._exit = exit_func
        self._signals = queue.SimpleQueue()
        self._stop = threading.Event()
        self._thread = None
        self._previous = {}

        self.last_status = None
        self.exit_code = None

    @property
    def interrupted(self):
        return self._stop.is_set()

    # ===== 사전 점검 =====

    def preflight(self):
        """
        릴레이가 모두 꺼져 있는지 확인 (쓰기 없음)

        Raises:
            AlreadyActiveError: 켜져 있는 릴레이가 있음
        """
        mask = self.channel.get()
        if mask:
            raise AlreadyActiveError(mask)
        logger.info("사전 점검 OK: 모든 릴레이 OFF")

    # ===== 시그널 감시 =====

    def start(self):
        """시그널 핸들러 등록 및 감시 스레드 시작"""
        if self._thread:
            return

        self._signals = queue.SimpleQueue()
        for signum in self.TERMINATE_SIGNALS + self.STATUS_SIGNALS:
            self._previous[signum] = signal.signal(signum, self._on_signal)

        self._thread = threading.Thread(
            target=self._watch, daemon=True, name="RelaySignalWatcher"
        )
        self._thread.start()
        logger.debug(f"시그널 감시 시작 (pid {os.getpid()})")

    def stop(self):
        """핸들러 복구 및 감시 스레드 정지"""
        for signum, handler in self._previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous = {}

        if self._thread:
            self._signals.put(None)
            self._thread.join(timeout=5)
            self._thread = None
        logger.debug("시그널 감시 정지")

    def handle_signal(self, signum):
        """시그널 처리 요청 (큐에 넣기만 함)"""
        self._signals.put(signum)

    def _on_signal(self, signum, frame):
        self.handle_signal(signum)

    def _watch(self):
        while True:
            signum = self._signals.get()
            if signum is None:
                return

            logger.warning(f"시그널 수신: {signal.Signals(signum).name}")
            if signum in self.STATUS_SIGNALS:
                self.report_status()
                continue

            self.shutdown()
            return

    def report_status(self):
        """
        현재 릴레이 상태 출력 (상태 변경 없음)

        Returns:
            int: 논리 마스크, 읽기 실패 시 None
        """
        try:
            mask = self.channel.get()
        except RelayError as e:
            logger.error(f"상태 읽기 실패: {e}")
            return None

        self.last_status = mask
        logger.info(f"state=0x{mask:02x}")
        return mask

    def shutdown(self):
        """긴급 정지: 전체 OFF → 채널 닫기 → 프로세스 종료"""
        self._stop.set()
        code = 0

        try:
            self.channel.shutdown()
            logger.warning("🔴 모든 릴레이 OFF")
        except RelayError as e:
            logger.error(f"❌ 릴레이 OFF 실패: {e}")
            code = 1

        self.exit_code = code
        logger.warning(f"종료 (exit {code})")
        self._exit(code)

    # ===== 실행 =====

    def _sleep(self, seconds):
        if self._stop.wait(seconds):
            raise RunInterrupted("종료 시그널로 중단되었습니다")

    def run(self, program, percent=100):
        """
        사전 점검 후 시그널 감시 하에서 프로그램 실행

        Args:
            program: Program
            percent: 관수 시간 배율 (%)

        Returns:
            bool: True(완료), False(종료 시그널로 중단)
        """
        self.preflight()
        self.start()

        try:
            program.run(self.channel, percent, sleep=self._sleep)
            return True
        except RunInterrupted:
            logger.warning("⚠️  프로그램 중단")
            return False
        except RelayError:
            # 감시 스레드가 채널을 닫은 뒤의 쓰기는 실패로 끝난다
            if self.interrupted:
                logger.warning("⚠️  프로그램 중단")
                return False
            raise
        finally:
            self.stop()
