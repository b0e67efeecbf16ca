"""
test_supervisor.py
사전 점검 / 시그널 처리 / 안전 종료 테스트
"""

import os
import signal
import threading
import time

import pytest

from conftest import FakeBoard
from hardware.bit_mapper import DEFAULT_MAPPER
from hardware.relay_controller import RelayChannel, TransportError
from irrigation.program import Event, Program
from irrigation.supervisor import AlreadyActiveError, Supervisor


def quick_program(*zones, duration=0.01):
    return Program([Event(z, duration) for z in zones], settle_delay=0.01)


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def exits():
    return []


@pytest.fixture
def supervisor(channel, exits):
    sup = Supervisor(channel, exit_func=exits.append)
    yield sup
    sup.stop()


# ===== 사전 점검 =====

def test_preflight_refuses_active_relays(exits):
    board = FakeBoard(output=DEFAULT_MAPPER.to_wire(0x04))
    sup = Supervisor(RelayChannel(board, 1), exit_func=exits.append)
    before = signal.getsignal(signal.SIGTERM)

    with pytest.raises(AlreadyActiveError) as exc:
        sup.run(quick_program(1), 100)

    assert exc.value.mask == 0x04
    assert board.set_masks() == []
    assert signal.getsignal(signal.SIGTERM) == before


def test_preflight_ok_when_all_off(supervisor, board):
    supervisor.preflight()
    assert board.set_masks() == []


# ===== 실행 =====

def test_run_completes_and_restores_handlers(supervisor, board):
    before = {s: signal.getsignal(s) for s in (signal.SIGTERM, signal.SIGUSR1)}

    assert supervisor.run(quick_program(1, 2), 100) is True

    assert board.set_masks() == [0x01, 0x00, 0x02, 0x00]
    assert {s: signal.getsignal(s) for s in before} == before
    assert not supervisor.interrupted


def test_termination_during_run_turns_relays_off(supervisor, board, exits):
    program = Program([Event(1, 10), Event(2, 10)], settle_delay=0.01)
    timer = threading.Timer(0.1, supervisor.handle_signal, args=(signal.SIGTERM,))
    timer.start()

    started = time.monotonic()
    assert supervisor.run(program, 100) is False
    timer.join()

    assert time.monotonic() - started < 5
    assert exits == [0]
    assert board.set_masks() == [0x01, 0x00]
    assert board.closed


# ===== 시그널 =====

def test_status_signal_reports_without_writing(supervisor, board, channel):
    channel.set(0x08)
    supervisor.start()

    os.kill(os.getpid(), signal.SIGUSR1)
    assert wait_for(lambda: supervisor.last_status is not None)

    assert supervisor.last_status == 0x08
    assert board.set_masks() == [0x08]
    assert not supervisor.interrupted


def test_terminate_signal_forces_off_and_exits(supervisor, board, channel, exits):
    channel.set(0x01)
    supervisor.start()
    supervisor.handle_signal(signal.SIGTERM)
    supervisor.stop()

    assert exits == [0]
    assert board.set_masks()[-1] == 0
    assert board.closed
    assert supervisor.interrupted


def test_write_racing_shutdown_cannot_reenergize(supervisor, board, channel, exits):
    channel.set(0x01)
    errors = []

    def next_zone():
        try:
            channel.set(0x02)
        except Exception as e:
            errors.append(e)

    racer = threading.Thread(target=next_zone)

    def after_safety_write(data):
        board.on_write = None
        racer.start()
        time.sleep(0.05)  # 메인 스레드 쓰기가 락 앞에서 대기

    board.on_write = after_safety_write
    supervisor.shutdown()
    racer.join(timeout=2)

    assert exits == [0]
    assert board.set_masks() == [0x01, 0x00]
    assert len(errors) == 1 and isinstance(errors[0], TransportError)
    assert board.closed


def test_failed_safety_write_still_exits(exits):
    board = FakeBoard(fail_after=0)
    sup = Supervisor(RelayChannel(board, 1), exit_func=exits.append)
    sup.start()
    sup.handle_signal(signal.SIGINT)
    sup.stop()

    assert exits == [1]
    assert board.closed


def test_status_then_terminate_handled_in_order(supervisor, board, channel, exits):
    channel.set(0x02)
    supervisor.start()
    supervisor.handle_signal(signal.SIGUSR1)
    supervisor.handle_signal(signal.SIGHUP)
    supervisor.stop()

    assert supervisor.last_status == 0x02
    assert exits == [0]
    assert board.set_masks() == [0x02, 0x00]


def test_other_signals_untouched(supervisor):
    before = signal.getsignal(signal.SIGUSR2)
    supervisor.start()
    assert signal.getsignal(signal.SIGUSR2) == before
    assert signal.getsignal(signal.SIGTERM) == supervisor._on_signal
