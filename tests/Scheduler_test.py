import pytest
import time
from threading import Thread

from fireboard2mqtt.Scheduler import RepeatingTimer, Scheduler

from tests import simulator


@pytest.fixture
def scheduler(request):
    s = Scheduler('test')
    request.addfinalizer(s.stopAll)
    return s

def test_timer_ticks_until_cancelled():
    ticks = []
    timer = RepeatingTimer('tick', 0.02, lambda: ticks.append(1))
    timer.start()
    assert(simulator.waitFor(lambda: len(ticks) >= 3))
    timer.cancel()
    timer.join(1)
    count = len(ticks)
    time.sleep(0.1)
    assert(len(ticks)==count)
    assert(not timer.is_alive())

def test_timer_run_now():
    ticks = []
    timer = RepeatingTimer('tick', 3600, lambda: ticks.append(1), runNow=True)
    timer.start()
    assert(simulator.waitFor(lambda: len(ticks)==1))
    timer.cancel()

def test_failing_callback_keeps_timer_alive():
    ticks = []

    def callback():
        ticks.append(1)
        raise RuntimeError('boom')

    timer = RepeatingTimer('tick', 0.02, callback)
    timer.start()
    assert(simulator.waitFor(lambda: len(ticks) >= 2))
    timer.cancel()

def test_restart_cancels_previous(scheduler):
    first = scheduler.start('poll', 3600, lambda: None)
    second = scheduler.start('poll', 1800, lambda: None)

    assert(first.cancelled)
    assert(not second.cancelled)
    assert(scheduler.active()==['poll'])
    assert(scheduler.interval('poll')==1800)
    assert(scheduler.starts('poll')==2)
    assert(scheduler.restarts('poll')==1)

def test_stop_is_idempotent(scheduler):
    timer = scheduler.start('ping', 3600, lambda: None)
    scheduler.stop('ping')
    scheduler.stop('ping')
    scheduler.stop('never-started')
    timer.cancel()

    assert(timer.cancelled)
    assert(scheduler.active()==[])
    assert(scheduler.interval('ping') is None)

def test_stop_all(scheduler):
    scheduler.start('ping', 3600, lambda: None)
    scheduler.start('poll', 3600, lambda: None)
    assert(scheduler.active()==['ping', 'poll'])
    scheduler.stopAll()
    assert(scheduler.active()==[])
    assert(scheduler.restarts('poll')==0)

def test_stop_all_while_timers_start(scheduler):
    names = ['timer{0}'.format(i) for i in range(50)]

    def starter():
        for name in names:
            scheduler.start(name, 3600, lambda: None)

    worker = Thread(target=starter)
    worker.start()
    while worker.is_alive():
        scheduler.stopAll()
    worker.join()
    scheduler.stopAll()

    assert(scheduler.active()==[])
    assert(sum(scheduler.starts(name) for name in names)==50)
