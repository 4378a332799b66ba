"""Unit tests for the fixed-rate simulation clock."""

import threading
import time
import unittest

from simulation_clock import SimulationClock, UPDATE_RATE_MS


class TestSimulationClock(unittest.TestCase):
    """Test start/stop semantics of SimulationClock."""

    def test_default_period(self):
        clock = SimulationClock(lambda: None)
        self.assertAlmostEqual(clock.period_s, UPDATE_RATE_MS / 1000.0)

    def test_invalid_period(self):
        with self.assertRaises(ValueError):
            SimulationClock(lambda: None, period_s=0.0)

    def test_first_tick_is_immediate(self):
        ticked = threading.Event()
        clock = SimulationClock(ticked.set, period_s=10.0)
        clock.start()
        try:
            self.assertTrue(ticked.wait(1.0))
        finally:
            clock.stop()
        self.assertEqual(clock.ticks, 1)

    def test_ticks_repeat_until_stopped(self):
        counter = []
        clock = SimulationClock(lambda: counter.append(1), period_s=0.01)
        clock.start()
        time.sleep(0.2)
        clock.stop()
        stopped_at = len(counter)
        self.assertGreater(stopped_at, 3)
        self.assertEqual(clock.ticks, stopped_at)
        time.sleep(0.1)
        self.assertEqual(len(counter), stopped_at)
        self.assertFalse(clock.running)

    def test_stop_waits_for_in_flight_tick(self):
        started = threading.Event()
        finished = threading.Event()

        def slow_tick():
            started.set()
            time.sleep(0.2)
            finished.set()

        clock = SimulationClock(slow_tick, period_s=10.0)
        clock.start()
        self.assertTrue(started.wait(1.0))
        clock.stop()
        self.assertTrue(finished.is_set())

    def test_fixed_rate_catches_up_after_overrun(self):
        """A tick overrunning several periods is followed by back-to-back ticks."""
        stamps = []

        def tick():
            stamps.append(time.monotonic())
            if len(stamps) == 1:
                time.sleep(0.25)

        clock = SimulationClock(tick, period_s=0.05)
        clock.start()
        time.sleep(0.4)
        clock.stop()
        self.assertGreaterEqual(len(stamps), 5)
        # Late ticks 2..5 fire right after the slow one
        self.assertLess(stamps[4] - stamps[1], 0.05)

    def test_start_twice_is_rejected(self):
        clock = SimulationClock(lambda: None, period_s=0.05)
        clock.start()
        try:
            with self.assertRaises(RuntimeError):
                clock.start()
        finally:
            clock.stop()

    def test_stop_before_start(self):
        calls = []
        clock = SimulationClock(lambda: calls.append(1), period_s=0.01)
        clock.stop()
        clock.start()
        time.sleep(0.05)
        clock.stop()
        self.assertEqual(calls, [])

    def test_stop_from_tick(self):
        holder = {}

        def tick():
            holder["clock"].stop()

        clock = SimulationClock(tick, period_s=0.01)
        holder["clock"] = clock
        clock.start()
        time.sleep(0.1)
        clock.stop()
        self.assertEqual(clock.ticks, 1)

    def test_failing_tick_stops_the_clock(self):
        calls = []

        def tick():
            calls.append(1)
            raise RuntimeError("boom")

        clock = SimulationClock(tick, period_s=0.01)
        with self.assertLogs("simulation_clock", level="ERROR"):
            clock.start()
            time.sleep(0.1)
        clock.stop()
        self.assertEqual(calls, [1])
        self.assertIsInstance(clock.failure, RuntimeError)
        self.assertEqual(clock.ticks, 0)


if __name__ == "__main__":
    unittest.main()
