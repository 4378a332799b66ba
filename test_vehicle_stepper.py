"""Unit tests for the per-tick vehicle stepper."""

import threading
import time
import unittest

from delta_controller import DeltaController
from fleet import Fleet, SimulationInvariantError
from rendering import RenderContext
from road_network import Geometry, Itinerary, ItineraryPath, RoadSegment
from vehicle import Vehicle, VehicleController, VehicleControllerType
from vehicle_stepper import VehicleStepper


class RecordingController(VehicleController):
    """Constant acceleration; remembers the front position seen by each vehicle."""

    def __init__(self):
        super().__init__(VehicleControllerType.NORMAL)
        self.seen = []

    def acceleration(self, vehicle, front):
        self.seen.append((vehicle.vehicle_id, front.vehicle_id, front.position))
        return 1.0


class SlowController(VehicleController):
    """Zero acceleration, but each call takes a while."""

    def __init__(self, pause_s=0.01):
        super().__init__(VehicleControllerType.NORMAL)
        self.pause_s = pause_s

    def acceleration(self, vehicle, front):
        time.sleep(self.pause_s)
        return 0.0


def make_itinerary(length=1000.0):
    segment = RoadSegment(road_id="r", geometries=(Geometry(0.0, 0.0, 0.0, 0.0, length),), length=length)
    return Itinerary(paths=(ItineraryPath(segment, 1.0),))


def make_ring(controller, positions, speed=0.0):
    itinerary = make_itinerary()
    vehicles = [
        Vehicle(
            vehicle_id=index,
            controller=controller,
            itinerary=itinerary,
            length=4.0,
            max_speed=40.0,
            position=position,
            speed=speed,
            front_index=(index + 1) % len(positions),
        )
        for index, position in enumerate(positions)
    ]
    return Fleet(vehicles)


class TestVehicleStepper(unittest.TestCase):
    """Test update order, publication and failure modes."""

    def setUp(self):
        self.controller = RecordingController()
        self.fleet = make_ring(self.controller, [0.0, 12.0, 24.0])
        self.deltas = DeltaController(0.5)
        self.context = RenderContext()
        self.stepper = VehicleStepper(self.fleet, self.deltas, self.context, scale=1.0)

    def test_staggered_update_order(self):
        """Earlier vehicles see their front's previous state, the last sees the updated first."""
        self.stepper.step()
        # speed = 1.0 * 0.5 and position advance = 0.25 for every vehicle
        self.assertEqual(
            self.controller.seen,
            [
                (0, 1, 12.0),
                (1, 2, 24.0),
                (2, 0, 0.25),
            ],
        )
        self.assertEqual([vehicle.position for vehicle in self.fleet], [0.25, 12.25, 24.25])

    def test_snapshot_published_to_subscribers(self):
        channel = self.stepper.subscribe()
        snapshot = self.stepper.step()
        self.assertIs(channel.get_nowait(), snapshot)
        self.assertEqual(snapshot.tick, 1)
        self.assertEqual(snapshot.delta, 0.5)
        self.assertEqual([state.position for state in snapshot.vehicles], [0.25, 12.25, 24.25])
        self.assertIs(self.stepper.latest, snapshot)

    def test_slow_subscriber_keeps_latest_snapshots(self):
        channel = self.stepper.subscribe(maxsize=2)
        for _ in range(5):
            self.stepper.step()
        self.assertEqual([channel.get_nowait().tick, channel.get_nowait().tick], [4, 5])

    def test_unsubscribe(self):
        channel = self.stepper.subscribe()
        self.stepper.unsubscribe(channel)
        self.stepper.step()
        self.assertTrue(channel.empty())

    def test_each_tick_repaints_one_frame(self):
        self.stepper.step()
        self.stepper.step()
        self.assertEqual(self.context.repaints, 2)
        self.assertEqual(len(self.context.last_frame.vehicles), 3)

    def test_uses_current_delta(self):
        self.deltas.set_delta(1.0)
        snapshot = self.stepper.step()
        self.assertEqual(snapshot.delta, 1.0)
        self.assertEqual(self.fleet[0].speed, 1.0)

    def test_missing_front_is_fatal(self):
        self.fleet[1].front_index = None
        with self.assertRaises(SimulationInvariantError):
            self.stepper.step()

    def test_non_positive_delta_is_fatal(self):
        self.deltas._current = 0.0
        with self.assertRaises(SimulationInvariantError):
            self.stepper.step()
        self.assertEqual(self.stepper.ticks, 0)

    def test_empty_fleet_ticks(self):
        stepper = VehicleStepper(Fleet(), self.deltas, self.context, scale=1.0)
        snapshot = stepper.step()
        self.assertEqual(snapshot.vehicles, ())


class TestSnapshotDuringTick(unittest.TestCase):
    """Readers running beside the stepper."""

    def test_snapshots_never_mix_ticks(self):
        """Every snapshot shows all vehicles advanced by the same number of ticks."""
        initial = [0.0, 12.0, 24.0]
        fleet = make_ring(SlowController(), initial, speed=4.0)
        stepper = VehicleStepper(fleet, DeltaController(0.5), RenderContext(), scale=1.0)
        done = threading.Event()

        def run():
            try:
                for _ in range(5):
                    stepper.step()
            finally:
                done.set()

        worker = threading.Thread(target=run)
        worker.start()
        offsets = []
        while not done.is_set():
            states = fleet.snapshot()
            offsets.append({state.position - start for state, start in zip(states, initial)})
            time.sleep(0.001)
        worker.join()

        self.assertEqual(stepper.ticks, 5)
        self.assertGreater(len(offsets), 1)
        # 4 m/s over 0.5 s moves every vehicle 2 m per tick
        for seen in offsets:
            self.assertEqual(len(seen), 1, seen)
            self.assertIn(seen.pop(), {2.0 * tick for tick in range(6)})


if __name__ == "__main__":
    unittest.main()
