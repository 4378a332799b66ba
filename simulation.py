"""Simulation: global settings and the main loop of a ring traffic run.

Construction loads the road network and generates the traffic; nothing runs
until :meth:`Simulation.loop` is called.  From then on a
:class:`~simulation_clock.SimulationClock` advances every vehicle every
40 ms while a :class:`~statistics_collector.Statistics` collector samples the
fleet on its own schedule.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Mapping, Optional

from delta_controller import DeltaController, DEFAULT_DELTA_S
from fleet import Fleet
from rendering import RenderContext
from road_network import RoadNetwork, build_itinerary, load_road_network
from scenario import Scenario
from simulation_clock import SimulationClock, UPDATE_RATE_MS
from statistics_collector import STATISTICS_RATE_S, Statistics
from traffic_generator import generate_traffic, validate_counts
from vehicle import VehicleBehaviour, VehicleControllerType
from vehicle_stepper import VehicleStepper

LOG = logging.getLogger(__name__)


class Simulation:
    """Ring traffic simulation.

    Parameters
    ----------
    scenario:
        Scenario providing the road network file and the rendering scale.
    behaviour:
        What vehicles do when they reach the end of their itinerary.
    controllers:
        Number of vehicles for each controller type.
    render_context:
        Context the network and vehicles are drawn on.  A new one is created
        if omitted.
    rng:
        Random generator used to shuffle the vehicles.
    statistics_rate_s:
        Sampling period of the statistics collector.

    Raises
    ------
    ValueError
        If a vehicle count is invalid or the road network is malformed.
    FileNotFoundError
        If the road network file does not exist.
    """

    def __init__(
            self,
            scenario: Scenario,
            behaviour: VehicleBehaviour,
            controllers: Mapping[VehicleControllerType, int],
            *,
            render_context: Optional[RenderContext] = None,
            rng: Optional[random.Random] = None,
            statistics_rate_s: float = STATISTICS_RATE_S,
            default_delta: float = DEFAULT_DELTA_S,
    ) -> None:
        self._scenario = scenario
        self._behaviour = behaviour
        # Reject bad counts before doing any expensive work
        counts = validate_counts(controllers)

        self._road_network = RoadNetwork()
        load_road_network(self._road_network, scenario.config_path)

        itinerary = build_itinerary(self._road_network, scenario.scale)
        self._vehicles = generate_traffic(counts, itinerary, rng=rng)
        self._vehicles.check_ring()

        self._deltas = DeltaController(default_delta)
        self._render_context = render_context or RenderContext(title=scenario.name)
        self._stepper = VehicleStepper(
            self._vehicles,
            self._deltas,
            self._render_context,
            scenario.scale,
            behaviour,
        )
        self._clock = SimulationClock(self._stepper.step, period_s=UPDATE_RATE_MS / 1000.0)
        self._stats = Statistics(self._vehicles, self._road_network, statistics_rate_s)
        self._loop_lock = threading.Lock()
        self._started = False

    @property
    def scenario(self) -> Scenario:
        return self._scenario

    @property
    def behaviour(self) -> VehicleBehaviour:
        return self._behaviour

    @property
    def vehicles(self) -> Fleet:
        """The vehicle collection; the same object for the whole simulation."""
        return self._vehicles

    @property
    def road_network(self) -> RoadNetwork:
        return self._road_network

    @property
    def stats(self) -> Statistics:
        return self._stats

    @property
    def render_context(self) -> RenderContext:
        return self._render_context

    @property
    def stepper(self) -> VehicleStepper:
        return self._stepper

    @property
    def clock(self) -> SimulationClock:
        return self._clock

    def loop(self) -> None:
        """Draw the network, start the statistics and the main loop.

        If starting fails, the statistics are stopped again and the loop may
        be retried.

        Raises
        ------
        RuntimeError
            If the loop was already started.
        """
        with self._loop_lock:
            if self._started:
                raise RuntimeError("The simulation loop can only be started once.")

            LOG.info(
                "starting '%s' with %d vehicles (%s)",
                self._scenario.name,
                len(self._vehicles),
                self._behaviour.value,
            )
            self._road_network.draw(self._render_context, self._scenario.scale)
            self._stats.start()
            try:
                self._clock.start()
            except BaseException:
                self._stats.stop()
                raise
            self._started = True

    def stop_loop(self) -> None:
        """Stop the main loop, then the statistics.

        Returns once any tick in progress has completed; no tick runs after.
        """
        self._clock.stop()
        self._stats.stop()
        if self._clock.failure is not None:
            LOG.error("simulation loop ended on error: %s", self._clock.failure)

    def set_delta(self, value: float) -> None:
        """Change the simulated time per tick; see :meth:`DeltaController.set_delta`."""
        self._deltas.set_delta(value)

    @property
    def current_delta(self) -> float:
        return self._deltas.current_delta

    @property
    def previous_delta(self) -> float:
        return self._deltas.previous_delta

    @property
    def default_delta(self) -> float:
        return self._deltas.default_delta


__all__ = ["Simulation"]
