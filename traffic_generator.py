"""Traffic generation: build the vehicle population and its ring of followers.

Vehicles of every requested type are created, shuffled so that the type is
independent of the ring position, spaced out along the itinerary and linked
so that each one follows the next and the last one follows the first.
"""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Mapping, Optional, Union

from fleet import Fleet
from road_network import Itinerary
from vehicle import (
    Vehicle,
    VehicleController,
    VehicleControllerType,
    VehicleTemplate,
    get_template,
)

LOG = logging.getLogger(__name__)

# Initial distance between two consecutive vehicles, in vehicle lengths
SPACING_FACTOR = 3
DEFAULT_TEMPLATE = "regular"


def validate_counts(counts: Mapping[VehicleControllerType, int]) -> Dict[VehicleControllerType, int]:
    """Check the requested number of vehicles per controller type.

    Returns
    -------
    Dict[VehicleControllerType, int]
        A copy of ``counts`` preserving its order.

    Raises
    ------
    ValueError
        If a count is not an integer or is negative, or a key is not a
        :class:`VehicleControllerType`.
    """
    validated: Dict[VehicleControllerType, int] = {}
    for controller_type, count in counts.items():
        if not isinstance(controller_type, VehicleControllerType):
            raise ValueError(f"Unknown controller type {controller_type!r}.")
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValueError(
                f"Vehicle count for '{controller_type.value}' must be an integer, got {count!r}."
            )
        if count < 0:
            raise ValueError(
                f"Vehicle count for '{controller_type.value}' cannot be negative, got {count}."
            )
        validated[controller_type] = count
    return validated


def generate_traffic(
        counts: Mapping[VehicleControllerType, int],
        itinerary: Itinerary,
        *,
        rng: Optional[random.Random] = None,
        template: Union[str, VehicleTemplate] = DEFAULT_TEMPLATE,
) -> Fleet:
    """Generate the vehicles of a simulation, linked as a ring.

    Parameters
    ----------
    counts:
        Number of vehicles per controller type.  One controller is built per
        type and shared by all its vehicles.
    itinerary:
        Itinerary shared by every vehicle.
    rng:
        Random generator used for the shuffle (a fresh unseeded one if
        omitted).
    template:
        Vehicle template (or its identifier) used for every vehicle.

    Returns
    -------
    Fleet
        Vehicles in ring order: vehicle ``i`` follows vehicle ``i + 1`` and
        the last one follows the first.  Vehicle ``i`` starts at
        ``base_offset + length * 3 * i``.  A single vehicle follows itself;
        no vehicle requested gives an empty fleet.

    Raises
    ------
    ValueError
        If a count is negative or not an integer.  Nothing is built then.
    KeyError
        If ``template`` is unknown.
    """
    counts = validate_counts(counts)
    if isinstance(template, VehicleTemplate):
        vehicle_template = template
    else:
        vehicle_template = get_template(template)
    rng = rng or random.Random()

    vehicles: List[Vehicle] = []
    for controller_type, count in counts.items():
        # One controller for all vehicles of a given type
        controller = VehicleController(controller_type)
        for _ in range(count):
            vehicles.append(
                Vehicle.from_template(
                    vehicle_template,
                    controller,
                    itinerary,
                    vehicle_id=len(vehicles),
                )
            )

    rng.shuffle(vehicles)

    for index, vehicle in enumerate(vehicles):
        vehicle.position += vehicle.length * SPACING_FACTOR * index
        vehicle.front_index = index + 1

    if vehicles:
        # Close the ring
        vehicles[-1].front_index = 0

        if vehicles[-1].position >= itinerary.length:
            LOG.warning(
                "%d vehicles need %.1f m but the itinerary is only %.1f m long; "
                "the ring will start with overlapping vehicles.",
                len(vehicles),
                vehicles[-1].position - itinerary.base_offset,
                itinerary.length,
            )

    LOG.info(
        "generated %d vehicles (%s)",
        len(vehicles),
        ", ".join(f"{t.value}={c}" for t, c in counts.items()) or "none",
    )
    return Fleet(vehicles)


__all__ = ["DEFAULT_TEMPLATE", "SPACING_FACTOR", "generate_traffic", "validate_counts"]
