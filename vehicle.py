"""Vehicles, their shared controllers and the car-following law.

Each vehicle type is driven by one :class:`VehicleController` shared by all
vehicles of that type.  The controller resolves its Intelligent Driver Model
(IDM) parameters once, at construction, so the per-tick path never inspects
the controller type again.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Dict, Optional

from road_network import Itinerary


class VehicleControllerType(enum.Enum):
    """Driving styles a vehicle population can be made of."""

    CAUTIOUS = "cautious"
    NORMAL = "normal"
    AGGRESSIVE = "aggressive"

    @classmethod
    def parse(cls, value: str) -> "VehicleControllerType":
        """Return the member whose name or value matches ``value`` (case-insensitive)."""
        key = value.strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        choices = ", ".join(member.value for member in cls)
        raise ValueError(f"Unknown controller type '{value}'. Expected one of: {choices}.")


class VehicleBehaviour(enum.Enum):
    """What a vehicle does when it reaches the end of its itinerary."""

    LOOP = "loop"
    STOP = "stop"


@dataclass(frozen=True)
class IDMParameters:
    """Intelligent Driver Model parameters.

    - desired_speed: Free-road target speed (m/s, > 0).
    - time_headway: Desired time gap to the front vehicle (s, > 0).
    - minimum_gap: Jam distance kept when stopped (m, >= 0).
    - max_acceleration: Maximum acceleration (m/s^2, > 0).
    - comfortable_deceleration: Comfortable braking (m/s^2, > 0).
    - exponent: Free-road acceleration exponent (usually 4).
    """

    desired_speed: float
    time_headway: float
    minimum_gap: float
    max_acceleration: float
    comfortable_deceleration: float
    exponent: float = 4.0

    def __post_init__(self) -> None:
        for name in (
                "desired_speed",
                "time_headway",
                "max_acceleration",
                "comfortable_deceleration",
                "exponent",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive.")
        if self.minimum_gap < 0:
            raise ValueError("minimum_gap cannot be negative.")


IDM_PARAMETERS: Dict[VehicleControllerType, IDMParameters] = {
    VehicleControllerType.CAUTIOUS: IDMParameters(
        desired_speed=22.0,
        time_headway=2.0,
        minimum_gap=3.0,
        max_acceleration=0.8,
        comfortable_deceleration=1.2,
    ),
    VehicleControllerType.NORMAL: IDMParameters(
        desired_speed=27.0,
        time_headway=1.5,
        minimum_gap=2.0,
        max_acceleration=1.0,
        comfortable_deceleration=1.5,
    ),
    VehicleControllerType.AGGRESSIVE: IDMParameters(
        desired_speed=33.0,
        time_headway=0.9,
        minimum_gap=1.5,
        max_acceleration=1.8,
        comfortable_deceleration=2.5,
    ),
}

CONTROLLER_COLORS: Dict[VehicleControllerType, str] = {
    VehicleControllerType.CAUTIOUS: "tab:green",
    VehicleControllerType.NORMAL: "tab:blue",
    VehicleControllerType.AGGRESSIVE: "tab:red",
}

# Emergency braking limit (m/s^2)
MAX_DECELERATION = 9.0
# Gap floor used to keep the interaction term finite (m)
MIN_GAP = 0.1


class VehicleController:
    """Car-following strategy shared by every vehicle of one type."""

    def __init__(
            self,
            controller_type: VehicleControllerType,
            parameters: Optional[IDMParameters] = None,
    ) -> None:
        self.controller_type = controller_type
        self.parameters = parameters or IDM_PARAMETERS[controller_type]
        self.color = CONTROLLER_COLORS.get(controller_type, "tab:gray")

    def acceleration(self, vehicle: "Vehicle", front: "Vehicle") -> float:
        """IDM acceleration of ``vehicle`` following ``front``.

        a = a_max * (1 - (v / v0)^delta - (s* / s)^2)
        s* = s0 + max(0, v * T + v * dv / (2 * sqrt(a_max * b)))
        """
        p = self.parameters
        speed = vehicle.speed
        desired_speed = min(p.desired_speed, vehicle.max_speed)
        gap = max(vehicle.gap_to(front), MIN_GAP)
        approach_rate = speed - front.speed

        dynamic_gap = speed * p.time_headway + (
                speed * approach_rate
                / (2.0 * math.sqrt(p.max_acceleration * p.comfortable_deceleration))
        )
        desired_gap = p.minimum_gap + max(0.0, dynamic_gap)
        free_road = (speed / desired_speed) ** p.exponent
        interaction = (desired_gap / gap) ** 2
        return max(-MAX_DECELERATION, p.max_acceleration * (1.0 - free_road - interaction))

    def __repr__(self) -> str:
        return f"VehicleController({self.controller_type.value})"


@dataclass(frozen=True)
class VehicleTemplate:
    """Physical description of a vehicle model."""

    name: str
    length: float
    max_speed: float

    def __post_init__(self) -> None:
        if self.length <= 0:
            raise ValueError("Vehicle length must be positive.")
        if self.max_speed <= 0:
            raise ValueError("Vehicle max_speed must be positive.")


VEHICLE_TEMPLATES: Dict[str, VehicleTemplate] = {
    "regular": VehicleTemplate(name="regular", length=4.5, max_speed=36.0),
    "truck": VehicleTemplate(name="truck", length=12.0, max_speed=25.0),
}


def get_template(name: str) -> VehicleTemplate:
    try:
        return VEHICLE_TEMPLATES[name]
    except KeyError:
        raise KeyError(f"Unknown vehicle template '{name}'.") from None


@dataclass(frozen=True)
class VehicleState:
    """Read-only copy of a vehicle's state at the end of a tick."""

    vehicle_id: int
    controller_type: VehicleControllerType
    position: float
    speed: float
    acceleration: float
    length: float
    front_index: Optional[int]


@dataclass(eq=False)
class Vehicle:
    """A vehicle driving along a shared itinerary.

    ``controller`` and ``itinerary`` are shared with other vehicles and never
    owned.  ``front_index`` is the index, in the owning fleet, of the vehicle
    immediately ahead; it is set once by the traffic generator.
    """

    vehicle_id: int
    controller: VehicleController
    itinerary: Itinerary
    length: float
    max_speed: float
    position: float = 0.0
    speed: float = 0.0
    acceleration: float = 0.0
    front_index: Optional[int] = None

    def __post_init__(self) -> None:
        if self.controller is None:
            raise ValueError("A vehicle needs a controller.")
        if self.itinerary is None:
            raise ValueError("A vehicle needs an itinerary.")
        if self.length <= 0:
            raise ValueError("Vehicle length must be positive.")

    @classmethod
    def from_template(
            cls,
            template: VehicleTemplate,
            controller: VehicleController,
            itinerary: Itinerary,
            vehicle_id: int,
    ) -> "Vehicle":
        return cls(
            vehicle_id=vehicle_id,
            controller=controller,
            itinerary=itinerary,
            length=template.length,
            max_speed=template.max_speed,
            position=itinerary.base_offset,
        )

    def gap_to(self, front: "Vehicle") -> float:
        """Bumper-to-bumper distance (m) to ``front`` along the closed route.

        A vehicle following itself (single-vehicle ring) sees the whole route
        minus its own length.
        """
        route_length = self.itinerary.length
        distance = (front.position - self.position) % route_length
        if distance == 0.0:
            distance = route_length
        return distance - front.length

    def update(
            self,
            delta: float,
            front: "Vehicle",
            behaviour: VehicleBehaviour = VehicleBehaviour.LOOP,
    ) -> None:
        """Advance the vehicle by ``delta`` seconds behind ``front``."""
        self.acceleration = self.controller.acceleration(self, front)
        self.speed = min(max(0.0, self.speed + self.acceleration * delta), self.max_speed)
        self.position += self.speed * delta

        route_length = self.itinerary.length
        if behaviour is VehicleBehaviour.LOOP:
            self.position %= route_length
        elif self.position >= route_length:
            self.position = route_length
            self.speed = 0.0
            self.acceleration = 0.0

    def draw(self, context, scale: float) -> None:
        x, y, heading = self.itinerary.locate(self.position)
        context.draw_vehicle(
            self.vehicle_id,
            x,
            y,
            heading,
            self.length * scale,
            self.controller.color,
        )

    def state(self) -> VehicleState:
        return VehicleState(
            vehicle_id=self.vehicle_id,
            controller_type=self.controller.controller_type,
            position=self.position,
            speed=self.speed,
            acceleration=self.acceleration,
            length=self.length,
            front_index=self.front_index,
        )

    def __repr__(self) -> str:
        return (
            f"Vehicle(id={self.vehicle_id}, type={self.controller.controller_type.value}, "
            f"pos={self.position:.2f}, speed={self.speed:.2f}, acc={self.acceleration:.2f}, "
            f"front={self.front_index})"
        )


__all__ = [
    "IDMParameters",
    "IDM_PARAMETERS",
    "Vehicle",
    "VehicleBehaviour",
    "VehicleController",
    "VehicleControllerType",
    "VehicleState",
    "VehicleTemplate",
    "VEHICLE_TEMPLATES",
    "get_template",
]
