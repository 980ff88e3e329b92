"""Observation: the compressed, ranked snapshot of a World handed to the agent."""

from typing import List, Literal, Optional

from pydantic import ConfigDict, Field, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from city_bridge.models.world import Budget, Point, Stats, WireModel

AGENT_API_VERSION = 1


class _Frozen(WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid", frozen=True
    )


class Hotspot(_Frozen):
    x: int
    y: int
    value: float


class CityRef(_Frozen):
    id: StrictStr
    name: StrictStr


class TimeInfo(_Frozen):
    tick: StrictInt
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    hour: Optional[int] = None


class Controls(_Frozen):
    speed: Literal[0, 1, 2, 3]
    tax_rate: float
    budget: Budget


class ZoneCounts(_Frozen):
    residential: int = 0
    commercial: int = 0
    industrial: int = 0
    none: int = 0


class BuildingCounts(_Frozen):
    road: int = 0
    rail: int = 0
    power_plant: int = 0
    water_tower: int = 0
    police_station: int = 0
    fire_station: int = 0
    hospital: int = 0
    school: int = 0
    university: int = 0

    # Wire names stay snake_case to match building type values
    model_config = ConfigDict(extra="forbid", frozen=True, alias_generator=None)


class GridSummary(_Frozen):
    size: StrictInt
    zone_counts: Optional[ZoneCounts] = None
    building_counts: Optional[BuildingCounts] = None


class CoveragePct(_Frozen):
    police: float = Field(ge=0, le=100)
    fire: float = Field(ge=0, le=100)
    health: float = Field(ge=0, le=100)
    education: float = Field(ge=0, le=100)
    power: float = Field(ge=0, le=100)
    water: float = Field(ge=0, le=100)


class Services(_Frozen):
    coverage_pct: CoveragePct


class Hotspots(_Frozen):
    traffic: List[Hotspot] = []
    pollution: List[Hotspot] = []
    crime: List[Hotspot] = []


class ServiceDeficits(_Frozen):
    police: List[Hotspot] = []
    fire: List[Hotspot] = []
    health: List[Hotspot] = []
    education: List[Hotspot] = []
    power: List[Hotspot] = []
    water: List[Hotspot] = []
    road_access: List[Hotspot] = []


class LocalWindow(_Frozen):
    """ASCII rendering of the neighbourhood around one hotspot."""

    label: str
    center: Point
    radius: int
    rows: List[str]


class Spatial(_Frozen):
    developed_tiles: int
    service_deficits: ServiceDeficits
    windows: List[LocalWindow] = []


class Observation(_Frozen):
    """
    Versioned snapshot of the city for agent consumption.

    Only the identity, clock and grid size are mandatory so that a
    host publishing a partial observation is still accepted. Those
    header fields take no coercion: a tick sent as a string is refused.
    Every section is closed, so unknown keys are refused too, and an
    accepted observation is echoed back with only the sections it had.
    """

    api_version: Literal[1]
    at: StrictInt
    city: CityRef
    time: TimeInfo
    controls: Optional[Controls] = None
    stats: Optional[Stats] = None
    grid: GridSummary
    services: Optional[Services] = None
    hotspots: Optional[Hotspots] = None
    spatial: Optional[Spatial] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)
