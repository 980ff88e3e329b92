"""Agent intents: the high-level commands an agent may queue."""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field

from city_bridge.models.world import Point, WireModel


class Tool(str, Enum):
    BULLDOZE = "bulldoze"
    ROAD = "road"
    RAIL = "rail"
    SUBWAY = "subway"
    ZONE_RESIDENTIAL = "zone_residential"
    ZONE_COMMERCIAL = "zone_commercial"
    ZONE_INDUSTRIAL = "zone_industrial"
    ZONE_DEZONE = "zone_dezone"
    ZONE_WATER = "zone_water"
    ZONE_LAND = "zone_land"
    POLICE_STATION = "police_station"
    FIRE_STATION = "fire_station"
    HOSPITAL = "hospital"
    SCHOOL = "school"
    UNIVERSITY = "university"
    POWER_PLANT = "power_plant"
    WATER_TOWER = "water_tower"
    SUBWAY_STATION = "subway_station"


ZoneTool = Literal["zone_residential", "zone_commercial", "zone_industrial", "zone_dezone"]
TrackType = Literal["road", "rail"]
BudgetKey = Literal[
    "police", "fire", "health", "education", "transportation", "parks", "power", "water"
]


class SetSpeed(WireModel):
    type: Literal["setSpeed"] = "setSpeed"
    speed: Literal[0, 1, 2, 3]


class SetTaxRate(WireModel):
    type: Literal["setTaxRate"] = "setTaxRate"
    rate: float


class SetBudgetFunding(WireModel):
    type: Literal["setBudgetFunding"] = "setBudgetFunding"
    key: BudgetKey
    funding: float


class PlaceTool(WireModel):
    type: Literal["place"] = "place"
    tool: Tool
    x: int
    y: int


class ZoneRect(WireModel):
    type: Literal["zoneRect"] = "zoneRect"
    tool: ZoneTool
    x1: int
    y1: int
    x2: int
    y2: int


class BuildTrackPath(WireModel):
    type: Literal["buildTrackPath"] = "buildTrackPath"
    track_type: TrackType
    path: List[Point]


class BuildTrackBetween(WireModel):
    type: Literal["buildTrackBetween"] = "buildTrackBetween"
    track_type: TrackType
    start: Point = Field(alias="from")
    end: Point = Field(alias="to")


class AdvanceTicks(WireModel):
    type: Literal["advanceTicks"] = "advanceTicks"
    count: int


AgentAction = Annotated[
    Union[
        SetSpeed,
        SetTaxRate,
        SetBudgetFunding,
        PlaceTool,
        ZoneRect,
        BuildTrackPath,
        BuildTrackBetween,
        AdvanceTicks,
    ],
    Field(discriminator="type"),
]


class ActionBatch(WireModel):
    """An ordered group of intents, enqueued and dequeued as one unit."""

    actions: List[AgentAction]
    reason: Optional[str] = None
