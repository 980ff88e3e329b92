"""City bridge data models."""

from city_bridge.models.bridge import (
    Advice,
    ChatMessage,
    MessageType,
    StreamChunk,
    StreamEvent,
    StreamMarker,
)
from city_bridge.models.config import BridgeConfig
from city_bridge.models.intent import (
    ActionBatch,
    AdvanceTicks,
    AgentAction,
    BuildTrackBetween,
    BuildTrackPath,
    PlaceTool,
    SetBudgetFunding,
    SetSpeed,
    SetTaxRate,
    Tool,
    ZoneRect,
)
from city_bridge.models.observation import AGENT_API_VERSION, Hotspot, Observation
from city_bridge.models.world import (
    Budget,
    BudgetCategory,
    Building,
    BuildingType,
    Point,
    ServiceCoverage,
    Stats,
    Tile,
    World,
    ZoneType,
    create_world,
)

__all__ = [
    "AGENT_API_VERSION",
    "ActionBatch",
    "AdvanceTicks",
    "Advice",
    "AgentAction",
    "BridgeConfig",
    "Budget",
    "BudgetCategory",
    "BuildTrackBetween",
    "BuildTrackPath",
    "Building",
    "BuildingType",
    "ChatMessage",
    "Hotspot",
    "MessageType",
    "Observation",
    "PlaceTool",
    "Point",
    "ServiceCoverage",
    "SetBudgetFunding",
    "SetSpeed",
    "SetTaxRate",
    "Stats",
    "StreamChunk",
    "StreamEvent",
    "StreamMarker",
    "Tile",
    "Tool",
    "World",
    "ZoneRect",
    "ZoneType",
    "create_world",
]
