"""
models.py – Pydantic models.
Defines the input event contract and the exact JSON the API returns.
"""
from __future__ import annotations
import math
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TRUE_STRINGS = frozenset({"true", "1", "yes", "y", "t"})


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _optional_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


class GeoLocation(BaseModel):
    model_config = ConfigDict(extra="allow")

    country: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator("country", "city", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def coerce_coordinate(cls, value: Any) -> Optional[float]:
        return _optional_number(value)


class ThreatEvent(BaseModel):
    """
    One financial transaction annotated with optional suspicion metadata.

    Only the account ids decide whether an event takes part in aggregation;
    aggregators skip events missing either one.  Every other field is coerced
    leniently: an unparseable amount or a malformed geo becomes None,
    ``suspicious`` accepts booleans, numbers and "true"/"yes"-style strings.
    severity is kept as free text so unknown labels score as "medium".
    """
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: Optional[str] = None
    source_account: Optional[str] = None
    dest_account: Optional[str] = None
    amount: Optional[float] = None
    timestamp: Union[int, float, str, None] = None
    suspicious: bool = False
    severity: Optional[str] = None
    status: Optional[str] = "success"
    attack_type: Optional[str] = None
    source_geo: Optional[GeoLocation] = None
    dest_geo: Optional[GeoLocation] = None

    @field_validator(
        "id", "source_account", "dest_account", "severity", "status", "attack_type",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> Optional[float]:
        return _optional_number(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, value: Any) -> Union[int, float, str, None]:
        if isinstance(value, bool):
            return None
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value if isinstance(value, (int, float, str)) else None

    @field_validator("suspicious", mode="before")
    @classmethod
    def coerce_suspicious(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in TRUE_STRINGS
        if isinstance(value, float):
            return math.isfinite(value) and value != 0
        if isinstance(value, int):
            return value != 0
        return False

    @field_validator("source_geo", "dest_geo", mode="before")
    @classmethod
    def coerce_geo(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, GeoLocation)) else None


class EventBatch(BaseModel):
    events: List[Dict[str, Any]] = Field(default_factory=list)


# ── Rendered network graph ─────────────────────────────────────────────────────

class Position(BaseModel):
    x: float
    y: float


class GraphNode(BaseModel):
    id: str
    account: str
    display_name: str
    is_compromised: bool
    threat_level: int = Field(..., ge=0, le=10)
    tier: str
    transactions: int
    suspicious_transactions: int
    total_amount: float
    is_source: bool
    is_destination: bool
    position: Position


class GraphEdge(BaseModel):
    id: str
    source: str
    target: str
    count: int
    total_amount: float
    is_suspicious: bool
    is_high_volume: bool
    visual_state: str
    label: str


class NetworkGraph(BaseModel):
    nodes: List[GraphNode]
    edges: List[GraphEdge]
    compromised_account_id: Optional[str] = None
    events_considered: int = 0


# ── Export document (camelCase on the wire) ────────────────────────────────────

class _ExportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountRecord(_ExportModel):
    id: str
    name: str
    is_compromised: bool
    threat_level: int = Field(..., ge=0, le=10)
    total_transactions: int
    suspicious_transactions: int
    total_amount: float
    location: Optional[GeoLocation] = None


class TransactionRecord(_ExportModel):
    id: Optional[str] = None
    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    amount: float
    timestamp: Union[int, float, str, None] = None
    status: Optional[str] = None
    suspicious: bool
    severity: Optional[str] = None
    attack_type: Optional[str] = None


class ExportNode(_ExportModel):
    id: str
    label: str
    is_compromised: bool
    threat_level: int
    total_transactions: int


class ExportEdge(_ExportModel):
    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    weight: float
    is_suspicious: bool
    transactions: int


class ExportGraph(_ExportModel):
    nodes: List[ExportNode]
    edges: List[ExportEdge]
    compromised_account: Optional[str] = None


class ThreatDataDocument(_ExportModel):
    timestamp: int
    total_events: int
    suspicious_events: int
    accounts: List[AccountRecord]
    transactions: List[TransactionRecord]
    network_graph: ExportGraph


class ParseStats(BaseModel):
    total_rows: int
    valid_rows: int
    dropped_rows: int
    missing_accounts: int
    invalid_records: int
    warnings: List[str] = Field(default_factory=list)
