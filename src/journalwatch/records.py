"""
Decoded journal records and the decoders that produce them.

Journal files hold one JSON object per line. Snapshot files (status.json,
cargo.json, ...) hold a single JSON object and are rewritten in place.
Every record type answers name_and_timestamp(), so consumers never need
to switch on the concrete type to find the event name.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import DecodeError, NotASnapshotError


class Record:
    """Common interface of everything placed on the record queue."""

    timestamp: str = ""
    event: str = ""

    def name_and_timestamp(self) -> Tuple[str, str]:
        """
        Get the event name and the raw timestamp string.

        Returns:
            (event, timestamp)
        """
        return self.event, self.timestamp

    def timestamp_datetime(self) -> Optional[datetime]:
        """
        Parse the timestamp.

        Returns:
            Timezone-aware datetime, or None if missing or malformed
        """
        return parse_timestamp(self.timestamp)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp such as 2023-01-01T00:00:00Z."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _items(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


@dataclass
class JournalEntry(Record):
    """
    One line of a journal file.

    Attributes:
        timestamp: Raw timestamp string
        event: Event name, such as FSDJump
        data: The complete decoded object
    """
    timestamp: str = ""
    event: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JournalEntry":
        """Create from a decoded JSON object."""
        return cls(timestamp=_str(data, "timestamp"), event=_str(data, "event"), data=data)


@dataclass
class CargoItem:
    name: str
    count: int = 0
    stolen: int = 0
    mission_id: Optional[int] = None
    name_localised: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CargoItem":
        return cls(
            name=data.get("Name", ""),
            count=data.get("Count", 0),
            stolen=data.get("Stolen", 0),
            mission_id=data.get("MissionID"),
            name_localised=data.get("Name_Localised"),
        )


@dataclass
class Cargo(Record):
    """Contents of cargo.json."""
    timestamp: str = ""
    event: str = ""
    vessel: str = ""
    inventory: List[CargoItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cargo":
        return cls(
            timestamp=_str(data, "timestamp"),
            event=_str(data, "event"),
            vessel=_str(data, "Vessel"),
            inventory=[CargoItem.from_dict(i) for i in _items(data, "Inventory")],
        )


@dataclass
class MarketItem:
    id: int
    name: str
    category: str = ""
    buy_price: int = 0
    sell_price: int = 0
    mean_price: int = 0
    stock: int = 0
    demand: int = 0
    stock_bracket: int = 0
    demand_bracket: int = 0
    consumer: bool = False
    producer: bool = False
    rare: bool = False
    name_localised: Optional[str] = None
    category_localised: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketItem":
        return cls(
            id=data.get("id", data.get("ID", 0)),
            name=data.get("Name", ""),
            category=data.get("Category", ""),
            buy_price=data.get("BuyPrice", 0),
            sell_price=data.get("SellPrice", 0),
            mean_price=data.get("MeanPrice", 0),
            stock=data.get("Stock", 0),
            demand=data.get("Demand", 0),
            stock_bracket=data.get("StockBracket", 0),
            demand_bracket=data.get("DemandBracket", 0),
            consumer=data.get("Consumer", False),
            producer=data.get("Producer", False),
            rare=data.get("Rare", False),
            name_localised=data.get("Name_Localised"),
            category_localised=data.get("Category_Localised"),
        )


@dataclass
class Market(Record):
    """Contents of market.json."""
    timestamp: str = ""
    event: str = ""
    market_id: int = 0
    station_name: str = ""
    station_type: str = ""
    star_system: str = ""
    items: List[MarketItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Market":
        return cls(
            timestamp=_str(data, "timestamp"),
            event=_str(data, "event"),
            market_id=data.get("MarketID", 0),
            station_name=_str(data, "StationName"),
            station_type=_str(data, "StationType"),
            star_system=_str(data, "StarSystem"),
            items=[MarketItem.from_dict(i) for i in _items(data, "Items")],
        )


@dataclass
class Module:
    slot: str
    item: str
    power: float = 0.0
    priority: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Module":
        return cls(
            slot=data.get("Slot", ""),
            item=data.get("Item", ""),
            power=data.get("Power", 0.0),
            priority=data.get("Priority", 0),
        )


@dataclass
class ModulesInfo(Record):
    """Contents of modulesinfo.json."""
    timestamp: str = ""
    event: str = ""
    modules: List[Module] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModulesInfo":
        return cls(
            timestamp=_str(data, "timestamp"),
            event=_str(data, "event"),
            modules=[Module.from_dict(m) for m in _items(data, "Modules")],
        )


@dataclass
class RouteEntry:
    star_system: str
    system_address: int = 0
    star_pos: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    star_class: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteEntry":
        pos = data.get("StarPos") or (0.0, 0.0, 0.0)
        return cls(
            star_system=data.get("StarSystem", ""),
            system_address=data.get("SystemAddress", 0),
            star_pos=tuple(pos),
            star_class=data.get("StarClass", ""),
        )


@dataclass
class NavRoute(Record):
    """Contents of navroute.json."""
    timestamp: str = ""
    event: str = ""
    route: List[RouteEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NavRoute":
        return cls(
            timestamp=_str(data, "timestamp"),
            event=_str(data, "event"),
            route=[RouteEntry.from_dict(r) for r in _items(data, "Route")],
        )


@dataclass
class Outfitting(Record):
    """Contents of outfitting.json."""
    timestamp: str = ""
    event: str = ""
    market_id: int = 0
    station_name: str = ""
    star_system: str = ""
    horizons: bool = False
    items: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Outfitting":
        return cls(
            timestamp=_str(data, "timestamp"),
            event=_str(data, "event"),
            market_id=data.get("MarketID", 0),
            station_name=_str(data, "StationName"),
            star_system=_str(data, "StarSystem"),
            horizons=data.get("Horizons", False),
            items=_items(data, "Items"),
        )


@dataclass
class Shipyard(Record):
    """Contents of shipyard.json."""
    timestamp: str = ""
    event: str = ""
    market_id: int = 0
    station_name: str = ""
    star_system: str = ""
    horizons: bool = False
    allow_cobra_mk_iv: bool = False
    price_list: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Shipyard":
        return cls(
            timestamp=_str(data, "timestamp"),
            event=_str(data, "event"),
            market_id=data.get("MarketID", 0),
            station_name=_str(data, "StationName"),
            star_system=_str(data, "StarSystem"),
            horizons=data.get("Horizons", False),
            allow_cobra_mk_iv=data.get("AllowCobraMkIV", False),
            price_list=_items(data, "PriceList"),
        )


@dataclass
class Fuel:
    main: float = 0.0
    reservoir: float = 0.0


@dataclass
class Status(Record):
    """Contents of status.json."""
    timestamp: str = ""
    event: str = ""
    flags: int = 0
    pips: Tuple[int, int, int] = (0, 0, 0)
    fire_group: int = 0
    gui_focus: int = 0
    cargo: float = 0.0
    legal_state: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0
    heading: int = 0
    body_name: str = ""
    planet_radius: float = 0.0
    fuel: Fuel = field(default_factory=Fuel)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Status":
        fuel = data.get("Fuel") if isinstance(data.get("Fuel"), dict) else {}
        return cls(
            timestamp=_str(data, "timestamp"),
            event=_str(data, "event"),
            flags=data.get("Flags", 0),
            pips=tuple(data.get("Pips") or (0, 0, 0)),
            fire_group=data.get("FireGroup", 0),
            gui_focus=data.get("GuiFocus", 0),
            cargo=data.get("Cargo", 0.0),
            legal_state=_str(data, "LegalState"),
            latitude=data.get("Latitude", 0.0),
            longitude=data.get("Longitude", 0.0),
            altitude=data.get("Altitude", 0.0),
            heading=data.get("Heading", 0),
            body_name=_str(data, "BodyName"),
            planet_radius=data.get("PlanetRadius", 0.0),
            fuel=Fuel(main=fuel.get("FuelMain", 0.0), reservoir=fuel.get("FuelReservoir", 0.0)),
        )


@dataclass
class ShipLocker(Record):
    """Contents of shiplocker.json, kept as the decoded object."""
    timestamp: str = ""
    event: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShipLocker":
        return cls(timestamp=_str(data, "timestamp"), event=_str(data, "event"), data=data)


SNAPSHOT_TYPES = {
    "cargo.json": Cargo,
    "market.json": Market,
    "modulesinfo.json": ModulesInfo,
    "navroute.json": NavRoute,
    "outfitting.json": Outfitting,
    "shipyard.json": Shipyard,
    "status.json": Status,
    "shiplocker.json": ShipLocker,
}


def is_snapshot_file(filename: Union[str, Path]) -> bool:
    """Check whether a filename is one of the known snapshot files."""
    return Path(filename).name.lower() in SNAPSHOT_TYPES


def _load_object(content: Union[bytes, str], source: str) -> Dict[str, Any]:
    try:
        data = json.loads(content)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(f"invalid JSON in {source}: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"expected a JSON object in {source}, got {type(data).__name__}")
    return data


def parse_journal_line(line: Union[bytes, str]) -> JournalEntry:
    """
    Decode one journal line.

    Args:
        line: Raw line, with or without its terminator

    Returns:
        The decoded entry

    Raises:
        DecodeError: If the line is not a JSON object
    """
    return JournalEntry.from_dict(_load_object(line, "journal line"))


def parse_snapshot_contents(filename: Union[str, Path], content: Union[bytes, str]) -> Record:
    """
    Decode the contents of a snapshot file.

    Args:
        filename: Snapshot filename; only the basename is used
        content: Raw file contents

    Returns:
        Record of the type registered for the filename

    Raises:
        NotASnapshotError: If the filename is not a known snapshot file
        DecodeError: If the contents are not a JSON object
    """
    name = Path(filename).name.lower()
    record_type = SNAPSHOT_TYPES.get(name)
    if record_type is None:
        raise NotASnapshotError(f"not a snapshot file: {filename}")
    data = _load_object(content, name)
    try:
        return record_type.from_dict(data)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"unexpected layout in {name}: {e}") from e


def parse_snapshot_file(path: Union[str, Path]) -> Record:
    """
    Read and decode a snapshot file.

    Raises:
        NotASnapshotError: If the filename is not a known snapshot file
        DecodeError: If the file cannot be read or decoded
    """
    path = Path(path)
    if not is_snapshot_file(path):
        raise NotASnapshotError(f"not a snapshot file: {path}")
    try:
        content = path.read_bytes()
    except OSError as e:
        raise DecodeError(f"cannot read {path}: {e}") from e
    return parse_snapshot_contents(path, content)


_FIELD_VALUE = re.compile(rb'\s*:\s*"([^"\\]*)"')
_TOKEN = re.compile(rb'"(?:[^"\\]|\\.)*"|[{}\[\]]', re.DOTALL)


def sniff_field(line: bytes, name: str) -> Optional[str]:
    """
    Find the string value of a top-level field without decoding JSON.

    Fast path only: it assumes the field appears as "name": "value" with
    no escapes in the value, and returns None when that layout is not
    found at the top level of the object. Keys of nested objects are
    skipped. None means "decode the line to be sure", never "absent".

    Args:
        line: Raw journal line
        name: Field name

    Returns:
        The field value, or None if the layout was not recognised
    """
    key = b'"' + name.encode() + b'"'
    depth = 0
    for token in _TOKEN.finditer(line):
        text = token.group()
        if text in (b"{", b"["):
            depth += 1
        elif text in (b"}", b"]"):
            depth -= 1
        elif depth == 1 and text == key:
            match = _FIELD_VALUE.match(line, token.end())
            if match is None:
                continue
            try:
                return match.group(1).decode("utf-8")
            except UnicodeDecodeError:
                return None
    return None


def sniff_event_name(line: bytes) -> Optional[str]:
    """Fast path for the "event" field; see sniff_field()."""
    return sniff_field(line, "event")


def sniff_timestamp(line: bytes) -> Optional[str]:
    """Fast path for the "timestamp" field; see sniff_field()."""
    return sniff_field(line, "timestamp")
