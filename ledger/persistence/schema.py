"""
Persisted Document Schemas

Four independent documents, each carrying a schema version:
- tv_portfolio:           {version, assets[], positions[], cashBalance}
- tv_trade_history:       {version, trades[]}
- tv_portfolio_snapshots: {version, snapshots[]}
- tv_portfolio_config:    {version, config}

Version 0 is the legacy unversioned shape (bare arrays for trades and
snapshots, bare objects for the portfolio and config). Documents are
migrated step by step to SCHEMA_VERSION on load.
"""
import json
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import Field, ValidationError

from ..exceptions import SchemaError
from ..models import Asset, LedgerModel, PortfolioConfig, Position, Snapshot, TradeRecord, UtcDatetime


SCHEMA_VERSION = 1

PORTFOLIO_KEY = "tv_portfolio"
TRADES_KEY = "tv_trade_history"
SNAPSHOTS_KEY = "tv_portfolio_snapshots"
CONFIG_KEY = "tv_portfolio_config"

EXPORT_REQUIRED_KEYS = frozenset({"assets", "positions", "trades", "snapshots", "cashBalance"})


class PortfolioDocument(LedgerModel):
    version: int = SCHEMA_VERSION
    assets: List[Asset] = []
    positions: List[Position] = []
    cash_balance: Decimal = Decimal("0")


class TradesDocument(LedgerModel):
    version: int = SCHEMA_VERSION
    trades: List[TradeRecord] = []


class SnapshotsDocument(LedgerModel):
    version: int = SCHEMA_VERSION
    snapshots: List[Snapshot] = []


class ConfigDocument(LedgerModel):
    version: int = SCHEMA_VERSION
    config: PortfolioConfig = Field(default_factory=PortfolioConfig)


class ExportDocument(LedgerModel):
    """All four documents merged, as produced by export_data"""
    version: int = SCHEMA_VERSION
    assets: List[Asset]
    positions: List[Position]
    trades: List[TradeRecord]
    snapshots: List[Snapshot]
    cash_balance: Decimal
    config: Optional[PortfolioConfig] = None
    exported_at: Optional[UtcDatetime] = None


DOCUMENT_TYPES: Dict[str, Type[LedgerModel]] = {
    PORTFOLIO_KEY: PortfolioDocument,
    TRADES_KEY: TradesDocument,
    SNAPSHOTS_KEY: SnapshotsDocument,
    CONFIG_KEY: ConfigDocument,
}


def detect_version(raw: Any) -> int:
    if isinstance(raw, dict) and "version" in raw:
        try:
            return int(raw["version"])
        except (TypeError, ValueError):
            return -1
    return 0


def _upgrade_from_v0(key: str, raw: Any) -> Dict[str, Any]:
    """Wrap legacy unversioned documents"""

    if key in (TRADES_KEY, SNAPSHOTS_KEY):
        if not isinstance(raw, list):
            raise SchemaError(key, f"expected a list, got {type(raw).__name__}")
        field = "trades" if key == TRADES_KEY else "snapshots"
        return {"version": 1, field: raw}

    if not isinstance(raw, dict):
        raise SchemaError(key, f"expected an object, got {type(raw).__name__}")

    if key == CONFIG_KEY:
        return {"version": 1, "config": raw}

    return {**raw, "version": 1}


MIGRATIONS: Dict[int, Callable[[str, Any], Dict[str, Any]]] = {
    0: _upgrade_from_v0,
}


def migrate(key: str, raw: Any) -> Dict[str, Any]:
    """
    Bring a raw document up to SCHEMA_VERSION

    Raises:
        SchemaError: unknown, future or non-advancing version
    """
    version = detect_version(raw)

    if version < 0 or version > SCHEMA_VERSION:
        raise SchemaError(key, f"unsupported schema version {raw.get('version')!r}")

    while version < SCHEMA_VERSION:
        raw = MIGRATIONS[version](key, raw)
        new_version = detect_version(raw)
        if new_version <= version:
            raise SchemaError(key, f"migration from version {version} did not advance")
        version = new_version

    return raw


def decode_document(key: str, text: str) -> LedgerModel:
    """
    Parse, migrate and validate a stored document

    Raises:
        SchemaError: the document cannot be used
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaError(key, f"unparseable JSON: {e}") from e

    raw = migrate(key, raw)

    try:
        return DOCUMENT_TYPES[key].model_validate(raw)
    except ValidationError as e:
        raise SchemaError(key, f"{e.error_count()} validation error(s)") from e


def encode_document(document: LedgerModel) -> str:
    return document.model_dump_json(by_alias=True)
