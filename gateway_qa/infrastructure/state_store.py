"""Cross-test transaction state.

Scenarios that create transactions hand their identifiers to later,
independent test runs (status checks, refunds) through a per-merchant
record. The record is a flat JSON object; writers merge into it and never
replace it, readers treat every field as optional.

Identifiers are also kept as structured scenario records under the
``scenarios`` key so consumers can look a transaction up by the scenario
that produced it.

There is no locking: one writer per merchant at a time is assumed.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import structlog

from gateway_qa.domain.exceptions import StateStoreError
from gateway_qa.infrastructure.config import Settings, get_settings

logger = structlog.get_logger()

DEFAULT_SCOPE = "__default__"
SCENARIOS_KEY = "scenarios"

# Keys older runs used for the primary transaction id, in lookup order.
LEGACY_TRANSACTION_KEYS: tuple[str, ...] = (
    "transactionId",
    "transaction_id",
    "transactionId2",
    "transaction_id2",
    "fullResponse.transaction_id",
    "fullResponse.transactionId",
)


# ============================================================================
# Scenario Records
# ============================================================================


@dataclass
class ScenarioRecord:
    """Identifiers learned by one scenario.

    Attributes:
        scenario: Tag of the producing scenario, e.g. ``"TC_012"``.
        transaction_id: Gateway transaction id.
        redirect_url: Checkout URL returned with the intent.
        merchant: Merchant display name.
        recorded_at: ISO timestamp of the write.
        extra: Anything else the scenario wants to pass on.
    """

    scenario: str
    transaction_id: str
    redirect_url: str | None = None
    merchant: str | None = None
    recorded_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScenarioRecord":
        return cls(
            scenario=str(data["scenario"]),
            transaction_id=str(data["transaction_id"]),
            redirect_url=data.get("redirect_url"),
            merchant=data.get("merchant"),
            recorded_at=data.get("recorded_at") or "",
            extra=dict(data.get("extra") or {}),
        )


def resolve_transaction_id(record: dict[str, Any], *keys: str) -> str | None:
    """Find the first non-empty transaction id among keys.

    Args:
        record: A transaction record.
        keys: Keys to try in order; dotted keys reach into nested objects.
            Defaults to the legacy primary-id keys.

    Returns:
        The first truthy value as a string, or None.
    """
    for key in keys or LEGACY_TRANSACTION_KEYS:
        value: Any = record
        for part in key.split("."):
            value = value.get(part) if isinstance(value, dict) else None
        if value:
            return str(value)
    return None


# ============================================================================
# Backends
# ============================================================================


class StateBackend(Protocol):
    """Storage for whole records, one per scope."""

    def load(self, scope: str) -> dict[str, Any] | None:
        """Load a record, or None if the scope has none."""
        ...

    def save(self, scope: str, record: dict[str, Any]) -> None:
        """Replace a scope's record."""
        ...

    def delete(self, scope: str) -> bool:
        """Remove a scope's record, returning whether one existed."""
        ...


class InMemoryStateBackend:
    """Dict-backed storage for unit tests."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def load(self, scope: str) -> dict[str, Any] | None:
        record = self._records.get(scope)
        return json.loads(json.dumps(record)) if record is not None else None

    def save(self, scope: str, record: dict[str, Any]) -> None:
        # Round-trip through JSON so stored values behave like the file backend.
        self._records[scope] = json.loads(json.dumps(record))

    def delete(self, scope: str) -> bool:
        return self._records.pop(scope, None) is not None


class FileStateBackend:
    """One formatted JSON file per merchant in a working directory.

    Merchant ``"Axis Open store"`` maps to
    ``transaction.Axis_Open_store.json``; the default scope maps to the
    shared ``transaction.json``.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def path_for(self, scope: str) -> Path:
        """Get the file backing a scope."""
        if scope == DEFAULT_SCOPE:
            return self.directory / "transaction.json"
        return self.directory / f"transaction.{'_'.join(scope.split())}.json"

    def load(self, scope: str) -> dict[str, Any] | None:
        path = self.path_for(scope)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StateStoreError(
                f"Transaction file {path} is not valid JSON: {e}",
                details={"path": str(path)},
            ) from e
        if not isinstance(data, dict):
            raise StateStoreError(
                f"Transaction file {path} does not hold a JSON object",
                details={"path": str(path)},
            )
        return data

    def save(self, scope: str, record: dict[str, Any]) -> None:
        path = self.path_for(scope)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(record, indent=2) + "\n", encoding="utf-8")

    def delete(self, scope: str) -> bool:
        path = self.path_for(scope)
        if not path.exists():
            return False
        path.unlink()
        return True


# ============================================================================
# Store
# ============================================================================


class TransactionStateStore:
    """Per-merchant transaction records over a pluggable backend."""

    def __init__(self, backend: StateBackend) -> None:
        """Initialize store.

        Args:
            backend: Storage backend for records.
        """
        self._backend = backend

    @property
    def backend(self) -> StateBackend:
        return self._backend

    def read(self, merchant: str) -> dict[str, Any]:
        """Read a merchant's record.

        Falls back to the shared default record when the merchant has none
        yet, and to an empty record when neither exists.
        """
        record = self._backend.load(merchant)
        if record is not None:
            return record

        default = self._backend.load(DEFAULT_SCOPE)
        if default is not None:
            logger.warning(
                "No transaction record for merchant, using shared default",
                merchant=merchant,
            )
            return default
        return {}

    def merge(self, merchant: str, partial: dict[str, Any]) -> dict[str, Any]:
        """Shallow-merge fields into a merchant's own record.

        Only same-named keys are overwritten. The shared default record is
        never copied into the merchant's record.

        Returns:
            The record as written.
        """
        record = self._backend.load(merchant) or {}
        record.update(partial)
        self._backend.save(merchant, record)
        logger.debug("Transaction record merged", merchant=merchant, keys=sorted(partial))
        return record

    def get(self, scope: str, key: str, default: Any = None) -> Any:
        """Get one field of a scope's record."""
        return self.read(scope).get(key, default)

    def put(self, scope: str, key: str, value: Any) -> None:
        """Set one field of a scope's record."""
        self.merge(scope, {key: value})

    def clear(self, merchant: str) -> bool:
        """Drop a merchant's record, returning whether one existed."""
        removed = self._backend.delete(merchant)
        if removed:
            logger.info("Transaction record cleared", merchant=merchant)
        return removed

    # =========================================================================
    # Scenario records
    # =========================================================================

    def scenarios(self, merchant: str) -> list[ScenarioRecord]:
        """List the scenario records visible for a merchant."""
        raw = self.read(merchant).get(SCENARIOS_KEY) or []
        return [ScenarioRecord.from_dict(item) for item in raw if isinstance(item, dict)]

    def record_scenario(self, merchant: str, record: ScenarioRecord) -> dict[str, Any]:
        """Store a scenario record, replacing any with the same tag."""
        current = self._backend.load(merchant) or {}
        kept = [
            item
            for item in current.get(SCENARIOS_KEY) or []
            if isinstance(item, dict) and item.get("scenario") != record.scenario
        ]
        kept.append(record.to_dict())
        logger.info(
            "Scenario transaction recorded",
            merchant=merchant,
            scenario=record.scenario,
            transaction_id=record.transaction_id,
        )
        return self.merge(merchant, {SCENARIOS_KEY: kept})

    def find_scenario(self, merchant: str, *tags: str) -> ScenarioRecord | None:
        """Find the record of the first tag that has one."""
        by_tag = {r.scenario.upper(): r for r in self.scenarios(merchant)}
        for tag in tags:
            found = by_tag.get(tag.upper())
            if found is not None:
                return found
        return None

    def scenario_transaction_id(
        self,
        merchant: str,
        *tags: str,
        legacy_keys: tuple[str, ...] = LEGACY_TRANSACTION_KEYS,
    ) -> str | None:
        """Get a transaction id by scenario tags, then by legacy flat keys.

        Pass ``legacy_keys=()`` to ignore records written by older runs.
        """
        found = self.find_scenario(merchant, *tags)
        if found is not None:
            return found.transaction_id
        if not legacy_keys:
            return None
        return resolve_transaction_id(self.read(merchant), *legacy_keys)


# Global store instance
_state_store: TransactionStateStore | None = None


def get_state_store(settings: Settings | None = None) -> TransactionStateStore:
    """Get the file-backed store singleton."""
    global _state_store
    if _state_store is None:
        settings = settings or get_settings()
        _state_store = TransactionStateStore(FileStateBackend(settings.state_dir))
    return _state_store


def reset_state_store() -> None:
    """Reset the store singleton (for testing)."""
    global _state_store
    _state_store = None
