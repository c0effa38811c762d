"""Tests for the cross-test transaction state store."""

import json

import pytest

from gateway_qa.domain.exceptions import StateStoreError
from gateway_qa.infrastructure.config import Settings
from gateway_qa.infrastructure.state_store import (
    DEFAULT_SCOPE,
    SCENARIOS_KEY,
    FileStateBackend,
    InMemoryStateBackend,
    ScenarioRecord,
    TransactionStateStore,
    get_state_store,
    reset_state_store,
    resolve_transaction_id,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def file_store(tmp_path) -> TransactionStateStore:
    return TransactionStateStore(FileStateBackend(tmp_path))


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path) -> TransactionStateStore:
    """The store over each backend."""
    if request.param == "memory":
        return TransactionStateStore(InMemoryStateBackend())
    return TransactionStateStore(FileStateBackend(tmp_path))


# ============================================================================
# Backends
# ============================================================================


class TestFileStateBackend:
    """Tests for the JSON file backend."""

    def test_path_for_merchant(self, tmp_path):
        backend = FileStateBackend(tmp_path)
        assert backend.path_for("Axis Open store") == tmp_path / "transaction.Axis_Open_store.json"

    def test_path_for_default(self, tmp_path):
        assert FileStateBackend(tmp_path).path_for(DEFAULT_SCOPE) == tmp_path / "transaction.json"

    def test_load_missing(self, tmp_path):
        assert FileStateBackend(tmp_path).load("Google") is None

    def test_save_writes_formatted_json(self, tmp_path):
        backend = FileStateBackend(tmp_path)
        backend.save("Google", {"transactionId": "T1"})

        text = (tmp_path / "transaction.Google.json").read_text(encoding="utf-8")
        assert text == '{\n  "transactionId": "T1"\n}\n'

    def test_load_invalid_json(self, tmp_path):
        (tmp_path / "transaction.Google.json").write_text("{oops", encoding="utf-8")

        with pytest.raises(StateStoreError, match="not valid JSON"):
            FileStateBackend(tmp_path).load("Google")

    def test_load_non_object(self, tmp_path):
        (tmp_path / "transaction.Google.json").write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(StateStoreError, match="JSON object"):
            FileStateBackend(tmp_path).load("Google")

    def test_delete(self, tmp_path):
        backend = FileStateBackend(tmp_path)
        backend.save("Google", {})

        assert backend.delete("Google") is True
        assert backend.delete("Google") is False


class TestInMemoryStateBackend:
    def test_loaded_records_are_copies(self):
        backend = InMemoryStateBackend()
        backend.save("Google", {"a": {"b": 1}})

        loaded = backend.load("Google")
        loaded["a"]["b"] = 2

        assert backend.load("Google") == {"a": {"b": 1}}


# ============================================================================
# Store
# ============================================================================


class TestRead:
    """Tests for reading records."""

    def test_neither_record_exists(self, any_store):
        assert any_store.read("Google") == {}

    def test_falls_back_to_default(self, any_store):
        any_store.backend.save(DEFAULT_SCOPE, {"transactionId": "D1"})
        assert any_store.read("Google") == {"transactionId": "D1"}

    def test_merchant_record_wins(self, any_store):
        any_store.backend.save(DEFAULT_SCOPE, {"transactionId": "D1"})
        any_store.merge("Google", {"transactionId": "G1"})

        assert any_store.read("Google") == {"transactionId": "G1"}

    def test_default_from_shared_file(self, tmp_path, file_store):
        (tmp_path / "transaction.json").write_text(json.dumps({"transactionId": "D1"}), encoding="utf-8")
        assert file_store.read("SBIC")["transactionId"] == "D1"


class TestMerge:
    """Tests for merging into records."""

    def test_merges_keys(self, any_store):
        any_store.merge("M", {"a": 1})
        any_store.merge("M", {"b": 2})

        assert any_store.read("M") == {"a": 1, "b": 2}

    def test_merge_is_idempotent(self, any_store):
        any_store.merge("M", {"a": 1, "b": "x"})
        once = any_store.read("M")
        any_store.merge("M", {"a": 1, "b": "x"})

        assert any_store.read("M") == once

    def test_only_same_named_keys_overwritten(self, any_store):
        any_store.merge("Google", {"transactionId": "T1", "refLink": "https://x"})
        any_store.merge("Google", {"transactionId_payu": "T2"})

        assert any_store.read("Google") == {
            "transactionId": "T1",
            "refLink": "https://x",
            "transactionId_payu": "T2",
        }

    def test_returns_merged_record(self, any_store):
        any_store.merge("M", {"a": 1})
        assert any_store.merge("M", {"a": 2, "c": 3}) == {"a": 2, "c": 3}

    def test_default_record_not_copied(self, any_store):
        any_store.backend.save(DEFAULT_SCOPE, {"transactionId": "D1"})
        any_store.merge("Google", {"refLink": "https://x"})

        assert any_store.read("Google") == {"refLink": "https://x"}

    def test_merchants_are_isolated(self, any_store):
        any_store.merge("Google", {"a": 1})
        any_store.merge("SBIC", {"a": 2})

        assert any_store.get("Google", "a") == 1
        assert any_store.get("SBIC", "a") == 2

    def test_get_and_put(self, any_store):
        any_store.put("Google", "refLink", "https://x")

        assert any_store.get("Google", "refLink") == "https://x"
        assert any_store.get("Google", "missing", "fallback") == "fallback"

    def test_clear(self, any_store):
        any_store.merge("Google", {"a": 1})

        assert any_store.clear("Google") is True
        assert any_store.read("Google") == {}
        assert any_store.clear("Google") is False


class TestScenarioRecords:
    """Tests for scenario-tagged transaction records."""

    def test_record_and_find(self, any_store):
        any_store.record_scenario(
            "Google",
            ScenarioRecord(scenario="TC_012", transaction_id="T1", redirect_url="https://x"),
        )

        found = any_store.find_scenario("Google", "TC_012")

        assert found.transaction_id == "T1"
        assert found.redirect_url == "https://x"
        assert found.recorded_at

    def test_same_tag_is_replaced(self, any_store):
        any_store.record_scenario("Google", ScenarioRecord(scenario="TC_012", transaction_id="T1"))
        any_store.record_scenario("Google", ScenarioRecord(scenario="TC_013", transaction_id="T2"))
        any_store.record_scenario("Google", ScenarioRecord(scenario="TC_012", transaction_id="T3"))

        records = {r.scenario: r.transaction_id for r in any_store.scenarios("Google")}

        assert records == {"TC_012": "T3", "TC_013": "T2"}

    def test_recording_keeps_flat_keys(self, any_store):
        any_store.merge("Google", {"refLink": "https://x"})
        any_store.record_scenario("Google", ScenarioRecord(scenario="TC_012", transaction_id="T1"))

        record = any_store.read("Google")

        assert record["refLink"] == "https://x"
        assert len(record[SCENARIOS_KEY]) == 1

    def test_find_uses_tag_order(self, any_store):
        any_store.record_scenario("Google", ScenarioRecord(scenario="TC_013", transaction_id="T2"))
        any_store.record_scenario("Google", ScenarioRecord(scenario="TC_014", transaction_id="T3"))

        assert any_store.find_scenario("Google", "TC_012", "TC_014", "TC_013").transaction_id == "T3"
        assert any_store.find_scenario("Google", "TC_099") is None

    def test_transaction_id_falls_back_to_legacy_keys(self, any_store):
        any_store.merge("Google", {"fullResponse": {"transaction_id": "L1"}})

        assert any_store.scenario_transaction_id("Google", "TC_012") == "L1"

    def test_legacy_fallback_can_be_narrowed(self, any_store):
        any_store.merge("Google", {"transactionId": "L1", "transaction_id2": "L2"})

        assert any_store.scenario_transaction_id("Google", "TC_014", legacy_keys=("transaction_id2",)) == "L2"
        assert any_store.scenario_transaction_id("Google", "TC_014", legacy_keys=()) is None

    def test_round_trip_through_file(self, tmp_path, file_store):
        file_store.record_scenario(
            "Axis Open store",
            ScenarioRecord(scenario="TC_012", transaction_id="T1", extra={"amount": 10000}),
        )

        reopened = TransactionStateStore(FileStateBackend(tmp_path))

        assert reopened.find_scenario("Axis Open store", "tc_012").extra == {"amount": 10000}
        assert (tmp_path / "transaction.Axis_Open_store.json").exists()


class TestResolveTransactionId:
    @pytest.mark.parametrize(
        "record,expected",
        [
            ({"transactionId": "A"}, "A"),
            ({"transaction_id": "B"}, "B"),
            ({"transactionId": "", "transaction_id2": "C"}, "C"),
            ({"fullResponse": {"transactionId": "D"}}, "D"),
            ({"fullResponse": "not-a-dict"}, None),
            ({}, None),
        ],
    )
    def test_legacy_keys(self, record, expected):
        assert resolve_transaction_id(record) == expected

    def test_explicit_keys(self):
        assert resolve_transaction_id({"transactionId_payu": 42}, "transactionId_payu") == "42"


class TestStateStoreSingleton:
    def test_built_from_settings(self, tmp_path):
        settings = Settings(state_dir=tmp_path)
        reset_state_store()
        try:
            store = get_state_store(settings)
            assert get_state_store() is store
            assert store.backend.path_for("Google") == tmp_path / "transaction.Google.json"
        finally:
            reset_state_store()
