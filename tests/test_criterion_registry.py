"""
Tests for the criterion registry and its config-driven factory.
"""

import pytest

from criteria import BalanceThresholdCriterion, SenderActivityCriterion, ContractInteractionCriterion, TokenBalanceCriterion
from criterion_registry import CriterionRegistry, CRITERION_TYPES
from errors import UnknownCriterionError, InvalidInput

from conftest import FakeChainData

DEFINITIONS = [
    {"id": "eth-whale", "type": "native_balance", "chain_id": 1, "description": "Whale",
     "params": {"min_balance_ether": "10"}},
    {"id": "base-gas", "type": "sender_activity", "chain_id": 8453, "multi_wallet": False},
    {"id": "curve-lock", "type": "contract_interaction", "chain_id": 1,
     "params": {"contract": "0x5f3b5DfEb7B28CDbD7FAba78963EE202a494e2A2", "method_ids": ["0x65fc3873"]}},
]


class TestFromDefinitions:
    def test_builds_entries(self):
        registry = CriterionRegistry.from_definitions(DEFINITIONS, FakeChainData())
        assert len(registry) == 3
        whale = registry.get("eth-whale")
        assert isinstance(whale.criterion, BalanceThresholdCriterion)
        assert whale.chain_id == 1
        assert whale.supports_multi_wallet is True
        assert isinstance(registry.get("base-gas").criterion, SenderActivityCriterion)
        assert registry.get("base-gas").supports_multi_wallet is False
        assert isinstance(registry.get("curve-lock").criterion, ContractInteractionCriterion)

    def test_wei_threshold(self):
        registry = CriterionRegistry.from_definitions(
            [{"id": "x", "type": "native_balance", "chain_id": 1, "params": {"min_balance_wei": "5"}}], FakeChainData()
        )
        assert registry.get("x").criterion.min_balance_wei == 5

    def test_every_type_key_is_buildable(self):
        params = {
            "native_balance": {"min_balance_wei": 1},
            "transaction_count": {"min_count": 1},
            "contract_interaction": {"contract": "0x5f3b5DfEb7B28CDbD7FAba78963EE202a494e2A2"},
            "activity_window": {"start_timestamp": 1, "end_timestamp": 2},
            "token_balance": {"token": "0xD533a949740bb3306d119CC777fa900bA034cd52"},
        }
        definitions = [
            {"id": type_key, "type": type_key, "chain_id": 1, "params": params.get(type_key, {})}
            for type_key in CRITERION_TYPES
        ]
        registry = CriterionRegistry.from_definitions(definitions, FakeChainData())
        for entry in registry.list():
            assert entry.criterion.describe()["type"] == entry.criterion_id

    def test_token_balance_thresholds(self):
        registry = CriterionRegistry.from_definitions([
            {"id": "raw", "type": "token_balance", "chain_id": 1,
             "params": {"token": "0xD533a949740bb3306d119CC777fa900bA034cd52", "min_balance": 3}},
            {"id": "whole", "type": "token_balance", "chain_id": 1,
             "params": {"token": "0xD533a949740bb3306d119CC777fa900bA034cd52", "min_tokens": "2", "decimals": 6}},
        ], FakeChainData())
        assert isinstance(registry.get("raw").criterion, TokenBalanceCriterion)
        assert registry.get("raw").criterion.min_balance == 3
        assert registry.get("whole").criterion.min_balance == 2000000

    def test_invalid_token_address(self):
        with pytest.raises(ValueError, match="invalid parameter"):
            CriterionRegistry.from_definitions(
                [{"id": "x", "type": "token_balance", "chain_id": 1, "params": {"token": "0x1234"}}], FakeChainData()
            )

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="unknown type"):
            CriterionRegistry.from_definitions([{"id": "x", "type": "nope", "chain_id": 1}], FakeChainData())

    def test_missing_parameter(self):
        with pytest.raises(ValueError, match="missing parameter"):
            CriterionRegistry.from_definitions([{"id": "x", "type": "transaction_count", "chain_id": 1}], FakeChainData())

    def test_missing_balance_threshold(self):
        with pytest.raises(ValueError):
            CriterionRegistry.from_definitions([{"id": "x", "type": "native_balance", "chain_id": 1}], FakeChainData())

    def test_missing_chain(self):
        with pytest.raises(ValueError, match="chain_id"):
            CriterionRegistry.from_definitions([{"id": "x", "type": "sender_activity"}], FakeChainData())

    def test_duplicate_id(self):
        with pytest.raises(ValueError, match="already registered"):
            CriterionRegistry.from_definitions([DEFINITIONS[0], DEFINITIONS[0]], FakeChainData())


class TestLookup:
    def test_unknown_criterion_is_invalid_input(self):
        registry = CriterionRegistry()
        with pytest.raises(UnknownCriterionError) as exc_info:
            registry.get("missing")
        assert isinstance(exc_info.value, InvalidInput)
        assert "missing" in str(exc_info.value)

    def test_list_is_sorted_and_summarised(self):
        registry = CriterionRegistry.from_definitions(DEFINITIONS, FakeChainData())
        ids = [entry.criterion_id for entry in registry.list()]
        assert ids == sorted(ids)
        summary = registry.get("eth-whale").summary()
        assert summary["id"] == "eth-whale"
        assert summary["min_balance_wei"] == 10 * 10 ** 18

    def test_non_positive_chain_rejected(self):
        with pytest.raises(ValueError):
            CriterionRegistry().register("x", SenderActivityCriterion(FakeChainData()), chain_id=0)
