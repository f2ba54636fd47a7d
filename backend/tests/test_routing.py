"""
Prediction id -> contract routing tests.
"""

import pytest

from swipesync.chain.contracts import ContractVersion
from swipesync.chain.routing import RouteTable
from swipesync.utils.errors import RoutingError, ValidationError

from tests.fakes import LEGACY_ADDRESS, USDC_ADDRESS


class TestRuleRouting:

    def test_usdc_prefix(self, routes):
        route = routes.resolve("pred_v2_225")
        assert route.version == ContractVersion.USDC
        assert route.address == USDC_ADDRESS
        assert route.onchain_id == 225

    def test_numeric_id_is_legacy(self, routes):
        route = routes.resolve("17")
        assert route.version == ContractVersion.LEGACY
        assert route.address == LEGACY_ADDRESS
        assert route.onchain_id == 17

    def test_same_id_always_same_route(self, routes):
        assert routes.resolve("pred_v2_9") == routes.resolve("pred_v2_9")

    def test_unroutable_id_raises(self, routes):
        with pytest.raises(RoutingError):
            routes.resolve("pred_v2_abc")
        with pytest.raises(RoutingError):
            routes.resolve("offchain-only")

    def test_malformed_id_rejected(self, routes):
        with pytest.raises(ValidationError):
            routes.resolve("pred:*")

    def test_unknown_version_in_rules(self, store):
        with pytest.raises(RoutingError):
            RouteTable(store, [("x_", "v9")], {})

    def test_missing_address_raises(self, store):
        table = RouteTable(store, [("", "legacy")], {ContractVersion.USDC: USDC_ADDRESS})
        with pytest.raises(RoutingError):
            table.resolve("17")


class TestExplicitRegistry:
    """Registered entries win over the prefix rules."""

    def test_registered_entry_overrides_rules(self, routes):
        routes.register("market-launch", ContractVersion.USDC, onchain_id=301)

        route = routes.resolve("market-launch")
        assert route.version == ContractVersion.USDC
        assert route.onchain_id == 301

    def test_register_derives_onchain_id(self, routes):
        route = routes.register("pred_v2_44", ContractVersion.USDC)
        assert route.onchain_id == 44

    def test_register_without_id_or_rule_fails(self, routes):
        with pytest.raises(RoutingError):
            routes.register("custom", ContractVersion.LEGACY)

    def test_reregistering_moves_between_versions(self, routes):
        routes.register("market-x", ContractVersion.LEGACY, onchain_id=5)
        routes.register("market-x", ContractVersion.USDC, onchain_id=7)

        assert routes.known_ids(ContractVersion.LEGACY) == []
        assert routes.known_ids(ContractVersion.USDC) == ["market-x"]
        assert routes.resolve("market-x").onchain_id == 7

    def test_known_ids_sorted_across_versions(self, routes):
        routes.register("pred_v2_2", ContractVersion.USDC)
        routes.register("1", ContractVersion.LEGACY)
        assert routes.known_ids() == ["1", "pred_v2_2"]

    def test_register_accepts_version_string(self, routes):
        route = routes.register("pred_v2_3", "usdc")
        assert route.version == ContractVersion.USDC
