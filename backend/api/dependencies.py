"""FastAPI dependencies"""
from functools import lru_cache

from fastapi import Depends

from swipesync.chain.client import ContractReadClient
from swipesync.chain.contracts import ContractVersion
from swipesync.chain.routing import RouteTable
from swipesync.config import settings
from swipesync.db.repositories import PositionRepository, PredictionRepository
from swipesync.db.session import get_client
from swipesync.db.store import KeyValueStore
from swipesync.services.price_history import PriceHistoryLedger
from swipesync.services.reconciliation import ReconciliationEngine
from swipesync.services.stats import StatsAggregator
from swipesync.services.tasks import TaskService
from swipesync.utils.locks import KeyedLocks

# Shared by every request so merges of one key serialize across requests
record_locks = KeyedLocks()


def get_store() -> KeyValueStore:
    """Get a store adapter over the shared Redis client"""
    return KeyValueStore(get_client(), settings.scan_batch_size, settings.scan_max_keys)


@lru_cache(maxsize=1)
def get_contract_client() -> ContractReadClient:
    """Get the process-wide contract read client"""
    return ContractReadClient()


def get_route_table(store: KeyValueStore = Depends(get_store)) -> RouteTable:
    return RouteTable(
        store,
        settings.route_rules,
        {
            ContractVersion.LEGACY: settings.legacy_contract_address,
            ContractVersion.USDC: settings.usdc_contract_address,
        },
    )


def get_engine(
    store: KeyValueStore = Depends(get_store),
    client=Depends(get_contract_client),
    routes: RouteTable = Depends(get_route_table),
) -> ReconciliationEngine:
    return ReconciliationEngine(store, client, routes, locks=record_locks)


def get_prediction_repository(store: KeyValueStore = Depends(get_store)) -> PredictionRepository:
    return PredictionRepository(store, record_locks)


def get_position_repository(store: KeyValueStore = Depends(get_store)) -> PositionRepository:
    return PositionRepository(store, record_locks)


def get_task_service(store: KeyValueStore = Depends(get_store)) -> TaskService:
    return TaskService(store)


def get_stats_aggregator(store: KeyValueStore = Depends(get_store)) -> StatsAggregator:
    return StatsAggregator(store)


def get_price_history(store: KeyValueStore = Depends(get_store)) -> PriceHistoryLedger:
    return PriceHistoryLedger(store)
