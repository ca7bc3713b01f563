"""Store and service dependencies for the API."""

from typing import Annotated

from fastapi import Depends
from supabase import Client, create_client

from ..config import Settings, get_settings
from ..escrow import EscrowLedger
from ..gateway import PaymentGateway, create_payment_gateway
from ..notifications import NotificationBridge, OutboxDispatcher, StoreNotificationSender
from ..settlement import SettlementEngine
from ..storage import DataStore, SupabaseDataStore

_supabase_client: Client | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        # Prefer new secret key, fall back to legacy service_role_key
        api_key = settings.supabase_secret_key or settings.supabase_service_role_key
        if not api_key:
            raise ValueError("Either SUPABASE_SECRET_KEY or SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, api_key)
    return _supabase_client


def get_store(settings: Annotated[Settings, Depends(get_settings)]) -> DataStore:
    """FastAPI dependency for the data store."""
    return SupabaseDataStore(get_supabase_client(settings))


Store = Annotated[DataStore, Depends(get_store)]
AppSettings = Annotated[Settings, Depends(get_settings)]


def get_gateway(store: Store, settings: AppSettings) -> PaymentGateway:
    return create_payment_gateway(settings.payment_gateway, store)


Gateway = Annotated[PaymentGateway, Depends(get_gateway)]


def get_escrow_ledger(store: Store, gateway: Gateway, settings: AppSettings) -> EscrowLedger:
    return EscrowLedger(store, gateway, settings.payroll_policy())


def get_dispatcher(store: Store, settings: AppSettings) -> OutboxDispatcher:
    return OutboxDispatcher(
        store,
        NotificationBridge(StoreNotificationSender(store)),
        max_attempts=settings.notification_max_attempts,
    )


def get_settlement_engine(
    store: Store,
    gateway: Gateway,
    dispatcher: Annotated[OutboxDispatcher, Depends(get_dispatcher)],
    settings: AppSettings,
) -> SettlementEngine:
    return SettlementEngine(
        store,
        gateway=gateway,
        dispatcher=dispatcher,
        policy=settings.payroll_policy(),
    )


Ledger = Annotated[EscrowLedger, Depends(get_escrow_ledger)]
Dispatcher = Annotated[OutboxDispatcher, Depends(get_dispatcher)]
Engine = Annotated[SettlementEngine, Depends(get_settlement_engine)]
