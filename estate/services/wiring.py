"""Composition root - builds the services with their collaborators injected."""

from dataclasses import dataclass
from typing import Optional

from estate.services.accounts import AccountService
from estate.services.agents import AgentOnboarding
from estate.services.contracts import DocumentStore, MediaStore, NotificationDelivery
from estate.services.delivery import SessionHub
from estate.services.document_store import SupabaseDocumentStore
from estate.services.media_storage import LocalMediaStorage
from estate.services.notifications import NotificationFanout
from estate.services.properties import PropertyLifecycle
from estate.services.users import UserDirectory
from estate.utils.logging_config import LoggingConfig


@dataclass
class Services:
    store: DocumentStore
    users: UserDirectory
    notifications: NotificationFanout
    accounts: AccountService
    agents: AgentOnboarding
    properties: PropertyLifecycle
    delivery: Optional[NotificationDelivery] = None


def build_services(
    store: Optional[DocumentStore] = None,
    media: Optional[MediaStore] = None,
    delivery: Optional[NotificationDelivery] = None,
    configure_logging: bool = True,
) -> Services:
    """Wire the workflow services. Defaults: Supabase store, local disk media, in-process session hub."""
    if configure_logging:
        LoggingConfig.setup_logging()
    store = store if store is not None else SupabaseDocumentStore()
    media = media if media is not None else LocalMediaStorage()
    delivery = delivery if delivery is not None else SessionHub()

    users = UserDirectory(store)
    notifications = NotificationFanout(store, users, delivery)
    return Services(
        store=store,
        users=users,
        notifications=notifications,
        accounts=AccountService(users, notifications),
        agents=AgentOnboarding(store, users, notifications),
        properties=PropertyLifecycle(store, users, notifications, media),
        delivery=delivery,
    )
