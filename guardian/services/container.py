"""Service wiring shared by every HTTP entry point.

Builds the store, repositories and services once per process from the
environment. Tests build their own Container around an InMemoryStore.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from guardian.shared.auth import TokenIdentityResolver
from guardian.shared.database import Store, get_store
from guardian.shared.database.records import (
    AlertRepository,
    AudioRepository,
    DuressConfigRepository,
    EventRepository,
    IncidentReportRepository,
    LocationRepository,
    MessageRepository,
    NotificationRepository,
    ProfileRepository,
    WearableRepository,
)
from guardian.shared.storage import BlobStore, LocalBlobStore, S3BlobStore, StorageConfig
from guardian.shared.utils import configure_pii_salt
from .alert_engine import AlertLifecycleManager, HeartRateThresholds, WearableService
from .duress_service import DecoyConfigService, DuressSettings, DuressVerifier
from .incident_service import IncidentReportService, TimelineSources
from .location_service import LocationTracker
from .notification_service import (
    FanoutConfig,
    NotificationFanout,
    SmsConfig,
    SmsTransport,
    build_sms_transport,
)

logger = logging.getLogger(__name__)

DEV_PII_SALT = "default_dev_salt_change_in_production_32chars"


@dataclass
class Container:
    """Everything an HTTP handler needs."""
    store: Store
    resolver: TokenIdentityResolver
    lifecycle: AlertLifecycleManager
    wearables: WearableService
    decoy: DecoyConfigService
    locations: LocationTracker
    reports: IncidentReportService
    fanout: NotificationFanout


def build_container(
    store: Optional[Store] = None,
    blob_store: Optional[BlobStore] = None,
    sms_transport: Optional[SmsTransport] = None,
    fanout_config: Optional[FanoutConfig] = None,
    thresholds: Optional[HeartRateThresholds] = None,
    duress_settings: Optional[DuressSettings] = None,
) -> Container:
    """Wire the services around a store.
    
    Collaborators not passed in are built from the environment; the SMS
    transport is only built from the environment when no store is given,
    so tests never reach a real provider.
    """
    if store is None:
        store = get_store()
        if sms_transport is None:
            sms_transport = build_sms_transport(SmsConfig.from_env())
    if blob_store is None:
        blob_store = _blob_store_from_env()

    alerts = AlertRepository(store)
    locations = LocationRepository(store)
    audio = AudioRepository(store)

    fanout = NotificationFanout(
        profiles=ProfileRepository(store),
        notifications=NotificationRepository(store),
        sms_transport=sms_transport,
        config=fanout_config or FanoutConfig.from_env(),
    )
    verifier = DuressVerifier(DuressConfigRepository(store))
    lifecycle = AlertLifecycleManager(
        alerts=alerts,
        locations=locations,
        audio=audio,
        fanout=fanout,
        verifier=verifier,
        blob_store=blob_store,
    )
    sources = TimelineSources(
        alerts=alerts,
        locations=locations,
        audio=audio,
        events=EventRepository(store),
        messages=MessageRepository(store),
    )

    return Container(
        store=store,
        resolver=TokenIdentityResolver(store),
        lifecycle=lifecycle,
        wearables=WearableService(
            WearableRepository(store),
            lifecycle,
            thresholds or HeartRateThresholds.from_env(),
        ),
        decoy=DecoyConfigService(
            DuressConfigRepository(store),
            verifier,
            lifecycle,
            duress_settings or DuressSettings.from_env(),
        ),
        locations=LocationTracker(locations, alerts),
        reports=IncidentReportService(IncidentReportRepository(store), sources),
        fanout=fanout,
    )


def _blob_store_from_env() -> BlobStore:
    if os.getenv("AUDIO_BUCKET"):
        return S3BlobStore(StorageConfig.from_env())
    return LocalBlobStore()


_container: Optional[Container] = None


def get_container() -> Container:
    """Process-wide container, built on first use."""
    global _container
    if _container is None:
        configure_pii_salt(os.getenv("PII_HASH_SALT", DEV_PII_SALT))
        _container = build_container()
        logger.info("SERVICE_CONTAINER_BUILT")
    return _container
