# polyfs/file_access/registry.py
"""
Provider registry.

Holds the live ``ProviderId -> Provider`` instances of one process and keeps
one credential/config file per instance under the per-user data directory, so
the same set of providers can be rebuilt after a restart. Persistence goes
through the local disk provider itself (root ``""``, absolute ids).
"""
import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

import aiofiles.os
from filelock import AsyncFileLock, Timeout
from platformdirs import user_data_dir

from polyfs.config import settings
from polyfs.file_access.base import Provider
from polyfs.file_access.cloud_base import CloudDriveProvider
from polyfs.file_access.credentials import OAuthToken
from polyfs.file_access.errors import (
    Conflict,
    NotFound,
    ProviderConfigError,
    ProviderNotFound,
    TransportError,
)
from polyfs.file_access.gdrive_provider import GoogleDriveProvider
from polyfs.file_access.localfs_provider import LocalDiskProvider
from polyfs.file_access.onedrive_provider import OneDriveProvider
from polyfs.file_access.s3_provider import S3Provider
from polyfs.file_access.types import ObjectId, ProviderId, ProviderType
from polyfs.integrations.oauth import AuthorizationCodeReceiver
from polyfs.monitoring.context import set_request_context
from polyfs.monitoring.logger import log


# Registry of available providers
PROVIDER_REGISTRY: Dict[ProviderType, type] = {
    ProviderType.LOCAL_DISK: LocalDiskProvider,
    ProviderType.ONEDRIVE: OneDriveProvider,
    ProviderType.GOOGLE_DRIVE: GoogleDriveProvider,
    ProviderType.S3: S3Provider,
}

LOCK_SUFFIX = ".lock"


def register_provider(provider_type: ProviderType, provider_class: type) -> None:
    """
    Register (or replace) the adapter class built for a provider type.

    Raises:
        ValueError: If provider_class doesn't implement Provider
    """
    if not issubclass(provider_class, Provider):
        raise ValueError(
            f"Provider class must inherit from Provider, got {provider_class}"
        )
    PROVIDER_REGISTRY[provider_type] = provider_class
    log("INFO", f"Registered provider class for {provider_type}: {provider_class.__name__}",
        module="registry")


def default_data_dir() -> str:
    return settings.DATA_DIR or user_data_dir(settings.APP_NAME, settings.APP_AUTHOR)


@dataclass
class ProvidersOptions:
    """Application-level secrets the cloud providers are built with."""
    google_client_secret: Optional[str] = None
    onedrive_client_id: Optional[str] = None

    @classmethod
    def from_settings(cls) -> "ProvidersOptions":
        return cls(
            google_client_secret=settings.GOOGLE_CLIENT_SECRET,
            onedrive_client_id=settings.ONEDRIVE_CLIENT_ID,
        )


class ProviderRegistry:
    """
    Keyed collection of live providers with per-provider persistence.

    Example:
        registry = ProviderRegistry(receiver=LoopbackAuthorizationReceiver())
        await registry.load()
        await registry.add_provider(ProviderId("docs", ProviderType.LOCAL_DISK), {"root": "/srv/docs"})
        fs = registry.get_provider(ProviderId("docs", ProviderType.LOCAL_DISK)).as_filesystem()
    """

    def __init__(
        self,
        options: Optional[ProvidersOptions] = None,
        data_dir: Optional[str] = None,
        receiver: Optional[AuthorizationCodeReceiver] = None,
        session: Optional[Any] = None,
        s3_session: Optional[Any] = None,
        lock_timeout: float = 30,
    ):
        self.options = options or ProvidersOptions.from_settings()
        self.data_dir = os.path.abspath(data_dir or default_data_dir())
        self.receiver = receiver
        self.lock_timeout = lock_timeout
        self._providers: Dict[ProviderId, Provider] = {}
        self._storage = LocalDiskProvider(root="", create_dirs=True)
        # extra constructor arguments per backend (shared HTTP session, injected S3 session)
        self._provider_kwargs: Dict[ProviderType, Dict[str, Any]] = {
            ProviderType.ONEDRIVE: {"receiver": receiver, "session": session},
            ProviderType.GOOGLE_DRIVE: {"receiver": receiver, "session": session},
        }
        if s3_session is not None:
            self._provider_kwargs[ProviderType.S3] = {"session": s3_session}

    @staticmethod
    def _check_id(provider_id: ProviderId) -> None:
        """Ids name a single file in the data directory."""
        name = provider_id.id
        separators = [sep for sep in ("/", os.sep, os.altsep) if sep]
        if not name or name in (".", "..") or any(sep in name for sep in separators):
            raise ProviderConfigError(f"Invalid provider id: {name!r}")

    def _file_id(self, provider_id: ProviderId) -> ObjectId:
        return ObjectId.plain_file(os.path.join(self.data_dir, provider_id.file_name))

    def _with_options(self, provider_type: ProviderType, config: Dict[str, Any]) -> Dict[str, Any]:
        config = dict(config)
        if provider_type == ProviderType.ONEDRIVE:
            config.setdefault("client_id", self.options.onedrive_client_id)
            if not config["client_id"]:
                raise ProviderConfigError("OneDrive requires a client id (ONEDRIVE_CLIENT_ID)")
        elif provider_type == ProviderType.GOOGLE_DRIVE:
            config.setdefault("client_secret", self.options.google_client_secret)
            if not config["client_secret"]:
                raise ProviderConfigError("Google Drive requires a client secret (GOOGLE_CLIENT_SECRET)")
        return config

    @staticmethod
    def _config_from_blob(provider_type: ProviderType, blob: Dict[str, Any]) -> Dict[str, Any]:
        """Turn a persisted ``serialize()`` blob back into constructor config."""
        if provider_type == ProviderType.ONEDRIVE:
            return {"token": blob or None}
        if provider_type == ProviderType.GOOGLE_DRIVE:
            return {"tokens": blob}
        return blob

    def _build(self, provider_id: ProviderId, config: Dict[str, Any]) -> Provider:
        provider_class = PROVIDER_REGISTRY.get(provider_id.provider_type)
        if provider_class is None:
            raise ProviderConfigError(f"Unknown provider type: {provider_id.provider_type}")
        config = self._with_options(provider_id.provider_type, config)
        kwargs = self._provider_kwargs.get(provider_id.provider_type, {})
        return provider_class.from_config(config, **kwargs)

    async def _persist(self, provider_id: ProviderId, provider: Provider) -> None:
        file_id = self._file_id(provider_id)
        data = json.dumps(provider.serialize(), indent=2).encode("utf-8")
        await aiofiles.os.makedirs(self.data_dir, exist_ok=True)
        lock = AsyncFileLock(file_id.path + LOCK_SUFFIX, timeout=self.lock_timeout)
        try:
            async with lock:
                await self._storage.write_file(file_id, data)
        except Timeout as exc:
            log("ERROR", f"Could not lock {file_id.path} within {self.lock_timeout}s",
                module="registry", provider_id=str(provider_id))
            raise TransportError(f"Credential file for {provider_id} is locked") from exc
        log("INFO", "Provider state persisted", module="registry", provider_id=str(provider_id))

    def _watch_credentials(self, provider_id: ProviderId, provider: Provider) -> None:
        if not isinstance(provider, CloudDriveProvider):
            return

        async def on_update(token: Optional[OAuthToken]) -> None:
            # a dropped token keeps the last good record on disk
            if token is not None:
                await self._persist(provider_id, provider)

        provider.credentials.on_update = on_update

    async def add_provider(self, provider_id: ProviderId, config: Optional[Dict[str, Any]] = None) -> Provider:
        """
        Build, authorize if needed, persist and register a provider.

        Raises:
            Conflict: If a provider with the same id is already registered
            ProviderConfigError: If required configuration is missing or the id is not a plain name
            AuthRequired: If interactive authorization is needed but fails
        """
        self._check_id(provider_id)
        if provider_id in self._providers:
            raise Conflict(f"Provider already exists: {provider_id}")
        provider = self._build(provider_id, config or {})
        if isinstance(provider, CloudDriveProvider) and not provider.is_authenticated():
            await provider.authorize(self.receiver)
        await self._persist(provider_id, provider)
        self._watch_credentials(provider_id, provider)
        self._providers[provider_id] = provider
        log("INFO", f"Added provider {provider_id}", module="registry", provider_id=str(provider_id))
        return provider

    async def remove_provider(self, provider_id: ProviderId) -> None:
        """Forget a provider and delete its persisted file; backend data is untouched."""
        provider = self._providers.pop(provider_id, None)
        if provider is None:
            raise ProviderNotFound(f"No provider registered as {provider_id}")
        try:
            await self._storage.delete(self._file_id(provider_id))
        except NotFound:
            log("WARNING", f"Credential file for {provider_id} was already gone",
                module="registry", provider_id=str(provider_id))
        await provider.close()
        log("INFO", f"Removed provider {provider_id}", module="registry", provider_id=str(provider_id))

    def get_provider(self, provider_id: ProviderId) -> Provider:
        """Look up a live provider and tag subsequent log lines with its id."""
        try:
            provider = self._providers[provider_id]
        except KeyError:
            raise ProviderNotFound(f"No provider registered as {provider_id}") from None
        set_request_context(provider_id=str(provider_id))
        return provider

    def list_providers(self) -> Set[ProviderId]:
        return set(self._providers)

    async def load(self) -> int:
        """
        Rebuild providers from the files in the data directory.

        Unparseable file names, invalid JSON and unusable configs are skipped
        with a warning. Providers already registered are left alone.

        Returns:
            Number of providers loaded
        """
        try:
            entries = await self._storage.read_directory(ObjectId.directory(self.data_dir))
        except NotFound:
            return 0
        loaded = 0
        for entry in entries:
            if entry.is_directory() or entry.name.endswith(LOCK_SUFFIX):
                continue
            try:
                provider_id = ProviderId.from_file_name(entry.name)
            except ValueError:
                log("WARNING", f"Skipping unrecognized file {entry.name}", module="registry")
                continue
            if provider_id in self._providers:
                continue
            try:
                blob = json.loads(await self._storage.read_file(entry.id))
                provider = self._build(provider_id, self._config_from_blob(provider_id.provider_type, blob))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                # ProviderConfigError and json.JSONDecodeError are ValueErrors
                log("WARNING", f"Skipping unreadable provider file {entry.name}: {exc}",
                    module="registry", provider_id=str(provider_id))
                continue
            self._watch_credentials(provider_id, provider)
            self._providers[provider_id] = provider
            loaded += 1
        log("INFO", f"Loaded {loaded} providers from {self.data_dir}", module="registry")
        return loaded

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
