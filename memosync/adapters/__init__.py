"""Provider adapters, selected by the config's ``provider`` tag."""

from typing import Dict, Type

from memosync.config import PROVIDER_GIST, PROVIDER_GITHUB, PROVIDER_SUPABASE, PROVIDER_WEBDAV
from memosync.errors import ConfigurationError

from .base import AdapterContext, SyncAdapter, raise_for_status
from .delta_rest import DeltaRestAdapter
from .gist import GistAdapter
from .github import GitHubAdapter
from .webdav import WebDavAdapter

_ADAPTERS: Dict[str, Type[SyncAdapter]] = {
    PROVIDER_SUPABASE: DeltaRestAdapter,
    PROVIDER_WEBDAV: WebDavAdapter,
    PROVIDER_GIST: GistAdapter,
    PROVIDER_GITHUB: GitHubAdapter,
}


def register_adapter(provider: str, adapter_cls: Type[SyncAdapter]) -> None:
    """Install (or replace) the adapter class used for ``provider``."""
    _ADAPTERS[provider] = adapter_cls


def create_adapter(provider: str, context: AdapterContext) -> SyncAdapter:
    """Instantiate the adapter for a provider.

    Raises:
        ConfigurationError: If no adapter handles ``provider`` (including "none")
    """
    adapter_cls = _ADAPTERS.get(provider)
    if adapter_cls is None:
        raise ConfigurationError(f"No sync adapter for provider {provider!r}")
    return adapter_cls(context)


__all__ = [
    "AdapterContext",
    "SyncAdapter",
    "raise_for_status",
    "register_adapter",
    "create_adapter",
    "DeltaRestAdapter",
    "WebDavAdapter",
    "GistAdapter",
    "GitHubAdapter",
]
