"""Messaging provider adapters."""

from approvalhub.providers.base import MessagingProvider
from approvalhub.providers.meta_cloud import MetaCloudProvider
from approvalhub.providers.n8n_evolution import N8NEvolutionProvider
from approvalhub.providers.registry import ProviderRegistry, build_provider_registry

__all__ = [
    "MessagingProvider",
    "MetaCloudProvider",
    "N8NEvolutionProvider",
    "ProviderRegistry",
    "build_provider_registry",
]
