"""Translators from run requests to desired state and platform artifacts."""

from aregistry.runtime.translation.compose import ComposeTranslator, LocalRuntimeConfig
from aregistry.runtime.translation.kubernetes import (
    KubernetesRuntimeConfig,
    KubernetesTranslator,
)
from aregistry.runtime.translation.registry import RegistryTranslator

__all__ = [
    "ComposeTranslator",
    "KubernetesRuntimeConfig",
    "KubernetesTranslator",
    "LocalRuntimeConfig",
    "RegistryTranslator",
]
