"""Shared fixtures for whisperbuild unit tests."""

from types import MappingProxyType

import pytest

from whisperbuild.config import FEATURES, CapabilityResolver, CapabilitySet, EnvironmentSnapshot, TargetPlatform

LINUX = "x86_64-unknown-linux-gnu"
MACOS = "aarch64-apple-darwin"
WINDOWS = "x86_64-pc-windows-msvc"


@pytest.fixture
def make_capabilities():
    """Resolve (and validate) a CapabilitySet from features and environment."""

    def _make(features=(), env=None, triple=LINUX, profile="release"):
        resolver = CapabilityResolver(EnvironmentSnapshot(env or {}), TargetPlatform(triple))
        return resolver.resolve(list(features), profile)

    return _make


@pytest.fixture
def raw_capabilities():
    """Build a CapabilitySet without resolver validation."""

    def _make(features=(), env=None, triple=LINUX, profile="release"):
        flags = {name: name in features for name in FEATURES}
        return CapabilitySet(
            flags=MappingProxyType(flags),
            environment=EnvironmentSnapshot(env or {}),
            target=TargetPlatform(triple),
            profile=profile,
        )

    return _make


