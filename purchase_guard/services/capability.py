"""
Capability Gate - Which validation paths apply on a platform/storefront pair.

Pure functions of the identifiers: no I/O, no side effects.
"""

from dataclasses import dataclass

from purchase_guard.models.domain import Platform, Storefront

# Storefronts accepted by the validation service, with the platforms they run on
REMOTE_VALIDATION_SUPPORT: dict[Storefront, frozenset[Platform]] = {
    Storefront.GOOGLE_PLAY: frozenset({Platform.ANDROID}),
    Storefront.APPLE_APP_STORE: frozenset({Platform.IPHONE, Platform.TVOS}),
    Storefront.MAC_APP_STORE: frozenset({Platform.OSX}),
}

# Storefronts with a local validator implementation. Apple stores have none.
LOCAL_VALIDATION_SUPPORT: dict[Storefront, frozenset[Platform]] = {
    Storefront.GOOGLE_PLAY: frozenset({Platform.ANDROID}),
}


def supports_local_validation(platform: Platform, storefront: Storefront) -> bool:
    """Check if receipts can be validated on the device."""
    return platform in LOCAL_VALIDATION_SUPPORT.get(storefront, frozenset())


def supports_remote_validation(platform: Platform, storefront: Storefront) -> bool:
    """Check if receipts can be validated by the validation service."""
    return platform in REMOTE_VALIDATION_SUPPORT.get(storefront, frozenset())


@dataclass(frozen=True)
class CapabilityGate:
    """Capabilities resolved once for the running platform and storefront."""

    platform: Platform
    storefront: Storefront

    @property
    def local_validation(self) -> bool:
        return supports_local_validation(self.platform, self.storefront)

    @property
    def remote_validation(self) -> bool:
        return supports_remote_validation(self.platform, self.storefront)
