"""Error taxonomy shared by the verification job and the HTTP layer"""

from typing import Optional


class MarketplaceError(Exception):
    """Base class for application errors"""


class AuthorizationError(MarketplaceError):
    """Missing or mismatched trigger secret; nothing runs"""


class StorageReadError(MarketplaceError):
    """Provider list could not be loaded; the pass aborts"""


class StorageWriteError(MarketplaceError):
    """A single provider's update failed"""

    def __init__(self, provider_id: Optional[int], message: str):
        super().__init__(message)
        self.provider_id = provider_id


class VerificationPassInProgressError(MarketplaceError):
    """Another verification pass holds the lock"""
