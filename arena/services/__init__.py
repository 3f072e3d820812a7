"""Service layer: document store access and the domain workflows built on it."""

from .applications import ApplicationService
from .challenges import ChallengeService
from .identity import GitHubIdentityProvider
from .storage import BlobStorage, build_blob_storage
from .store import DocumentStore
from .teams import TeamService
from .users import AuthService

__all__ = [
    "ApplicationService",
    "AuthService",
    "BlobStorage",
    "ChallengeService",
    "DocumentStore",
    "GitHubIdentityProvider",
    "TeamService",
    "build_blob_storage",
]
