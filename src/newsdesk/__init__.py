"""newsdesk - Articles and images kept as files in a GitHub repository."""

from .client import ContentClient
from .api_client import TreeClient
from .config import Credentials, PublishConfig, RepoConfig, Settings
from .models import Article, Asset

__all__ = [
    "Article",
    "Asset",
    "ContentClient",
    "Credentials",
    "PublishConfig",
    "RepoConfig",
    "Settings",
    "TreeClient",
]
__version__ = "0.1.0"
