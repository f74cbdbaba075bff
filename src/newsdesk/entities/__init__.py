from .articles import ArticleStore
from .assets import AssetStore

__all__ = ["ArticleStore", "AssetStore"]
