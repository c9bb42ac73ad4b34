from __future__ import annotations

from ..models.platform import Platform
from .base import RowClassifier
from .lazada import LazadaClassifier
from .shopee import ShopeeClassifier
from .tiktok import TikTokClassifier

"""Platform -> RowClassifier dispatch."""

__all__ = [
    "CLASSIFIERS",
    "get_classifier",
]

CLASSIFIERS: dict[Platform, type[RowClassifier]] = {
    Platform.SHOPEE: ShopeeClassifier,
    Platform.TIKTOK: TikTokClassifier,
    Platform.LAZADA: LazadaClassifier,
}


def get_classifier(platform: Platform | str) -> RowClassifier:
    """Return a fresh classifier for ``platform`` (name or enum member)."""
    return CLASSIFIERS[Platform.parse(platform)]()
