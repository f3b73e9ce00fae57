from .models import ManifestEntry, ComparisonResult
from .registry import ManifestRegistry
from .comparator import IdempotencyComparator

__all__ = [
    'ManifestEntry',
    'ComparisonResult',
    'ManifestRegistry',
    'IdempotencyComparator',
]
