"""
Data carried between the resolver, caches, composer and bundle
"""
from dataclasses import dataclass
from typing import Optional

from .geometry import ensure_feature


@dataclass
class ResolvedArea:
    """A lookup entry paired with its display label and boundary Feature."""
    token: str
    label: str
    feature: dict

    def to_dict(self) -> dict:
        """Bundle form: ``{entry, label, feature}``."""
        return {'entry': self.token, 'label': self.label, 'feature': self.feature}

    def to_cache_entry(self) -> dict:
        return {'label': self.label, 'feature': self.feature}

    @classmethod
    def from_dict(cls, data: dict, token: Optional[str] = None) -> Optional['ResolvedArea']:
        """
        Rebuild an area from a bundle or cache entry.

        Returns None when the entry has no usable polygon.
        """
        if not isinstance(data, dict):
            return None
        token = token or data.get('entry') or data.get('token')
        feature = ensure_feature(data.get('feature'))
        if not token or feature is None:
            return None
        return cls(token=token, label=data.get('label') or token, feature=feature)
