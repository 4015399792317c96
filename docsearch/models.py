"""
Typed records built from generated index shards.
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin, urlparse


@dataclass(frozen=True)
class Entry:
    """One indexed symbol occurrence."""
    key: str
    search_key: str
    display_name: str
    target: str
    scope: Optional[str] = None
    scope_key: str = ""
    scope_label: str = ""
    same_frame: bool = True
    bucket: str = ""

    @property
    def is_external(self) -> bool:
        """True when the target is an absolute URL on another site."""
        return bool(urlparse(self.target).scheme)

    def resolve(self, site_root: str) -> str:
        """
        Resolve the target against the documentation site root.

        Args:
            site_root: URL or path of the page the search index lives under

        Returns:
            The target unchanged when external, otherwise joined to site_root
        """
        if self.is_external:
            return self.target
        return urljoin(site_root, self.target)


@dataclass(frozen=True)
class Shard:
    """Immutable slice of the index for one bucket."""
    bucket: str
    entries: tuple[Entry, ...] = field(default_factory=tuple)
    source: str = ""

    def __len__(self) -> int:
        return len(self.entries)
