"""
Shard Loaders - Fetch raw shard payloads for a bucket.

The store never touches files or sockets itself; it asks a loader for the
payloads of one bucket and parses them. Two loaders ship with the package:

  FileShardLoader  Reads a generated search/ directory (aiofiles)
  HttpShardLoader  Fetches the same files from a hosted site (httpx)

Both use the generator's searchdata.js manifest when present to find which
files hold a bucket. A bucket the manifest does not list yields no payloads,
which the store records as an empty (absent) shard.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles
import httpx
from loguru import logger

from .errors import ShardUnavailable
from .shard_format import SearchManifest, parse_manifest

MANIFEST_NAME = "searchdata.js"


class ShardLoader(ABC):
    """Base class for shard payload sources."""

    @abstractmethod
    async def fetch(self, bucket: str) -> list[tuple[str, str]]:
        """
        Fetch every payload belonging to a bucket.

        Returns:
            List of (source, payload text); empty when the bucket has no shard

        Raises:
            ShardUnavailable or OSError on transient failures
        """
        ...

    async def aclose(self) -> None:
        """Release any held resources."""


class FileShardLoader(ShardLoader):
    """Load shards from a generated search/ directory on disk."""

    def __init__(self, root: Path, section: str = "all"):
        self.root = Path(root)
        self.section = section
        self.manifest = self._load_manifest()

    def _load_manifest(self) -> Optional[SearchManifest]:
        manifest_path = self.root / MANIFEST_NAME
        if not manifest_path.exists():
            logger.info(f"No manifest at {manifest_path}, probing shard files by bucket name")
            return None

        try:
            return parse_manifest(manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read manifest {manifest_path}: {e}")
            return None

    def _candidates(self, bucket: str) -> list[Path]:
        if self.manifest is not None:
            return [self.root / f"{name}.js" for name in self.manifest.files_for(self.section, bucket)]

        # Without a manifest only existing files are used
        probes = [
            self.root / f"{self.section}_{bucket}.js",
            self.root / f"{self.section}_{bucket}.json",
        ]
        return [path for path in probes if path.exists()]

    async def fetch(self, bucket: str) -> list[tuple[str, str]]:
        payloads = []
        for path in self._candidates(bucket):
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                payloads.append((str(path), await f.read()))

        if not payloads:
            logger.debug(f"No shard files for bucket '{bucket}' under {self.root}")
        return payloads


class HttpShardLoader(ShardLoader):
    """Load shards from the search/ directory of a hosted documentation site."""

    def __init__(self, base_url: str, section: str = "all",
                 client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/") + "/"
        self.section = section
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.manifest: Optional[SearchManifest] = None
        self._manifest_checked = False

    async def _get(self, bucket: str, name: str) -> Optional[str]:
        """GET one resource. Returns None on 404."""
        url = self.base_url + name
        try:
            response = await self.client.get(url)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.text
        except httpx.HTTPError as e:
            logger.warning(f"Fetching {url} failed: {e}")
            raise ShardUnavailable(bucket, str(e)) from e

    async def _ensure_manifest(self, bucket: str) -> None:
        if self._manifest_checked:
            return

        payload = await self._get(bucket, MANIFEST_NAME)
        self._manifest_checked = True
        if payload is None:
            logger.info(f"No manifest at {self.base_url}{MANIFEST_NAME}")
            return
        try:
            self.manifest = parse_manifest(payload)
        except ValueError as e:
            logger.warning(f"Could not read manifest from {self.base_url}: {e}")

    async def fetch(self, bucket: str) -> list[tuple[str, str]]:
        await self._ensure_manifest(bucket)

        if self.manifest is not None:
            names = [f"{name}.js" for name in self.manifest.files_for(self.section, bucket)]
        else:
            names = [f"{self.section}_{bucket}.js"]

        payloads = []
        for name in names:
            payload = await self._get(bucket, name)
            if payload is None:
                if self.manifest is not None:
                    # Listed in the manifest but missing on the server
                    raise ShardUnavailable(bucket, f"{self.base_url}{name} not found")
                continue
            payloads.append((self.base_url + name, payload))
        return payloads

    async def aclose(self) -> None:
        """Close HTTP client"""
        await self.client.aclose()
