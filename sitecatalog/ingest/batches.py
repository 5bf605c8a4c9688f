"""
Batch loading.

A batch is one bulk snapshot from one source:
    {"source_kind": "crowd_geo", "name": "osm-2024-05", "sites": [...]}

Batches are read from a local JSON file or fetched over HTTP. A previously
exported catalog has the same {"sites": [...]} shape; its entries carry
canonical_id and contributing_sources and are restored rather than merged.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests

from ..constants import HTTP_TIMEOUT_S, USER_AGENT
from ..errors import MalformedBatch
from ..models import SourceKind

logger = logging.getLogger(__name__)


@dataclass
class Batch:
    """One snapshot of raw site entries."""
    name: str
    sites: List[Dict] = field(default_factory=list)
    source_kind: Optional[SourceKind] = None

    @property
    def is_catalog(self) -> bool:
        """True when the entries are canonical sites from an earlier run."""
        return bool(self.sites) and all(is_catalog_entry(e) for e in self.sites)


def is_catalog_entry(entry: Any) -> bool:
    return (isinstance(entry, dict)
            and 'canonical_id' in entry
            and 'contributing_sources' in entry)


def parse_batch(data: Any, name: str) -> Batch:
    """
    Validate a decoded batch.

    Raises:
        MalformedBatch: not a mapping with a 'sites' list, or unknown source_kind
    """
    if not isinstance(data, dict):
        raise MalformedBatch(f"{name}: expected a JSON object, got {type(data).__name__}")

    sites = data.get('sites')
    if not isinstance(sites, list):
        raise MalformedBatch(f"{name}: missing or invalid 'sites' collection")

    source_kind = data.get('source_kind')
    if source_kind is not None:
        try:
            source_kind = SourceKind(source_kind)
        except ValueError as e:
            raise MalformedBatch(f"{name}: unknown source_kind '{source_kind}'") from e

    return Batch(name=data.get('name') or name, sites=sites, source_kind=source_kind)


def _is_url(location: str) -> bool:
    return location.startswith(('http://', 'https://'))


def fetch_json(url: str, session: Optional[requests.Session] = None,
               timeout: float = HTTP_TIMEOUT_S) -> Any:
    if session is None:
        session = requests.Session()
        session.headers.update({'User-Agent': USER_AGENT})

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        raise MalformedBatch(f"{url}: download failed: {e}") from e
    except ValueError as e:
        raise MalformedBatch(f"{url}: invalid JSON: {e}") from e


def load_batch(location: Union[str, Path], session: Optional[requests.Session] = None,
               timeout: float = HTTP_TIMEOUT_S) -> Batch:
    """
    Load a batch from a file path or http(s) URL.

    Raises:
        MalformedBatch: unreadable, not JSON, or missing 'sites'
    """
    location = str(location)

    if _is_url(location):
        logger.info(f"Fetching batch {location}")
        return parse_batch(fetch_json(location, session, timeout), location)

    path = Path(location)
    logger.info(f"Loading batch {path}")
    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise MalformedBatch(f"{path}: {e}") from e
    except json.JSONDecodeError as e:
        raise MalformedBatch(f"{path}: invalid JSON: {e}") from e

    return parse_batch(data, path.stem)
