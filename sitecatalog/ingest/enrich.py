"""
Optional enrichment of source records from Wikipedia page summaries.

Records that link a Wikipedia article but lack an image, or only carry a
boilerplate summary, get the article's lead image and extract from the REST
summary endpoint:
    https://en.wikipedia.org/api/rest_v1/page/summary/{title}

Enrichment never blocks a record: failures raise EnrichmentUnavailable
internally, are collected per record, and the record continues unchanged.
"""

import dataclasses
import logging
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

import requests

from ..constants import (
    ENRICHMENT_DELAY_S,
    ENRICHMENT_TIMEOUT_S,
    ENRICHMENT_WORKERS,
    USER_AGENT,
    WIKIPEDIA_SUMMARY_API,
)
from ..errors import EnrichmentUnavailable
from ..models import SourceRecord
from ..normalize.names import is_generic_summary

logger = logging.getLogger(__name__)

_ARTICLE_RX = re.compile(r'https?://([a-z\-]+\.wikipedia\.org)/wiki/([^#?]+)', re.IGNORECASE)


def parse_article_url(url: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    'https://en.wikipedia.org/wiki/Ring_of_Brodgar' -> ('en.wikipedia.org', 'Ring of Brodgar')
    """
    if not url:
        return None
    match = _ARTICLE_RX.match(url.strip())
    if not match:
        return None
    return match.group(1).lower(), unquote(match.group(2)).replace('_', ' ')


def needs_enrichment(record: SourceRecord) -> bool:
    if parse_article_url(record.reference_url) is None:
        return False
    return not record.image_url or is_generic_summary(record.raw_summary)


class WikipediaEnricher:
    """Fetch Wikipedia summaries for a batch of records."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        delay_s: float = ENRICHMENT_DELAY_S,
        timeout_s: float = ENRICHMENT_TIMEOUT_S,
        workers: int = ENRICHMENT_WORKERS,
        api_url: str = WIKIPEDIA_SUMMARY_API,
    ):
        if session is None:
            session = requests.Session()
            session.headers.update({
                'User-Agent': USER_AGENT,
                'Accept': 'application/json',
            })
        self.session = session
        self.delay_s = delay_s
        self.timeout_s = timeout_s
        self.workers = max(1, int(workers))
        self.api_url = api_url

        # Shared by all workers: request starts are spaced delay_s apart
        self._throttle_lock = threading.Lock()
        self._last_request = None

    def _throttle(self) -> None:
        with self._throttle_lock:
            if self._last_request is not None:
                wait = self._last_request + self.delay_s - time.monotonic()
                if wait > 0:
                    time.sleep(wait)
            self._last_request = time.monotonic()

    def fetch_summary(self, host: str, title: str) -> Dict:
        """
        Fetch one page summary.

        Raises:
            EnrichmentUnavailable: request failed, page missing or not an article
        """
        url = self.api_url.format(host=host, title=quote(title.replace(' ', '_'), safe=''))

        self._throttle()
        try:
            response = self.session.get(url, timeout=self.timeout_s)
        except requests.exceptions.RequestException as e:
            raise EnrichmentUnavailable(f"{title}: {e}") from e

        if response.status_code == 404:
            raise EnrichmentUnavailable(f"{title}: no such article")
        if response.status_code != 200:
            raise EnrichmentUnavailable(f"{title}: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise EnrichmentUnavailable(f"{title}: invalid JSON") from e

        if data.get('type') == 'disambiguation':
            raise EnrichmentUnavailable(f"{title}: disambiguation page")
        return data

    def enrich_record(self, record: SourceRecord) -> SourceRecord:
        """
        Return a copy of the record with gaps filled from its article.

        Only fills what is missing: an existing image is kept and only a
        boilerplate summary is replaced.
        """
        article = parse_article_url(record.reference_url)
        if article is None:
            raise EnrichmentUnavailable(f"{record.record_id}: no Wikipedia article linked")

        data = self.fetch_summary(*article)

        changes = {}
        if not record.image_url:
            image = ((data.get('originalimage') or {}).get('source')
                     or (data.get('thumbnail') or {}).get('source'))
            if image:
                changes['image_url'] = image

        extract = (data.get('extract') or '').strip()
        if extract and is_generic_summary(record.raw_summary):
            changes['raw_summary'] = extract

        if not changes:
            return record
        return dataclasses.replace(record, **changes)

    def _enrich_one(self, record: SourceRecord) -> Tuple[SourceRecord, Optional[str]]:
        if not needs_enrichment(record):
            return record, None
        try:
            return self.enrich_record(record), None
        except EnrichmentUnavailable as e:
            logger.debug(f"Enrichment unavailable for {record.record_id}: {e}")
            return record, str(e)

    def enrich_batch(self, records: List[SourceRecord]) -> Tuple[List[SourceRecord], List[Tuple[str, str]]]:
        """
        Enrich records concurrently; output order matches input order.

        Returns:
            (records, [(record_id, detail), ...] for records left unenriched)
        """
        if not records:
            return [], []

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            results = list(executor.map(self._enrich_one, records))

        enriched = [record for record, _ in results]
        unavailable = [
            (record.record_id, detail)
            for record, detail in results
            if detail is not None
        ]
        return enriched, unavailable
