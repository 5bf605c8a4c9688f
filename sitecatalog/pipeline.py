#!/usr/bin/env python3
"""
Main pipeline orchestrator.

Merges bulk site snapshots into one de-duplicated catalog:
1. Restore - re-seed sites from a previous catalog (keeps their slugs)
2. Normalize - convert each raw entry to a SourceRecord
3. Validate - drop garbage, impossible coordinates and disallowed regions
4. Enrich - optionally fill gaps from Wikipedia (concurrent, per batch)
5. Match & merge - attach records to existing sites or create new ones
6. Export - catalog, merge report, GeoJSON and media manifests

Usage:
    sitecatalog-pipeline --batch data/wikidata-sites.json --batch data/osm-sites.json
    sitecatalog-pipeline --previous data/catalog/catalog.json --batch data/osm-sites.json
    python -m sitecatalog.pipeline --config merge_config.json --batch https://example.org/sites.json
"""

import argparse
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from tqdm import tqdm

from .config import load_config
from .constants import MEGALITHIC_REGIONS
from .errors import ConfigError, MalformedBatch, RecordRejected, SlugCollisionExhausted
from .export.export_catalog import catalog_to_dict, export_catalog, print_statistics
from .geo import LandMask
from .ingest.batches import Batch, load_batch, parse_batch
from .ingest.enrich import WikipediaEnricher
from .merge.field_merge import absorb_site, create_site, merge_into
from .merge.match import CandidateMatcher
from .merge.scoring import score_record
from .merge.slugs import SlugAssigner
from .merge.spatial_index import SpatialIndex
from .models import CanonicalSite, DecisionReason, MergeDecision, SourceRecord, SourceRef
from .normalize import detect_source_kind, get_normalizer
from .normalize.names import is_good_summary
from .validity import ValidityFilter

logger = logging.getLogger(__name__)

# Outcomes that need no human review
ROUTINE_REASONS = {
    DecisionReason.NEW_SITE,
    DecisionReason.NEAR_CERTAIN_DISTANCE,
    DecisionReason.NAME_CORROBORATED,
    DecisionReason.NAME_KEY_MATCH,
    DecisionReason.ALREADY_MERGED,
}

COUNT_KEYS = (
    'records_seen', 'accepted', 'merged', 'new_sites', 'already_merged',
    'conflicts', 'off_land', 'restored', 'restored_absorbed',
    'enrichment_unavailable',
)

BatchInput = Union[Batch, Dict, str, Path]


@dataclass
class PipelineResult:
    """Canonical sites in creation order plus the merge report."""
    sites: List[CanonicalSite]
    report: Dict = field(default_factory=dict)

    @property
    def catalog(self) -> Dict:
        return catalog_to_dict(self.sites)

    @property
    def failed_batches(self) -> List[str]:
        return [b['name'] for b in self.report.get('batches', []) if b['status'] == 'failed']


class Pipeline:
    """
    Owns all merge state for one run: sites, spatial index, source registry,
    slug assigner, counters and decisions.

    Args:
        config: Loaded configuration (see config.load_config); defaults if None
        enricher: Enrichment backend; built from config when enrichment is enabled
        land_mask: Land plausibility boxes (defaults to the built-in table)
    """

    def __init__(self, config: Optional[Dict] = None,
                 enricher: Optional[WikipediaEnricher] = None,
                 land_mask: Optional[LandMask] = None):
        self.config = config if config is not None else load_config()

        matching = self.config['matching']
        validity = self.config['validity']
        identifiers = self.config['identifiers']
        enrichment = self.config['enrichment']

        self.sites: Dict[str, CanonicalSite] = {}
        # (source_kind, source_id) -> canonical_id
        self.registry: Dict[SourceRef, str] = {}

        self.index = SpatialIndex(matching['grid_precisions'])
        self.matcher = CandidateMatcher(
            self.index,
            self.sites,
            near_certain_m=matching['near_certain_m'],
            name_corroborated_m=matching['name_corroborated_m'],
            name_key_m=matching['name_key_m'],
            similarity_threshold=matching['name_similarity_threshold'],
            min_substring_key_length=matching['min_substring_key_length'],
        )
        self.validity = ValidityFilter(
            off_land_policy=validity['off_land_policy'],
            region_filter_kinds=validity['region_filter_kinds'],
            regions=validity['regions'] or MEGALITHIC_REGIONS,
            land_mask=land_mask,
        )
        self.slugs = SlugAssigner(identifiers['max_slug_length'], identifiers['max_slug_suffix'])

        if enricher is None and enrichment['enabled']:
            enricher = WikipediaEnricher(
                delay_s=enrichment['delay_s'],
                timeout_s=enrichment['timeout_s'],
                workers=enrichment['workers'],
            )
        self.enricher = enricher

        self.show_progress = self.config['output'].get('progress', True)

        self.counts = Counter({key: 0 for key in COUNT_KEYS})
        self.rejected = Counter()
        self.reasons = Counter()
        self.decisions: List[MergeDecision] = []
        self.batch_reports: List[Dict] = []
        self._normalizers = {}

    # ------------------------------------------------------------------
    # Bookkeeping

    def _decide(self, decision: MergeDecision) -> MergeDecision:
        self.decisions.append(decision)
        self.reasons[decision.reason.value] += 1
        return decision

    def _reject(self, record_id: str, reason: DecisionReason, detail: str = '') -> None:
        self.rejected[reason.value] += 1
        self._decide(MergeDecision(record_id, None, reason, detail=detail))

    def _register(self, site: CanonicalSite, refs: Iterable[SourceRef]) -> None:
        for ref in refs:
            self.registry.setdefault(tuple(ref), site.canonical_id)

    def _normalizer(self, kind: str):
        if kind not in self._normalizers:
            self._normalizers[kind] = get_normalizer(kind)
        return self._normalizers[kind]

    def _progress(self, items, desc: str):
        # disable=None turns bars off when not attached to a TTY
        return tqdm(items, desc=desc, unit='rec', disable=None if self.show_progress else True)

    # ------------------------------------------------------------------
    # Restore

    def restore_site(self, entry: Dict) -> Optional[CanonicalSite]:
        """
        Re-seed one site from a previous catalog.

        If any of its sources already belong to a site (or its id is already
        present), it is folded into that site instead of being added.
        """
        site = CanonicalSite.from_dict(entry)

        owner_id = None
        if site.canonical_id in self.sites:
            owner_id = site.canonical_id
        else:
            for ref in site.contributing_sources:
                if ref in self.registry:
                    owner_id = self.registry[ref]
                    break

        if owner_id is not None:
            owner = self.sites[owner_id]
            absorb_site(owner, site)
            self._register(owner, site.contributing_sources)
            self.counts['restored_absorbed'] += 1
            logger.debug(f"Restored {site.canonical_id} folded into {owner_id}")
            return owner

        self.slugs.reserve(site.canonical_id)
        self.sites[site.canonical_id] = site
        self.index.insert(site.canonical_id, site.coordinates.lat, site.coordinates.lng)
        self._register(site, site.contributing_sources)
        self.counts['restored'] += 1
        return site

    def restore_catalog(self, batch: Batch) -> Dict:
        restored = failed = 0
        for i, entry in enumerate(self._progress(batch.sites, f"Restoring {batch.name}")):
            try:
                self.restore_site(entry)
                restored += 1
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                failed += 1
                self._reject(f"{batch.name}#{i}", DecisionReason.MALFORMED_RECORD,
                             f"unreadable catalog entry: {e!r}")

        logger.info(f"Restored {restored} sites from {batch.name} ({failed} unreadable)")
        return {'name': batch.name, 'status': 'restored', 'records': len(batch.sites),
                'restored': restored, 'malformed': failed}

    # ------------------------------------------------------------------
    # Source batches

    def normalize_entry(self, entry: Dict, default_kind=None) -> SourceRecord:
        if not isinstance(entry, dict):
            raise TypeError(f"site entry must be an object, got {type(entry).__name__}")
        kind = detect_source_kind(entry, default_kind)
        return self._normalizer(kind).normalize_entry(entry)

    def _admit(self, batch: Batch, stats: Counter) -> List[SourceRecord]:
        """Normalize and validate a batch; returns the accepted records in order."""
        accepted = []
        for i, entry in enumerate(self._progress(batch.sites, f"Normalizing {batch.name}")):
            self.counts['records_seen'] += 1
            fallback_id = f"{batch.name}#{i}"

            try:
                record = self.normalize_entry(entry, batch.source_kind)
            except RecordRejected as e:
                # Unparseable coordinates surface here before validation
                self._reject(fallback_id, DecisionReason(e.reason), e.detail)
                stats['rejected'] += 1
                continue
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                self._reject(fallback_id, DecisionReason.MALFORMED_RECORD, repr(e))
                stats['rejected'] += 1
                continue

            if record.source_ref in self.registry:
                self.counts['already_merged'] += 1
                stats['already_merged'] += 1
                self._decide(MergeDecision(record.record_id, self.registry[record.source_ref],
                                           DecisionReason.ALREADY_MERGED))
                continue

            result = self.validity.check(record)
            if not result.ok:
                self._reject(record.record_id, DecisionReason(result.reason), result.detail)
                stats['rejected'] += 1
                continue

            if not result.on_land:
                self.counts['off_land'] += 1
                self._decide(MergeDecision(record.record_id, None, DecisionReason.OFF_LAND,
                                           detail=f"({record.coordinates.lat}, {record.coordinates.lng})"))

            accepted.append(record)

        return accepted

    def _enrich(self, records: List[SourceRecord]) -> List[SourceRecord]:
        if self.enricher is None or not records:
            return records

        logger.info(f"Enriching {len(records)} records...")
        records, unavailable = self.enricher.enrich_batch(records)
        for record_id, detail in unavailable:
            self.counts['enrichment_unavailable'] += 1
            self._decide(MergeDecision(record_id, None, DecisionReason.ENRICHMENT_UNAVAILABLE,
                                       detail=detail))
        return records

    def merge_record(self, record: SourceRecord) -> MergeDecision:
        """
        Match one validated record and merge it or create a new site.

        Raises:
            SlugCollisionExhausted: no identifier left for a new site
        """
        if record.source_ref in self.registry:
            self.counts['already_merged'] += 1
            return self._decide(MergeDecision(record.record_id, self.registry[record.source_ref],
                                              DecisionReason.ALREADY_MERGED))

        record_score = score_record(record)
        match = self.matcher.match(record)

        if match.is_match:
            site = self.sites[match.site_id]
            changed = merge_into(site, record, record_score)
            self.registry[record.source_ref] = site.canonical_id
            self.counts['merged'] += 1
            if match.reason == DecisionReason.CONFLICTING_MATCH:
                self.counts['conflicts'] += 1
            return self._decide(MergeDecision(
                record.record_id, site.canonical_id, match.reason,
                distance_m=match.distance_m,
                name_similarity=match.similarity,
                candidates=match.candidates,
                detail=', '.join(changed),
            ))

        canonical_id = self.slugs.assign(record.raw_name, fallback=record.source_id)
        site = create_site(record, canonical_id, record_score)
        self.sites[canonical_id] = site
        self.index.insert(canonical_id, site.coordinates.lat, site.coordinates.lng)
        self.registry[record.source_ref] = canonical_id
        self.counts['new_sites'] += 1
        return self._decide(MergeDecision(record.record_id, canonical_id, DecisionReason.NEW_SITE))

    def process_batch(self, batch: Batch) -> Dict:
        logger.info(f"Processing batch {batch.name} ({len(batch.sites)} entries)")
        stats = Counter()

        records = self._admit(batch, stats)
        self.counts['accepted'] += len(records)
        records = self._enrich(records)

        for record in self._progress(records, f"Merging {batch.name}"):
            try:
                decision = self.merge_record(record)
            except SlugCollisionExhausted as e:
                self._reject(record.record_id, DecisionReason.SLUG_COLLISION_EXHAUSTED, str(e))
                stats['rejected'] += 1
                continue
            if decision.reason == DecisionReason.NEW_SITE:
                stats['new_sites'] += 1
            elif decision.reason != DecisionReason.ALREADY_MERGED:
                stats['merged'] += 1
            else:
                stats['already_merged'] += 1

        logger.info(
            f"Batch {batch.name}: {stats['new_sites']} new, {stats['merged']} merged, "
            f"{stats['already_merged']} already merged, {stats['rejected']} rejected"
        )
        return {
            'name': batch.name,
            'status': 'ok',
            'records': len(batch.sites),
            'new_sites': stats['new_sites'],
            'merged': stats['merged'],
            'already_merged': stats['already_merged'],
            'rejected': stats['rejected'],
        }

    # ------------------------------------------------------------------
    # Run

    def _resolve(self, item: BatchInput, position: int) -> Batch:
        if isinstance(item, Batch):
            return item
        if isinstance(item, dict):
            return parse_batch(item, f"batch-{position}")
        return load_batch(item)

    def run(self, batches: Iterable[BatchInput]) -> PipelineResult:
        """
        Merge batches into the catalog.

        Previous-catalog batches are restored first, whatever their position;
        source batches follow in input order. A malformed batch is reported
        and skipped; nothing else stops the run.
        """
        catalogs, sources = [], []
        for position, item in enumerate(batches):
            try:
                batch = self._resolve(item, position)
            except MalformedBatch as e:
                logger.error(f"Skipping batch: {e}")
                label = f"batch-{position}" if isinstance(item, dict) else str(item)
                self.batch_reports.append({'name': label, 'status': 'failed', 'error': str(e)})
                continue
            (catalogs if batch.is_catalog else sources).append(batch)

        for batch in catalogs:
            self.batch_reports.append(self.restore_catalog(batch))

        for batch in sources:
            self.batch_reports.append(self.process_batch(batch))

        return PipelineResult(sites=list(self.sites.values()), report=self.build_report())

    def statistics(self) -> Dict:
        sites = list(self.sites.values())
        by_type = Counter(site.site_type for site in sites)
        by_kind = Counter(kind for site in sites for kind in set(site.source_kinds))
        return {
            'total_sites': len(sites),
            'with_images': sum(1 for s in sites if s.image_url),
            'with_references': sum(1 for s in sites if s.reference_url),
            'with_good_summaries': sum(1 for s in sites if is_good_summary(s.summary)),
            'multi_source': sum(1 for s in sites if len(s.contributing_sources) > 1),
            'by_site_type': dict(sorted(by_type.items())),
            'by_source_kind': dict(sorted(by_kind.items())),
        }

    def build_report(self) -> Dict:
        counts = {key: self.counts[key] for key in COUNT_KEYS}
        counts['rejected'] = dict(sorted(self.rejected.items()))
        counts['rejected_total'] = sum(self.rejected.values())

        return {
            'counts': counts,
            'decisions_by_reason': dict(sorted(self.reasons.items())),
            'batches': self.batch_reports,
            'flagged_decisions': [
                d.to_dict() for d in self.decisions if d.reason not in ROUTINE_REASONS
            ],
            'statistics': self.statistics(),
        }


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Console logging, plus a debug-level file log when requested."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose or log_file else logging.INFO)
    root.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    root.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root.addHandler(file_handler)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Merge megalithic site snapshots into a de-duplicated catalog',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Merge knowledge-base and crowd-geo snapshots
  sitecatalog-pipeline --batch data/wikidata-sites.json --batch data/osm-sites.json

  # Incremental run on top of an earlier catalog
  sitecatalog-pipeline --previous data/catalog/catalog.json --batch data/osm-sites.json

  # Fill missing images and summaries from Wikipedia
  sitecatalog-pipeline --enrich --batch data/wikidata-sites.json
        """
    )
    parser.add_argument('--batch', '-b', action='append', default=[], metavar='PATH_OR_URL',
                        help='Source snapshot (JSON file or http(s) URL); repeatable, merged in order')
    parser.add_argument('--previous', '-p', type=Path, default=None,
                        help='Previous catalog.json to restore before merging')
    parser.add_argument('--config', '-c', type=Path, default=None,
                        help='Path to merge_config.json')
    parser.add_argument('--output-dir', '-o', type=Path, default=None,
                        help='Output directory (overrides config)')
    parser.add_argument('--enrich', dest='enrich', action='store_true', default=None,
                        help='Enrich records from Wikipedia summaries')
    parser.add_argument('--no-enrich', dest='enrich', action='store_false',
                        help='Disable enrichment even if the config enables it')
    parser.add_argument('--geojson', dest='geojson', action='store_true', default=None,
                        help='Also write catalog.geojson')
    parser.add_argument('--no-geojson', dest='geojson', action='store_false',
                        help='Skip catalog.geojson')
    parser.add_argument('--log-file', type=Path, default=None,
                        help='Write a debug log to this file')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')

    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    if not args.batch and not args.previous:
        parser.error('at least one --batch or --previous is required')

    overrides = {}
    if args.enrich is not None:
        overrides['enrichment'] = {'enabled': args.enrich}
    if args.geojson is not None:
        overrides.setdefault('output', {})['geojson'] = args.geojson
    if args.output_dir is not None:
        overrides.setdefault('output', {})['dir'] = str(args.output_dir)

    try:
        config = load_config(args.config, overrides)
    except ConfigError as e:
        print(f"Error: {e}")
        return 2

    batches = ([args.previous] if args.previous else []) + args.batch

    print(f"\n{'=' * 60}")
    print("MERGE")
    print('=' * 60)
    result = Pipeline(config).run(batches)

    print(f"\n{'=' * 60}")
    print("EXPORT")
    print('=' * 60)
    output = config['output']
    export_catalog(result.sites, result.report, Path(output['dir']),
                   geojson_output=output['geojson'], media_output=output['media'])
    print_statistics(result.report)

    if result.failed_batches:
        print(f"\nFailed batches: {', '.join(result.failed_batches)}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
