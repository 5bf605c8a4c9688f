"""
Export the canonical catalog and merge report.

Outputs (in the output directory):
- catalog.json: {"sites": [...]} in creation order, the same shape the
  pipeline accepts back as a previous catalog
- merge_report.json: counts, per-batch status, flagged decisions, statistics
- catalog.geojson: Point FeatureCollection for map frontends
- media.json: {"media": [...]} primary image per site
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List

import geojson

from ..models import CanonicalSite

logger = logging.getLogger(__name__)

CATALOG_FILE = 'catalog.json'
REPORT_FILE = 'merge_report.json'
GEOJSON_FILE = 'catalog.geojson'
MEDIA_FILE = 'media.json'


def write_json(path: Path, data: Dict) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write('\n')
    return path


def catalog_to_dict(sites: Iterable[CanonicalSite]) -> Dict:
    return {'sites': [site.to_dict() for site in sites]}


def site_to_feature(site: CanonicalSite) -> geojson.Feature:
    """
    Convert a site to a GeoJSON Point feature.

    Contributing sources are flattened to 'kind:id' strings.
    """
    props = {
        'canonical_id': site.canonical_id,
        'name': site.name,
        'site_type': site.site_type,
        'quality_score': site.quality_score,
        'sources': [f"{kind}:{source_id}" for kind, source_id in site.contributing_sources],
    }
    for attr in ('image_url', 'reference_url', 'wikidata_id', 'country'):
        value = getattr(site, attr)
        if value:
            props[attr] = value

    # GeoJSON order is lng, lat
    point = geojson.Point((site.coordinates.lng, site.coordinates.lat))
    return geojson.Feature(geometry=point, properties=props, id=site.canonical_id)


def catalog_to_geojson(sites: Iterable[CanonicalSite]) -> geojson.FeatureCollection:
    return geojson.FeatureCollection([site_to_feature(site) for site in sites])


def build_media(sites: Iterable[CanonicalSite]) -> Dict:
    """Primary image records for every site that has one."""
    media = []
    for site in sites:
        if not site.image_url:
            continue
        media.append({
            'site_slug': site.canonical_id,
            'url': site.image_url,
            'type': 'image',
            'source': 'wikipedia' if site.reference_url and 'wikipedia.org' in site.reference_url
                      else 'wikimedia_commons',
            'is_primary': True,
        })
    return {'media': media}


def export_catalog(sites: List[CanonicalSite], report: Dict, output_dir: Path,
                   geojson_output: bool = True, media_output: bool = True) -> List[Path]:
    """
    Write all outputs for one pipeline run.

    Returns:
        Paths written
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = [
        write_json(output_dir / CATALOG_FILE, catalog_to_dict(sites)),
        write_json(output_dir / REPORT_FILE, report),
    ]

    if geojson_output:
        path = output_dir / GEOJSON_FILE
        with open(path, 'w', encoding='utf-8') as f:
            geojson.dump(catalog_to_geojson(sites), f, ensure_ascii=False)
        written.append(path)

    if media_output:
        written.append(write_json(output_dir / MEDIA_FILE, build_media(sites)))

    for path in written:
        size_kb = path.stat().st_size / 1024
        logger.info(f"Wrote {path} ({size_kb:.1f} KB)")

    return written


def print_statistics(report: Dict) -> None:
    """Print the report summary in the same layout as the merge logs."""
    counts = report.get('counts', {})
    stats = report.get('statistics', {})
    total = stats.get('total_sites', 0)

    print("\n" + "=" * 60)
    print("MERGE STATISTICS")
    print("=" * 60)

    print(f"\nRecords seen:      {counts.get('records_seen', 0):6d}")
    print(f"  Accepted:        {counts.get('accepted', 0):6d}")
    print(f"  Merged:          {counts.get('merged', 0):6d}")
    print(f"  New sites:       {counts.get('new_sites', 0):6d}")
    print(f"  Already merged:  {counts.get('already_merged', 0):6d}")
    print(f"  Conflicts:       {counts.get('conflicts', 0):6d}")
    print(f"  Off-land flags:  {counts.get('off_land', 0):6d}")

    rejected = counts.get('rejected', {})
    if rejected:
        print("\nRejected:")
        for reason in sorted(rejected):
            print(f"  {reason:24s}: {rejected[reason]:6d}")

    print(f"\nTotal sites: {total}")
    if total:
        for label, key in (('With images', 'with_images'),
                           ('With references', 'with_references'),
                           ('With good summaries', 'with_good_summaries')):
            count = stats.get(key, 0)
            print(f"  {label + ':':21s}{count:6d} ({count / total * 100:5.1f}%)")

        by_kind = stats.get('by_source_kind', {})
        if by_kind:
            print("\nBy source kind:")
            for kind in sorted(by_kind):
                print(f"  {kind:16s}: {by_kind[kind]:6d}")

        by_type = stats.get('by_site_type', {})
        if by_type:
            print("\nTop site types:")
            for site_type, count in sorted(by_type.items(), key=lambda kv: (-kv[1], kv[0]))[:10]:
                print(f"  {site_type:24s}: {count:6d}")

    print("=" * 60)
