#!/usr/bin/env python3
"""
End-to-end tests for the merge pipeline.
"""

import dataclasses
import itertools
import json
import random

import pytest

from sitecatalog.config import load_config
from sitecatalog.geo import haversine_m
from sitecatalog.pipeline import Pipeline, main

DEG_PER_M = 1 / 111195.0


def quiet_config(**sections):
    overrides = {'output': {'progress': False}}
    overrides.update(sections)
    return load_config(overrides=overrides)


def entry(source_id, name, lat, lng, **extra):
    data = {
        'source_id': source_id,
        'name': name,
        'coordinates': {'lat': lat, 'lng': lng},
    }
    data.update(extra)
    return data


def batch(kind, *entries, name=None):
    return {'source_kind': kind, 'name': name or kind, 'sites': list(entries)}


def run(*batches, config=None, **kwargs):
    return Pipeline(config or quiet_config(), **kwargs).run(batches)


def sample_batches():
    return [
        batch('knowledge_base',
              entry('Q39671', 'Stonehenge', 51.1789, -1.8262, site_type='stone circle'),
              entry('Q1146', 'Ring of Brodgar', 59.0015, -3.2296),
              entry('Q99', 'Tesco Supermarket', 51.5, -0.1, summary='local grocery store')),
        batch('crowd_geo',
              entry('way/1', 'The Stonehenge', 51.1789 + 20 * DEG_PER_M, -1.8262,
                    image_url='https://example.org/stonehenge.jpg'),
              entry('node/2', 'Menhir de Kerzerho', 47.6108, -3.1260),
              entry('node/3', 'Dolmen du Petit Mont', 47.5386, -2.8503)),
    ]


def test_article_variant_merges_into_one_site():
    result = run(*sample_batches())
    sites = {site.canonical_id: site for site in result.sites}

    stonehenge = sites['stonehenge']
    assert stonehenge.contributing_sources == [('knowledge_base', 'Q39671'), ('crowd_geo', 'way/1')]
    assert stonehenge.image_url == 'https://example.org/stonehenge.jpg'
    assert stonehenge.coordinates == (51.1789, -1.8262)
    assert result.report['counts']['merged'] == 1


def test_distant_sites_stay_separate():
    result = run(*sample_batches())
    ids = [site.canonical_id for site in result.sites]
    assert 'menhir-de-kerzerho' in ids
    assert 'dolmen-du-petit-mont' in ids


def test_garbage_never_reaches_catalog():
    result = run(*sample_batches())

    assert all(site.name != 'Tesco Supermarket' for site in result.sites)
    assert result.report['counts']['rejected'] == {'GarbageContent': 1}
    flagged = result.report['flagged_decisions']
    assert {'source_record_id': 'knowledge_base:Q99', 'reason': 'GarbageContent'}.items() <= flagged[0].items()


def test_image_fill_once_across_batches():
    result = run(
        batch('knowledge_base', entry('Q1', 'Ring of Brodgar', 59.0015, -3.2296)),
        batch('crowd_geo', entry('way/1', 'Ring of Brodgar', 59.0015 + 10 * DEG_PER_M, -3.2296,
                                 image_url='https://example.org/first.jpg')),
        batch('manual', entry('brodgar', 'Ring of Brodgar', 59.0015, -3.2296 + 0.0001,
                              image_url='https://example.org/second.jpg')),
    )
    assert len(result.sites) == 1
    assert result.sites[0].image_url == 'https://example.org/first.jpg'
    assert len(result.sites[0].contributing_sources) == 3


def test_common_type_names_kilometres_apart_stay_separate():
    result = run(batch('crowd_geo',
                       entry('node/1', 'Menhir', 47.60, -3.10),
                       entry('node/2', 'Menhir', 47.60 + 3000 * DEG_PER_M, -3.10),
                       entry('node/3', 'Dolmen du Petit Mont', 47.5386, -2.8503),
                       entry('node/4', 'Dolmen', 47.5386 + 4000 * DEG_PER_M, -2.8503)))

    assert len(result.sites) == 4
    assert [site.canonical_id for site in result.sites] == [
        'menhir', 'menhir-1', 'dolmen-du-petit-mont', 'dolmen']
    assert all(len(site.contributing_sources) == 1 for site in result.sites)


def test_unnamed_element_keeps_knowledge_base_name():
    result = run(
        batch('knowledge_base', entry('Q5040387', 'Carn Euny', 50.1027, -5.6333)),
        batch('crowd_geo', {
            'type': 'node', 'id': 5,
            'lat': 50.1027 + 10 * DEG_PER_M, 'lon': -5.6333,
            'tags': {'image': 'https://example.org/carn-euny.jpg',
                     'wikipedia': 'en:Carn Euny', 'wikidata': 'Q5040387'},
        }),
    )

    assert len(result.sites) == 1
    site = result.sites[0]
    assert site.name == 'Carn Euny'
    assert site.image_url == 'https://example.org/carn-euny.jpg'
    assert ('crowd_geo', 'node/5') in site.contributing_sources


def test_same_name_far_apart_gets_distinct_slugs():
    result = run(batch('knowledge_base',
                       entry('Q1', "Giant's Grave", 54.5, -3.0),
                       entry('Q2', "Giant's Grave", 50.0, -3.0)))
    assert [site.canonical_id for site in result.sites] == ['giants-grave', 'giants-grave-1']


def test_identical_input_gives_identical_catalog():
    first = run(*sample_batches())
    second = run(*sample_batches())
    assert json.dumps(first.catalog) == json.dumps(second.catalog)
    assert json.dumps(first.report) == json.dumps(second.report)


def test_refeeding_catalog_does_not_grow_it():
    first = run(*sample_batches())

    again = run({'sites': first.catalog['sites']}, *sample_batches())
    assert json.dumps(again.catalog) == json.dumps(first.catalog)

    counts = again.report['counts']
    assert counts['new_sites'] == 0
    assert counts['merged'] == 0
    assert counts['restored'] == len(first.sites)
    assert counts['already_merged'] == 5


def test_catalog_restored_first_regardless_of_position():
    first = run(*sample_batches())
    again = run(*sample_batches(), {'sites': first.catalog['sites']})
    assert json.dumps(again.catalog) == json.dumps(first.catalog)


def test_restored_site_overlapping_sources_is_absorbed():
    catalog = {'sites': [
        {'canonical_id': 'ring-of-brodgar', 'name': 'Ring of Brodgar', 'summary': '',
         'site_type': 'henge', 'coordinates': {'lat': 59.0015, 'lng': -3.2296},
         'contributing_sources': [{'source_kind': 'knowledge_base', 'source_id': 'Q1146'}],
         'quality_score': 15, 'name_score': 15},
        {'canonical_id': 'brodgar', 'name': 'Brodgar', 'summary': '',
         'site_type': 'henge', 'coordinates': {'lat': 59.0016, 'lng': -3.2296},
         'image_url': 'https://example.org/brodgar.jpg',
         'contributing_sources': [{'source_kind': 'knowledge_base', 'source_id': 'Q1146'},
                                  {'source_kind': 'crowd_geo', 'source_id': 'way/9'}],
         'quality_score': 30, 'name_score': 10},
    ]}
    result = run(catalog)

    assert [site.canonical_id for site in result.sites] == ['ring-of-brodgar']
    site = result.sites[0]
    assert site.image_url == 'https://example.org/brodgar.jpg'
    assert site.name == 'Ring of Brodgar'
    assert ('crowd_geo', 'way/9') in site.contributing_sources
    assert result.report['counts']['restored_absorbed'] == 1


def test_no_two_sites_closer_than_near_certain_threshold():
    rng = random.Random(11)
    names = ['Kermario', 'Lundy Hill', 'Ménec', 'Kerlescan', 'Petit Ménec', 'Site 7', 'Crucuno']
    entries = [
        entry(f"node/{i}", rng.choice(names),
              47.59 + rng.uniform(0, 0.01), -3.08 + rng.uniform(0, 0.01))
        for i in range(200)
    ]
    result = run(batch('crowd_geo', *entries))

    for a, b in itertools.combinations(result.sites, 2):
        assert haversine_m(a.coordinates.lat, a.coordinates.lng,
                           b.coordinates.lat, b.coordinates.lng) >= 50

    # Every accepted record lands in exactly one site
    refs = [ref for site in result.sites for ref in site.contributing_sources]
    assert len(refs) == len(set(refs)) == 200


def test_conflicting_match_is_flagged():
    west = (47.6, -3.0)
    east_lng = -3.0 + 60 * DEG_PER_M / 0.6743
    result = run(
        batch('knowledge_base',
              entry('Q1', 'Kermario', *west),
              entry('Q2', 'Lundy Hill', 47.6, east_lng)),
        batch('crowd_geo', entry('node/1', 'Zzz', 47.6, -3.0 + 20 * DEG_PER_M / 0.6743)),
    )

    assert len(result.sites) == 2
    assert result.report['counts']['conflicts'] == 1
    conflict = [d for d in result.report['flagged_decisions'] if d['reason'] == 'ConflictingMatch'][0]
    assert conflict['matched_canonical_id'] == 'kermario'
    assert conflict['candidates'] == ['kermario', 'lundy-hill']


def test_malformed_batch_is_skipped():
    result = run(
        {'name': 'broken', 'features': []},
        batch('knowledge_base', entry('Q1', 'Stonehenge', 51.1789, -1.8262)),
    )
    assert len(result.sites) == 1
    assert result.failed_batches == ['batch-0']
    assert result.report['batches'][0]['status'] == 'failed'


def test_bad_records_do_not_abort_batch():
    result = run(batch(
        'crowd_geo',
        'not an object',
        {'source_id': 'node/1', 'name': 'No Coordinates'},
        entry('node/2', 'Far North', 95.0, 0.0),
        entry('node/3', 'Stonehenge', 51.1789, -1.8262),
    ))

    assert [site.canonical_id for site in result.sites] == ['stonehenge']
    assert result.report['counts']['rejected'] == {'InvalidCoordinates': 2, 'MalformedRecord': 1}
    assert result.report['batches'][0]['rejected'] == 3


def test_duplicate_record_in_one_batch():
    stone = entry('node/1', 'Stonehenge', 51.1789, -1.8262)
    result = run(batch('crowd_geo', stone, dict(stone)))

    assert len(result.sites) == 1
    assert result.report['counts']['already_merged'] == 1


def test_off_land_flagged_not_rejected():
    result = run(batch('crowd_geo', entry('node/1', 'Atlantis Stone', 30.0, -40.0)))
    assert len(result.sites) == 1
    assert result.report['counts']['off_land'] == 1
    assert result.report['flagged_decisions'][0]['reason'] == 'OffLand'


def test_slug_exhaustion_rejects_only_that_record():
    config = quiet_config(identifiers={'max_slug_suffix': 1})
    result = run(batch('knowledge_base',
                       entry('Q1', 'Cairn', 57.0, -4.0),
                       entry('Q2', 'Cairn', 55.0, -4.0),
                       entry('Q3', 'Cairn', 53.0, -4.0),
                       entry('Q4', 'Ring of Brodgar', 59.0015, -3.2296)),
                 config=config)

    assert [site.canonical_id for site in result.sites] == ['cairn', 'cairn-1', 'ring-of-brodgar']
    assert result.report['counts']['rejected'] == {'SlugCollisionExhausted': 1}


class FakeEnricher:
    """Adds an image to every record, reports the first as unavailable."""

    def enrich_batch(self, records):
        enriched = [dataclasses.replace(r, image_url=f"https://example.org/{r.source_id}.jpg")
                    for r in records]
        return enriched, [(records[0].record_id, 'offline')]


def test_enrichment_runs_before_matching():
    result = run(batch('knowledge_base', entry('Q1', 'Stonehenge', 51.1789, -1.8262),
                       entry('Q2', 'Ring of Brodgar', 59.0015, -3.2296)),
                 enricher=FakeEnricher())

    assert [site.image_url for site in result.sites] == [
        'https://example.org/Q1.jpg', 'https://example.org/Q2.jpg']
    assert result.report['counts']['enrichment_unavailable'] == 1


def test_statistics():
    report = run(*sample_batches()).report
    stats = report['statistics']

    assert stats['total_sites'] == 4
    assert stats['with_images'] == 1
    assert stats['multi_source'] == 1
    assert stats['by_source_kind'] == {'crowd_geo': 3, 'knowledge_base': 2}


def test_cli(tmp_path):
    kb = tmp_path / 'wikidata-sites.json'
    kb.write_text(json.dumps(sample_batches()[0]))
    osm = tmp_path / 'osm-sites.json'
    osm.write_text(json.dumps(sample_batches()[1]))
    out = tmp_path / 'catalog'

    assert main(['--batch', str(kb), '--batch', str(osm), '--output-dir', str(out)]) == 0
    with open(out / 'catalog.json') as f:
        catalog = json.load(f)
    assert len(catalog['sites']) == 4
    assert (out / 'catalog.geojson').exists()

    # Incremental re-run on top of the previous catalog
    assert main(['--previous', str(out / 'catalog.json'), '--batch', str(osm),
                 '--output-dir', str(out), '--no-geojson']) == 0
    with open(out / 'catalog.json') as f:
        assert json.load(f) == catalog


def test_cli_failed_batch(tmp_path):
    out = tmp_path / 'catalog'
    assert main(['--batch', str(tmp_path / 'missing.json'), '--output-dir', str(out)]) == 1


def test_cli_bad_config(tmp_path):
    config = tmp_path / 'merge_config.json'
    config.write_text(json.dumps({'validity': {'off_land_policy': 'ignore'}}))
    assert main(['--config', str(config), '--batch', 'x.json']) == 2


def test_config_rejects_inverted_radii():
    from sitecatalog.errors import ConfigError
    with pytest.raises(ConfigError):
        load_config(overrides={'matching': {'near_certain_m': 600}})
