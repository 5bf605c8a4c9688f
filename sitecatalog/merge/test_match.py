#!/usr/bin/env python3
"""
Tests for tiered candidate matching.
"""

from sitecatalog.merge.field_merge import create_site
from sitecatalog.merge.match import CandidateMatcher, keys_match
from sitecatalog.merge.spatial_index import SpatialIndex
from sitecatalog.models import Coordinates, DecisionReason, SourceKind, SourceRecord
from sitecatalog.normalize.names import normalize_name

DEG_PER_M = 1 / 111195.0


def make_record(name, lat, lng, source_id='r1', kind=SourceKind.CROWD_GEO):
    return SourceRecord(
        source_id=source_id,
        source_kind=kind,
        raw_name=name,
        raw_summary='',
        site_type_label='',
        coordinates=Coordinates(lat, lng),
        key=normalize_name(name),
    )


def make_matcher(*sites, **kwargs):
    """sites: (canonical_id, name, lat, lng)"""
    index = SpatialIndex()
    catalog = {}
    for i, (canonical_id, name, lat, lng) in enumerate(sites):
        record = make_record(name, lat, lng, source_id=f"seed{i}", kind=SourceKind.KNOWLEDGE_BASE)
        catalog[canonical_id] = create_site(record, canonical_id, 10)
        index.insert(canonical_id, lat, lng)
    return CandidateMatcher(index, catalog, **kwargs)


def test_article_and_near_distance():
    matcher = make_matcher(('stonehenge', 'Stonehenge', 51.1789, -1.8262))
    record = make_record('The Stonehenge', 51.1789 + 20 * DEG_PER_M, -1.8262)

    result = matcher.match(record)
    assert result.site_id == 'stonehenge'
    assert result.reason == DecisionReason.NEAR_CERTAIN_DISTANCE
    assert result.similarity == 1.0
    assert abs(result.distance_m - 20) < 0.5


def test_distant_different_sites_stay_apart():
    # Kerzerho to Petit Mont is over 20 km
    matcher = make_matcher(('menhir-de-kerzerho', 'Menhir de Kerzerho', 47.6108, -3.1260))
    record = make_record('Dolmen du Petit Mont', 47.5386, -2.8503)

    result = matcher.match(record)
    assert result.reason == DecisionReason.NEW_SITE
    assert not result.is_match


def test_near_certain_ignores_names():
    matcher = make_matcher(('a', 'Menhir de Kerzerho', 47.6108, -3.1260))
    record = make_record('Zzz', 47.6108 + 40 * DEG_PER_M, -3.1260)
    assert matcher.match(record).reason == DecisionReason.NEAR_CERTAIN_DISTANCE


def test_name_corroborated():
    matcher = make_matcher(('ring-of-brodgar', 'Ring of Brodgar', 59.0015, -3.2296))
    record = make_record('Brodgar Ring', 59.0015 + 300 * DEG_PER_M, -3.2296)

    result = matcher.match(record)
    assert result.reason == DecisionReason.NAME_CORROBORATED
    assert result.similarity > 0.5


def test_dissimilar_name_at_medium_distance():
    matcher = make_matcher(('xyz', 'Xyz', 59.0015, -3.2296))
    record = make_record('Ring of Brodgar', 59.0015 + 300 * DEG_PER_M, -3.2296)
    assert matcher.match(record).reason == DecisionReason.NEW_SITE


def test_common_names_far_apart_stay_separate():
    matcher = make_matcher(('menhir', 'Menhir', 47.60, -3.10))

    record = make_record('Menhir', 47.60 + 3000 * DEG_PER_M, -3.10)
    assert matcher.match(record).reason == DecisionReason.NEW_SITE

    record = make_record('Menhir', 47.60 + 600 * DEG_PER_M, -3.10)
    assert matcher.match(record).reason == DecisionReason.NEW_SITE


def test_name_key_match_within_configured_radius():
    matcher = make_matcher(('carnac-stones', 'Carnac Stones', 47.5936, -3.0817),
                           name_key_m=5000)

    record = make_record('The Carnac Stones', 47.5936 + 3000 * DEG_PER_M, -3.0817)
    assert matcher.match(record).reason == DecisionReason.NAME_KEY_MATCH

    too_far = make_record('Carnac Stones', 47.5936 + 6000 * DEG_PER_M, -3.0817)
    assert matcher.match(too_far).reason == DecisionReason.NEW_SITE


def test_generic_names_never_match_by_name():
    matcher = make_matcher(('site-1', 'Site 1', 50.0, 1.0))
    record = make_record('Site 1', 50.0 + 300 * DEG_PER_M, 1.0)
    assert matcher.match(record).reason == DecisionReason.NEW_SITE


def test_keys_match():
    assert keys_match('carnacstones', 'carnacstones')
    assert keys_match('brodgar', 'ringofbrodgar')
    assert not keys_match('abc', 'abcdef')  # shorter key below minimum length
    assert not keys_match('', 'stonehenge')


def test_conflicting_candidates():
    matcher = make_matcher(
        ('west-stone', 'West Stone', 50.0, 1.0),
        ('east-stone', 'East Stone', 50.0, 1.0 + 60 * DEG_PER_M / 0.6428),
    )
    # ~20 m from west-stone, ~40 m from east-stone
    record = make_record('Middle', 50.0, 1.0 + 20 * DEG_PER_M / 0.6428)

    result = matcher.match(record)
    assert result.reason == DecisionReason.CONFLICTING_MATCH
    assert result.site_id == 'west-stone'
    assert result.candidates == ['west-stone', 'east-stone']


def test_first_qualifying_tier_wins():
    # A near-certain match shadows a name match further away
    matcher = make_matcher(
        ('carnac-stones', 'Carnac Stones', 47.5936 + 2000 * DEG_PER_M, -3.0817),
        ('kermario', 'Kermario', 47.5936 + 10 * DEG_PER_M, -3.0817),
    )
    record = make_record('Carnac Stones', 47.5936, -3.0817)

    result = matcher.match(record)
    assert result.site_id == 'kermario'
    assert result.reason == DecisionReason.NEAR_CERTAIN_DISTANCE
