#!/usr/bin/env python3
"""
Tests for the validity filter.
"""

import pytest

from sitecatalog.errors import GarbageContent, InvalidCoordinates
from sitecatalog.models import Coordinates, SourceKind, SourceRecord
from sitecatalog.normalize.names import normalize_name
from sitecatalog.validity import (
    ValidityFilter,
    detect_garbage,
    find_garbage,
    partition,
    validate_coordinates,
)


def make_record(name, summary='', site_type='', lat=51.1789, lng=-1.8262,
                kind=SourceKind.CROWD_GEO, source_id='1', country=None):
    return SourceRecord(
        source_id=source_id,
        source_kind=kind,
        raw_name=name,
        raw_summary=summary,
        site_type_label=site_type,
        coordinates=Coordinates(lat, lng),
        country=country,
        key=normalize_name(name),
    )


def test_supermarket_rejected():
    record = make_record('Tesco Supermarket', 'local grocery store')
    result = ValidityFilter().check(record)

    assert not result.ok
    assert result.reason == 'GarbageContent'
    assert 'retail' in result.detail


def test_garbage_categories():
    assert find_garbage('Café de la Gare', '').startswith('hospitality')
    assert find_garbage('Saint Michael Church', '').startswith('religious')
    assert find_garbage('Lidl', '').startswith('retail')
    assert find_garbage('Bus Station', '').startswith('modern')
    assert find_garbage('Kilmartin Glen', 'Neolithic linear cemetery') is None


def test_churchyard_is_not_garbage():
    assert find_garbage('Churchyard menhir', '') is None


def test_spam_text():
    assert find_garbage('BEST STONES EVER', '') == 'spam (all caps text)'
    assert find_garbage('Stoneeeeee', '').startswith('spam')
    assert find_garbage('Dolmen', 'see http://cheap.ru now').startswith('spam')
    # Short all-caps names are abbreviations, not shouting
    assert find_garbage('RSPB', '') is None


def test_heritage_site_type_overrides_garbage():
    record = make_record('Hotel Dolmen', site_type='dolmen')
    detect_garbage(record)


def test_archaeological_summary_overrides_garbage():
    record = make_record('Chapel Field', 'A Bronze Age burial mound beside the lane.')
    detect_garbage(record)


def test_stone_name_overrides_garbage():
    record = make_record('Inn Stone')
    detect_garbage(record)


def test_loader_fallbacks_are_not_evidence():
    # Generic type and boilerplate summary come from the loader, not the source
    record = make_record('Tesco Supermarket', 'Tesco Supermarket - a megalithic site.',
                         site_type='megalithic monument', kind=SourceKind.KNOWLEDGE_BASE)
    with pytest.raises(GarbageContent):
        detect_garbage(record)


def test_unlabeled_entity_rejected():
    record = make_record('Q4242', kind=SourceKind.KNOWLEDGE_BASE)
    result = ValidityFilter().check(record)
    assert result.reason == 'GarbageContent'


def test_validate_coordinates():
    validate_coordinates(0.0, 0.0)
    validate_coordinates(90.0, -180.0)
    for lat, lng in ((90.5, 0.0), (0.0, 181.0), (float('inf'), 0.0)):
        with pytest.raises(InvalidCoordinates):
            validate_coordinates(lat, lng)


def test_invalid_coordinates_reason():
    result = ValidityFilter().check(make_record('Stonehenge', lat=123.0))
    assert result.reason == 'InvalidCoordinates'


def test_region_filter_applies_to_knowledge_base_only():
    validity = ValidityFilter()

    kb = make_record('Rujm el-Hiri', kind=SourceKind.KNOWLEDGE_BASE, lat=32.9, lng=35.7,
                     country='Syria')
    assert validity.check(kb).reason == 'DisallowedRegion'

    allowed = make_record('Stonehenge', kind=SourceKind.KNOWLEDGE_BASE, country='United Kingdom')
    assert validity.check(allowed).ok

    osm = make_record('Rujm el-Hiri', kind=SourceKind.CROWD_GEO, lat=32.9, lng=35.7,
                      country='Syria')
    assert validity.check(osm).ok


def test_off_land_flagged_by_default():
    record = make_record('Mid-Atlantic Stone', lat=30.0, lng=-40.0)
    result = ValidityFilter().check(record)
    assert result.ok
    assert not result.on_land


def test_off_land_rejected_by_policy():
    record = make_record('Mid-Atlantic Stone', lat=30.0, lng=-40.0)
    result = ValidityFilter(off_land_policy='reject').check(record)
    assert result.reason == 'OffLand'


def test_unknown_policy():
    with pytest.raises(ValueError):
        ValidityFilter(off_land_policy='ignore')


def test_partition():
    good = make_record('Stonehenge', source_id='a')
    bad = make_record('Tesco Supermarket', 'local grocery store', source_id='b')
    accepted, rejected = partition([good, bad], ValidityFilter())

    assert accepted == [good]
    assert rejected[0][0] is bad
    assert rejected[0][1].reason == 'GarbageContent'
