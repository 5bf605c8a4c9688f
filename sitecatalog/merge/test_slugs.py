#!/usr/bin/env python3
"""
Tests for slug generation and collision handling.
"""

import pytest

from sitecatalog.errors import SlugCollisionExhausted
from sitecatalog.merge.slugs import SlugAssigner, slugify


def test_slugify():
    tests = [
        ("Giant's Grave", 'giants-grave'),
        ('Giant’s Grave', 'giants-grave'),
        ('Dolmen de la Roche-aux-Fées', 'dolmen-de-la-roche-aux-fees'),
        ('  --Ring   of Brodgar!!  ', 'ring-of-brodgar'),
        ('Ταφικός', ''),
        ('', ''),
    ]
    for text, expected in tests:
        assert slugify(text) == expected, f"{text!r} -> {slugify(text)!r}"


def test_slugify_truncates():
    slug = slugify('a' * 99 + ' b c', max_length=100)
    assert len(slug) <= 100
    assert not slug.endswith('-')


def test_same_name_gets_suffix():
    slugs = SlugAssigner()
    assert slugs.assign("Giant's Grave") == 'giants-grave'
    assert slugs.assign("Giant's Grave") == 'giants-grave-1'
    assert slugs.assign('Giants Grave') == 'giants-grave-2'


def test_reserved_slugs_are_skipped():
    slugs = SlugAssigner()
    slugs.reserve('stonehenge')
    assert 'stonehenge' in slugs
    assert slugs.assign('Stonehenge') == 'stonehenge-1'


def test_empty_slug_falls_back_to_source_id():
    slugs = SlugAssigner()
    assert slugs.assign('!!!', fallback='node/42') == 'site-node-42'
    assert slugs.assign('Ταφικός τύμβος', fallback='Q99') == 'site-q99'


def test_suffix_respects_max_length():
    slugs = SlugAssigner(max_length=20)
    name = 'Long Barrow Of The Western Hills'
    first = slugs.assign(name)
    second = slugs.assign(name)

    assert len(first) <= 20
    assert len(second) <= 20
    assert second.endswith('-1')
    assert first != second


def test_suffixes_exhausted():
    slugs = SlugAssigner(max_suffix=2)
    slugs.assign('Cairn')
    slugs.assign('Cairn')
    slugs.assign('Cairn')
    with pytest.raises(SlugCollisionExhausted):
        slugs.assign('Cairn')
