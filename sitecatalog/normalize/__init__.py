"""
Source record normalization.

Each source kind has its own normalizer module that:
1. Reads one raw entry of that source's snapshot shape
2. Converts it to a SourceRecord
3. Derives the comparison key from the name
"""

import importlib

# source kind -> module under this package
NORMALIZER_MODULES = {
    'knowledge_base': 'normalize_wikidata',
    'crowd_geo': 'normalize_osm',
    'manual': 'normalize_manual',
}


def get_normalizer(source_kind):
    """Instantiate the normalizer registered for a source kind."""
    kind = getattr(source_kind, 'value', source_kind)
    module_name = NORMALIZER_MODULES.get(kind)
    if module_name is None:
        raise ValueError(f"No normalizer for source kind: {kind}")
    module = importlib.import_module(f".{module_name}", __name__)
    return module.Normalizer()


def detect_source_kind(entry, default=None):
    """
    Pick the source kind for one raw entry.

    Order: the entry's own source_kind, the batch default, then shape:
    crowd-geo ids or Overpass elements, knowledge-base ids or SPARQL
    bindings, and manual for anything else.
    """
    kind = entry.get('source_kind') or getattr(default, 'value', default)
    if kind:
        return kind
    if entry.get('osm_id') or entry.get('type') in ('node', 'way', 'relation'):
        return 'crowd_geo'
    if entry.get('wikidata_id') or isinstance(entry.get('site'), dict):
        return 'knowledge_base'
    return 'manual'
