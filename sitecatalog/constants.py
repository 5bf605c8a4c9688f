"""
Centralized constants for the megalithic site catalog merge pipeline.

Thresholds and word lists here were tuned by hand against real snapshots.
Treat them as configuration: most can be overridden via merge_config.json
(see config.py) without editing this file.
"""

# Matching distance tiers (meters)
NEAR_CERTAIN_M = 50.0  # Proximity alone is enough evidence of a duplicate
NAME_CORROBORATED_M = 500.0  # Needs name similarity to confirm
NAME_KEY_MATCH_M = 100.0  # Name-key rule only (equal or substring keys)

# Name similarity
NAME_SIMILARITY_THRESHOLD = 0.5  # Strictly greater than this counts as similar
MIN_SUBSTRING_KEY_LENGTH = 4  # Shorter keys never match by containment

# Spatial grid precisions (decimal places of lat/lng per cell)
# 3 -> ~111m cells, 2 -> ~1.1km cells, 1 -> ~11km cells
GRID_PRECISIONS = (3, 2, 1)

EARTH_RADIUS_M = 6371e3
METERS_PER_DEGREE_LAT = 111320.0

# Identifier assignment
MAX_SLUG_LENGTH = 100
MAX_SLUG_SUFFIX = 10000

# Leading definite articles dropped from comparison keys
NAME_STOPWORDS = ('the', 'le', 'la', 'les', 'el', 'los', 'das', 'die', 'der')

# Summary boilerplate written by the knowledge-base loader when no
# description exists. Summaries this short or generic never count as "good".
GENERIC_SUMMARY_TEMPLATE = '{name} - a megalithic site.'
GENERIC_SUMMARY_MIN_LENGTH = 50

# Fallback site type when a source gives nothing more specific
GENERIC_SITE_TYPE = 'megalithic monument'

# Quality score weights
SCORE_IMAGE = 20
SCORE_REFERENCE = 15
SCORE_STRUCTURED_ID = 10
SCORE_GOOD_SUMMARY = 15
SCORE_PROPER_NAME = 10
SCORE_SOURCE_BONUS = {
    'manual': 8,
    'knowledge_base': 5,
    'crowd_geo': 0,
}
SCORE_MAX = 100

# Genuine heritage subtypes. A site type containing one of these always
# overrides a garbage-pattern match.
HERITAGE_SITE_TYPES = (
    'stone circle', 'dolmen', 'menhir', 'cairn', 'henge',
    'barrow', 'nuraghe', 'megalith', 'sanctuary',
)

ARCHAEOLOGICAL_TERMS = (
    r'megalith', r'prehistoric', r'ancient', r'bronze age', r'iron age',
    r'neolithic', r'archaeolog', r'burial', r'tomb', r'monument',
)

# Countries where megalithic monuments are actually recorded.
# Knowledge-base entries declaring any other country are rejected.
MEGALITHIC_REGIONS = frozenset([
    # Western Europe (primary)
    'United Kingdom', 'Ireland', 'France', 'Spain', 'Portugal',
    # Mediterranean
    'Italy', 'Malta', 'Greece', 'Turkey',
    # Northern Europe
    'Sweden', 'Denmark', 'Norway', 'Germany', 'Netherlands', 'Belgium',
    # Eastern Europe
    'Poland', 'Czech Republic', 'Bulgaria', 'Romania',
    # Middle East & Africa
    'Israel', 'Jordan', 'Lebanon', 'Egypt', 'Morocco', 'Algeria', 'Tunisia',
    'Ethiopia', 'Senegal', 'Gambia',
    # Asia
    'India', 'South Korea', 'Japan', 'Indonesia',
    # South America
    'Peru', 'Bolivia', 'Colombia',
    # Other
    'Armenia', 'Georgia', 'Russia',
])

# Coarse continental outlines: (name, min_lat, max_lat, min_lng, max_lng)
LAND_BBOXES = (
    ('North America', 15, 72, -170, -50),
    ('South America', -56, 15, -82, -34),
    ('Europe', 35, 72, -25, 45),
    ('Africa', -35, 38, -18, 52),
    ('Asia', 5, 77, 25, 180),
    ('Australia', -45, -10, 110, 155),
    ('Middle East', 12, 42, 25, 65),
    ('Indonesia/Pacific', -12, 20, 95, 180),
    ('Japan', 24, 46, 122, 146),
    ('UK/Ireland', 49, 61, -11, 3),
)

# Enrichment (Wikipedia REST summaries)
WIKIPEDIA_SUMMARY_API = 'https://{host}/api/rest_v1/page/summary/{title}'
USER_AGENT = 'MegalithicSiteCatalog/1.0 (merge pipeline)'
ENRICHMENT_DELAY_S = 0.1
ENRICHMENT_TIMEOUT_S = 15
ENRICHMENT_WORKERS = 4

HTTP_TIMEOUT_S = 60
