"""
Catalog export: JSON catalog and report, GeoJSON and media manifests.
"""
