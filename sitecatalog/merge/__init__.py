"""
Entity resolution and merging of source records into canonical sites.

Handles:
- Spatial proximity lookup of existing sites
- Tiered duplicate matching by distance and name
- Quality scoring
- Fill-gaps field merging
- Collision-safe slug assignment
"""
