"""
Batch ingestion and optional enrichment.

- batches: load raw source snapshots from disk or HTTP
- enrich: fill record gaps from Wikipedia page summaries
"""
