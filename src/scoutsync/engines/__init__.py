"""Search engine layer — Pluggable backends kept in sync with the record store.

Built-in engines:
  - meilisearch: Meilisearch (filter expression strings, page-based pagination)
  - algolia: Algolia (numericFilters clause arrays, zero-based pages)
  - collection: In-process filtering over the record store (no remote backend)
  - null: Accepts every write, matches nothing

Implement ``SearchEngine`` and register it with ``EngineManager.extend()``
to connect your own backend.
"""
