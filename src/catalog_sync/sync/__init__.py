"""
Catalog synchronization.

- reconciliation: pure merge rules shared by every entry point
- batch: whole-catalog enrichment runs with checkpointing
- search: live search with eager discovery of new titles
- importer: one-shot import of a provider game
"""
