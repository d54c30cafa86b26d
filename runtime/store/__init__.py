"""
Storage abstractions for the Assess-Gen runtime.

Includes:
- GenerationStore: per-generation cancel flags and live call handles
- ResultAccumulator: write-once nested map of question results
- SchemaStore: read-only access to curriculum question schema JSON files
"""
