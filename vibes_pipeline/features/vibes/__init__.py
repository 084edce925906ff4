"""
Vibes enrichment feature package.

Everything needed to turn a property or neighborhood into structured
"vibes" lives here: domain models and the output schema, the OpenRouter
provider client, generation services, persistence, and the resumable
backfill jobs. Subpackages are imported explicitly; this module stays empty
so ``vibes_pipeline.config`` can import the error types without pulling in
the rest of the feature.
"""
