"""Multi-peak fitting engine.

Submodules:
- context: image buffers, shared accumulators and peak storage
- aoi: adding/subtracting peaks and AOI placement
- iteration: Levenberg-Marquardt and clamped fitting rounds
- lifecycle: peak ingestion, status changes, pruning and queries
- diagnostics: fit counters
- fitter: the ``MultiFitter`` interface
"""
