"""Engine internals: orchestration, normalization, filtering, export."""
