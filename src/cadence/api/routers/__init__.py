"""API routers. Each module owns one resource and delegates to ``cadence.ops``."""
