"""
Edge cache service package for the Offline Edge Cache.

The service fronts a single-origin client application and intercepts every
request it serves:
- Same-origin GET requests are answered by a caching strategy
- Everything else is relayed to the origin unchanged
- A version's shell is precached at install and old generations are
  reclaimed at activation

Structure:
- app.main: FastAPI app, lifecycle events, and the intercept route.
- app.adapters: HTTP client for the origin server.
- app.caching: Cache store, namespaces, precache, strategies, and router.
- app.domain: Request/response models, lifecycle, and dispatcher.
"""
