"""
Edge cache policy service.

Decides how edge content is cached: category, cache key, purge tags,
Cache-Control directives and content-specific response headers.

Structure:
- app.main: FastAPI edge service (proxy route, admin router wiring).
- app.engine: PolicyEngine owning every policy component.
- app.config: Configuration models, defaults and the layered ConfigStore.
- app.policy: Classifier, key derivation, tags, directives, content types.
- app.strategies: Content-category caching strategies and their registry.
- app.admin: Admin configuration API.
- app.adapters: Origin HTTP client.
"""
