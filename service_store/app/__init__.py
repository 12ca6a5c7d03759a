"""
Store API service package for the Valstore Access Layer.

The service fronts the Valorant client APIs for the mobile/web frontend:
- Authentication: OAuth callback parsing, session storage, JWT issuance
- Per-player data: balance, profile and storefront, cached with short TTLs
- Catalog: shared skins/bundles/version cache with a background loader
- Store listing: storefront offers joined against the catalog

Structure:
- app.main: FastAPI app, routes, and dependency wiring.
- app.adapters: HTTP clients for Riot and valorant-api.com.
- app.caching: TTL cache primitive, session/derived/catalog caches.
- app.domain: Records, result types and the enrichment join.
- app.auth: JWT issuance and verification.
"""
