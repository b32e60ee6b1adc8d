"""
Places cache proxy service package.

The service sits in front of the Places API and answers place details
requests from a field-aware cache:
- Cached records are checked field by field against each request
- Gaps trigger a single upstream fetch that fully replaces the record
- Every other API path is relayed to upstream untouched

Structure:
- app.main: FastAPI app, routes and startup/shutdown wiring.
- app.adapters: HTTP client for the upstream Places API.
- app.caching: Cache backends and startup backend selection.
- app.domain: Record shape, field handling and reconciliation.
"""
