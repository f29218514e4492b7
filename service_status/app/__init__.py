"""
Status Lab service package.

A small user directory wired so that each route answers with one specific
HTTP status code under one specific condition. Every request first passes
the admission pipeline:
- Maintenance gate: process-wide switch, 503 for everything when on
- Rate limiting: fixed 60s windows per client, 429 past the threshold
- Authentication / authorization: declared per route, 401 / 403

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.ratelimit: Fixed-window limiter and its clock.
- app.domain: Admission stages, pipeline and the user service.
- app.adapters: In-memory user directory and the simulated upstream.
"""
