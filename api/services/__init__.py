"""Service layer for certificate rendering.

Services encapsulate all rendering orchestration, keeping routes and the
CLI thin. This separation provides:
- One fallback policy for every entry point
- Per-item failure reporting for batches
- Reusable logic across HTTP endpoints and command-line tools

Layer hierarchy:
    Routes / CLI -> Services (orchestration) -> Rendering backends

Services should:
- Validate configs before any backend runs
- Return result models, never raise for a single backend failure

Services should NOT:
- Know about HTTP request/response details
- Draw anything themselves (delegate to rendering)
"""
