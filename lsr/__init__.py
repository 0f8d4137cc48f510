"""Label-scoped Service Reconciler (LSR).

Single-node convergence loop that keeps one labeled service at its desired
image and replica count on a local Docker daemon:
 - classify containers as running or dead every tick
 - clean up dead replicas and respawn missing ones
 - back off respawning after repeated failures
 - roll outdated replicas to the desired image one at a time

The implementation is intentionally small so it can be audited and explained.
"""
