"""
Rate Limit Service package for the kube-scheduler rate limit gate.

This package decides whether a Pod may be bound to a node, based on how
many comparable Pods already hold a slot. It provides:

- app.plugin: the RateLimit permit plugin (annotation reader, occupancy
  counter, admission marker and the permit orchestrator).
- app.framework: the scheduling framework seam the plugin is registered on.
- app.store: Pod store clients (Kubernetes API, in-memory).
- app.main: API surface for permit decisions, health and metrics.

Guidelines:
- The gate is stateless; the Pod annotations are the only source of truth.
- Never retry internally; the scheduler re-invokes after the retry delay.
"""
