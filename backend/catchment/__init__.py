"""
Catchment request orchestration.

A `CatchmentCoordinator` turns rapidly changing inputs (destination, arrival time,
minutes, mode) into at most one in-flight travel-time fetch, backed by a TTL cache,
and feeds the result to the containment engine.
"""
