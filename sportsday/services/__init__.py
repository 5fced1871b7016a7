"""Sports day domain services: records, cascades, scores, standings, timing.

Every function takes the store handle explicitly and is called by both the
HTTP routes and the socket handlers, keeping transport concerns separated
from the scoring rules.
"""
