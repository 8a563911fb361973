# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""FIELDOPS engine — geospatial asset tracking and tactical annotations.

Subpackages:
    tactical      -- geodesy, map transform, trails, asset tracker, lanes
    annotations   -- typed map annotations, geofencing, drawing sessions
    broadcasts    -- operator broadcasts and acknowledgment reconciliation
    sync          -- periodic polling tasks and the sync collaborator
    comms         -- in-process event bus
"""

__version__ = "0.1.0"
