# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Operator map annotations — geometry, acknowledgment, geofencing."""

from .drawing import DrawingSession
from .geofence import GeofenceMonitor, GeofenceViolation, contains_point
from .models import (
    Annotation,
    AnnotationType,
    CircleGeometry,
    FreehandGeometry,
    MarkerGeometry,
    PolygonGeometry,
    RectangleGeometry,
    build_geometry,
)
from .store import (
    AckStats,
    AcknowledgeAnnotation,
    AnnotationStore,
    CreateAnnotation,
    DeleteAnnotation,
)

__all__ = [
    "AckStats",
    "AcknowledgeAnnotation",
    "Annotation",
    "AnnotationStore",
    "AnnotationType",
    "CircleGeometry",
    "CreateAnnotation",
    "DeleteAnnotation",
    "DrawingSession",
    "FreehandGeometry",
    "GeofenceMonitor",
    "GeofenceViolation",
    "MarkerGeometry",
    "PolygonGeometry",
    "RectangleGeometry",
    "build_geometry",
    "contains_point",
]
