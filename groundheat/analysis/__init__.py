"""
Package analysis - Uscite per superficie e correzione dello strato limite
"""

from .ground_output import GroundOutput, OutputType, ALL_OUTPUTS, calculate_surface_averages
from .boundary_layer import (
    BoundaryLayer, BoundaryLayerWarning,
    calculate_boundary_layer, set_new_boundary_geometry
)

__all__ = [
    'GroundOutput',
    'OutputType',
    'ALL_OUTPUTS',
    'calculate_surface_averages',
    'BoundaryLayer',
    'BoundaryLayerWarning',
    'calculate_boundary_layer',
    'set_new_boundary_geometry',
]
