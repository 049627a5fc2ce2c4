"""
Package groundheat - Conduzione del calore nel terreno sotto le fondazioni
"""

from .core import (
    Foundation, FoundationError, MeshConfig, Material, Layer, Construction,
    MaterialManager, NumericalScheme, CoordinateSystem, ReductionStrategy,
    DeepGroundBoundary, ConvectionCalculationMethod, BoundaryConditions,
    SurfaceType, Domain, CellType
)

from .solver import (
    Ground, Instance, SolverConfig, SolverResult, SolverConvergenceWarning
)

from .analysis import (
    OutputType, GroundOutput, BoundaryLayer, BoundaryLayerWarning
)

__version__ = "0.1.0"
__author__ = "Ground Heat Simulation Team"
