"""
Package core - Descrizione della fondazione, mesh e celle
"""

from .materials import (
    Material, Layer, Construction, MaterialManager, MaterialType,
    SOIL_MATERIALS, STRUCTURAL_MATERIALS, INSULATION_MATERIALS
)
from .mesher import Mesher, MeshData, Interval, GrowthDirection
from .surface import Surface, SurfaceType, Orientation, BoundaryKind
from .foundation import (
    Foundation, FoundationError, MeshConfig, Block, BlockType, Region,
    NumericalScheme, CoordinateSystem, ReductionStrategy,
    DeepGroundBoundary, ConvectionCalculationMethod
)
from .boundary_conditions import BoundaryConditions
from .cell import Cell, CellType, CellCoefficients
from .domain import Domain

__all__ = [
    'Material',
    'Layer',
    'Construction',
    'MaterialManager',
    'MaterialType',
    'SOIL_MATERIALS',
    'STRUCTURAL_MATERIALS',
    'INSULATION_MATERIALS',
    'Mesher',
    'MeshData',
    'Interval',
    'GrowthDirection',
    'Surface',
    'SurfaceType',
    'Orientation',
    'BoundaryKind',
    'Foundation',
    'FoundationError',
    'MeshConfig',
    'Block',
    'BlockType',
    'Region',
    'NumericalScheme',
    'CoordinateSystem',
    'ReductionStrategy',
    'DeepGroundBoundary',
    'ConvectionCalculationMethod',
    'BoundaryConditions',
    'Cell',
    'CellType',
    'CellCoefficients',
    'Domain',
]
