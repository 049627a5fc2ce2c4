"""
Package solver - Schemi numerici e sistemi lineari
"""

from .linear_system import (
    SolverConfig, SolverResult, SolverConvergenceWarning,
    TridiagonalSystem, SparseSystem
)
from .ground import Ground
from .instance import Instance, default_output_map

__all__ = [
    'SolverConfig',
    'SolverResult',
    'SolverConvergenceWarning',
    'TridiagonalSystem',
    'SparseSystem',
    'Ground',
    'Instance',
    'default_output_map',
]
