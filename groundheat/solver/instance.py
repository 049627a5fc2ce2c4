"""
instance.py - Istanza di simulazione pronta all'uso

Instance lega una Foundation a un Ground già costruito e a una mappa di
uscite standard:

    SLAB_CORE   sempre
    SLAB_PERIM  solo con una fascia perimetrale del pavimento
    WALL_INT    solo con pavimento interrato (foundation_depth > 0)

Ogni superficie riporta tutte le grandezze di OutputType. Dopo ogni passo
calculate() aggiorna anche le medie superficiali.
"""

from typing import Dict, List, Optional

from ..core.foundation import Foundation
from ..core.surface import SurfaceType
from ..core.boundary_conditions import BoundaryConditions
from ..analysis.ground_output import OutputType, ALL_OUTPUTS
from .linear_system import SolverConfig
from .ground import Ground


def default_output_map(foundation: Foundation) -> Dict[SurfaceType, List[OutputType]]:
    """Superfici interne presenti nella fondazione, con tutte le uscite"""
    output_map = {SurfaceType.SLAB_CORE: list(ALL_OUTPUTS)}
    if foundation.has_perimeter_surface:
        output_map[SurfaceType.SLAB_PERIM] = list(ALL_OUTPUTS)
    if foundation.foundation_depth > 0.0:
        output_map[SurfaceType.WALL_INT] = list(ALL_OUTPUTS)
    return output_map


class Instance:
    """
    Fondazione + motore di calcolo.

    Uso:
        instance = Instance(foundation)
        instance.calculate(bcs, 3600.0)
        q = instance.get_value(SurfaceType.SLAB_CORE, OutputType.RATE)
    """

    def __init__(self, foundation: Foundation, config: Optional[SolverConfig] = None):
        self.foundation = foundation
        self.output_map = default_output_map(foundation)
        self.ground = Ground(foundation, config, self.output_map)
        self.ground.build_domain()

    def calculate(self, bcs: BoundaryConditions, timestep: float = 0.0):
        """Un passo di calcolo seguito dall'aggiornamento delle uscite"""
        self.ground.calculate(bcs, timestep)
        self.ground.calculate_surface_averages()

    def get_value(self, surface_type: SurfaceType, output_type: OutputType) -> float:
        return self.ground.get_surface_average_value(surface_type, output_type)

    def __repr__(self) -> str:
        surfaces = ", ".join(s.name for s in self.output_map)
        return f"Instance({surfaces})"
