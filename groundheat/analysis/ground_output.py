"""
ground_output.py - Aggregazione delle uscite per superficie

=============================================================================
SURFACE AVERAGES
=============================================================================

Per ogni faccia di una superficie interna:

    h = h_conv(T_s, T_aria, vento nullo, rugosità 0.00208 m) + h_IR(ε, T_s, T_aria)

    rate += h·A·(T_aria - T_s),   HA += h·A,   A_tot += A

Uscite:
    TEMP      = T_aria - rate/HA                   [K]
    FLUX      = rate/A_tot                         [W/m²]
    RATE      = FLUX · area reale della superficie [W]
    CONV      = HA/A_tot                           [W/(m²·K)]
    EFF_TEMP  = T_aria - FLUX·(R + 1/h_medio) - 273.15  [°C]

R è la resistenza della costruzione adiacente (solaio o parete interna).
Una superficie senza area riporta la temperatura dell'aria e flusso nullo.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple
from enum import Enum

from ..core.surface import SurfaceType
from ..core.heat_transfer import (
    get_convection_coeff, get_simple_ir_coeff, INTERIOR_ROUGHNESS
)


class OutputType(Enum):
    """Grandezze aggregate per superficie"""
    TEMP = "temp"               # Temperatura media [K]
    FLUX = "flux"               # Flusso medio [W/m²]
    RATE = "rate"               # Potenza totale [W]
    CONV = "conv"               # Coefficiente superficiale medio [W/(m²·K)]
    EFF_TEMP = "eff_temp"       # Temperatura efficace [°C]


ALL_OUTPUTS = list(OutputType)


@dataclass
class GroundOutput:
    """Tabella (superficie, grandezza) -> valore"""
    output_map: Dict[SurfaceType, List[OutputType]] = field(default_factory=dict)
    output_values: Dict[Tuple[SurfaceType, OutputType], float] = field(default_factory=dict)

    def get(self, surface_type: SurfaceType, output_type: OutputType) -> float:
        """
        Raises:
            KeyError: uscita non richiesta o non ancora calcolata
        """
        key = (surface_type, output_type)
        if key not in self.output_values:
            raise KeyError(f"Uscita non disponibile: {surface_type.name}/{output_type.name}")
        return self.output_values[key]

    def set_surface(self, surface_type: SurfaceType, values: Dict[OutputType, float]):
        for output_type in self.output_map.get(surface_type) or ALL_OUTPUTS:
            self.output_values[(surface_type, output_type)] = values[output_type]


def construction_resistance(foundation, surface_type: SurfaceType) -> float:
    """Resistenza della costruzione dietro la superficie [m²·K/W]"""
    if surface_type in (SurfaceType.SLAB_CORE, SurfaceType.SLAB_PERIM):
        return foundation.slab.total_resistance
    if surface_type == SurfaceType.WALL_INT:
        return foundation.wall.total_resistance
    return 0.0


def calculate_surface_averages(ground):
    """Ricalcola le uscite di tutte le superfici della mappa di output di ground"""
    foundation = ground.foundation
    domain = ground.domain
    output = ground.ground_output
    t_air = ground.bcs.indoor_temp

    for surface_type in output.output_map:
        rate = 0.0
        ha = 0.0
        total_area = 0.0

        for surface in domain.get_surfaces(surface_type):
            areas = domain.face_area[surface.indices, surface.orientation]
            t_surf = ground.surface_temperatures(surface)
            h = (get_convection_coeff(foundation, t_surf, t_air, 0.0, INTERIOR_ROUGHNESS,
                                      False, surface.tilt) +
                 get_simple_ir_coeff(surface.emissivity, t_surf, t_air))
            total_area += float(areas.sum())
            rate += float((h * areas * (t_air - t_surf)).sum())
            ha += float((h * areas).sum())

        if total_area > 0.0 and ha > 0.0:
            flux = rate / total_area
            h_avg = ha / total_area
            r_value = construction_resistance(foundation, surface_type)
            values = {
                OutputType.TEMP: t_air - rate / ha,
                OutputType.FLUX: flux,
                OutputType.RATE: flux * foundation.surface_areas.get(surface_type, 0.0),
                OutputType.CONV: h_avg,
                OutputType.EFF_TEMP: t_air - flux * (r_value + 1.0 / h_avg) - 273.15,
            }
        else:
            values = {
                OutputType.TEMP: t_air,
                OutputType.FLUX: 0.0,
                OutputType.RATE: 0.0,
                OutputType.CONV: 0.0,
                OutputType.EFF_TEMP: t_air - 273.15,
            }
        output.set_surface(surface_type, values)
