"""
heat_transfer.py - Coefficienti di scambio superficiale

Fornisce:
- Convezione naturale (Walton) e forzata (DOE-2)
- Coefficiente radiativo linearizzato (onde lunghe)
- Scelta della politica di convezione configurata nella fondazione

Tutte le funzioni accettano array numpy per le temperature superficiali.
"""

import numpy as np
from typing import Union

from .foundation import Foundation, ConvectionCalculationMethod

ArrayLike = Union[float, np.ndarray]

SIGMA = 5.670374419e-8          # Costante di Stefan-Boltzmann [W/(m²·K⁴)]
INTERIOR_ROUGHNESS = 0.00208    # Rugosità convenzionale delle superfici interne [m]

# Moltiplicatori di rugosità DOE-2 (altezza minima della rugosità [m], Rf)
ROUGHNESS_MULTIPLIERS = (
    (0.030, 2.17),      # Molto ruvida
    (0.010, 1.67),      # Ruvida
    (0.003, 1.52),      # Mediamente ruvida
    (0.001, 1.13),      # Mediamente liscia
    (0.0003, 1.11),     # Liscia
    (0.0, 1.00),        # Molto liscia
)


def roughness_multiplier(roughness: float) -> float:
    """Fattore Rf DOE-2 dalla rugosità [m]"""
    for threshold, rf in ROUGHNESS_MULTIPLIERS:
        if roughness >= threshold:
            return rf
    return 1.0


def get_natural_convection_coeff(delta_t: ArrayLike, cos_tilt: float) -> np.ndarray:
    """
    Convezione naturale (Walton).

    Args:
        delta_t: T_superficie - T_aria [K]
        cos_tilt: coseno dell'inclinazione (1 = rivolta verso l'alto)
    """
    delta_t = np.asarray(delta_t, dtype=float)
    cbrt = np.cbrt(np.abs(delta_t))

    if abs(cos_tilt) < 1e-6:
        return 1.31 * cbrt

    # Moto instabile: superficie calda rivolta in alto o fredda rivolta in basso
    unstable = delta_t * cos_tilt > 0.0
    return np.where(unstable,
                    9.482 * cbrt / (7.238 - abs(cos_tilt)),
                    1.810 * cbrt / (1.382 + abs(cos_tilt)))


def get_doe2_convection_coeff(tilt: float, t_surf: ArrayLike, t_air: float,
                              wind_speed: float, roughness: float) -> np.ndarray:
    """
    Coefficiente convettivo DOE-2 [W/(m²·K)]: naturale + forzato pesato
    con la rugosità. La superficie è considerata sempre sopravento.
    """
    hn = get_natural_convection_coeff(np.asarray(t_surf) - t_air, np.cos(tilt))
    a, b = 3.26, 0.89
    h_glass = np.sqrt(hn * hn + (a * max(wind_speed, 0.0) ** b) ** 2)
    return hn + roughness_multiplier(roughness) * (h_glass - hn)


def get_simple_ir_coeff(emissivity: float, t_surf: ArrayLike, t_air: float) -> np.ndarray:
    """Coefficiente radiativo linearizzato εσ(Ts² + Ta²)(Ts + Ta) [W/(m²·K)]"""
    t_surf = np.asarray(t_surf, dtype=float)
    return emissivity * SIGMA * (t_surf ** 2 + t_air ** 2) * (t_surf + t_air)


def get_convection_coeff(foundation: Foundation, t_surf: ArrayLike, t_air: float,
                         wind_speed: float, roughness: float,
                         is_exterior: bool, tilt: float) -> np.ndarray:
    """Coefficiente convettivo secondo la politica della fondazione"""
    if foundation.convection_calculation_method == ConvectionCalculationMethod.AUTO:
        return get_doe2_convection_coeff(tilt, t_surf, t_air, wind_speed, roughness)

    value = (foundation.exterior_convective_coefficient if is_exterior
             else foundation.interior_convective_coefficient)
    return np.full(np.shape(t_surf), value, dtype=float)
