"""
boundary_conditions.py - Condizioni al contorno di un passo di calcolo

BoundaryConditions è una fotografia delle forzanti esterne, sostituita
per intero a ogni chiamata di Ground.calculate(). Le funzioni del modulo
convertono la geometria solare in flusso assorbito sulle superfici
esterne (piano campagna, parete fuori terra).
"""

import numpy as np
from dataclasses import dataclass

from .surface import Orientation


@dataclass
class BoundaryConditions:
    """Forzanti esterne di un passo"""
    outdoor_temp: float = 283.15            # Temperatura aria esterna [K]
    indoor_temp: float = 293.15             # Temperatura aria interna [K]
    wind_speed: float = 0.0                 # Velocità del vento locale [m/s]
    solar_azimuth: float = 0.0              # Azimut solare [rad]
    solar_altitude: float = 0.0             # Altezza solare [rad]
    direct_normal_flux: float = 0.0         # Radiazione diretta normale [W/m²]
    diffuse_horizontal_flux: float = 0.0    # Radiazione diffusa orizzontale [W/m²]
    slab_abs_radiation: float = 0.0         # Radiazione assorbita dal pavimento [W/m²]
    wall_abs_radiation: float = 0.0         # Radiazione assorbita dalla parete interna [W/m²]


def surface_azimuth(orientation: Orientation, building_orientation: float) -> float:
    """Azimut della normale di una superficie verticale [rad]"""
    offsets = {
        Orientation.Y_POS: 0.0,
        Orientation.X_POS: 0.5 * np.pi,
        Orientation.Y_NEG: np.pi,
        Orientation.X_NEG: 1.5 * np.pi,
    }
    return building_orientation + offsets[orientation]


def solar_incidence(bcs: BoundaryConditions, orientation: Orientation,
                    number_of_dimensions: int, building_orientation: float = 0.0,
                    is_x_symm: bool = False, is_y_symm: bool = False) -> float:
    """
    Coseno dell'angolo di incidenza della radiazione diretta.

    - superfici orizzontali: sin(altezza solare)
    - pareti in 2D: incidenza media su un cilindro verticale, cos(alt)/π
    - pareti in 3D: cos(alt)·cos(azi - azi_sup), mediata sulle due facce
      opposte se il dominio sfrutta la simmetria in quella direzione
    """
    alt = bcs.solar_altitude
    azi = bcs.solar_azimuth

    if orientation == Orientation.Z_POS:
        incidence = np.cos(0.5 * np.pi - alt)
    elif orientation == Orientation.Z_NEG:
        incidence = np.cos(0.5 * np.pi - alt - np.pi)
    elif number_of_dimensions == 2:
        incidence = np.cos(alt) / np.pi
    else:
        def vertical(o: Orientation) -> float:
            return np.cos(alt) * np.cos(azi - surface_azimuth(o, building_orientation))

        if orientation in (Orientation.Y_POS, Orientation.Y_NEG) and is_x_symm:
            incidence = 0.5 * (max(vertical(Orientation.Y_POS), 0.0) + max(vertical(Orientation.Y_NEG), 0.0))
        elif orientation in (Orientation.X_POS, Orientation.X_NEG) and is_y_symm:
            incidence = 0.5 * (max(vertical(Orientation.X_POS), 0.0) + max(vertical(Orientation.X_NEG), 0.0))
        else:
            incidence = vertical(orientation)

    # Sole sotto l'orizzonte
    if alt < 0.0 or incidence < 0.0:
        return 0.0
    return float(incidence)


def absorbed_solar_flux(bcs: BoundaryConditions, incidence: float, tilt: float,
                        absorptivity: float, ground_absorptivity: float) -> float:
    """
    Flusso solare assorbito [W/m²]: diretta + diffusa dal cielo + riflessa dal terreno.
    """
    q_dn = bcs.direct_normal_flux
    q_dh = bcs.diffuse_horizontal_flux
    q_gh = np.cos(0.5 * np.pi - bcs.solar_altitude) * q_dn + q_dh

    if q_gh <= 0.0:
        return 0.0

    f_sky = 0.5 * (1.0 + np.cos(tilt))
    f_ground = 1.0 - f_sky
    rho_ground = 1.0 - ground_absorptivity
    return float(absorptivity * (q_dn * incidence + q_dh * f_sky + q_gh * f_ground * rho_ground))
