"""
boundary_layer.py - Correzione dello strato limite per modelli ridotti

=============================================================================
MODULE OVERVIEW
=============================================================================

A 2D slice model sees a straight, infinitely long foundation edge. Real
footprints have corners: at a convex corner two boundary layers overlap
and the true heat loss is lower than perimeter × (flux per unit length);
along a U-turn (two parallel exposed edges close together) the layers of
the opposite edges overlap as well.

PROCEDURE:
    1. calculate_boundary_layer(): auxiliary steady-state 2D Cartesian run
       (AP reduction, far field 100 m, adiabatic deep ground, outdoor
       273.15 K, indoor 293.15 K, no wind) on a private copy of the
       foundation; along the grade row outward from A/P of the full
       polygon, the positive vertical flux is
       accumulated into a (distance, cumulative fraction) table starting
       at (0, 0) and closing at fraction 1.0.

    2. set_new_boundary_geometry(): walks the polygon vertices:
       - U-turn (three consecutive exposed edges whose turning angles sum
         to π): perimeter -= 2·min(AB, CD)·(1 - value(BC))
       - convex corner between two exposed edges: chamfer whose legs are
         sized from the inverse table lookup, truncated to the shorter
         edge when either edge is shorter than the leg
       - non-exposed edges are accumulated as interior perimeter
       The result is a CUSTOM reduction length A / (P - P_interior).

Queries outside the table domain issue a BoundaryLayerWarning and return
a clamped value. A corrected perimeter that is not positive issues the
same warning and falls back to the uncorrected exposed perimeter.
=============================================================================
"""

import copy
import warnings
import numpy as np
from dataclasses import dataclass
from typing import Optional

from ..core.foundation import (
    Foundation, FoundationError, CoordinateSystem, ReductionStrategy, NumericalScheme,
    DeepGroundBoundary
)
from ..core.boundary_conditions import BoundaryConditions
from ..core.geometry import (
    as_polygon, polygon_area, polygon_perimeter, edge_lengths, get_distance, get_angle,
    is_equal, is_convex_vertex, EPSILON
)


class BoundaryLayerWarning(UserWarning):
    """Interrogazione fuori tabella o correzione del perimetro non valida"""
    pass


# Simulazione ausiliaria
AUX_FAR_FIELD_WIDTH = 100.0     # [m]
AUX_OUTDOOR_TEMP = 273.15       # [K]
AUX_INDOOR_TEMP = 293.15        # [K]


@dataclass
class BoundaryLayer:
    """Tabella distanza dal bordo [m] -> frazione cumulata del flusso [-]"""
    distances: np.ndarray
    fractions: np.ndarray

    def __post_init__(self):
        self.distances = np.asarray(self.distances, dtype=float)
        self.fractions = np.asarray(self.fractions, dtype=float)
        if len(self.distances) != len(self.fractions) or len(self.distances) < 2:
            raise ValueError("La tabella dello strato limite richiede almeno due coppie")
        if np.any(np.diff(self.distances) < 0.0) or np.any(np.diff(self.fractions) < 0.0):
            raise ValueError("La tabella dello strato limite deve essere monotona")

    def get_boundary_value(self, dist: float) -> float:
        """Frazione del flusso entro la distanza dist dal bordo"""
        if dist < 0.0:
            warnings.warn(f"Distanza negativa dal bordo: {dist}", BoundaryLayerWarning, stacklevel=2)
            return 0.0
        if dist >= self.distances[-1]:
            return 1.0
        return float(np.interp(dist, self.distances, self.fractions))

    def get_boundary_distance(self, value: float) -> float:
        """Distanza entro cui si raccoglie la frazione value del flusso"""
        if value < 0.0 or value > 1.0:
            warnings.warn(f"Frazione dello strato limite fuori da [0, 1]: {value}",
                          BoundaryLayerWarning, stacklevel=2)
            value = min(max(value, 0.0), 1.0)
        return float(np.interp(value, self.fractions, self.distances))

    def __len__(self) -> int:
        return len(self.distances)


def table_start_distance(foundation: Foundation) -> float:
    """Distanza dal piano di simmetria da cui parte la tabella: A/P del poligono intero [m]"""
    polygon = as_polygon(foundation.polygon)
    return polygon_area(polygon) / polygon_perimeter(polygon)


def calculate_boundary_layer(foundation: Foundation, config=None) -> BoundaryLayer:
    """
    Costruisce la tabella dello strato limite con una simulazione 2D stazionaria.

    Args:
        foundation: Fondazione (non modificata: si lavora su una copia)
        config: SolverConfig della simulazione ausiliaria

    Returns:
        BoundaryLayer
    """
    from ..solver.ground import Ground

    fd = copy.deepcopy(foundation)
    fd.coordinate_system = CoordinateSystem.CARTESIAN
    fd.number_of_dimensions = 2
    fd.reduction_strategy = ReductionStrategy.AP
    fd.numerical_scheme = NumericalScheme.STEADY_STATE
    fd.far_field_width = AUX_FAR_FIELD_WIDTH
    # Fondo adiabatico: nessun flusso 1D di fondo, resta solo l'effetto di bordo
    fd.deep_ground_boundary = DeepGroundBoundary.ZERO_FLUX

    pre = Ground(fd, config)
    pre.build_domain()
    pre.calculate(BoundaryConditions(outdoor_temp=AUX_OUTDOOR_TEMP,
                                     indoor_temp=AUX_INDOOR_TEMP,
                                     wind_speed=0.0))

    d = pre.domain
    i_min = d.mesh_x.get_nearest_index(table_start_distance(foundation))
    k = int(np.searchsorted(d.mesh_z.dividers, 0.0)) - 1   # riga appena sotto il piano campagna
    j = d.ny // 2

    x_ends = []
    sums = []
    flux_sum = 0.0
    x_start = None
    for i in range(i_min, d.nx):
        qz = pre.calculate_heat_flux(d.cell_index(i, j, k))[2]
        if qz <= 0.0:
            continue
        x1 = d.mesh_x.dividers[i]
        x2 = d.mesh_x.dividers[i + 1]
        flux_sum += qz * (x2 - x1)
        if x_start is None:
            x_start = x1
        x_ends.append(x2)
        sums.append(flux_sum)

    if flux_sum <= 0.0:
        raise FoundationError("Nessun flusso uscente dal piano campagna nella simulazione ausiliaria")

    distances = np.concatenate([[0.0], np.asarray(x_ends) - x_start])
    fractions = np.concatenate([[0.0], np.asarray(sums) / flux_sum])
    layer = BoundaryLayer(distances, fractions)

    if pre.config.verbose:
        print(f"[BOUNDARY] Tabella strato limite: {len(layer)} punti, "
              f"estensione {distances[-1]:.2f} m")
    return layer


def set_new_boundary_geometry(foundation: Foundation, layer: Optional[BoundaryLayer]) -> float:
    """
    Corregge il perimetro esposto per angoli e inversioni a U.

    Modifica foundation: strategia CUSTOM con la nuova lunghezza di riduzione.

    Se le correzioni annullano il perimetro esposto emette un
    BoundaryLayerWarning e usa la lunghezza A/P non corretta.

    Returns:
        Nuova lunghezza di riduzione [m]

    Raises:
        FoundationError: tabella mancante o nessun lato esposto
    """
    if layer is None:
        raise FoundationError("Tabella dello strato limite non calcolata")

    polygon = as_polygon(foundation.polygon)
    exposed = foundation.exposed_flags
    area = polygon_area(polygon)
    exposed_perimeter = float(edge_lengths(polygon)[np.asarray(exposed, dtype=bool)].sum())
    if exposed_perimeter < EPSILON:
        raise FoundationError("Nessun lato esposto: impossibile correggere il perimetro")
    perimeter = polygon_perimeter(polygon)
    interior_perimeter = 0.0

    n = len(polygon)
    for v in range(n):
        v_prev, v_next, v_next2 = (v - 1) % n, (v + 1) % n, (v + 2) % n
        a, b, c, d = polygon[v_prev], polygon[v], polygon[v_next], polygon[v_next2]

        # Inversioni a U
        if exposed[v_prev] and exposed[v] and exposed[v_next]:
            if is_equal(get_angle(a, b, c) + get_angle(b, c, d), np.pi):
                reduction_distance = min(get_distance(a, b), get_distance(c, d))
                reduction_value = 1.0 - layer.get_boundary_value(get_distance(b, c))
                perimeter -= 2.0 * reduction_distance * reduction_value

        # Smusso degli angoli convessi
        if exposed[v_prev] and exposed[v] and is_convex_vertex(polygon, v):
            alpha = get_angle(a, b, c)
            A = get_distance(a, b)
            B = get_distance(b, c)
            if np.sin(alpha) > EPSILON:
                half = 0.5 * alpha
                f = layer.get_boundary_distance(1.0 - np.sin(half) / (1.0 + np.cos(half))) / np.sin(half)
                leg = f / np.cos(half)
                if A < leg or B < leg:
                    A = B = min(A, B)
                else:
                    A = B = leg
                C = np.sqrt(A * A + B * B - 2.0 * A * B * np.cos(alpha))
                perimeter += C - (A + B)

        if not exposed[v]:
            interior_perimeter += get_distance(b, c)

    effective = perimeter - interior_perimeter
    if effective <= 0.0:
        warnings.warn(f"Perimetro esposto corretto non positivo ({effective:.4f} m): "
                      f"uso il perimetro esposto non corretto ({exposed_perimeter:.4f} m)",
                      BoundaryLayerWarning, stacklevel=2)
        effective = exposed_perimeter

    foundation.reduction_strategy = ReductionStrategy.CUSTOM
    foundation.reduction_length2 = area / effective
    return foundation.reduction_length2
