"""
cell.py - Modello di cella (volume di controllo)

=============================================================================
MODULE OVERVIEW
=============================================================================

Cells live in one contiguous struct-of-arrays owned by the Domain; this
module defines the cell kinds and everything a kind knows how to compute.

CELL KINDS (tagged variant, dispatched through CELL_KERNELS):
    NORMAL          solid/soil cell, pure conduction with its neighbours
    BOUNDARY        solid cell with at least one face on a Surface
                    (convection, constant temperature or zero flux)
    INTERIOR_AIR    single-node lump fixed at the indoor air temperature
    EXTERIOR_AIR    single-node lump fixed at the outdoor air temperature
    ZERO_THICKNESS  interface cell without mass, interpolated from the two
                    cells it separates; never part of a linear system

BALANCE (active cells = NORMAL + BOUNDARY):
    C_p (T_p' - T_p) / dt = Σ_f G_pf (T_f - T_p) - U_p T_p + S_p

    G_pf = A / (d_p/k_p + d_f/k_f)   harmonic-mean face conductance [W/K]
    U_p, S_p                          boundary-face terms [W/K], [W]

All scheme paths derive from this balance:
    (a) explicit_update()        new value from old neighbour values
    (b) ADE sweeps               solver/kernels.py, same coefficients
    (c) matrix_coefficients()    row of the global system (theta-weighted)
    (d) adi_coefficients()       tri-diagonal increment row along one axis
                                 (Douglas-Rachford splitting, stable in 3D)
=============================================================================
"""

import numpy as np
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional, Tuple
from enum import IntEnum


class CellType(IntEnum):
    """Tipi di cella"""
    EXTERIOR_AIR = 0
    INTERIOR_AIR = 1
    NORMAL = 2
    BOUNDARY = 3
    ZERO_THICKNESS = 4


ACTIVE_TYPES = (CellType.NORMAL, CellType.BOUNDARY)
AIR_TYPES = (CellType.EXTERIOR_AIR, CellType.INTERIOR_AIR)


@dataclass
class Cell:
    """Vista (copia) di una singola cella, per ispezione e output"""
    index: int
    i: int
    j: int
    k: int
    cell_type: CellType
    conductivity: float         # [W/(m·K)]
    density: float              # [kg/m³]
    specific_heat: float        # [J/(kg·K)]
    volume: float               # [m³]
    face_area: np.ndarray       # Aree delle 6 facce [m²]
    face_dist: np.ndarray       # Distanze centro-faccia [m]
    neighbors: np.ndarray       # Indici dei vicini (-1 = fuori dominio)
    heat_gain: np.ndarray       # Flusso assorbito per faccia [W/m²]

    @property
    def is_active(self) -> bool:
        return self.cell_type in ACTIVE_TYPES


@dataclass
class CellCoefficients:
    """
    Coefficienti del bilancio delle celle attive per il passo corrente.

    Indicizzati per posizione attiva (0..M-1), non per indice di cella.
    """
    capacitance: np.ndarray             # C/dt [W/K] (zero in stazionario)
    coupling: np.ndarray                # (M, 6) vicino attivo o -1
    conductance: np.ndarray             # (M, 6) G verso il vicino [W/K]
    boundary_conductance: np.ndarray    # U [W/K]
    source: np.ndarray                  # S [W]

    @property
    def size(self) -> int:
        return len(self.source)


# =============================================================================
# DERIVAZIONI PER SCHEMA
# =============================================================================

def _neighbour_values(c: CellCoefficients, t: np.ndarray) -> np.ndarray:
    """T dei vicini (M, 6); le posizioni -1 leggono uno zero di guardia"""
    return np.append(t, 0.0)[c.coupling]


def conduction_flow(c: CellCoefficients, t: np.ndarray,
                    directions: Optional[Tuple[int, ...]] = None) -> np.ndarray:
    """Σ G (T_f - T_p) sulle direzioni indicate (tutte se None) [W]"""
    diff = _neighbour_values(c, t) - t[:, None]
    flow = c.conductance * diff
    if directions is not None:
        flow = flow[:, list(directions)]
    return flow.sum(axis=1)


def net_heat_flow(c: CellCoefficients, t: np.ndarray) -> np.ndarray:
    """Calore netto entrante in ogni cella attiva [W]"""
    return conduction_flow(c, t) - c.boundary_conductance * t + c.source


def explicit_update(c: CellCoefficients, t_old: np.ndarray) -> np.ndarray:
    """(a) Eulero esplicito"""
    return t_old + net_heat_flow(c, t_old) / c.capacitance


def matrix_coefficients(c: CellCoefficients, t_old: np.ndarray,
                        weight: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    (c) Riga del sistema globale con pesatura theta.

    weight = 1.0: implicito / stazionario, weight = 0.5: Crank-Nicolson.

    Returns:
        (diag, off, rhs) con off di forma (M, 6), coefficiente di ciascun vicino
    """
    diag = c.capacitance + weight * (c.conductance.sum(axis=1) + c.boundary_conductance)
    off = -weight * c.conductance
    rhs = c.capacitance * t_old + c.source
    if weight < 1.0:
        rhs = rhs + (1.0 - weight) * (conduction_flow(c, t_old) - c.boundary_conductance * t_old)
    return diag, off, rhs


def adi_coefficients(c: CellCoefficients, axis: int,
                     n_axes: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    (d) Riga tri-diagonale per un sotto-passo ADI lungo axis.

    Forma incrementale di Douglas-Rachford: ogni sotto-passo risolve
    (C + A_axis) ΔT = rhs, con A_axis la conduzione lungo axis più la
    quota U/n_axes dei termini di contorno. Il termine noto è il
    bilancio esplicito completo per il primo asse e C·ΔT dell'asse
    precedente per i successivi (vedi adi_rhs).

    Returns:
        (diag, lower, upper): lower accoppia la direzione -axis,
        upper la direzione +axis
    """
    d_minus, d_plus = 2 * axis, 2 * axis + 1
    g_minus = c.conductance[:, d_minus]
    g_plus = c.conductance[:, d_plus]
    diag = c.capacitance + g_minus + g_plus + c.boundary_conductance / n_axes
    return diag, -g_minus, -g_plus


def adi_rhs(c: CellCoefficients, t_old: np.ndarray,
            previous: Optional[np.ndarray] = None) -> np.ndarray:
    """Termine noto del sotto-passo ADI: bilancio esplicito o C·ΔT precedente"""
    if previous is None:
        return net_heat_flow(c, t_old)
    return c.capacitance * previous


# =============================================================================
# KERNEL PER TIPO DI CELLA
# =============================================================================

class CellKernel(NamedTuple):
    """Insieme di funzioni di un tipo di cella"""
    boundary_terms: Optional[Callable]  # (domain, cells) -> (U, S)
    update: Optional[Callable]          # (domain, cells, t, bcs) -> None, scrive t
    heat_flux: Callable                 # (domain, index, t) -> array(3) [W/m²]


def _no_boundary_terms(domain, cells):
    return np.zeros(len(cells)), np.zeros(len(cells))


def _face_boundary_terms(domain, cells):
    return domain.face_U[cells].sum(axis=1), domain.face_S[cells].sum(axis=1)


def _interior_air_update(domain, cells, t, bcs):
    t[cells] = bcs.indoor_temp


def _exterior_air_update(domain, cells, t, bcs):
    t[cells] = bcs.outdoor_temp


def _zero_thickness_update(domain, cells, t, bcs):
    """
    Interpolazione tra le due celle separate dall'interfaccia, pesata con k/d.

    Le celle su più piani di interfaccia (intersezioni) vengono risolte
    dopo quelle su un solo piano, da cui dipendono.
    """
    for stage in (1, 2, 3):
        sel = cells[domain.zt_stage[cells] == stage]
        if len(sel) == 0:
            continue
        axis = domain.zt_axis[sel]
        minus = domain.neighbors[sel, 2 * axis]
        plus = domain.neighbors[sel, 2 * axis + 1]

        g_minus = np.where(minus >= 0,
                           domain.conductivity[minus] / domain.face_dist[minus, 2 * axis + 1], 0.0)
        g_plus = np.where(plus >= 0,
                          domain.conductivity[plus] / domain.face_dist[plus, 2 * axis], 0.0)
        total = g_minus + g_plus
        valid = total > 0.0
        value = np.where(valid,
                         (g_minus * t[minus] + g_plus * t[plus]) / np.where(valid, total, 1.0),
                         t[sel])
        t[sel] = value


def _conduction_heat_flux(domain, index, t):
    """Media dei flussi sulle due facce di ogni asse (positivo verso +asse)"""
    q = np.zeros(3)
    for axis in domain.active_axes:
        values = []
        for d in (2 * axis, 2 * axis + 1):
            area = domain.face_area[index, d]
            if area <= 0.0:
                continue
            f = domain.coupling[index, d]
            if f >= 0:
                outward = domain.conductance[index, d] * (t[index] - t[f])
            else:
                outward = domain.face_U[index, d] * t[index] - domain.face_S[index, d]
            sign = 1.0 if d % 2 else -1.0
            values.append(sign * outward / area)
        if values:
            q[axis] = np.mean(values)
    return q


def _interface_heat_flux(domain, index, t):
    """Flusso attraverso l'interfaccia tra le due celle adiacenti"""
    q = np.zeros(3)
    axis = domain.zt_axis[index]
    minus = domain.neighbors[index, 2 * axis]
    plus = domain.neighbors[index, 2 * axis + 1]
    if minus < 0 or plus < 0:
        return q
    k_m, k_p = domain.conductivity[minus], domain.conductivity[plus]
    if k_m <= 0.0 or k_p <= 0.0:
        return q
    resistance = domain.face_dist[minus, 2 * axis + 1] / k_m + domain.face_dist[plus, 2 * axis] / k_p
    q[axis] = (t[minus] - t[plus]) / resistance
    return q


def _air_heat_flux(domain, index, t):
    return np.zeros(3)


CELL_KERNELS: Dict[CellType, CellKernel] = {
    CellType.NORMAL: CellKernel(_no_boundary_terms, None, _conduction_heat_flux),
    CellType.BOUNDARY: CellKernel(_face_boundary_terms, None, _conduction_heat_flux),
    CellType.INTERIOR_AIR: CellKernel(None, _interior_air_update, _air_heat_flux),
    CellType.EXTERIOR_AIR: CellKernel(None, _exterior_air_update, _air_heat_flux),
    CellType.ZERO_THICKNESS: CellKernel(None, _zero_thickness_update, _interface_heat_flux),
}

# Ordine di aggiornamento delle celle passive: l'aria prima delle interfacce
PASSIVE_UPDATE_ORDER = (CellType.INTERIOR_AIR, CellType.EXTERIOR_AIR, CellType.ZERO_THICKNESS)
