"""
ground.py - Calcolo di un passo temporale sul dominio del terreno

=============================================================================
MODULE OVERVIEW
=============================================================================

Ground owns a private copy of the Foundation, the Domain built from it and
the temperature field (t_old persistent between steps, t_new for the step
being computed).

calculate(bcs, timestep) is the single entry point of a step:

    1. store the boundary-condition snapshot
    2. absorbed solar gains on grade / exterior wall faces
       absorbed interior radiation on slab / interior wall faces
    3. boundary-face coefficients U, S from the convection policy
       (h = h_conv + h_IR, evaluated at the previous temperatures)
    4. dispatch to the scheme handler (fixed for the life of the Ground):

        EXPLICIT         forward Euler on the active cells
        ADE              two sweeps (ascending / descending) run as two
                         concurrent tasks on a read-only copy of t_old,
                         result = mean of the two
        ADI              Douglas-Rachford splitting on the increment: one
                         banded solve per axis (x[, y], z last), the first
                         driven by the full explicit balance, the others by
                         C·ΔT of the previous axis; stable in 3D
        IMPLICIT         \
        CRANK_NICOLSON    > global sparse system, preconditioned Krylov
        STEADY_STATE     /  solve with warm start (tri-diagonal in 1D)

    5. air cells set to their air temperature, zero-thickness cells
       interpolated, t_old <- t_new

Output aggregation (GroundOutput) and the boundary-layer correction live in
the analysis package; Ground exposes thin wrappers around both.
=============================================================================
"""

import copy
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Dict, List, Union

from ..core.foundation import (
    Foundation, NumericalScheme, ReductionStrategy
)
from ..core.domain import Domain
from ..core.cell import (
    Cell, CellType, CellCoefficients, CELL_KERNELS, PASSIVE_UPDATE_ORDER,
    explicit_update, matrix_coefficients, adi_coefficients, adi_rhs
)
from ..core.surface import Surface, SurfaceType, BoundaryKind
from ..core.boundary_conditions import (
    BoundaryConditions, solar_incidence, absorbed_solar_flux
)
from ..core.heat_transfer import (
    get_convection_coeff, get_simple_ir_coeff, INTERIOR_ROUGHNESS
)
from ..analysis.ground_output import GroundOutput, OutputType, calculate_surface_averages
from ..analysis import boundary_layer as bl
from .linear_system import SolverConfig, SparseSystem, TridiagonalSystem
from .kernels import ade_sweep, sweep_mean


# Peso implicito degli schemi matriciali
MATRIX_WEIGHTS = {
    NumericalScheme.IMPLICIT: 1.0,
    NumericalScheme.CRANK_NICOLSON: 0.5,
    NumericalScheme.STEADY_STATE: 1.0,
}


class Ground:
    """
    Motore di calcolo del terreno.

    Uso:
        ground = Ground(foundation, SolverConfig())
        ground.build_domain()
        ground.calculate(bcs, 3600.0)
        ground.calculate_surface_averages()
        q = ground.get_surface_average_value(SurfaceType.SLAB_CORE, OutputType.RATE)
    """

    def __init__(self, foundation: Foundation, config: Optional[SolverConfig] = None,
                 output_map: Optional[Dict[SurfaceType, List[OutputType]]] = None):
        self.foundation = copy.deepcopy(foundation)
        self.config = config if config is not None else SolverConfig()
        self.config.validate()

        self.ground_output = GroundOutput(output_map=dict(output_map or {}))
        self.boundary_layer: Optional[bl.BoundaryLayer] = None

        self.domain: Optional[Domain] = None
        self.bcs = BoundaryConditions()
        self.timestep = 0.0
        self.t_old: Optional[np.ndarray] = None
        self.t_new: Optional[np.ndarray] = None
        self.executor: Optional[ThreadPoolExecutor] = None

        self._scheme_handlers = {
            NumericalScheme.EXPLICIT: self._calculate_explicit,
            NumericalScheme.ADE: self._calculate_ade,
            NumericalScheme.ADI: self._calculate_adi,
            NumericalScheme.IMPLICIT: self._calculate_matrix,
            NumericalScheme.CRANK_NICOLSON: self._calculate_matrix,
            NumericalScheme.STEADY_STATE: self._calculate_matrix,
        }

    # =========================================================================
    # COSTRUZIONE
    # =========================================================================

    def build_domain(self):
        """
        Costruisce mesh, celle e buffer dei sistemi lineari.

        Con la strategia BOUNDARY in un modello 1D/2D esegue prima la
        correzione dello strato limite, che sostituisce la lunghezza di
        riduzione della copia privata della fondazione.

        Raises:
            FoundationError: geometria o configurazione non valida
        """
        f = self.foundation
        if f.reduction_strategy == ReductionStrategy.BOUNDARY and f.number_of_dimensions < 3:
            self.calculate_boundary_layer()
            self.set_new_boundary_geometry()

        f.create_mesh_data()
        self.domain = Domain(f, verbose=self.config.verbose)
        d = self.domain

        self.t_old = np.full(d.n_cells, f.deep_ground_temperature)
        self.t_new = self.t_old.copy()

        active = d.active
        self._heat_capacity = d.density[active] * d.specific_heat[active] * d.volume[active]
        self._active_by_type = {
            t: np.flatnonzero(d.cell_type[active] == t) for t in (CellType.NORMAL, CellType.BOUNDARY)
        }
        self._cells_by_type = {t: d.cells_of_type(t) for t in PASSIVE_UPDATE_ORDER}

        self._tridiagonal = TridiagonalSystem(d.n_active)
        self._sparse = None
        if f.numerical_scheme in MATRIX_WEIGHTS and f.number_of_dimensions > 1:
            self._sparse = SparseSystem(d.n_active, len(d.active_axes), self.config)

        # Due thread per le passate ADE, riusati a ogni passo
        if f.numerical_scheme == NumericalScheme.ADE and self.executor is None:
            self.executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ade")

        if self.config.verbose:
            print(f"[SOLVER] Schema {f.numerical_scheme.name}, {d.n_active} incognite")

    def initialize_temperatures(self, value: Union[float, np.ndarray]):
        """Imposta il campo iniziale (scalare o array per cella)"""
        self._require_domain()
        self.t_old[:] = value
        self.t_new[:] = self.t_old
        self._update_passive_cells(self.t_new)
        self.t_old[:] = self.t_new

    def close(self):
        """Rilascia il pool di thread delle passate ADE"""
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None

    def _require_domain(self):
        if self.domain is None:
            raise RuntimeError("Dominio non costruito: chiamare build_domain() prima")

    # =========================================================================
    # PASSO DI CALCOLO
    # =========================================================================

    def calculate(self, bcs: BoundaryConditions, timestep: float = 0.0):
        """
        Avanza il campo di temperatura di un passo.

        Args:
            bcs: Condizioni al contorno del passo
            timestep: Durata del passo [s] (ignorata in stazionario)

        Raises:
            ValueError: timestep non positivo per uno schema transitorio
        """
        self._require_domain()
        scheme = self.foundation.numerical_scheme
        if scheme != NumericalScheme.STEADY_STATE and timestep <= 0.0:
            raise ValueError(f"Lo schema {scheme.name} richiede un timestep positivo, ricevuto {timestep}")

        self.bcs = bcs
        self.timestep = timestep

        self.set_solar_boundary_conditions()
        self.set_interior_radiation_boundary_conditions()
        self._set_boundary_coefficients()

        d = self.domain
        coeffs = self._cell_coefficients()
        t_active = self.t_old[d.active]

        self.t_new[:] = self.t_old
        self.t_new[d.active] = self._scheme_handlers[scheme](coeffs, t_active)
        self._update_passive_cells(self.t_new)

        self.t_old[:] = self.t_new

    def _cell_coefficients(self) -> CellCoefficients:
        """Coefficienti del bilancio delle celle attive"""
        d = self.domain
        m = d.n_active
        U = np.zeros(m)
        S = np.zeros(m)
        for cell_type, positions in self._active_by_type.items():
            if len(positions) == 0:
                continue
            u, s = CELL_KERNELS[cell_type].boundary_terms(d, d.active[positions])
            U[positions] = u
            S[positions] = s

        if self.foundation.numerical_scheme == NumericalScheme.STEADY_STATE:
            capacitance = np.zeros(m)
        else:
            capacitance = self._heat_capacity / self.timestep

        return CellCoefficients(
            capacitance=capacitance,
            coupling=d.active_coupling,
            conductance=d.active_conductance,
            boundary_conductance=U,
            source=S,
        )

    def _update_passive_cells(self, t: np.ndarray):
        for cell_type in PASSIVE_UPDATE_ORDER:
            cells = self._cells_by_type[cell_type]
            if len(cells):
                CELL_KERNELS[cell_type].update(self.domain, cells, t, self.bcs)

    # =========================================================================
    # SCHEMI
    # =========================================================================

    def _calculate_explicit(self, c: CellCoefficients, t_old: np.ndarray) -> np.ndarray:
        return explicit_update(c, t_old)

    def _calculate_ade(self, c: CellCoefficients, t_old: np.ndarray) -> np.ndarray:
        """Due passate concorrenti su una vista in sola lettura di t_old"""
        frozen = t_old.copy()
        frozen.flags.writeable = False
        upward = np.empty_like(frozen)
        downward = np.empty_like(frozen)

        futures = [
            self.executor.submit(ade_sweep, frozen, c.capacitance, c.coupling, c.conductance,
                                 c.boundary_conductance, c.source, ascending, out)
            for ascending, out in ((True, upward), (False, downward))
        ]
        for future in futures:
            future.result()

        return sweep_mean(upward, downward, np.empty_like(upward))

    def _calculate_adi(self, c: CellCoefficients, t_old: np.ndarray) -> np.ndarray:
        """Un sotto-passo implicito sull'incremento per asse, z per ultimo"""
        axes = self.domain.active_axes
        delta = None
        for axis in axes:
            diag, lower, upper = adi_coefficients(c, axis, len(axes))
            delta = self._solve_lines(axis, diag, lower, upper, adi_rhs(c, t_old, delta))
        return t_old + delta

    def _solve_lines(self, axis: int, diag: np.ndarray, lower: np.ndarray,
                     upper: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        """
        Risolve tutte le linee lungo axis in un unico sistema a banda.

        Le righe sono ordinate secondo l'ordine di destinazione dell'asse;
        gli accoppiamenti tra linee diverse sono nulli.
        """
        d = self.domain
        order = d.dest_order[axis]
        linked = d.dest_linked[axis]
        next_linked = np.append(linked[1:], False)

        system = self._tridiagonal
        system.diag[:] = diag[order]
        system.lower[:] = np.where(linked, lower[order], 0.0)
        system.upper[:] = np.where(next_linked, upper[order], 0.0)
        system.rhs[:] = rhs[order]

        t = np.empty_like(rhs)
        t[order] = system.solve()
        return t

    def _calculate_matrix(self, c: CellCoefficients, t_old: np.ndarray) -> np.ndarray:
        """Implicito, Crank-Nicolson e stazionario"""
        weight = MATRIX_WEIGHTS[self.foundation.numerical_scheme]
        diag, off, rhs = matrix_coefficients(c, t_old, weight)

        if self._sparse is None:
            # 1D: il sistema è esattamente tri-diagonale lungo z
            return self._solve_lines(2, diag, off[:, 4], off[:, 5], rhs)

        system = self._sparse
        system.clear()
        rows = np.arange(c.size)
        system.add(rows, rows, diag)
        for direction in range(6):
            linked = c.coupling[:, direction] >= 0
            system.add(rows[linked], c.coupling[linked, direction], off[linked, direction])
        system.rhs[:] = rhs

        result = system.solve(x0=t_old)
        return result.x

    # =========================================================================
    # CONDIZIONI AL CONTORNO
    # =========================================================================

    def set_solar_boundary_conditions(self):
        """Radiazione solare assorbita da piano campagna e parete esterna"""
        d = self.domain
        f = self.foundation
        if f.number_of_dimensions == 1:
            return
        for surface in d.surfaces:
            if surface.surface_type not in (SurfaceType.GRADE, SurfaceType.WALL_EXT):
                continue
            incidence = solar_incidence(self.bcs, surface.orientation, f.number_of_dimensions,
                                        f.orientation, f.use_symmetry and f.is_x_symm,
                                        f.use_symmetry and f.is_y_symm)
            q = absorbed_solar_flux(self.bcs, incidence, surface.tilt,
                                    surface.absorptivity, f.soil_absorptivity)
            d.heat_gain[surface.indices, surface.orientation] = q

    def set_interior_radiation_boundary_conditions(self):
        """Radiazione interna assorbita da pavimento e parete interna"""
        d = self.domain
        for surface in d.surfaces:
            if surface.surface_type == SurfaceType.WALL_INT:
                d.heat_gain[surface.indices, surface.orientation] = self.bcs.wall_abs_radiation
            elif surface.surface_type in (SurfaceType.SLAB_CORE, SurfaceType.SLAB_PERIM):
                d.heat_gain[surface.indices, surface.orientation] = self.bcs.slab_abs_radiation

    def surface_air_temperature(self, surface: Surface) -> float:
        return self.bcs.indoor_temp if surface.is_interior else self.bcs.outdoor_temp

    def _set_boundary_coefficients(self):
        """
        Conduttanza U e sorgente S di ogni faccia di contorno.

        Convezione: la resistenza d/k tra centro cella e superficie è in
        serie con 1/h verso l'aria; il flusso assorbito q'' entra nella
        superficie e si ripartisce tra le due resistenze.
        """
        d = self.domain
        f = self.foundation
        d.face_U[:] = 0.0
        d.face_S[:] = 0.0
        d.face_h[:] = 0.0

        for surface in d.surfaces:
            if surface.boundary_kind == BoundaryKind.ZERO_FLUX:
                continue
            cells = surface.indices
            o = surface.orientation
            area = d.face_area[cells, o]
            kd = d.conductivity[cells] / d.face_dist[cells, o]

            if surface.boundary_kind == BoundaryKind.CONSTANT_TEMPERATURE:
                U = area * kd
                S = U * surface.temperature
            else:
                t_air = self.surface_air_temperature(surface)
                t_surf = self.t_old[cells]
                if surface.is_interior:
                    wind, roughness = 0.0, INTERIOR_ROUGHNESS
                else:
                    wind, roughness = self.bcs.wind_speed, f.surface_roughness
                h = (get_convection_coeff(f, t_surf, t_air, wind, roughness,
                                          not surface.is_interior, surface.tilt) +
                     get_simple_ir_coeff(surface.emissivity, t_surf, t_air))
                q = d.heat_gain[cells, o]
                U = area * kd * h / (kd + h)
                S = U * t_air + area * q * kd / (kd + h)
                d.face_h[cells, o] = h

            d.face_U[cells, o] = U
            d.face_S[cells, o] = S

    # =========================================================================
    # USCITE
    # =========================================================================

    def calculate_surface_averages(self):
        """Ricalcola tutte le uscite della mappa di output"""
        self._require_domain()
        calculate_surface_averages(self)

    def get_surface_average_value(self, surface_type: SurfaceType, output_type: OutputType) -> float:
        return self.ground_output.get(surface_type, output_type)

    def get_surface_area(self, surface_type: SurfaceType) -> float:
        """Area reale (3D) di un tipo di superficie [m²]"""
        return self.foundation.surface_areas.get(surface_type, 0.0)

    def surface_temperatures(self, surface: Surface) -> np.ndarray:
        """Temperatura superficiale di ogni faccia della superficie [K]"""
        d = self.domain
        cells = surface.indices
        o = surface.orientation
        t_cell = self.t_new[cells]

        if surface.boundary_kind == BoundaryKind.CONSTANT_TEMPERATURE:
            return np.full(len(cells), surface.temperature)
        if surface.boundary_kind == BoundaryKind.ZERO_FLUX:
            return t_cell.copy()

        kd = d.conductivity[cells] / d.face_dist[cells, o]
        h = d.face_h[cells, o]
        q = d.heat_gain[cells, o]
        t_air = self.surface_air_temperature(surface)
        return (kd * t_cell + h * t_air + q) / (kd + h)

    # =========================================================================
    # ACCESSO A CELLE E FLUSSI
    # =========================================================================

    def get_cell(self, index: int) -> Cell:
        self._require_domain()
        return self.domain.get_cell(index)

    def get_temperature(self, index: int) -> float:
        return float(self.t_new[index])

    def get_temperature_field(self) -> np.ndarray:
        """Campo di temperatura (nx, ny, nz)"""
        d = self.domain
        return self.t_new.reshape((d.nx, d.ny, d.nz), order='F').copy()

    def calculate_heat_flux(self, index: int) -> np.ndarray:
        """Densità di flusso [Qx, Qy, Qz] nella cella [W/m²]"""
        cell_type = CellType(int(self.domain.cell_type[index]))
        return CELL_KERNELS[cell_type].heat_flux(self.domain, index, self.t_new)

    def get_face_heat_rate(self, index: int, direction: int) -> float:
        """Potenza uscente dalla cella attraverso una faccia [W]"""
        d = self.domain
        f = d.coupling[index, direction]
        if f >= 0:
            return float(d.conductance[index, direction] * (self.t_new[index] - self.t_new[f]))
        return float(d.face_U[index, direction] * self.t_new[index] - d.face_S[index, direction])

    def get_surface_heat_rate(self, surface_type: SurfaceType) -> float:
        """Potenza entrante nel dominio attraverso un tipo di superficie [W, modello]"""
        d = self.domain
        total = 0.0
        for surface in d.get_surfaces(surface_type):
            cells = surface.indices
            o = surface.orientation
            total += float(np.sum(d.face_S[cells, o] - d.face_U[cells, o] * self.t_new[cells]))
        return total

    # =========================================================================
    # STRATO LIMITE
    # =========================================================================

    def calculate_boundary_layer(self):
        """Tabella distanza / frazione di flusso da una simulazione 2D ausiliaria"""
        self.boundary_layer = bl.calculate_boundary_layer(self.foundation, self.config)

    def get_boundary_value(self, dist: float) -> float:
        return self.boundary_layer.get_boundary_value(dist)

    def get_boundary_distance(self, value: float) -> float:
        return self.boundary_layer.get_boundary_distance(value)

    def set_new_boundary_geometry(self):
        """Sostituisce la lunghezza di riduzione con quella corretta"""
        bl.set_new_boundary_geometry(self.foundation, self.boundary_layer)
        if self.config.verbose:
            print(f"[BOUNDARY] Nuova lunghezza di riduzione: {self.foundation.reduction_length2:.4f} m")

    def __repr__(self) -> str:
        return f"Ground({self.foundation.numerical_scheme.name}, {self.domain!r})"
