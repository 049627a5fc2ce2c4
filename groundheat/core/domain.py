"""
domain.py - Dominio discretizzato: celle, vicinato, superfici

=============================================================================
MODULE OVERVIEW
=============================================================================

Domain turns a meshed Foundation into the flat cell arena consumed by the
solver. All per-cell data is stored struct-of-arrays, indexed with the
Fortran-order flat index

    p = i + nX*j + nX*nY*k

BUILD STEPS:
    1. three Meshers (x, y, z) from foundation.mesh_data
    2. block classification of every cell (later blocks override earlier)
    3. cell geometry: volume, face areas, center-to-face distances
       (cylindrical x = r: X faces 2πr·dz, Z faces π(r₊² - r₋²))
    4. raw neighbour links, -1 outside the domain (always symmetric)
    5. effective couplings between active cells; zero-thickness cells are
       bypassed, faces onto air or the domain edge become boundary faces
    6. surfaces (one per surface type and orientation) from the boundary
       faces, BOUNDARY cell kind for cells owning at least one of them
    7. active-cell mapping and, per axis, the destination order grouping
       every line along that axis into one contiguous block (ADI)

Per-step mutable fields (face_U, face_S, face_h, heat_gain) are written
by Ground before each scheme dispatch; everything else is fixed after
construction.
=============================================================================
"""

import numpy as np
from typing import Dict, List, Tuple

from .foundation import (
    Foundation, BlockType, Region, DeepGroundBoundary, FoundationError
)
from .mesher import Mesher
from .surface import Surface, SurfaceType, Orientation, BoundaryKind
from .cell import Cell, CellType, ACTIVE_TYPES


# Assi presenti per numero di dimensioni (0 = x, 1 = y, 2 = z)
ACTIVE_AXES = {1: (2,), 2: (0, 2), 3: (0, 1, 2)}

# Codici del bersaglio di una faccia (oltre agli indici di cella >= 0)
_OUTSIDE = -1


class Domain:
    """
    Arena delle celle di una fondazione.

    Attributes:
        mesh_x, mesh_y, mesh_z: Mesher dei tre assi
        cell_type: Tipo di ciascuna cella (CellType)
        conductivity, density, specific_heat, volume: Proprietà per cella
        face_area, face_dist: (N, 6) aree e distanze centro-faccia
        neighbors: (N, 6) vicini geometrici (-1 = fuori dominio)
        coupling: (N, 6) vicino attivo effettivo (-1 = nessuno)
        conductance: (N, 6) conduttanza G verso coupling [W/K]
        surfaces: Lista delle superfici di contorno
        face_surface: (N, 6) indice in surfaces (-1 = nessuna)
    """

    def __init__(self, foundation: Foundation, verbose: bool = False):
        if foundation.mesh_data is None:
            foundation.create_mesh_data()

        self.foundation = foundation
        self.verbose = verbose
        self.number_of_dimensions = foundation.number_of_dimensions
        self.active_axes = ACTIVE_AXES[self.number_of_dimensions]

        self.mesh_x, self.mesh_y, self.mesh_z = (Mesher(d) for d in foundation.mesh_data)
        self.nx, self.ny, self.nz = self.mesh_x.n, self.mesh_y.n, self.mesh_z.n
        self.n_cells = self.nx * self.ny * self.nz

        self._build_indices()
        self._classify_cells()
        self._build_geometry()
        self._build_neighbors()
        self._build_couplings()
        self._build_surfaces()
        self._build_active_maps()

        # Campi aggiornati a ogni passo da Ground
        shape = (self.n_cells, 6)
        self.face_U = np.zeros(shape)           # Conduttanza verso la temperatura imposta [W/K]
        self.face_S = np.zeros(shape)           # Sorgente equivalente [W]
        self.face_h = np.zeros(shape)           # Coefficiente superficiale totale [W/(m²·K)]
        self.heat_gain = np.zeros(shape)        # Flusso assorbito [W/m²]

        if self.verbose:
            counts = {t.name: int(np.sum(self.cell_type == t)) for t in CellType}
            print(f"[DOMINIO] Mesh {self.nx} x {self.ny} x {self.nz} = {self.n_cells} celle "
                  f"({self.n_active} attive)")
            print(f"[DOMINIO] Tipi di cella: {counts}")
            for surface in self.surfaces:
                print(f"[DOMINIO]   {surface}")

    # =========================================================================
    # COSTRUZIONE
    # =========================================================================

    def _build_indices(self):
        """Indici (i, j, k) e coordinate dei centri in ordine Fortran"""
        ii, jj, kk = np.meshgrid(np.arange(self.nx), np.arange(self.ny), np.arange(self.nz),
                                 indexing='ij')
        self.ii = ii.ravel(order='F')
        self.jj = jj.ravel(order='F')
        self.kk = kk.ravel(order='F')
        self.x = self.mesh_x.centers[self.ii]
        self.y = self.mesh_y.centers[self.jj]
        self.z = self.mesh_z.centers[self.kk]

    def _classify_cells(self):
        """Materiale e tipo di cella dai blocchi della fondazione"""
        f = self.foundation
        X, Y = np.meshgrid(self.mesh_x.centers, self.mesh_y.centers, indexing='ij')
        zc = self.mesh_z.centers

        block_id = np.full((self.nx, self.ny, self.nz), -1, dtype=np.int16)
        for b, block in enumerate(f.blocks):
            footprint = f.footprint_mask(block, X, Y)
            mask = footprint[:, :, None] & block.z_mask(zc)[None, None, :]
            block_id[mask] = b
        block_id = block_id.ravel(order='F')

        if np.any(block_id < 0):
            raise FoundationError(f"{int(np.sum(block_id < 0))} celle non appartengono ad alcun blocco")

        n = self.n_cells
        self.block_id = block_id
        self.conductivity = np.zeros(n)
        self.density = np.zeros(n)
        self.specific_heat = np.zeros(n)
        self.cell_type = np.full(n, CellType.NORMAL, dtype=np.int8)

        for b, block in enumerate(f.blocks):
            sel = block_id == b
            if block.block_type == BlockType.SOLID:
                self.conductivity[sel] = block.material.k
                self.density[sel] = block.material.rho
                self.specific_heat[sel] = block.material.cp
            elif block.block_type == BlockType.INTERIOR_AIR:
                self.cell_type[sel] = CellType.INTERIOR_AIR
            else:
                self.cell_type[sel] = CellType.EXTERIOR_AIR

        # Celle di interfaccia: solide con almeno un asse a spessore nullo
        thin = np.stack([self.mesh_x.zero_thickness[self.ii],
                         self.mesh_y.zero_thickness[self.jj],
                         self.mesh_z.zero_thickness[self.kk]], axis=1)
        self.zt_stage = thin.sum(axis=1).astype(np.int8)
        self.zt_axis = np.argmax(thin, axis=1).astype(np.int8)
        solid = self.cell_type == CellType.NORMAL
        self.cell_type[solid & (self.zt_stage > 0)] = CellType.ZERO_THICKNESS
        self.zt_stage[self.cell_type != CellType.ZERO_THICKNESS] = 0

    def _build_geometry(self):
        """Volumi, aree delle facce e distanze centro-faccia"""
        dx = self.mesh_x.deltas[self.ii]
        dy = self.mesh_y.deltas[self.jj]
        dz = self.mesh_z.deltas[self.kk]

        area = np.empty((self.n_cells, 6))
        if self.foundation.is_cylindrical:
            r_minus = self.mesh_x.dividers[self.ii]
            r_plus = self.mesh_x.dividers[self.ii + 1]
            ring = np.pi * (r_plus ** 2 - r_minus ** 2)
            area[:, Orientation.X_NEG] = 2.0 * np.pi * r_minus * dz
            area[:, Orientation.X_POS] = 2.0 * np.pi * r_plus * dz
            area[:, Orientation.Y_NEG] = dx * dz
            area[:, Orientation.Y_POS] = dx * dz
            area[:, Orientation.Z_NEG] = ring
            area[:, Orientation.Z_POS] = ring
            self.volume = ring * dz
        else:
            area[:, 0:2] = (dy * dz)[:, None]
            area[:, 2:4] = (dx * dz)[:, None]
            area[:, 4:6] = (dx * dy)[:, None]
            self.volume = dx * dy * dz

        self.face_area = area
        self.face_dist = 0.5 * np.repeat(np.stack([dx, dy, dz], axis=1), 2, axis=1)

    def _build_neighbors(self):
        """Vicini geometrici nelle 6 direzioni"""
        nx, ny, nz = self.nx, self.ny, self.nz
        p = np.arange(self.n_cells)
        nb = np.full((self.n_cells, 6), _OUTSIDE, dtype=np.int64)

        steps = (1, nx, nx * ny)
        coords = (self.ii, self.jj, self.kk)
        sizes = (nx, ny, nz)
        for axis in range(3):
            c, step, size = coords[axis], steps[axis], sizes[axis]
            has_minus = c > 0
            has_plus = c < size - 1
            nb[has_minus, 2 * axis] = p[has_minus] - step
            nb[has_plus, 2 * axis + 1] = p[has_plus] + step
        self.neighbors = nb

    def _build_couplings(self):
        """
        Accoppiamenti effettivi tra celle attive.

        Le celle di interfaccia vengono attraversate: la conduttanza usa la
        media delle aree delle due facce, così G resta simmetrica.
        """
        n = self.n_cells
        is_active = np.isin(self.cell_type, ACTIVE_TYPES)
        zt = self.cell_type == CellType.ZERO_THICKNESS

        coupling = np.full((n, 6), _OUTSIDE, dtype=np.int64)
        conductance = np.zeros((n, 6))
        target = np.full((n, 6), _OUTSIDE, dtype=np.int64)

        cells = np.flatnonzero(is_active)
        for d in range(6):
            opposite = d ^ 1
            f = self.neighbors[cells, d].copy()
            # Attraversa le celle di interfaccia (al più una per asse)
            for _ in range(3):
                through = (f >= 0) & zt[np.maximum(f, 0)]
                if not np.any(through):
                    break
                f[through] = self.neighbors[f[through], d]
            target[cells, d] = f

            linked = (f >= 0) & is_active[np.maximum(f, 0)]
            p_l, f_l = cells[linked], f[linked]
            a = 0.5 * (self.face_area[p_l, d] + self.face_area[f_l, opposite])
            resistance = (self.face_dist[p_l, d] / self.conductivity[p_l] +
                          self.face_dist[f_l, opposite] / self.conductivity[f_l])
            coupling[p_l, d] = f_l
            conductance[p_l, d] = a / resistance

        self.coupling = coupling
        self.conductance = conductance
        self.face_target = target

    # =========================================================================
    # SUPERFICI
    # =========================================================================

    def _classify_face(self, p: np.ndarray, orientation: Orientation) -> np.ndarray:
        """Tipo di superficie (indice in SurfaceType) per facce di contorno"""
        f = self.foundation
        types = list(SurfaceType)
        result = np.full(len(p), -1, dtype=np.int16)
        target = self.face_target[p, orientation]

        top = orientation == Orientation.Z_POS
        if top:
            region = f.region(self.x[p], self.y[p])
            slab = np.full(len(p), types.index(SurfaceType.SLAB_CORE), dtype=np.int16)
            if f.has_perimeter_surface:
                perim = f.edge_distance(self.x[p], self.y[p]) < f.perimeter_surface_width
                slab[perim] = types.index(SurfaceType.SLAB_PERIM)

        # Bordo del dominio
        outside = target < 0
        if orientation == Orientation.X_NEG:
            symmetric = (self.number_of_dimensions == 2 or f.is_cylindrical or
                         (f.use_symmetry and f.is_y_symm))
            edge = SurfaceType.SYMMETRY if symmetric else SurfaceType.FAR_FIELD
            result[outside] = types.index(edge)
        elif orientation == Orientation.Y_NEG:
            symmetric = f.use_symmetry and f.is_x_symm
            edge = SurfaceType.SYMMETRY if symmetric else SurfaceType.FAR_FIELD
            result[outside] = types.index(edge)
        elif orientation in (Orientation.X_POS, Orientation.Y_POS):
            result[outside] = types.index(SurfaceType.FAR_FIELD)
        elif orientation == Orientation.Z_NEG:
            result[outside] = types.index(SurfaceType.DEEP_GROUND)
        else:
            by_region = np.where(region == Region.WALL, types.index(SurfaceType.WALL_TOP),
                                 types.index(SurfaceType.GRADE))
            by_region = np.where(region == Region.INTERIOR, slab, by_region)
            result[outside] = by_region[outside]

        # Facce verso l'aria
        safe = np.maximum(target, 0)
        interior = (target >= 0) & (self.cell_type[safe] == CellType.INTERIOR_AIR)
        exterior = (target >= 0) & (self.cell_type[safe] == CellType.EXTERIOR_AIR)
        if top:
            result[interior] = slab[interior]
            result[exterior] = types.index(SurfaceType.GRADE)
        else:
            result[interior] = types.index(SurfaceType.WALL_INT)
            result[exterior] = types.index(SurfaceType.WALL_EXT)
        return result

    def _surface_properties(self, surface_type: SurfaceType) -> Tuple[BoundaryKind, float, float]:
        """(condizione, assorbimento, emissività) di un tipo di superficie"""
        f = self.foundation
        if surface_type in (SurfaceType.SLAB_CORE, SurfaceType.SLAB_PERIM):
            return BoundaryKind.CONVECTION, f.slab_absorptivity, f.slab_emissivity
        if surface_type == SurfaceType.WALL_INT:
            return BoundaryKind.CONVECTION, 0.0, f.wall_interior_emissivity
        if surface_type == SurfaceType.WALL_EXT:
            return BoundaryKind.CONVECTION, f.wall_exterior_absorptivity, f.wall_exterior_emissivity
        if surface_type == SurfaceType.GRADE:
            return BoundaryKind.CONVECTION, f.soil_absorptivity, f.soil_emissivity
        if (surface_type == SurfaceType.DEEP_GROUND and
                f.deep_ground_boundary == DeepGroundBoundary.CONSTANT_TEMPERATURE):
            return BoundaryKind.CONSTANT_TEMPERATURE, 0.0, 0.0
        return BoundaryKind.ZERO_FLUX, 0.0, 0.0

    def _build_surfaces(self):
        """Superfici dalle facce di contorno delle celle attive"""
        types = list(SurfaceType)
        active = np.flatnonzero(np.isin(self.cell_type, ACTIVE_TYPES))
        self.surfaces: List[Surface] = []
        self.face_surface = np.full((self.n_cells, 6), -1, dtype=np.int16)

        for axis in self.active_axes:
            for orientation in (Orientation(2 * axis), Orientation(2 * axis + 1)):
                boundary = (self.coupling[active, orientation] < 0) & \
                           (self.face_area[active, orientation] > 0.0)
                p = active[boundary]
                if len(p) == 0:
                    continue
                classes = self._classify_face(p, orientation)
                for code in np.unique(classes):
                    if code < 0:
                        continue
                    surface_type = types[code]
                    cells = p[classes == code]
                    kind, absorptivity, emissivity = self._surface_properties(surface_type)
                    surface = Surface(
                        surface_type=surface_type,
                        orientation=orientation,
                        boundary_kind=kind,
                        absorptivity=absorptivity,
                        emissivity=emissivity,
                        temperature=self.foundation.deep_ground_temperature,
                        indices=cells.astype(np.int64),
                        area=float(self.face_area[cells, orientation].sum()),
                    )
                    self.face_surface[cells, orientation] = len(self.surfaces)
                    self.surfaces.append(surface)

        has_boundary = np.any(self.face_surface >= 0, axis=1)
        self.cell_type[has_boundary & (self.cell_type == CellType.NORMAL)] = CellType.BOUNDARY

        if self.number_of_dimensions == 3:
            self.foundation.surface_areas = self._plan_surface_areas()

    @property
    def symmetry_multiplier(self) -> float:
        """Fattore tra l'area modellata e quella reale nei modelli 3D"""
        f = self.foundation
        if self.number_of_dimensions < 3 or not f.use_symmetry:
            return 1.0
        return (2.0 if f.is_x_symm else 1.0) * (2.0 if f.is_y_symm else 1.0)

    def _plan_surface_areas(self) -> Dict[SurfaceType, float]:
        """Aree reali delle superfici di un modello 3D"""
        areas = {t: 0.0 for t in SurfaceType}
        for surface in self.surfaces:
            areas[surface.surface_type] += surface.area * self.symmetry_multiplier
        return areas

    def get_surfaces(self, surface_type: SurfaceType) -> List[Surface]:
        return [s for s in self.surfaces if s.surface_type == surface_type]

    # =========================================================================
    # CELLE ATTIVE E ORDINI DI DESTINAZIONE
    # =========================================================================

    def _build_active_maps(self):
        """Indicizzazione delle celle attive e ordini per le linee ADI"""
        self.active = np.flatnonzero(np.isin(self.cell_type, ACTIVE_TYPES))
        self.n_active = len(self.active)
        self.active_index = np.full(self.n_cells, -1, dtype=np.int64)
        self.active_index[self.active] = np.arange(self.n_active)

        coupled = self.coupling[self.active]
        self.active_coupling = np.where(coupled >= 0, self.active_index[np.maximum(coupled, 0)], -1)
        self.active_conductance = self.conductance[self.active]

        coords = (self.ii[self.active], self.jj[self.active], self.kk[self.active])
        self.dest_order: Dict[int, np.ndarray] = {}
        self.dest_linked: Dict[int, np.ndarray] = {}
        for axis in self.active_axes:
            others = [coords[a] for a in range(3) if a != axis]
            # lexsort: l'ultima chiave è la principale
            order = np.lexsort((coords[axis], others[0], others[1]))
            previous = np.concatenate([[-1], order[:-1]])
            self.dest_order[axis] = order
            # True se la riga precedente è il vicino -asse della cella
            self.dest_linked[axis] = self.active_coupling[order, 2 * axis] == previous

        if self.active_coupling.size:
            assert np.all(self.active_coupling[self.active_coupling >= 0] < self.n_active)

    # =========================================================================
    # ACCESSO
    # =========================================================================

    def cell_index(self, i: int, j: int, k: int) -> int:
        """Indice lineare da (i, j, k)"""
        return i + self.nx * j + self.nx * self.ny * k

    def get_cell(self, index: int) -> Cell:
        """Copia delle proprietà di una cella"""
        if not 0 <= index < self.n_cells:
            raise IndexError(f"Cella {index} fuori dal dominio (0..{self.n_cells - 1})")
        return Cell(
            index=int(index),
            i=int(self.ii[index]),
            j=int(self.jj[index]),
            k=int(self.kk[index]),
            cell_type=CellType(int(self.cell_type[index])),
            conductivity=float(self.conductivity[index]),
            density=float(self.density[index]),
            specific_heat=float(self.specific_heat[index]),
            volume=float(self.volume[index]),
            face_area=self.face_area[index].copy(),
            face_dist=self.face_dist[index].copy(),
            neighbors=self.neighbors[index].copy(),
            heat_gain=self.heat_gain[index].copy(),
        )

    def cells_of_type(self, cell_type: CellType) -> np.ndarray:
        return np.flatnonzero(self.cell_type == cell_type)

    def __repr__(self) -> str:
        return (f"Domain({self.number_of_dimensions}D, {self.nx}x{self.ny}x{self.nz}, "
                f"attive={self.n_active}, superfici={len(self.surfaces)})")
