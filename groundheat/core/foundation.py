"""
foundation.py - Configurazione della fondazione e dati di mesh

=============================================================================
MODULE OVERVIEW
=============================================================================

Foundation collects everything the solution core needs to know about the
building foundation:

    - footprint polygon and exposed-perimeter flags
    - soil, slab and wall constructions
    - depths and extents (foundation depth, deep ground, far field)
    - model choices (dimensions, coordinate system, symmetry, numerical
      scheme, perimeter reduction strategy, deep ground boundary,
      convection policy) and mesh density (MeshConfig)

create_mesh_data() turns this description into:

    - three MeshData objects (x, y, z), unused axes collapsed to one cell
    - an ordered list of Blocks (material regions, later blocks override
      earlier ones)
    - derived geometry (area, perimeter, symmetry flags, true surface
      areas used to scale reduced-dimension results)

MODEL GEOMETRY:
    1D: a vertical column under the slab core (x, y collapsed).
    2D: a vertical slice perpendicular to the foundation edge, x = 0 on the
        symmetry plane, foundation edge at x = reduction length (A/P, or
        2A/P for axisymmetric models), wall from the edge outward, far field
        beyond. y collapsed to a unit-width slice.
    3D: the centered footprint polygon, halved along each mirror symmetry
        plane when use_symmetry is set. Rectilinear polygons only.

A zero-thickness interface interval is inserted at the foundation edge in
2D models; its cells carry no mass and are bypassed by the conduction
stencil.
=============================================================================
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Dict
from enum import Enum, IntEnum

from .materials import Material, Construction, SOIL_MATERIALS
from .mesher import MeshData, Interval, GrowthDirection
from .surface import SurfaceType
from .geometry import (
    as_polygon, polygon_area, polygon_perimeter, edge_lengths,
    is_rectilinear, mirror_symmetry, points_in_polygon,
    linf_distance_to_edges, unique_points, EPSILON
)


class NumericalScheme(Enum):
    """Schema di integrazione temporale"""
    EXPLICIT = "explicit"
    ADE = "ade"                         # Alternating Direction Explicit
    ADI = "adi"                         # Alternating Direction Implicit
    IMPLICIT = "implicit"
    CRANK_NICOLSON = "crank_nicolson"
    STEADY_STATE = "steady_state"


class CoordinateSystem(Enum):
    CARTESIAN = "cartesian"
    CYLINDRICAL = "cylindrical"         # Assialsimmetrico, x = r


class ReductionStrategy(Enum):
    """Come un modello 2D approssima il perimetro 3D"""
    AP = "ap"                           # Lunghezza = area / perimetro esposto
    CUSTOM = "custom"                   # Lunghezza data (reduction_length2)
    BOUNDARY = "boundary"               # Correzione con strato limite


class DeepGroundBoundary(Enum):
    CONSTANT_TEMPERATURE = "constant_temperature"
    ZERO_FLUX = "zero_flux"


class ConvectionCalculationMethod(Enum):
    AUTO = "auto"                       # Correlazione DOE-2 / Walton
    CONSTANT_COEFFICIENT = "constant"   # Coefficienti costanti


class BlockType(Enum):
    SOLID = "solid"
    INTERIOR_AIR = "interior_air"
    EXTERIOR_AIR = "exterior_air"


class Region(IntEnum):
    """Zona in pianta rispetto al bordo della fondazione"""
    INTERIOR = 0        # Sotto l'edificio
    WALL = 1            # Impronta della parete
    EXTERIOR = 2        # Esterno


class FoundationError(ValueError):
    """Configurazione della fondazione non valida"""
    pass


@dataclass
class MeshConfig:
    """Densità della mesh"""
    min_cell_dim: float = 0.02              # Dimensione minima cella [m]
    max_near_growth_coeff: float = 1.5      # Crescita tra interfacce vicine
    max_depth_growth_coeff: float = 1.5     # Crescita verso il fondo
    max_interior_growth_coeff: float = 1.5  # Crescita verso il centro dell'edificio
    max_exterior_growth_coeff: float = 1.5  # Crescita verso il campo lontano
    zero_thickness_width: float = 1.0e-5    # Larghezza celle di interfaccia [m]


@dataclass
class Block:
    """
    Regione di materiale omogeneo.

    La pianta è definita da una Region (None = tutto il piano) e,
    per gli strati di parete, da un intervallo di distanza dal bordo
    della fondazione (inner, outer].
    """
    name: str
    block_type: BlockType
    material: Optional[Material]
    z_min: float
    z_max: float
    region: Optional[Region] = None
    ring: Optional[Tuple[float, float]] = None

    def z_mask(self, zc: np.ndarray) -> np.ndarray:
        return (zc > self.z_min) & (zc < self.z_max)


def _default_polygon() -> List[Tuple[float, float]]:
    return [(-6.0, -6.0), (-6.0, 6.0), (6.0, 6.0), (6.0, -6.0)]


@dataclass
class Foundation:
    """
    Descrizione della fondazione consumata dal nucleo di calcolo.

    Le lunghezze sono in metri, le temperature in kelvin.
    """
    # Geometria in pianta
    polygon: List[Tuple[float, float]] = field(default_factory=_default_polygon)
    is_exposed_perimeter: Optional[List[bool]] = None   # Un flag per lato (None = tutti esposti)
    orientation: float = 0.0                # Azimut dell'edificio [rad]

    # Costruzioni
    soil: Material = field(default_factory=lambda: SOIL_MATERIALS["typical_soil"])
    slab: Construction = field(default_factory=Construction)
    wall: Construction = field(default_factory=Construction)

    # Quote ed estensioni
    foundation_depth: float = 0.0           # Profondità del pavimento sotto il piano campagna [m]
    height_above_grade: float = 0.0         # Altezza della parete fuori terra [m]
    wall_depth_below_slab: float = 0.0      # Parete sotto l'intradosso del solaio [m]
    deep_ground_depth: float = 40.0         # Profondità del fondo del dominio [m]
    far_field_width: float = 40.0           # Distanza dalla parete al campo lontano [m]
    perimeter_surface_width: float = 0.0    # Larghezza fascia perimetrale del pavimento [m]

    # Scelte di modello
    number_of_dimensions: int = 2
    coordinate_system: CoordinateSystem = CoordinateSystem.CARTESIAN
    use_symmetry: bool = True
    numerical_scheme: NumericalScheme = NumericalScheme.ADI
    reduction_strategy: ReductionStrategy = ReductionStrategy.AP
    reduction_length2: float = 0.0          # Lunghezza di riduzione per CUSTOM [m]

    # Condizioni al contorno
    deep_ground_boundary: DeepGroundBoundary = DeepGroundBoundary.ZERO_FLUX
    deep_ground_temperature: float = 283.15     # [K]
    convection_calculation_method: ConvectionCalculationMethod = ConvectionCalculationMethod.AUTO
    interior_convective_coefficient: float = 0.0    # [W/(m²·K)]
    exterior_convective_coefficient: float = 0.0    # [W/(m²·K)]
    surface_roughness: float = 0.03         # Rugosità del terreno [m]

    # Proprietà ottiche
    soil_absorptivity: float = 0.8
    soil_emissivity: float = 0.8
    slab_absorptivity: float = 0.8
    slab_emissivity: float = 0.8
    wall_interior_emissivity: float = 0.8
    wall_exterior_absorptivity: float = 0.8
    wall_exterior_emissivity: float = 0.8

    mesh: MeshConfig = field(default_factory=MeshConfig)

    # Grandezze derivate (create_mesh_data)
    area: float = field(init=False, default=0.0)
    perimeter: float = field(init=False, default=0.0)
    exposed_perimeter: float = field(init=False, default=0.0)
    is_x_symm: bool = field(init=False, default=False)
    is_y_symm: bool = field(init=False, default=False)
    reduction_length: float = field(init=False, default=0.0)
    surface_areas: Dict[SurfaceType, float] = field(init=False, default_factory=dict)
    blocks: List[Block] = field(init=False, default_factory=list)
    mesh_data: Tuple[MeshData, MeshData, MeshData] = field(init=False, default=None)
    model_polygon: np.ndarray = field(init=False, default=None, repr=False)

    # =========================================================================
    # PROPRIETÀ
    # =========================================================================

    @property
    def exposed_flags(self) -> List[bool]:
        if self.is_exposed_perimeter is None:
            return [True] * len(self.polygon)
        return list(self.is_exposed_perimeter)

    @property
    def has_perimeter_surface(self) -> bool:
        return self.perimeter_surface_width > 0.0 and self.number_of_dimensions > 1

    @property
    def is_cylindrical(self) -> bool:
        return self.coordinate_system == CoordinateSystem.CYLINDRICAL

    @property
    def z_slab_top(self) -> float:
        return -self.foundation_depth

    @property
    def z_slab_bottom(self) -> float:
        return self.z_slab_top - self.slab.total_thickness

    @property
    def z_wall_bottom(self) -> float:
        return self.z_slab_bottom - self.wall_depth_below_slab

    @property
    def z_top(self) -> float:
        """Quota superiore del dominio"""
        if self.number_of_dimensions == 1:
            return self.z_slab_top
        return max(self.height_above_grade, 0.0)

    # =========================================================================
    # VALIDAZIONE
    # =========================================================================

    def validate(self):
        """Solleva FoundationError se la configurazione non è coerente"""
        if len(self.polygon) < 3:
            raise FoundationError(f"Il poligono deve avere almeno 3 vertici, trovati {len(self.polygon)}")

        polygon = as_polygon(self.polygon)
        if polygon_area(polygon) < EPSILON:
            raise FoundationError("Il poligono della fondazione ha area nulla")

        if self.number_of_dimensions not in (1, 2, 3):
            raise FoundationError(f"number_of_dimensions deve essere 1, 2 o 3, trovato {self.number_of_dimensions}")

        if self.number_of_dimensions == 3:
            if self.is_cylindrical:
                raise FoundationError("Il sistema cilindrico è ammesso solo per modelli 2D")
            if not is_rectilinear(polygon):
                raise FoundationError("I modelli 3D richiedono un poligono con lati paralleli agli assi")

        if len(self.exposed_flags) != len(self.polygon):
            raise FoundationError(
                f"is_exposed_perimeter ha {len(self.exposed_flags)} valori, "
                f"il poligono ha {len(self.polygon)} lati"
            )

        if self.foundation_depth < 0.0:
            raise FoundationError(f"foundation_depth non può essere negativa: {self.foundation_depth}")
        if self.far_field_width <= 0.0:
            raise FoundationError(f"far_field_width deve essere positiva: {self.far_field_width}")
        if -self.deep_ground_depth >= min(self.z_wall_bottom, self.z_slab_bottom) - EPSILON:
            raise FoundationError(
                f"deep_ground_depth ({self.deep_ground_depth} m) deve superare la profondità "
                f"di solaio e parete ({-min(self.z_wall_bottom, self.z_slab_bottom)} m)"
            )

        materials = [self.soil] + [l.material for l in self.slab.layers] + [l.material for l in self.wall.layers]
        for material in materials:
            try:
                material.validate()
            except ValueError as e:
                raise FoundationError(str(e)) from e
        for layer in self.slab.layers + self.wall.layers:
            if layer.thickness <= 0.0:
                raise FoundationError(f"Spessore di strato non positivo: {layer.thickness}")

    # =========================================================================
    # GEOMETRIA IN PIANTA
    # =========================================================================

    def region(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Region di ciascun punto (array vettorizzato)"""
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        t = self.wall.total_thickness

        if self.number_of_dimensions == 1:
            return np.full(x.shape, Region.INTERIOR, dtype=np.int8)

        if self.number_of_dimensions == 2:
            inside = x < self.reduction_length
        else:
            inside = points_in_polygon(x, y, self.model_polygon)

        dist = self.edge_distance(x, y)
        result = np.full(x.shape, Region.EXTERIOR, dtype=np.int8)
        result[~inside & (dist <= t)] = Region.WALL
        result[inside] = Region.INTERIOR
        return result

    def edge_distance(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Distanza dal bordo della fondazione (L∞ in 3D)"""
        x = np.asarray(x, dtype=float)
        if self.number_of_dimensions == 1:
            return np.full(x.shape, np.inf)
        if self.number_of_dimensions == 2:
            return np.abs(x - self.reduction_length)
        return linf_distance_to_edges(x, y, self.model_polygon)

    def _compute_reduction_length(self) -> float:
        if self.reduction_strategy == ReductionStrategy.CUSTOM:
            if self.reduction_length2 <= 0.0:
                raise FoundationError("reduction_length2 deve essere positiva con la strategia CUSTOM")
            return self.reduction_length2

        # AP (anche BOUNDARY prima della correzione)
        if self.exposed_perimeter <= 0.0:
            raise FoundationError("Nessun lato esposto: impossibile ridurre il modello a 2D")
        if self.is_cylindrical:
            return 2.0 * self.area / self.exposed_perimeter
        return self.area / self.exposed_perimeter

    # =========================================================================
    # COSTRUZIONE DATI DI MESH
    # =========================================================================

    def create_mesh_data(self):
        """
        Calcola geometria derivata, blocchi e MeshData dei tre assi.

        Raises:
            FoundationError: configurazione non valida
        """
        self.validate()

        polygon = as_polygon(self.polygon)
        flags = np.asarray(self.exposed_flags, dtype=bool)
        lengths = edge_lengths(polygon)

        self.area = polygon_area(polygon)
        self.perimeter = polygon_perimeter(polygon)
        self.exposed_perimeter = float(lengths[flags].sum())
        self.is_x_symm, self.is_y_symm = mirror_symmetry(polygon)

        center = 0.5 * (polygon.min(axis=0) + polygon.max(axis=0))
        self.model_polygon = polygon - center

        ndims = self.number_of_dimensions
        if ndims == 2:
            self.reduction_length = self._compute_reduction_length()

        if ndims == 1:
            x_data = MeshData.collapsed()
            y_data = MeshData.collapsed()
        elif ndims == 2:
            x_data = self._slice_mesh_data()
            y_data = MeshData.collapsed()
        else:
            x_data = self._plan_mesh_data(axis=0)
            y_data = self._plan_mesh_data(axis=1)
        z_data = self._vertical_mesh_data()

        self.mesh_data = (x_data, y_data, z_data)
        self.blocks = self._create_blocks()
        self.surface_areas = self._reduced_surface_areas()

    def _interval(self, growth: float, direction: GrowthDirection) -> Interval:
        return Interval(min_cell_dim=self.mesh.min_cell_dim,
                        max_growth_coeff=growth,
                        growth_direction=direction)

    def _slice_mesh_data(self) -> MeshData:
        """Asse x del modello 2D: dal piano di simmetria al campo lontano"""
        x_edge = self.reduction_length
        t = self.wall.total_thickness
        pw = self.perimeter_surface_width
        eps = self.mesh.zero_thickness_width
        x_max = x_edge + t + self.far_field_width

        candidates = [0.0, x_edge, x_max] + [x_edge + b for b in self.wall.layer_boundaries()]
        if 0.0 < pw < x_edge:
            candidates.append(x_edge - pw)
        points = unique_points(candidates, 0.0, x_max)

        # Intervallo di interfaccia subito fuori dal bordo
        n_edge = points.index(min(points, key=lambda p: abs(p - x_edge)))
        zt_segment = None
        if n_edge + 1 < len(points) and points[n_edge + 1] - x_edge > eps + EPSILON:
            points.insert(n_edge + 1, x_edge + eps)
            zt_segment = n_edge

        m = self.mesh
        intervals = []
        for n in range(len(points) - 1):
            if n == zt_segment:
                intervals.append(Interval(min_cell_dim=eps, zero_thickness=True))
            elif n == 0:
                intervals.append(self._interval(m.max_interior_growth_coeff, GrowthDirection.BACKWARD))
            elif n == len(points) - 2:
                intervals.append(self._interval(m.max_exterior_growth_coeff, GrowthDirection.FORWARD))
            else:
                intervals.append(self._interval(m.max_near_growth_coeff, GrowthDirection.CENTERED))
        return MeshData(points=points, intervals=intervals)

    def _plan_mesh_data(self, axis: int) -> MeshData:
        """Asse x o y del modello 3D"""
        coords = self.model_polygon[:, axis]
        t = self.wall.total_thickness
        pw = self.perimeter_surface_width
        half = 0.5 * (coords.max() - coords.min())
        hi = half + t + self.far_field_width

        # Simmetria rispetto all'asse y (x -> -x) dimezza l'asse x e viceversa
        symmetric = self.use_symmetry and (self.is_y_symm if axis == 0 else self.is_x_symm)
        lo = 0.0 if symmetric else -hi

        candidates = [lo, hi] + list(coords)
        for c in coords:
            candidates += [c - b for b in self.wall.layer_boundaries()]
            candidates += [c + b for b in self.wall.layer_boundaries()]
            if pw > 0.0:
                candidates += [c - pw, c + pw]
        points = unique_points(candidates, lo, hi)

        m = self.mesh
        intervals = []
        for n in range(len(points) - 1):
            if n == 0:
                growth = m.max_interior_growth_coeff if symmetric else m.max_exterior_growth_coeff
                intervals.append(self._interval(growth, GrowthDirection.BACKWARD))
            elif n == len(points) - 2:
                intervals.append(self._interval(m.max_exterior_growth_coeff, GrowthDirection.FORWARD))
            else:
                intervals.append(self._interval(m.max_near_growth_coeff, GrowthDirection.CENTERED))
        return MeshData(points=points, intervals=intervals)

    def _vertical_mesh_data(self) -> MeshData:
        """Asse z: dal fondo del dominio alla sommità"""
        z_deep = -self.deep_ground_depth
        z_top = self.z_top
        candidates = [z_deep, z_top, self.z_slab_top]
        candidates += [self.z_slab_top - b for b in self.slab.layer_boundaries()]
        if self.number_of_dimensions > 1:
            candidates += [0.0, self.z_wall_bottom]
        points = unique_points(candidates, z_deep, z_top)

        m = self.mesh
        intervals = []
        for n in range(len(points) - 1):
            if n == 0:
                intervals.append(self._interval(m.max_depth_growth_coeff, GrowthDirection.BACKWARD))
            else:
                intervals.append(self._interval(m.max_near_growth_coeff, GrowthDirection.CENTERED))
        return MeshData(points=points, intervals=intervals)

    def _create_blocks(self) -> List[Block]:
        """Blocchi in ordine di priorità crescente"""
        z_deep = -self.deep_ground_depth
        z_top = self.z_top
        slab_region = Region.INTERIOR if self.number_of_dimensions > 1 else None

        blocks = [Block("soil", BlockType.SOLID, self.soil, z_deep, z_top)]

        z = self.z_slab_top
        for n, layer in enumerate(self.slab.layers):
            blocks.append(Block(f"slab_{n}", BlockType.SOLID, layer.material,
                                z - layer.thickness, z, region=slab_region))
            z -= layer.thickness

        if self.number_of_dimensions == 1:
            return blocks

        inner = 0.0
        for n, layer in enumerate(self.wall.layers):
            outer = inner + layer.thickness
            if z_top > self.z_wall_bottom:
                blocks.append(Block(f"wall_{n}", BlockType.SOLID, layer.material,
                                    self.z_wall_bottom, z_top,
                                    region=Region.WALL, ring=(inner, outer)))
            inner = outer

        if z_top > self.z_slab_top:
            blocks.append(Block("interior_air", BlockType.INTERIOR_AIR, None,
                                self.z_slab_top, z_top, region=Region.INTERIOR))
        if z_top > 0.0:
            blocks.append(Block("exterior_air", BlockType.EXTERIOR_AIR, None,
                                0.0, z_top, region=Region.EXTERIOR))
        return blocks

    def footprint_mask(self, block: Block, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Maschera in pianta di un blocco"""
        x = np.asarray(x, dtype=float)
        if block.region is None:
            return np.ones(x.shape, dtype=bool)
        mask = self.region(x, y) == block.region
        if block.ring is not None:
            dist = self.edge_distance(x, y)
            mask &= (dist > block.ring[0]) & (dist <= block.ring[1])
        return mask

    def _reduced_surface_areas(self) -> Dict[SurfaceType, float]:
        """
        Aree reali (3D) delle superfici, usate per scalare i risultati dei
        modelli 1D/2D. I modelli 3D le ricalcolano dalle celle (Domain).
        """
        A = self.area
        P = self.exposed_perimeter
        pw = self.perimeter_surface_width
        t = self.wall.total_thickness

        perim_area = 0.0
        if self.has_perimeter_surface:
            # Offset interno di un poligono rettilineo: P·w - 4·w²
            perim_area = float(np.clip(P * pw - 4.0 * pw * pw, 0.0, A))

        if self.number_of_dimensions == 1:
            return {SurfaceType.SLAB_CORE: A}

        return {
            SurfaceType.SLAB_CORE: A - perim_area,
            SurfaceType.SLAB_PERIM: perim_area,
            SurfaceType.WALL_INT: P * max(self.z_top - self.z_slab_top, 0.0),
            SurfaceType.WALL_EXT: P * self.z_top,
            SurfaceType.WALL_TOP: P * t,
            SurfaceType.GRADE: P * self.far_field_width,
        }
