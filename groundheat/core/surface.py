"""
surface.py - Superfici di contorno del dominio

Una Surface è una regione di contorno con nome (solaio, parete, piano
campagna, ...) composta da facce di celle con la stessa orientazione.
La superficie non possiede le celle: contiene solo i loro indici.
"""

import numpy as np
from dataclasses import dataclass, field
from enum import Enum, IntEnum


class SurfaceType(Enum):
    """Tipi di superficie"""
    SLAB_CORE = "slab_core"         # Pavimento, zona centrale
    SLAB_PERIM = "slab_perim"       # Pavimento, fascia perimetrale
    WALL_INT = "wall_int"           # Parete, lato interno
    WALL_EXT = "wall_ext"           # Parete, lato esterno fuori terra
    WALL_TOP = "wall_top"           # Testa della parete
    GRADE = "grade"                 # Piano campagna
    SYMMETRY = "symmetry"           # Piano di simmetria
    FAR_FIELD = "far_field"         # Bordo laterale lontano
    DEEP_GROUND = "deep_ground"     # Fondo del dominio


class Orientation(IntEnum):
    """
    Orientazione della normale uscente.

    Il valore coincide con la colonna dei vettori di vicinato:
    asse = valore // 2, verso = -1 se pari, +1 se dispari.
    """
    X_NEG = 0
    X_POS = 1
    Y_NEG = 2
    Y_POS = 3
    Z_NEG = 4
    Z_POS = 5

    @property
    def axis(self) -> int:
        return self.value // 2

    @property
    def sign(self) -> int:
        return 1 if self.value % 2 else -1

    @property
    def opposite(self) -> "Orientation":
        return Orientation(self.value ^ 1)

    @property
    def tilt(self) -> float:
        """Inclinazione della superficie [rad]: 0 verso l'alto, π verso il basso"""
        if self == Orientation.Z_POS:
            return 0.0
        if self == Orientation.Z_NEG:
            return np.pi
        return 0.5 * np.pi


class BoundaryKind(Enum):
    """Tipo di condizione al contorno"""
    CONVECTION = "convection"                       # Robin verso l'aria
    ZERO_FLUX = "zero_flux"                         # Adiabatica / simmetria
    CONSTANT_TEMPERATURE = "constant_temperature"   # Dirichlet


# Superfici esposte all'aria interna / esterna
INTERIOR_SURFACES = (SurfaceType.SLAB_CORE, SurfaceType.SLAB_PERIM, SurfaceType.WALL_INT)
EXTERIOR_SURFACES = (SurfaceType.GRADE, SurfaceType.WALL_EXT)


@dataclass
class Surface:
    """Regione di contorno con nome"""
    surface_type: SurfaceType
    orientation: Orientation
    boundary_kind: BoundaryKind
    absorptivity: float = 0.0
    emissivity: float = 0.0
    temperature: float = 283.15                     # Solo per CONSTANT_TEMPERATURE [K]
    indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    area: float = 0.0                               # Area nel modello [m²]

    @property
    def tilt(self) -> float:
        return self.orientation.tilt

    @property
    def is_interior(self) -> bool:
        return self.surface_type in INTERIOR_SURFACES

    def __repr__(self) -> str:
        return (f"Surface({self.surface_type.name}, {self.orientation.name}, "
                f"{self.boundary_kind.name}, celle={len(self.indices)}, area={self.area:.3f} m²)")
