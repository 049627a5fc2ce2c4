"""
mesher.py - Generazione della mesh 1D non uniforme

Costruisce lungo un singolo asse la sequenza di divisori (bordi cella),
centri e larghezze a partire da un elenco di punti notevoli (interfacce
tra strati di materiale, bordo della fondazione, limiti del dominio) e
da una regola di infittimento per ciascun intervallo tra due punti.

Invarianti:
- divisori strettamente crescenti
- centri = punti medi dei divisori
- len(centers) == len(dividers) - 1
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List
from enum import Enum


class GrowthDirection(Enum):
    """Direzione di crescita delle celle all'interno di un intervallo"""
    UNIFORM = "uniform"      # Celle tutte uguali
    FORWARD = "forward"      # Fini all'inizio, crescono verso la fine
    BACKWARD = "backward"    # Fini alla fine, crescono verso l'inizio
    CENTERED = "centered"    # Fini a entrambi gli estremi, grosse al centro


@dataclass
class Interval:
    """Regola di discretizzazione di un intervallo tra due punti"""
    min_cell_dim: float = 0.02          # Dimensione minima cella [m]
    max_growth_coeff: float = 1.5       # Rapporto massimo tra celle adiacenti
    growth_direction: GrowthDirection = GrowthDirection.UNIFORM
    zero_thickness: bool = False        # Intervallo di interfaccia (cella senza massa)


@dataclass
class MeshData:
    """
    Descrizione di un asse: punti ordinati e un Interval per ogni
    coppia di punti consecutivi.
    """
    points: List[float] = field(default_factory=lambda: [0.0, 1.0])
    intervals: List[Interval] = field(default_factory=lambda: [Interval(min_cell_dim=1.0)])

    @classmethod
    def collapsed(cls, width: float = 1.0) -> "MeshData":
        """Asse non usato (problemi 1D/2D): una sola cella di larghezza unitaria"""
        return cls(points=[0.0, width], intervals=[Interval(min_cell_dim=width)])


def _geometric_widths(length: float, d0: float, growth: float) -> np.ndarray:
    """Larghezze in progressione geometrica d0, d0*g, d0*g^2, ... che coprono length"""
    n = int(np.ceil(np.log(1.0 + length * (growth - 1.0) / d0) / np.log(growth) - 1e-9))
    n = max(1, n)
    widths = d0 * growth ** np.arange(n)
    return widths * (length / widths.sum())


def _uniform_widths(length: float, d0: float) -> np.ndarray:
    n = max(1, int(np.ceil(length / d0 - 1e-9)))
    return np.full(n, length / n)


def interval_widths(length: float, interval: Interval) -> np.ndarray:
    """
    Larghezze delle celle di un intervallo.

    Args:
        length: Lunghezza dell'intervallo [m]
        interval: Regola di discretizzazione

    Returns:
        Array delle larghezze (somma == length)
    """
    d0 = interval.min_cell_dim
    g = interval.max_growth_coeff
    direction = interval.growth_direction

    if interval.zero_thickness:
        return np.array([length])

    if direction == GrowthDirection.UNIFORM or g <= 1.0 or length <= d0:
        return _uniform_widths(length, d0)

    if direction == GrowthDirection.FORWARD:
        return _geometric_widths(length, d0, g)
    if direction == GrowthDirection.BACKWARD:
        return _geometric_widths(length, d0, g)[::-1]

    # CENTERED: due metà speculari
    if length <= 2.0 * d0:
        return _uniform_widths(length, d0)
    half = _geometric_widths(0.5 * length, d0, g)
    return np.concatenate([half, half[::-1]])


class Mesher:
    """
    Mesh 1D non uniforme.

    Attributes:
        dividers: Bordi delle celle [m], len = n + 1
        centers: Centri delle celle [m], len = n
        deltas: Larghezze delle celle [m], len = n
        zero_thickness: True per le celle di interfaccia
    """

    def __init__(self, data: MeshData):
        points = np.asarray(data.points, dtype=float)

        if len(points) < 2:
            raise ValueError(f"Servono almeno 2 punti per la mesh, ricevuti {len(points)}")
        if len(data.intervals) != len(points) - 1:
            raise ValueError(
                f"Numero di intervalli ({len(data.intervals)}) diverso da "
                f"numero di punti - 1 ({len(points) - 1})"
            )
        if np.any(np.diff(points) <= 0.0):
            raise ValueError(f"I punti della mesh devono essere strettamente crescenti: {points}")

        dividers = [points[:1]]
        flags = []
        for n, interval in enumerate(data.intervals):
            if interval.min_cell_dim <= 0.0:
                raise ValueError(f"min_cell_dim deve essere positivo (intervallo {n})")
            widths = interval_widths(points[n + 1] - points[n], interval)
            local = points[n] + np.cumsum(widths)
            local[-1] = points[n + 1]   # estremo esatto, niente accumulo di errori
            dividers.append(local)
            flags.append(np.full(len(widths), interval.zero_thickness))

        self.dividers = np.concatenate(dividers)
        self.deltas = np.diff(self.dividers)
        self.centers = 0.5 * (self.dividers[:-1] + self.dividers[1:])
        self.zero_thickness = np.concatenate(flags)

    @property
    def n(self) -> int:
        """Numero di celle"""
        return len(self.centers)

    def get_nearest_index(self, position: float) -> int:
        """Indice della cella con il centro più vicino a position"""
        return int(np.argmin(np.abs(self.centers - position)))

    def __repr__(self) -> str:
        return (f"Mesher(n={self.n}, range=[{self.dividers[0]:.3f}, {self.dividers[-1]:.3f}], "
                f"min_delta={self.deltas.min():.2e})")
