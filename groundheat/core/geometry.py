"""
geometry.py - Funzioni geometriche sul poligono della fondazione

Gestisce:
- Area, perimetro, distanze e angoli tra vertici
- Test punto-in-poligono vettorizzato (ray casting)
- Distanza L∞ dai lati di un poligono rettilineo (offset a spigolo vivo)
- Rilevamento simmetrie speculari
"""

import numpy as np
from typing import List, Tuple, Sequence

Point = Tuple[float, float]

EPSILON = 1e-6  # Tolleranza geometrica [m]


def as_polygon(points: Sequence[Point]) -> np.ndarray:
    """Converte una lista di vertici in array (n, 2)"""
    return np.asarray(points, dtype=float).reshape(-1, 2)


def signed_area(polygon: np.ndarray) -> float:
    """Area con segno (formula di Gauss): positiva se antioraria"""
    x, y = polygon[:, 0], polygon[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def polygon_area(polygon: np.ndarray) -> float:
    """Area del poligono [m²]"""
    return abs(signed_area(polygon))


def edge_lengths(polygon: np.ndarray) -> np.ndarray:
    """Lunghezza dei lati: lato v va dal vertice v al vertice v+1"""
    return np.linalg.norm(np.roll(polygon, -1, axis=0) - polygon, axis=1)


def polygon_perimeter(polygon: np.ndarray) -> float:
    """Perimetro del poligono [m]"""
    return float(edge_lengths(polygon).sum())


def get_distance(a: Point, b: Point) -> float:
    return float(np.hypot(b[0] - a[0], b[1] - a[1]))


def get_angle(a: Point, b: Point, c: Point) -> float:
    """Angolo (senza segno, in [0, π]) in b tra i segmenti ba e bc"""
    ab = get_distance(a, b)
    bc = get_distance(b, c)
    ac = get_distance(a, c)
    cos_angle = (bc * bc + ab * ab - ac * ac) / (2.0 * bc * ab)
    return float(np.arccos(np.clip(cos_angle, -1.0, 1.0)))


def is_equal(a: float, b: float, tol: float = EPSILON) -> bool:
    return abs(a - b) < tol


def is_convex_vertex(polygon: np.ndarray, v: int) -> bool:
    """True se il vertice v è convesso (rispetto all'orientamento del poligono)"""
    n = len(polygon)
    a, b, c = polygon[(v - 1) % n], polygon[v], polygon[(v + 1) % n]
    cross = (b[0] - a[0]) * (c[1] - b[1]) - (b[1] - a[1]) * (c[0] - b[0])
    return cross * np.sign(signed_area(polygon)) > 0.0


def is_rectilinear(polygon: np.ndarray) -> bool:
    """True se tutti i lati sono paralleli agli assi"""
    d = np.roll(polygon, -1, axis=0) - polygon
    return bool(np.all((np.abs(d[:, 0]) < EPSILON) | (np.abs(d[:, 1]) < EPSILON)))


def points_in_polygon(x: np.ndarray, y: np.ndarray, polygon: np.ndarray) -> np.ndarray:
    """
    Test punto-in-poligono vettorizzato (ray casting lungo +x).

    Args:
        x, y: Coordinate dei punti (array della stessa forma)
        polygon: Vertici (n, 2)

    Returns:
        Array booleano della stessa forma di x
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    inside = np.zeros(x.shape, dtype=bool)
    n = len(polygon)
    for v in range(n):
        x1, y1 = polygon[v]
        x2, y2 = polygon[(v + 1) % n]
        crosses = (y1 > y) != (y2 > y)
        if not np.any(crosses):
            continue
        with np.errstate(divide="ignore", invalid="ignore"):
            x_int = x1 + (y - y1) * (x2 - x1) / (y2 - y1)
        inside ^= crosses & (x < x_int)
    return inside


def linf_distance_to_edges(x: np.ndarray, y: np.ndarray, polygon: np.ndarray) -> np.ndarray:
    """
    Distanza L∞ (Chebyshev) dal contorno di un poligono rettilineo.

    L'insieme dei punti a distanza <= t coincide con l'offset a spigolo
    vivo del poligono, cioè la sagoma di una parete di spessore t.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    dist = np.full(x.shape, np.inf)
    n = len(polygon)
    for v in range(n):
        x1, y1 = polygon[v]
        x2, y2 = polygon[(v + 1) % n]
        lo_x, hi_x = min(x1, x2), max(x1, x2)
        lo_y, hi_y = min(y1, y2), max(y1, y2)
        dx = np.maximum(0.0, np.maximum(lo_x - x, x - hi_x))
        dy = np.maximum(0.0, np.maximum(lo_y - y, y - hi_y))
        dist = np.minimum(dist, np.maximum(dx, dy))
    return dist


def mirror_symmetry(polygon: np.ndarray) -> Tuple[bool, bool]:
    """
    Simmetrie speculari del poligono rispetto agli assi del suo bounding box.

    Returns:
        (is_x_symm, is_y_symm): simmetria rispetto all'asse x (y -> -y)
        e rispetto all'asse y (x -> -x), con il poligono centrato.
    """
    center = 0.5 * (polygon.min(axis=0) + polygon.max(axis=0))
    centered = polygon - center

    def same_vertex_set(other: np.ndarray) -> bool:
        a = np.round(centered / EPSILON).astype(np.int64)
        b = np.round(other / EPSILON).astype(np.int64)
        return set(map(tuple, a)) == set(map(tuple, b))

    is_x_symm = same_vertex_set(centered * np.array([1.0, -1.0]))
    is_y_symm = same_vertex_set(centered * np.array([-1.0, 1.0]))
    return is_x_symm, is_y_symm


def unique_points(values: List[float], lo: float, hi: float, tol: float = EPSILON) -> List[float]:
    """Ordina, filtra in [lo, hi] e fonde i punti più vicini di tol"""
    result: List[float] = []
    for value in sorted(v for v in values if lo - tol <= v <= hi + tol):
        value = min(max(value, lo), hi)
        if not result or value - result[-1] > tol:
            result.append(value)
    return result
