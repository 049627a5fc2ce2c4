"""
test_core.py - Unit tests per i moduli core

Eseguire con: pytest tests/test_core.py -v
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Aggiungi la radice del progetto al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from groundheat.core.mesher import Mesher, MeshData, Interval, GrowthDirection, interval_widths
from groundheat.core.geometry import (
    as_polygon, polygon_area, polygon_perimeter, get_angle, is_convex_vertex,
    is_rectilinear, points_in_polygon, linf_distance_to_edges, mirror_symmetry
)
from groundheat.core.materials import Material, Layer, Construction, MaterialManager, MaterialType
from groundheat.core.foundation import (
    Foundation, FoundationError, MeshConfig, NumericalScheme, CoordinateSystem,
    ReductionStrategy, DeepGroundBoundary
)
from groundheat.core.surface import SurfaceType, Orientation, BoundaryKind
from groundheat.core.cell import CellType
from groundheat.core.domain import Domain


def make_foundation(ndims=2, **kwargs):
    """Fondazione 4 x 4 m su un dominio piccolo"""
    params = dict(
        polygon=[(-2.0, -2.0), (-2.0, 2.0), (2.0, 2.0), (2.0, -2.0)],
        soil=Material(name="Terreno di prova", k=1.0, rho=1000.0, cp=1000.0),
        deep_ground_depth=3.0,
        far_field_width=3.0,
        number_of_dimensions=ndims,
        deep_ground_boundary=DeepGroundBoundary.CONSTANT_TEMPERATURE,
        mesh=MeshConfig(min_cell_dim=0.2),
    )
    params.update(kwargs)
    return Foundation(**params)


class TestMesher:
    """Test per la mesh 1D"""

    def test_uniform(self):
        """Intervallo uniforme"""
        mesher = Mesher(MeshData(points=[0.0, 1.0], intervals=[Interval(min_cell_dim=0.1)]))

        assert mesher.n == 10
        assert np.allclose(mesher.deltas, 0.1)
        assert mesher.centers[0] == pytest.approx(0.05)

    def test_invariants(self):
        """Divisori crescenti e centri nei punti medi"""
        data = MeshData(
            points=[-5.0, -1.0, 0.0, 3.0],
            intervals=[
                Interval(0.05, 1.4, GrowthDirection.BACKWARD),
                Interval(0.05, 1.4, GrowthDirection.CENTERED),
                Interval(0.05, 1.4, GrowthDirection.FORWARD),
            ]
        )
        mesher = Mesher(data)

        assert np.all(np.diff(mesher.dividers) > 0.0)
        assert len(mesher.centers) == len(mesher.dividers) - 1
        assert np.allclose(mesher.centers, 0.5 * (mesher.dividers[:-1] + mesher.dividers[1:]))
        for p in data.points:
            assert np.min(np.abs(mesher.dividers - p)) < 1e-12

    def test_growth(self):
        """Crescita geometrica limitata dal coefficiente"""
        widths = interval_widths(10.0, Interval(0.02, 1.5, GrowthDirection.FORWARD))

        assert widths.sum() == pytest.approx(10.0)
        assert widths[0] <= 0.02 + 1e-12
        assert np.all(widths[1:] / widths[:-1] <= 1.5 + 1e-9)

        backward = interval_widths(10.0, Interval(0.02, 1.5, GrowthDirection.BACKWARD))
        assert backward[-1] == pytest.approx(widths[0])

    def test_zero_thickness(self):
        """Intervallo di interfaccia: una sola cella"""
        data = MeshData(points=[0.0, 1.0, 1.0 + 1e-5, 2.0],
                        intervals=[Interval(0.5), Interval(1e-5, zero_thickness=True), Interval(0.5)])
        mesher = Mesher(data)

        assert mesher.zero_thickness.sum() == 1
        assert mesher.deltas[mesher.zero_thickness][0] == pytest.approx(1e-5)

    def test_validation(self):
        """Punti non crescenti o intervalli incoerenti"""
        with pytest.raises(ValueError):
            Mesher(MeshData(points=[0.0, 0.0], intervals=[Interval()]))
        with pytest.raises(ValueError):
            Mesher(MeshData(points=[0.0, 1.0, 2.0], intervals=[Interval()]))
        with pytest.raises(ValueError):
            Mesher(MeshData(points=[0.0, 1.0], intervals=[Interval(min_cell_dim=0.0)]))

    def test_nearest_index(self):
        mesher = Mesher(MeshData(points=[0.0, 1.0], intervals=[Interval(min_cell_dim=0.1)]))
        assert mesher.get_nearest_index(0.52) == 5
        assert mesher.get_nearest_index(-3.0) == 0


class TestGeometry:
    """Test per le funzioni sul poligono"""

    def test_area_perimeter(self):
        square = as_polygon([(0, 0), (4, 0), (4, 4), (0, 4)])
        assert polygon_area(square) == pytest.approx(16.0)
        assert polygon_perimeter(square) == pytest.approx(16.0)
        # Orientamento opposto
        assert polygon_area(square[::-1]) == pytest.approx(16.0)

    def test_angles_and_convexity(self):
        """Vertice concavo di un poligono a L"""
        l_shape = as_polygon([(0, 0), (4, 0), (4, 2), (2, 2), (2, 4), (0, 4)])

        assert get_angle((1, 0), (0, 0), (0, 1)) == pytest.approx(0.5 * np.pi)
        convex = [is_convex_vertex(l_shape, v) for v in range(len(l_shape))]
        assert convex == [True, True, True, False, True, True]
        # Indipendente dall'orientamento
        reversed_l = l_shape[::-1]
        assert sum(is_convex_vertex(reversed_l, v) for v in range(6)) == 5
        assert is_rectilinear(l_shape)
        assert not is_rectilinear(as_polygon([(0, 0), (4, 0), (2, 3)]))

    def test_points_in_polygon(self):
        l_shape = as_polygon([(0, 0), (4, 0), (4, 2), (2, 2), (2, 4), (0, 4)])
        x = np.array([1.0, 3.0, 3.0, 5.0])
        y = np.array([1.0, 1.0, 3.0, 1.0])

        assert list(points_in_polygon(x, y, l_shape)) == [True, True, False, False]

    def test_linf_distance(self):
        square = as_polygon([(-1, -1), (1, -1), (1, 1), (-1, 1)])
        dist = linf_distance_to_edges(np.array([0.0, 1.5, 2.0]), np.array([0.0, 0.0, 2.0]), square)
        assert dist == pytest.approx([1.0, 0.5, 1.0])

    def test_symmetry(self):
        rect = as_polygon([(0, 0), (6, 0), (6, 2), (0, 2)])
        l_shape = as_polygon([(0, 0), (4, 0), (4, 2), (2, 2), (2, 4), (0, 4)])
        assert mirror_symmetry(rect) == (True, True)
        assert mirror_symmetry(l_shape) == (False, False)


class TestMaterials:
    """Test per materiali e costruzioni"""

    def test_construction_resistance(self):
        concrete = Material(name="cls", k=2.0, rho=2000.0, cp=900.0)
        xps = Material(name="xps", k=0.03, rho=30.0, cp=1400.0)
        construction = Construction(layers=[Layer(concrete, 0.1), Layer(xps, 0.06)])

        assert construction.total_thickness == pytest.approx(0.16)
        assert construction.total_resistance == pytest.approx(0.05 + 2.0)
        assert construction.layer_boundaries() == pytest.approx([0.1, 0.16])

    def test_manager(self):
        manager = MaterialManager()

        assert "bestest_soil" in manager.list_materials(MaterialType.SOIL)
        assert manager.get("bestest_soil").k == pytest.approx(1.9)
        with pytest.raises(KeyError):
            manager.get("unobtainium")

        slab = manager.create_construction([("concrete", 0.10), ("xps", 0.05)])
        assert len(slab.layers) == 2

    def test_invalid_material(self):
        with pytest.raises(ValueError):
            Material(name="vuoto", k=0.0, rho=1.0, cp=1.0).validate()


class TestFoundation:
    """Test per validazione e dati derivati della fondazione"""

    def test_reduction_length(self):
        """A/P, 2A/P in cilindrico, perimetro parzialmente esposto"""
        f = make_foundation()
        f.create_mesh_data()
        assert f.reduction_length == pytest.approx(1.0)

        f = make_foundation(coordinate_system=CoordinateSystem.CYLINDRICAL)
        f.create_mesh_data()
        assert f.reduction_length == pytest.approx(2.0)

        f = make_foundation(is_exposed_perimeter=[True, False, True, False])
        f.create_mesh_data()
        assert f.exposed_perimeter == pytest.approx(8.0)
        assert f.reduction_length == pytest.approx(2.0)

    def test_custom_reduction(self):
        f = make_foundation(reduction_strategy=ReductionStrategy.CUSTOM, reduction_length2=1.7)
        f.create_mesh_data()
        assert f.reduction_length == pytest.approx(1.7)

        f = make_foundation(reduction_strategy=ReductionStrategy.CUSTOM)
        with pytest.raises(FoundationError):
            f.create_mesh_data()

    def test_invalid_configurations(self):
        """Configurazioni rifiutate"""
        bad = [
            make_foundation(polygon=[(0, 0), (1, 0)]),
            make_foundation(ndims=3, polygon=[(0, 0), (4, 0), (2, 3)]),
            make_foundation(ndims=3, coordinate_system=CoordinateSystem.CYLINDRICAL),
            make_foundation(ndims=4),
            make_foundation(is_exposed_perimeter=[True, True]),
            make_foundation(foundation_depth=-1.0),
            make_foundation(far_field_width=0.0),
            make_foundation(deep_ground_depth=0.0),
            make_foundation(soil=Material(name="vuoto", k=-1.0, rho=1.0, cp=1.0)),
        ]
        for f in bad:
            with pytest.raises(FoundationError):
                f.create_mesh_data()

    def test_no_exposed_perimeter(self):
        f = make_foundation(is_exposed_perimeter=[False] * 4)
        with pytest.raises(FoundationError):
            f.create_mesh_data()

    def test_surface_areas_2d(self):
        f = make_foundation(perimeter_surface_width=0.5)
        f.create_mesh_data()
        areas = f.surface_areas

        assert areas[SurfaceType.SLAB_PERIM] == pytest.approx(16 * 0.5 - 4 * 0.25)
        assert areas[SurfaceType.SLAB_CORE] + areas[SurfaceType.SLAB_PERIM] == pytest.approx(16.0)


class TestDomain:
    """Test per celle, vicinato e superfici"""

    def test_neighbor_symmetry(self):
        """Se q è vicino di p in direzione d, p è vicino di q in direzione opposta"""
        domain = Domain(make_foundation())
        nb = domain.neighbors

        for d in range(6):
            p = np.flatnonzero(nb[:, d] >= 0)
            assert np.all(nb[nb[p, d], d ^ 1] == p)

    def test_coupling_symmetry(self):
        """Accoppiamenti e conduttanze simmetrici, anche attraverso le interfacce"""
        domain = Domain(make_foundation(foundation_depth=0.5, wall=Construction(layers=[
            Layer(Material(name="cls", k=2.0, rho=2000.0, cp=900.0), 0.2)
        ])))

        for d in range(6):
            p = np.flatnonzero(domain.coupling[:, d] >= 0)
            f = domain.coupling[p, d]
            assert np.all(domain.coupling[f, d ^ 1] == p)
            assert np.allclose(domain.conductance[f, d ^ 1], domain.conductance[p, d])
            assert np.all(domain.conductance[p, d] > 0.0)

    def test_zero_thickness_cells(self):
        """Le celle di interfaccia del modello 2D non sono attive"""
        domain = Domain(make_foundation())
        zt = domain.cells_of_type(CellType.ZERO_THICKNESS)

        assert len(zt) == domain.nz
        assert not np.any(np.isin(zt, domain.active))
        assert domain.mesh_x.deltas[domain.ii[zt]] == pytest.approx(np.full(len(zt), 1e-5))

    def test_surfaces_2d(self):
        domain = Domain(make_foundation())
        types = {s.surface_type for s in domain.surfaces}

        assert {SurfaceType.SLAB_CORE, SurfaceType.GRADE, SurfaceType.DEEP_GROUND,
                SurfaceType.SYMMETRY, SurfaceType.FAR_FIELD} <= types
        for surface in domain.get_surfaces(SurfaceType.DEEP_GROUND):
            assert surface.orientation == Orientation.Z_NEG
            assert surface.boundary_kind == BoundaryKind.CONSTANT_TEMPERATURE
        for surface in domain.get_surfaces(SurfaceType.SYMMETRY):
            assert surface.boundary_kind == BoundaryKind.ZERO_FLUX

        # Piano di campagna e solaio coprono tutta la sommità
        top = sum(s.area for s in domain.surfaces if s.orientation == Orientation.Z_POS)
        assert top == pytest.approx(domain.mesh_x.dividers[-1], abs=1e-4)

    def test_boundary_cells(self):
        """Le celle con almeno una faccia di contorno sono BOUNDARY"""
        domain = Domain(make_foundation())
        has_face = np.any(domain.face_surface >= 0, axis=1)

        assert np.all(domain.cell_type[has_face] == CellType.BOUNDARY)
        normal = domain.cells_of_type(CellType.NORMAL)
        assert not np.any(has_face[normal])

    def test_one_dimensional(self):
        domain = Domain(make_foundation(ndims=1))

        assert domain.nx == domain.ny == 1
        assert domain.n_active == domain.nz
        assert {s.orientation for s in domain.surfaces} == {Orientation.Z_NEG, Orientation.Z_POS}
        assert domain.get_surfaces(SurfaceType.SLAB_CORE)[0].area == pytest.approx(1.0)

    def test_three_dimensional_areas(self):
        """Aree reali ricostruite dal quarto di modello simmetrico"""
        f = make_foundation(ndims=3)
        domain = Domain(f)

        assert domain.symmetry_multiplier == pytest.approx(4.0)
        assert domain.mesh_x.dividers[0] == pytest.approx(0.0)
        assert f.surface_areas[SurfaceType.SLAB_CORE] == pytest.approx(16.0)

    def test_cylindrical_volume(self):
        """Volumi cilindrici: la somma è il volume del cilindro"""
        f = make_foundation(coordinate_system=CoordinateSystem.CYLINDRICAL)
        domain = Domain(f)
        r = domain.mesh_x.dividers[-1]
        depth = f.deep_ground_depth

        assert domain.volume.sum() == pytest.approx(np.pi * r * r * depth)

    def test_get_cell(self):
        domain = Domain(make_foundation())
        cell = domain.get_cell(domain.cell_index(1, 0, 2))

        assert (cell.i, cell.j, cell.k) == (1, 0, 2)
        assert cell.conductivity == pytest.approx(1.0)
        with pytest.raises(IndexError):
            domain.get_cell(domain.n_cells)

    def test_scheme_enum(self):
        assert NumericalScheme("adi") == NumericalScheme.ADI


# =============================================================================
# ESECUZIONE
# =============================================================================
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
