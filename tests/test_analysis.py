"""
test_analysis.py - Unit tests per uscite e strato limite

Eseguire con: pytest tests/test_analysis.py -v
"""

import pytest
import warnings
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from groundheat.core.materials import Material
from groundheat.core.foundation import (
    Foundation, FoundationError, MeshConfig, NumericalScheme, ReductionStrategy,
    DeepGroundBoundary, ConvectionCalculationMethod
)
from groundheat.core.surface import SurfaceType
from groundheat.core.boundary_conditions import BoundaryConditions
from groundheat.solver.linear_system import SolverConfig
from groundheat.solver.ground import Ground
from groundheat.analysis.ground_output import GroundOutput, OutputType, ALL_OUTPUTS
from groundheat.analysis.boundary_layer import (
    BoundaryLayer, BoundaryLayerWarning, calculate_boundary_layer, set_new_boundary_geometry,
    table_start_distance
)


def make_foundation(**kwargs):
    params = dict(
        polygon=[(-2.0, -2.0), (-2.0, 2.0), (2.0, 2.0), (2.0, -2.0)],
        soil=Material(name="Terreno di prova", k=1.0, rho=1000.0, cp=1000.0),
        deep_ground_depth=3.0,
        far_field_width=3.0,
        numerical_scheme=NumericalScheme.STEADY_STATE,
        deep_ground_boundary=DeepGroundBoundary.ZERO_FLUX,
        convection_calculation_method=ConvectionCalculationMethod.CONSTANT_COEFFICIENT,
        interior_convective_coefficient=8.0,
        exterior_convective_coefficient=8.0,
        mesh=MeshConfig(min_cell_dim=0.2),
    )
    params.update(kwargs)
    return Foundation(**params)


def chamfer_change(layer, alpha, a, b):
    """Variazione di perimetro di uno smusso su un angolo convesso"""
    half = 0.5 * alpha
    f = layer.get_boundary_distance(1.0 - np.sin(half) / (1.0 + np.cos(half))) / np.sin(half)
    leg = f / np.cos(half)
    leg = min(a, b) if (a < leg or b < leg) else leg
    c = np.sqrt(2.0 * leg * leg * (1.0 - np.cos(alpha)))
    return c - 2.0 * leg


class TestGroundOutput:
    """Test per la tabella delle uscite"""

    def test_missing_value(self):
        output = GroundOutput(output_map={SurfaceType.SLAB_CORE: [OutputType.TEMP]})
        with pytest.raises(KeyError):
            output.get(SurfaceType.SLAB_CORE, OutputType.TEMP)

    def test_set_surface(self):
        """Solo le uscite richieste vengono registrate; lista vuota = tutte"""
        values = {t: float(n) for n, t in enumerate(ALL_OUTPUTS)}
        output = GroundOutput(output_map={SurfaceType.SLAB_CORE: [OutputType.FLUX],
                                          SurfaceType.WALL_INT: []})
        output.set_surface(SurfaceType.SLAB_CORE, values)
        output.set_surface(SurfaceType.WALL_INT, values)

        assert output.get(SurfaceType.SLAB_CORE, OutputType.FLUX) == values[OutputType.FLUX]
        with pytest.raises(KeyError):
            output.get(SurfaceType.SLAB_CORE, OutputType.RATE)
        assert output.get(SurfaceType.WALL_INT, OutputType.EFF_TEMP) == values[OutputType.EFF_TEMP]


class TestSurfaceAverages:
    """Test per le medie superficiali"""

    def _solve(self, output_map, **kwargs):
        ground = Ground(make_foundation(**kwargs), SolverConfig(method="direct"), output_map)
        ground.build_domain()
        ground.calculate(BoundaryConditions(indoor_temp=295.15, outdoor_temp=275.15))
        ground.calculate_surface_averages()
        return ground

    def test_zero_area_fallback(self):
        """Superficie assente: temperatura dell'aria e flusso nullo"""
        ground = self._solve({SurfaceType.SLAB_CORE: list(ALL_OUTPUTS),
                              SurfaceType.SLAB_PERIM: list(ALL_OUTPUTS)})

        assert ground.get_surface_average_value(SurfaceType.SLAB_PERIM, OutputType.TEMP) == 295.15
        assert ground.get_surface_average_value(SurfaceType.SLAB_PERIM, OutputType.FLUX) == 0.0
        assert ground.get_surface_average_value(SurfaceType.SLAB_PERIM, OutputType.RATE) == 0.0
        assert ground.get_surface_average_value(SurfaceType.SLAB_PERIM, OutputType.EFF_TEMP) == \
            pytest.approx(22.0)

    def test_slab_outputs(self):
        """Coerenza tra temperatura, flusso e coefficiente medio"""
        ground = self._solve({SurfaceType.SLAB_CORE: list(ALL_OUTPUTS)})
        value = lambda t: ground.get_surface_average_value(SurfaceType.SLAB_CORE, t)

        assert value(OutputType.FLUX) > 0.0
        assert value(OutputType.TEMP) < 295.15
        assert value(OutputType.CONV) > 8.0     # convezione + radiazione
        assert value(OutputType.FLUX) == pytest.approx(value(OutputType.CONV) * (295.15 - value(OutputType.TEMP)))
        assert value(OutputType.RATE) == pytest.approx(value(OutputType.FLUX) * 16.0)
        assert value(OutputType.EFF_TEMP) == pytest.approx(
            295.15 - value(OutputType.FLUX) / value(OutputType.CONV) - 273.15)

    def test_perimeter_split(self):
        """Fascia perimetrale e zona centrale"""
        ground = self._solve({SurfaceType.SLAB_CORE: [OutputType.FLUX, OutputType.RATE],
                              SurfaceType.SLAB_PERIM: [OutputType.FLUX, OutputType.RATE]},
                             perimeter_surface_width=0.4)
        core = ground.get_surface_average_value(SurfaceType.SLAB_CORE, OutputType.FLUX)
        perim = ground.get_surface_average_value(SurfaceType.SLAB_PERIM, OutputType.FLUX)

        # Il bordo disperde più del centro
        assert perim > core > 0.0
        assert ground.get_surface_area(SurfaceType.SLAB_PERIM) == pytest.approx(16 * 0.4 - 4 * 0.16)


class TestBoundaryLayer:
    """Test per la tabella dello strato limite"""

    def test_lookup(self):
        layer = BoundaryLayer([0.0, 1.0, 2.0], [0.0, 0.6, 1.0])

        assert layer.get_boundary_value(0.5) == pytest.approx(0.3)
        assert layer.get_boundary_value(2.0) == 1.0
        assert layer.get_boundary_value(50.0) == 1.0
        assert layer.get_boundary_distance(0.6) == pytest.approx(1.0)
        assert layer.get_boundary_distance(0.8) == pytest.approx(1.5)

    def test_round_trip(self):
        layer = BoundaryLayer([0.0, 0.3, 1.0, 4.0], [0.0, 0.5, 0.8, 1.0])
        for value in (0.1, 0.5, 0.65, 0.99):
            assert layer.get_boundary_value(layer.get_boundary_distance(value)) == pytest.approx(value)

    def test_out_of_range(self):
        """Interrogazioni fuori dominio: avviso e valore limitato"""
        layer = BoundaryLayer([0.0, 1.0, 2.0], [0.0, 0.6, 1.0])

        with pytest.warns(BoundaryLayerWarning):
            assert layer.get_boundary_value(-1.0) == 0.0
        with pytest.warns(BoundaryLayerWarning):
            assert layer.get_boundary_distance(1.5) == pytest.approx(2.0)
        with pytest.warns(BoundaryLayerWarning):
            assert layer.get_boundary_distance(-0.2) == pytest.approx(0.0)

    def test_invalid_table(self):
        with pytest.raises(ValueError):
            BoundaryLayer([0.0, 2.0, 1.0], [0.0, 0.5, 1.0])
        with pytest.raises(ValueError):
            BoundaryLayer([0.0], [0.0])

    def test_calculated_table(self):
        """Tabella dalla simulazione ausiliaria: monotona, da (0, 0) a 1"""
        foundation = make_foundation()
        layer = calculate_boundary_layer(foundation, SolverConfig(method="direct"))

        assert layer.distances[0] == 0.0
        assert layer.fractions[0] == 0.0
        assert layer.fractions[-1] == pytest.approx(1.0)
        assert np.all(np.diff(layer.distances) > 0.0)
        assert np.all(np.diff(layer.fractions) >= 0.0)
        # La fondazione originale non viene modificata
        assert foundation.far_field_width == 3.0
        assert foundation.mesh_data is None

    def test_table_ignores_deep_ground_boundary(self):
        """La simulazione ausiliaria usa sempre un fondo adiabatico"""
        config = SolverConfig(method="direct")
        adiabatic = calculate_boundary_layer(make_foundation(), config)
        fixed = calculate_boundary_layer(make_foundation(
            deep_ground_boundary=DeepGroundBoundary.CONSTANT_TEMPERATURE,
            deep_ground_temperature=283.15), config)

        assert fixed.distances == pytest.approx(adiabatic.distances)
        assert fixed.fractions == pytest.approx(adiabatic.fractions)

    def test_table_start_distance(self):
        """La tabella parte da A/P del poligono intero, lati interni compresi"""
        partial = make_foundation(is_exposed_perimeter=[True, True, True, False])
        rectangle = make_foundation(polygon=[(0.0, 0.0), (10.0, 0.0), (10.0, 3.0), (0.0, 3.0)])

        assert table_start_distance(partial) == pytest.approx(1.0)
        assert table_start_distance(rectangle) == pytest.approx(30.0 / 26.0)


class TestBoundaryGeometry:
    """Test per la correzione del perimetro"""

    def test_square_chamfers(self):
        """Quattro angoli retti smussati, nessuna inversione a U efficace"""
        layer = BoundaryLayer([0.0, 1.0, 2.0], [0.0, 0.5, 1.0])
        foundation = make_foundation()
        length = set_new_boundary_geometry(foundation, layer)

        perimeter = 16.0 + 4.0 * chamfer_change(layer, 0.5 * np.pi, 4.0, 4.0)
        assert foundation.reduction_strategy == ReductionStrategy.CUSTOM
        assert length == pytest.approx(16.0 / perimeter)
        assert foundation.reduction_length2 == length
        assert length > 1.0

    def test_u_turn(self):
        """Lato corto tra due lati lunghi paralleli"""
        layer = BoundaryLayer([0.0, 2.0, 8.0], [0.0, 0.5, 1.0])
        foundation = make_foundation(polygon=[(0.0, 0.0), (10.0, 0.0), (10.0, 3.0), (0.0, 3.0)])
        length = set_new_boundary_geometry(foundation, layer)

        u_turns = 2 * 2.0 * 10.0 * (1.0 - layer.get_boundary_value(3.0))
        perimeter = 26.0 - u_turns + 4.0 * chamfer_change(layer, 0.5 * np.pi, 10.0, 3.0)
        assert length == pytest.approx(30.0 / perimeter)

    def test_interior_perimeter(self):
        """I lati non esposti non contano nel perimetro"""
        layer = BoundaryLayer([0.0, 1.0, 2.0], [0.0, 0.5, 1.0])
        exposed = make_foundation()
        partial = make_foundation(is_exposed_perimeter=[True, True, True, False])

        assert set_new_boundary_geometry(partial, layer) > set_new_boundary_geometry(exposed, layer)

    def test_invalid(self):
        layer = BoundaryLayer([0.0, 1.0, 2.0], [0.0, 0.5, 1.0])
        with pytest.raises(FoundationError):
            set_new_boundary_geometry(make_foundation(is_exposed_perimeter=[False] * 4), layer)
        with pytest.raises(FoundationError):
            set_new_boundary_geometry(make_foundation(), None)

    def test_non_positive_perimeter_fallback(self):
        """Correzione eccessiva: avviso e lunghezza A/P non corretta"""
        layer = BoundaryLayer([0.0, 100.0], [0.0, 1.0])
        foundation = make_foundation()

        with pytest.warns(BoundaryLayerWarning):
            length = set_new_boundary_geometry(foundation, layer)

        assert length == pytest.approx(16.0 / 16.0)
        assert foundation.reduction_strategy == ReductionStrategy.CUSTOM
        assert foundation.reduction_length2 == length

    def test_boundary_strategy_with_constant_deep_ground(self):
        """BOUNDARY con fondo a temperatura imposta: il dominio si costruisce"""
        foundation = make_foundation(
            reduction_strategy=ReductionStrategy.BOUNDARY,
            deep_ground_boundary=DeepGroundBoundary.CONSTANT_TEMPERATURE,
            deep_ground_temperature=283.15,
        )
        ground = Ground(foundation, SolverConfig(method="direct"))
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", BoundaryLayerWarning)
            ground.build_domain()

        assert ground.foundation.reduction_strategy == ReductionStrategy.CUSTOM
        assert 0.0 < ground.foundation.reduction_length < np.inf

    def test_boundary_strategy(self):
        """La strategia BOUNDARY sostituisce la lunghezza di riduzione A/P"""
        foundation = make_foundation(
            polygon=[(-6.0, -6.0), (-6.0, 6.0), (6.0, 6.0), (6.0, -6.0)],
            reduction_strategy=ReductionStrategy.BOUNDARY,
            deep_ground_boundary=DeepGroundBoundary.CONSTANT_TEMPERATURE,
            deep_ground_temperature=273.15,
        )
        ground = Ground(foundation, SolverConfig(method="direct"))
        ground.build_domain()

        assert ground.boundary_layer is not None
        assert ground.foundation.reduction_strategy == ReductionStrategy.CUSTOM
        assert ground.foundation.reduction_length > 144.0 / 48.0
        assert ground.get_boundary_value(ground.get_boundary_distance(0.5)) == pytest.approx(0.5)


# =============================================================================
# ESECUZIONE
# =============================================================================
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
