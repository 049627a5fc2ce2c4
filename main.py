"""
main.py - Script principale: caso di confronto BESTEST (GC10a)

Esempio di workflow completo:
1. Definisce la fondazione (solaio 12 x 12 m sul terreno)
2. Costruisce il dominio
3. Risolve il caso stazionario
4. Riporta le uscite della superficie del solaio
"""

import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from groundheat.core.materials import Material, Layer, Construction
from groundheat.core.foundation import (
    Foundation, NumericalScheme, ReductionStrategy, DeepGroundBoundary,
    ConvectionCalculationMethod
)
from groundheat.core.surface import SurfaceType
from groundheat.core.boundary_conditions import BoundaryConditions
from groundheat.solver.linear_system import SolverConfig
from groundheat.solver.instance import Instance
from groundheat.analysis.ground_output import OutputType


def create_bestest_foundation(number_of_dimensions: int = 2) -> Foundation:
    """Solaio a contatto con il terreno, superfici a temperatura quasi imposta"""
    soil = Material(name="Terreno BESTEST", k=1.9, rho=1490.0, cp=1800.0)

    return Foundation(
        polygon=[(-6.0, -6.0), (-6.0, 6.0), (6.0, 6.0), (6.0, -6.0)],
        soil=soil,
        wall=Construction(layers=[Layer(material=soil, thickness=0.24)]),
        deep_ground_depth=15.0,
        far_field_width=15.0,
        deep_ground_boundary=DeepGroundBoundary.CONSTANT_TEMPERATURE,
        deep_ground_temperature=283.15,
        number_of_dimensions=number_of_dimensions,
        numerical_scheme=NumericalScheme.STEADY_STATE,
        reduction_strategy=ReductionStrategy.AP,
        convection_calculation_method=ConvectionCalculationMethod.CONSTANT_COEFFICIENT,
        interior_convective_coefficient=99999.0,
        exterior_convective_coefficient=99999.0,
        soil_absorptivity=0.0,
        soil_emissivity=0.0,
        slab_absorptivity=0.0,
        slab_emissivity=0.0,
        wall_interior_emissivity=0.0,
        wall_exterior_absorptivity=0.0,
        wall_exterior_emissivity=0.0,
    )


def run_simulation():
    """Esegue il caso stazionario e stampa i risultati"""

    print("=" * 70)
    print("GROUND HEAT TRANSFER - BESTEST GC10a")
    print("=" * 70)

    # =========================================================================
    # 1. CONFIGURAZIONE
    # =========================================================================
    print("\n[1/3] Configurazione...")

    foundation = create_bestest_foundation()
    config = SolverConfig(
        method="bicgstab",
        tolerance=1e-10,
        max_iterations=10000,
        preconditioner="ilu",
        verbose=True
    )
    bcs = BoundaryConditions(outdoor_temp=283.15, indoor_temp=303.15)
    print(f"  Dimensioni modello: {foundation.number_of_dimensions}D")
    print(f"  Schema: {foundation.numerical_scheme.name}")

    # =========================================================================
    # 2. DOMINIO
    # =========================================================================
    print("\n[2/3] Costruzione dominio...")

    t_start = time.time()
    instance = Instance(foundation, config)
    print(f"  {instance.ground.domain!r}")
    print(f"  Tempo setup: {time.time() - t_start:.2f} s")

    # =========================================================================
    # 3. SOLUZIONE
    # =========================================================================
    print("\n[3/3] Soluzione stazionaria...")

    instance.calculate(bcs)

    rate = instance.get_value(SurfaceType.SLAB_CORE, OutputType.RATE)
    flux = instance.get_value(SurfaceType.SLAB_CORE, OutputType.FLUX)
    temp = instance.get_value(SurfaceType.SLAB_CORE, OutputType.TEMP)

    # =========================================================================
    # SOMMARIO
    # =========================================================================
    print("\n" + "=" * 70)
    print("SOMMARIO")
    print("=" * 70)
    print(f"  Potenza dal solaio: {rate:.1f} W")
    print(f"  Flusso medio: {flux:.3f} W/m²")
    print(f"  Temperatura superficiale media: {temp - 273.15:.2f} °C")
    print(f"  Tempo totale: {time.time() - t_start:.2f} s")

    return instance


if __name__ == "__main__":
    run_simulation()
