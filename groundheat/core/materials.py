"""
materials.py - Materiali, strati e costruzioni della fondazione

Fornisce:
- Proprietà termiche dei materiali (terreno, strutturali, isolanti)
- Strati e costruzioni (solaio, parete) con resistenza termica totale
- Un piccolo database di materiali tipici
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Optional
from enum import Enum


class MaterialType(Enum):
    """Categorie di materiali"""
    SOIL = "soil"
    STRUCTURAL = "structural"
    INSULATION = "insulation"


@dataclass
class Material:
    """Proprietà termiche di un materiale omogeneo"""
    name: str
    k: float                    # Conducibilità termica [W/(m·K)]
    rho: float                  # Densità [kg/m³]
    cp: float                   # Calore specifico [J/(kg·K)]

    @property
    def alpha(self) -> float:
        """Diffusività termica [m²/s]"""
        return self.k / (self.rho * self.cp)

    @property
    def volumetric_heat_capacity(self) -> float:
        """Capacità termica volumetrica [J/(m³·K)]"""
        return self.rho * self.cp

    def validate(self):
        """Solleva ValueError se una proprietà non è positiva"""
        for attr in ("k", "rho", "cp"):
            value = getattr(self, attr)
            if value <= 0.0:
                raise ValueError(f"Materiale '{self.name}': {attr} deve essere positivo, trovato {value}")


@dataclass
class Layer:
    """Strato di una costruzione"""
    material: Material
    thickness: float            # Spessore [m]

    @property
    def resistance(self) -> float:
        """Resistenza termica [m²·K/W]"""
        return self.thickness / self.material.k


@dataclass
class Construction:
    """
    Costruzione multistrato (solaio o parete).

    Gli strati sono ordinati dall'interno verso l'esterno: per il solaio
    dall'alto verso il basso, per la parete dal lato interno verso il terreno.
    """
    layers: List[Layer] = field(default_factory=list)

    @property
    def total_thickness(self) -> float:
        return sum(layer.thickness for layer in self.layers)

    @property
    def total_resistance(self) -> float:
        """Resistenza termica totale [m²·K/W]"""
        return sum(layer.resistance for layer in self.layers)

    def layer_boundaries(self) -> List[float]:
        """Spessori cumulati alla fine di ogni strato"""
        total = 0.0
        boundaries = []
        for layer in self.layers:
            total += layer.thickness
            boundaries.append(total)
        return boundaries


# =============================================================================
# DATABASE MATERIALI
# =============================================================================

SOIL_MATERIALS: Dict[str, Material] = {
    "typical_soil": Material(name="Terreno tipico", k=1.73, rho=1842.0, cp=419.0),
    "bestest_soil": Material(name="Terreno BESTEST", k=1.9, rho=1490.0, cp=1800.0),
    "clay": Material(name="Argilla", k=1.28, rho=1500.0, cp=880.0),
    "sand_dry": Material(name="Sabbia asciutta", k=0.30, rho=1600.0, cp=800.0),
    "sand_wet": Material(name="Sabbia satura", k=2.40, rho=2000.0, cp=1480.0),
}

STRUCTURAL_MATERIALS: Dict[str, Material] = {
    "concrete": Material(name="Calcestruzzo", k=1.98, rho=1900.0, cp=665.0),
    "concrete_light": Material(name="Calcestruzzo alleggerito", k=0.70, rho=1400.0, cp=880.0),
    "brick": Material(name="Laterizio", k=0.72, rho=1920.0, cp=835.0),
    "gravel": Material(name="Ghiaia", k=0.52, rho=2050.0, cp=840.0),
}

INSULATION_MATERIALS: Dict[str, Material] = {
    "xps": Material(name="Polistirene estruso (XPS)", k=0.029, rho=28.0, cp=1450.0),
    "eps": Material(name="Polistirene espanso (EPS)", k=0.036, rho=20.0, cp=1450.0),
    "mineral_wool": Material(name="Lana minerale", k=0.040, rho=100.0, cp=840.0),
}


class MaterialManager:
    """
    Accesso al database materiali e costruzione rapida di stratigrafie.
    """

    def __init__(self):
        self.materials: Dict[str, Material] = {}
        self.types: Dict[str, MaterialType] = {}
        for db, mtype in ((SOIL_MATERIALS, MaterialType.SOIL),
                          (STRUCTURAL_MATERIALS, MaterialType.STRUCTURAL),
                          (INSULATION_MATERIALS, MaterialType.INSULATION)):
            for key, material in db.items():
                self.materials[key] = material
                self.types[key] = mtype

    def get(self, key: str) -> Material:
        """Restituisce il materiale; KeyError se non esiste"""
        if key not in self.materials:
            raise KeyError(f"Materiale sconosciuto: '{key}'. Disponibili: {sorted(self.materials)}")
        return self.materials[key]

    def add(self, key: str, material: Material, mtype: MaterialType = MaterialType.STRUCTURAL):
        """Aggiunge un materiale personalizzato"""
        material.validate()
        self.materials[key] = material
        self.types[key] = mtype

    def list_materials(self, mtype: Optional[MaterialType] = None) -> List[str]:
        """Chiavi dei materiali, eventualmente filtrate per tipo"""
        return [key for key, t in self.types.items() if mtype is None or t == mtype]

    def create_construction(self, layers: List[Tuple[str, float]]) -> Construction:
        """
        Crea una costruzione da una lista di (chiave materiale, spessore).

        Esempio:
            manager.create_construction([("concrete", 0.10), ("xps", 0.05)])
        """
        return Construction(layers=[Layer(material=self.get(key), thickness=t) for key, t in layers])
