"""
Construction material catalog.

Physical properties of the materials referenced by construction elements.
The engine only stamps material ids onto elements; the catalog is consulted
for parts lists and mass estimates.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from construction_model import ConstructionModel, iter_elements

logger = logging.getLogger(__name__)

MM3_PER_M3 = 1e9


@dataclass(frozen=True)
class Material:
    """A construction material."""

    name: str
    kind: str  # "generic", "dimensional", "sheet" or "strawbale"
    density: Optional[float] = None  # kg/m³, None when unknown
    color: str = "#cccccc"


MATERIALS: Dict[str, Material] = {
    # Structure
    "wood_post": Material(name="Wood Post", kind="dimensional", density=450, color="#c8a165"),
    "battens": Material(name="Battens", kind="dimensional", density=450, color="#b98d4f"),
    "boards": Material(name="Boards", kind="dimensional", density=470, color="#d6b27c"),
    "dhf": Material(name="DHF Board", kind="sheet", density=600, color="#a57c4b"),
    # Infill
    "straw": Material(name="Straw Bale", kind="strawbale", density=110, color="#e8d27c"),
    "reed": Material(name="Reed Mat", kind="generic", density=150, color="#cdbf7a"),
    # Finishes
    "clay_plaster_base": Material(name="Clay Plaster (Base)", kind="generic", density=1600, color="#b07a52"),
    "clay_plaster_fine": Material(name="Clay Plaster (Fine)", kind="generic", density=1700, color="#c49272"),
    "lime_plaster_base": Material(name="Lime Plaster (Base)", kind="generic", density=1600, color="#e7e1d3"),
    "lime_plaster_fine": Material(name="Lime Plaster (Fine)", kind="generic", density=1700, color="#f2eee4"),
    "gypsum": Material(name="Gypsum Board", kind="sheet", density=800, color="#f5f5f5"),
    "cement_screed": Material(name="Cement Screed", kind="generic", density=2000, color="#9e9e9e"),
    "impact_sound_insulation": Material(
        name="Impact Sound Insulation", kind="sheet", density=150, color="#d9e3c4",
    ),
    "wind_barrier": Material(name="Wind Barrier", kind="sheet", density=None, color="#5a7fa8"),
    "roof_tiles": Material(name="Roof Tiles", kind="generic", density=1900, color="#a4452c"),
}


def resolve_material(material_id: str) -> Optional[Material]:
    """Look up a material; unknown ids are not an error at this layer."""
    return MATERIALS.get(material_id)


@dataclass
class MaterialUsage:
    """Aggregated usage of one material over a construction model."""

    material_id: str
    element_count: int = 0
    volume_mm3: float = 0.0

    @property
    def volume_m3(self) -> float:
        return self.volume_mm3 / MM3_PER_M3

    @property
    def mass_kg(self) -> Optional[float]:
        material = resolve_material(self.material_id)
        if material is None or material.density is None:
            return None
        return self.volume_m3 * material.density


def material_usage(model: ConstructionModel) -> List[MaterialUsage]:
    """Parts-list summary: element count and volume per material id.

    Walks nested groups. Ordered by first appearance in the model.
    """
    usage: Dict[str, MaterialUsage] = {}
    for element in iter_elements(model.elements):
        entry = usage.setdefault(element.material, MaterialUsage(material_id=element.material))
        entry.element_count += 1
        entry.volume_mm3 += element.shape.volume

    unknown = [key for key in usage if resolve_material(key) is None]
    if unknown:
        logger.debug("Materials missing from catalog: %s", unknown)
    return list(usage.values())
