"""Known manufacturer URL templates for owner's-manual PDFs.

Each template takes the year and model and returns a candidate URL.
Candidates are guesses until :class:`PdfFetcher` verifies them.  Model names
are percent-encoded after spaces are replaced.
"""

from __future__ import annotations

from collections.abc import Callable
from urllib.parse import quote

from manual_rag.models.vehicle import VehicleDescriptor

UrlTemplate = Callable[[int, str], str]


def _ford_family(brand: str) -> UrlTemplate:
    def template(year: int, model: str) -> str:
        return (
            "https://www.fordservicecontent.com/Ford_Content/Catalog/owner_information/"
            f"{year}-{brand}-{quote(model.replace(' ', '-'), safe='')}-Owners-Manual.pdf"
        )

    return template


def _toyota(year: int, model: str) -> str:
    return f"https://www.toyota.com/t3Portal/document/om-s/{year % 100:02d}/pdf/en/OM.pdf"


def _honda(year: int, model: str) -> str:
    return (
        "https://techinfo.honda.com/rNavigator/document.aspx"
        f"?DocumentID={year}_{quote(model.replace(' ', '_'), safe='')}_OM"
    )


DEFAULT_TEMPLATES: dict[str, UrlTemplate] = {
    "ford": _ford_family("Ford"),
    "lincoln": _ford_family("Lincoln"),
    "toyota": _toyota,
    "honda": _honda,
}


class ManufacturerUrlResolver:
    """Maps a vehicle's make to a candidate manual URL."""

    def __init__(self, templates: dict[str, UrlTemplate] | None = None) -> None:
        source = DEFAULT_TEMPLATES if templates is None else templates
        self._templates = {make.lower(): template for make, template in source.items()}

    def supports(self, make: str) -> bool:
        return make.strip().lower() in self._templates

    def candidate_url(self, vehicle: VehicleDescriptor) -> str | None:
        """Return the templated URL, or ``None`` for an unknown make."""
        template = self._templates.get(vehicle.make.lower())
        if template is None:
            return None
        return template(vehicle.year, vehicle.model)
