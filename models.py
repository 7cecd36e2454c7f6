"""Shared typed models for the snapshot pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MONMASTER_FORMATION_URL = "https://monmaster.gouv.fr/formation/{uai}/{ifc}/detail"
NOT_AVAILABLE = "N/A"
LINK_UNAVAILABLE = "Indisponible"


@dataclass(frozen=True, slots=True)
class Formation:
    """One program listing returned by the formations search endpoint.

    ``lieux`` keeps the raw location mappings; they are only validated when
    the formation is merged so a malformed list fails that single record.
    """

    uai: str
    inm: str
    inmp: str | None
    ifc: str | None
    intitule_mention: str
    intitule_parcours: str
    lieux: tuple[Any, ...] = ()
    alternance: bool = False
    modalite_mixte: bool = False
    jury_rectoral: bool = False
    taux_acces: Any = None
    rang_dernier_appele: Any = None
    nb_candidatures_confirmees: Any = None
    capacite: Any = None

    @property
    def lien_monmaster(self) -> str:
        if not self.ifc:
            return NOT_AVAILABLE
        return MONMASTER_FORMATION_URL.format(uai=self.uai, ifc=self.ifc)


@dataclass(frozen=True, slots=True)
class Lieu:
    """First location of a formation, flattened for reporting."""

    ville: str = NOT_AVAILABLE
    code_postal: str = NOT_AVAILABLE
    departement: str = NOT_AVAILABLE
    region: str = NOT_AVAILABLE
    site: str = NOT_AVAILABLE
    adresse: str = NOT_AVAILABLE


@dataclass(frozen=True, slots=True)
class ParcoursLink:
    """Sub-program entry of an établissement and its detail-page link."""

    inmp: str | None
    lien_fiche: str | None


@dataclass(frozen=True, slots=True)
class Etablissement:
    """Institution detail for one (uai, inm) pair."""

    uai: str
    parcours: tuple[ParcoursLink, ...] = ()
    lien_fiche: str | None = None


@dataclass(frozen=True, slots=True)
class MergedRecord:
    """Output row combining a formation with its institution detail."""

    intitule_mention: str
    intitule_parcours: str
    lieu: Lieu
    alternance: bool
    modalite_mixte: bool
    jury_rectoral: bool
    taux_acces: float | str
    rang_dernier_appele: int | str
    nb_candidatures_confirmees: int | str
    capacite: int | str
    lien_monmaster: str
    lien_fiche: str
    complete: bool = True
    error: str | None = field(default=None, compare=False)

    @property
    def has_detail_link(self) -> bool:
        return self.lien_fiche != LINK_UNAVAILABLE

    @classmethod
    def placeholder(cls, formation: Formation, error: Exception) -> MergedRecord:
        """Row emitted in place of a formation whose merge failed."""
        return cls(
            intitule_mention=formation.intitule_mention or NOT_AVAILABLE,
            intitule_parcours=formation.intitule_parcours or NOT_AVAILABLE,
            lieu=Lieu(),
            alternance=formation.alternance,
            modalite_mixte=formation.modalite_mixte,
            jury_rectoral=formation.jury_rectoral,
            taux_acces=NOT_AVAILABLE,
            rang_dernier_appele=NOT_AVAILABLE,
            nb_candidatures_confirmees=NOT_AVAILABLE,
            capacite=NOT_AVAILABLE,
            lien_monmaster=formation.lien_monmaster,
            lien_fiche=LINK_UNAVAILABLE,
            complete=False,
            error=str(error),
        )
