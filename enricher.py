"""Merge formations with their établissement detail, concurrently and in order."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Literal, Mapping, Sequence

from errors import RecordMergeError
from etablissement_cache import EtablissementCache
from models import LINK_UNAVAILABLE, NOT_AVAILABLE, Etablissement, Formation, Lieu, MergedRecord

LOGGER = logging.getLogger(__name__)

OnError = Literal["placeholder", "raise"]


def enrich_formations(
    formations: Sequence[Formation],
    cache: EtablissementCache,
    max_workers: int | None = None,
    on_error: OnError = "placeholder",
) -> list[MergedRecord]:
    """Merge every formation with its établissement, preserving input order.

    One task runs per formation. Lookups for the same uai are coalesced by
    ``cache``, so the pool itself is not limited unless ``max_workers`` is set.

    Args:
        formations: Records returned by the formation search.
        cache: Shared cache for the whole run.
        max_workers: Optional cap on concurrent tasks.
        on_error: ``"placeholder"`` replaces a record that cannot be merged with
            an incomplete row; ``"raise"`` re-raises the first RecordMergeError
            in input order once every task has finished.
    """
    if not formations:
        return []

    workers = max_workers or len(formations)

    def task(formation: Formation) -> MergedRecord | RecordMergeError:
        try:
            return merge_formation(formation, cache)
        except RecordMergeError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="enrich") as executor:
        results = list(executor.map(task, formations))

    merged: list[MergedRecord] = []
    failed = 0
    for formation, result in zip(formations, results):
        if isinstance(result, MergedRecord):
            merged.append(result)
            continue
        failed += 1
        if on_error == "raise":
            raise result
        LOGGER.error("Placeholder row for uai=%s ifc=%s: %s", formation.uai, formation.ifc, result.reason)
        merged.append(MergedRecord.placeholder(formation, result))

    LOGGER.info(
        "Enrichment complete: formations=%s etablissements=%s merge_failures=%s",
        len(formations),
        len(cache),
        failed,
    )
    return merged


def merge_formation(formation: Formation, cache: EtablissementCache) -> MergedRecord:
    """Build the output row for one formation.

    Raises:
        RecordMergeError: the formation has a shape the row cannot be built from.
    """
    lieu = first_lieu(formation)
    try:
        taux_acces = format_taux_acces(formation.taux_acces)
        rang = _count_or_na(formation.rang_dernier_appele)
        candidatures = _count_or_na(formation.nb_candidatures_confirmees)
        capacite = _count_or_na(formation.capacite)
    except (TypeError, ValueError, OverflowError) as exc:
        raise RecordMergeError(formation.uai, formation.ifc, str(exc)) from exc

    etablissement = cache.get(formation.uai, formation.inm)

    return MergedRecord(
        intitule_mention=formation.intitule_mention or NOT_AVAILABLE,
        intitule_parcours=formation.intitule_parcours or NOT_AVAILABLE,
        lieu=lieu,
        alternance=formation.alternance,
        modalite_mixte=formation.modalite_mixte,
        jury_rectoral=formation.jury_rectoral,
        taux_acces=taux_acces,
        rang_dernier_appele=rang,
        nb_candidatures_confirmees=candidatures,
        capacite=capacite,
        lien_monmaster=formation.lien_monmaster,
        lien_fiche=select_lien_fiche(etablissement, formation.inmp),
    )


def format_taux_acces(value: Any) -> float | str:
    """Turn an access-rate fraction into a percentage rounded to two decimals."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return NOT_AVAILABLE
    return round(value * 100, 2)


def select_lien_fiche(etablissement: Etablissement | None, inmp: str | None) -> str:
    """Pick the sub-program link matching ``inmp``, then the institution link."""
    if etablissement is None:
        return LINK_UNAVAILABLE

    if inmp is not None:
        for parcours in etablissement.parcours:
            if parcours.inmp == inmp and parcours.lien_fiche:
                return parcours.lien_fiche

    return etablissement.lien_fiche or LINK_UNAVAILABLE


def first_lieu(formation: Formation) -> Lieu:
    if not formation.lieux:
        return Lieu()

    raw = formation.lieux[0]
    if not isinstance(raw, Mapping):
        raise RecordMergeError(
            formation.uai,
            formation.ifc,
            f"location entry is {type(raw).__name__}, expected an object",
        )

    return Lieu(
        ville=_text_or_na(raw.get("ville")),
        code_postal=_text_or_na(raw.get("codePostal")),
        departement=_text_or_na(raw.get("departement")),
        region=_text_or_na(raw.get("region")),
        site=_text_or_na(raw.get("site")),
        adresse=_text_or_na(raw.get("adresse")),
    )


def _text_or_na(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return NOT_AVAILABLE


def _count_or_na(value: Any) -> int | str:
    # 0 renders as N/A, same as an absent value.
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return NOT_AVAILABLE
    if not math.isfinite(value):
        return NOT_AVAILABLE
    return int(value)
