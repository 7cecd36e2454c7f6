"""MonMaster public API helpers: formation search and établissement detail."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from errors import MonMasterError, RequestTimeoutError, TransportError, UpstreamError
from models import Etablissement, Formation, ParcoursLink

# Open, unauthenticated endpoints behind the monmaster.gouv.fr candidate UI.
MONMASTER_API_BASE_URL = "https://monmaster.gouv.fr/api/candidat/mm1"
MONMASTER_ORIGIN = "https://monmaster.gouv.fr"
REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 3.0
DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 4.0

LOGGER = logging.getLogger(__name__)


def fetch_formations(
    query: str,
    page_size: int = DEFAULT_PAGE_SIZE,
    *,
    base_url: str = MONMASTER_API_BASE_URL,
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
) -> list[Formation]:
    """Search formations matching ``query`` and return the first page.

    Only page zero is requested; results beyond ``page_size`` are not fetched.

    Raises:
        UpstreamError: the API answered with a non-success status.
        TransportError: the API was unreachable or the body was not usable.
    """
    if not query or not query.strip():
        raise ValueError("query must be a non-empty string")

    url = f"{base_url}/formations?size={page_size}&page=0"
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "Origin": MONMASTER_ORIGIN,
        "Referer": f"{MONMASTER_ORIGIN}/formation?rechercheBrut={query}",
        "User-Agent": "Mozilla/5.0",
    }

    try:
        response = requests.post(
            url,
            headers=headers,
            json={"recherche": query},
            timeout=timeout_seconds,
        )
    except requests.RequestException as exc:
        raise TransportError(f"Formation search failed for query={query!r}: {exc}") from exc

    if not response.ok:
        raise UpstreamError(response.status_code, url)

    try:
        payload = response.json()
    except ValueError as exc:
        raise TransportError(f"Formation search returned a non-JSON body for query={query!r}") from exc

    formations = _parse_formations_payload(payload)
    LOGGER.info(
        "Formation search: query=%r page_size=%s returned=%s",
        query,
        page_size,
        len(formations),
    )
    return formations


def fetch_etablissement(
    uai: str,
    inm: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    timeout_seconds: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    *,
    base_url: str = MONMASTER_API_BASE_URL,
) -> Etablissement | None:
    """Fetch institution detail, retrying with a fixed delay.

    Returns None once ``max_attempts`` attempts have failed; a missing
    institution never aborts the batch.
    """
    url = f"{base_url}/etablissements/{uai}/mentions/{inm}"

    for attempt in range(1, max_attempts + 1):
        try:
            return _get_etablissement(url, uai, timeout_seconds)
        except MonMasterError as exc:
            LOGGER.warning(
                "Etablissement fetch attempt %s/%s failed for uai=%s (%s): %s",
                attempt,
                max_attempts,
                uai,
                type(exc).__name__,
                exc,
            )
            if attempt < max_attempts:
                LOGGER.info("Waiting %.1fs before retrying uai=%s", delay_seconds, uai)
                time.sleep(delay_seconds)

    LOGGER.error("Giving up on uai=%s after %s attempts", uai, max_attempts)
    return None


def _get_etablissement(url: str, uai: str, timeout_seconds: float) -> Etablissement:
    """One attempt. ``timeout_seconds`` bounds the connect and each socket read,
    not the whole transfer, so a server trickling bytes can run past it.
    """
    try:
        response = requests.get(url, timeout=timeout_seconds)
    except requests.Timeout as exc:
        raise RequestTimeoutError(f"No answer within {timeout_seconds}s from {url}") from exc
    except requests.RequestException as exc:
        raise TransportError(str(exc)) from exc

    if not response.ok:
        raise UpstreamError(response.status_code, url)

    try:
        payload = response.json()
    except ValueError as exc:
        raise TransportError(f"Non-JSON body from {url}") from exc

    return _parse_etablissement_payload(uai, payload)


def _parse_formations_payload(payload: Any) -> list[Formation]:
    """Parse the search response into Formation objects."""
    if not isinstance(payload, dict):
        raise TransportError("Unexpected formations payload shape: expected an object")

    content = payload.get("content") or []
    if not isinstance(content, list):
        raise TransportError("Unexpected formations payload shape: 'content' is not a list")

    parsed: list[Formation] = []
    for item in content:
        if not isinstance(item, dict):
            continue

        uai = _as_str(item.get("uai"))
        inm = _as_str(item.get("inm"))
        if not uai or not inm:
            LOGGER.warning("Skipping formation without uai/inm: %s", item.get("intituleMention"))
            continue

        indicateurs = item.get("indicateursAnneeDerniere")
        if not isinstance(indicateurs, dict):
            indicateurs = {}
        lieux = item.get("lieux")

        parsed.append(
            Formation(
                uai=uai,
                inm=inm,
                inmp=_as_str(item.get("inmp")),
                ifc=_as_str(item.get("ifc")),
                intitule_mention=_as_str(item.get("intituleMention")) or "",
                intitule_parcours=_as_str(item.get("intituleParcours")) or "",
                # Validated per record during merge.
                lieux=tuple(lieux) if isinstance(lieux, list) else (lieux,) if lieux else (),
                alternance=bool(item.get("alternance")),
                modalite_mixte=bool(item.get("modaliteMixte")),
                jury_rectoral=bool(item.get("juryRectoral")),
                taux_acces=indicateurs.get("tauxAcces"),
                rang_dernier_appele=indicateurs.get("rangDernierAppele"),
                nb_candidatures_confirmees=indicateurs.get("nbCandidaturesConfirmees"),
                capacite=item.get("capaciteAccueil"),
            )
        )

    return parsed


def _parse_etablissement_payload(uai: str, payload: Any) -> Etablissement:
    if not isinstance(payload, dict):
        raise TransportError(f"Unexpected etablissement payload shape for uai={uai}")

    entries = payload.get("s1Parcours") or []
    if not isinstance(entries, list):
        raise TransportError(f"Unexpected s1Parcours shape for uai={uai}: {type(entries).__name__}")

    parcours: list[ParcoursLink] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        parcours.append(
            ParcoursLink(
                inmp=_as_str(entry.get("inmp")),
                lien_fiche=_as_str(entry.get("lienFiche")),
            )
        )

    return Etablissement(
        uai=uai,
        parcours=tuple(parcours),
        lien_fiche=_as_str(payload.get("lienFiche")),
    )


def _as_str(value: Any) -> str | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value.strip() if isinstance(value, str) and value.strip() else None
