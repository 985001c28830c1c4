"""
Patient-identity search and disambiguation.

classify() sorts a search into one of seven outcomes:

  A  exactly one result                      confirmed match
  B  several results, not a name-only search pick one manually
  C  no result                               route to registration
  D  several results from a bare name        ask for DOB / mobile
  E  caller flagged partial information      register with missing fields
  F  several exact duplicates of the name    possible duplicate record
  G  emergency / unconscious patient         temporary UHID, no lookup

E and G are chosen by the caller (flags), not by the result set.
"""
import logging
import random
import re
from dataclasses import dataclass
from datetime import date
from typing import Literal

from newflow.api import ApiError, NewFlowClient
from newflow.roles import RoleContext

log = logging.getLogger("newflow.patient_search")

SearchMode = Literal["uhid", "mobile", "name", "name_dob"]
SearchCase = Literal["A", "B", "C", "D", "E", "F", "G"]

SEARCH_MODES: tuple[str, ...] = ("uhid", "mobile", "name", "name_dob")
VIEW_PATIENTS = "view_patients"

_TEMP_UHID_RE = re.compile(r"^TEMP-\d{6}-\d{4}$")


class SearchError(ValueError):
    """Search rejected before or during the backend lookup."""


class SearchPermissionError(SearchError):
    pass


@dataclass(frozen=True)
class SearchOutcome:
    case: SearchCase
    results: tuple = ()
    duplicate_candidates: tuple = ()
    temp_uhid: str | None = None
    patient: dict | None = None   # A: the match, G: the emergency record

    def to_dict(self) -> dict:
        return {
            "case": self.case,
            "results": list(self.results),
            "duplicateCandidates": list(self.duplicate_candidates),
            "tempUhid": self.temp_uhid,
            "patient": self.patient,
        }


def full_name(patient: dict) -> str:
    name = f"{patient.get('firstName') or ''} {patient.get('lastName') or ''}".strip()
    return name or str(patient.get("name") or "")


def _norm(text: str) -> str:
    return " ".join(text.split()).casefold()


def is_name_only(mode: str, query: str) -> bool:
    """A name search with no secondary identifier after a comma."""
    return mode == "name" and len(query.split(",")) == 1


def generate_temp_uhid(today: date | None = None, rng: random.Random | None = None) -> str:
    """Temporary UHID for emergency admissions: TEMP-YYMMDD-NNNN."""
    today = today or date.today()
    rng = rng or random
    return f"TEMP-{today:%y%m%d}-{rng.randrange(10000):04d}"


def is_temp_uhid(uhid: str) -> bool:
    return bool(_TEMP_UHID_RE.match(uhid or ""))


def emergency_patient(temp_uhid: str) -> dict:
    """Minimal record for an emergency admission, completed when relatives arrive."""
    return {
        "uhid": temp_uhid,
        "firstName": "Emergency",
        "lastName": "Patient",
        "gender": "unknown",
        "dateOfBirth": None,
        "age": None,
        "mobile": None,
        "address": "Emergency Admission",
        "status": "emergency",
    }


def classify(mode: str, query: str, results, *, partial_info: bool = False,
             emergency: bool = False, today: date | None = None,
             rng: random.Random | None = None) -> SearchOutcome:
    """Deterministic for fixed inputs (including today/rng for case G)."""
    results = tuple(results or ())
    if emergency:
        uhid = generate_temp_uhid(today, rng)
        return SearchOutcome("G", temp_uhid=uhid, patient=emergency_patient(uhid))
    if partial_info:
        return SearchOutcome("E", results=results)
    if not results:
        return SearchOutcome("C")
    if len(results) == 1:
        return SearchOutcome("A", results=results, patient=results[0])

    if mode == "name":
        wanted = _norm(query)
        same_name = tuple(p for p in results if _norm(full_name(p)) == wanted)
        if len(same_name) > 1:
            return SearchOutcome("F", results=results, duplicate_candidates=same_name)
    if is_name_only(mode, query):
        return SearchOutcome("D", results=results)
    return SearchOutcome("B", results=results)


def filter_patients(mode: str, query: str, patients) -> list[dict]:
    """
    Local matcher over already-fetched patient dicts.

      uhid      case-insensitive substring of uhid
      mobile    substring of mobile
      name      case-insensitive substring of "first last"
      name_dob  "<name>,<YYYY-MM-DD>": name substring and exact DOB
    """
    q = query.strip()
    if mode == "uhid":
        return [p for p in patients if q.lower() in str(p.get("uhid") or "").lower()]
    if mode == "mobile":
        return [p for p in patients if q in str(p.get("mobile") or "")]
    if mode == "name":
        return [p for p in patients if q.lower() in full_name(p).lower()]
    if mode == "name_dob":
        name, _, dob = q.partition(",")
        name, dob = name.strip().lower(), dob.strip()
        if not name or not dob:
            return []
        return [p for p in patients
                if name in full_name(p).lower() and p.get("dateOfBirth") == dob]
    return []


class PatientSearch:
    """Permission check, backend lookup, classification."""

    def __init__(self, client: NewFlowClient, roles: RoleContext):
        self.client = client
        self.roles = roles

    def search(self, mode: str, query: str, *, partial_info: bool = False,
               emergency: bool = False) -> SearchOutcome:
        if emergency:
            outcome = classify(mode, query, (), emergency=True)
            log.info("Emergency admission: temporary UHID %s", outcome.temp_uhid)
            return outcome
        if mode not in SEARCH_MODES:
            raise SearchError(f"search mode must be one of {SEARCH_MODES}")
        if not (query or "").strip():
            raise SearchError("Please enter search criteria")
        if not self.roles.can(VIEW_PATIENTS):
            raise SearchPermissionError("You do not have permission to search patients")

        try:
            results = self.client.search_patients(mode, query.strip())
        except ApiError as exc:
            log.error("Patient search (%s=%r) failed: %s", mode, query, exc)
            raise SearchError("Search failed. Please try again.") from exc

        outcome = classify(mode, query.strip(), results, partial_info=partial_info)
        log.info("Patient search %s=%r: %d result(s), case %s",
                 mode, query, len(outcome.results), outcome.case)
        return outcome
