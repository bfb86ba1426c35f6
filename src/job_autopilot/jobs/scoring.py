"""Deterministic multi-factor scoring of a candidate profile against a listing."""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from job_autopilot.core.models import (
    CandidateProfile,
    EmploymentType,
    FactorKind,
    JobListing,
    JobPreferences,
    MatchReason,
    RemotePreference,
    ScoreResult,
)

MAX_SCORE = 100

_SALARY_PATTERN = re.compile(
    r"[$€£]?\s?(\d{1,3}(?:,\d{3})+|\d+)(\.\d+)?\s?([kK])?(?!\d|,\d)"
)


def parse_salary(text: Optional[str]) -> Optional[float]:
    """
    Extract the first salary figure from free text.

    Accepts an optional leading currency symbol, comma grouping, a decimal
    part and a trailing ``k`` thousands multiplier. Returns None when no
    number can be found; never raises.

    Args:
        text: Salary text as scraped, e.g. "$120,000 - $140,000"

    Returns:
        Parsed amount or None
    """
    if not text or not isinstance(text, str):
        return None

    match = _SALARY_PATTERN.search(text)
    if not match:
        return None

    whole, fraction, thousands = match.groups()
    try:
        amount = float(whole.replace(",", "") + (fraction or ""))
    except ValueError:
        return None

    if thousands:
        amount *= 1000
    return amount


@dataclass(frozen=True)
class ScoringWeights:
    """Factor caps and fallback values on the 0-100 scale."""
    skill: float = 40.0
    title: float = 25.0
    title_default: float = 5.0
    location: float = 20.0
    location_partial: float = 10.0
    location_default: float = 5.0
    salary: float = 10.0
    salary_neutral: float = 5.0
    employment_type: float = 5.0
    employment_type_default: float = 2.0

    @property
    def maximum(self) -> float:
        return self.skill + self.title + self.location + self.salary + self.employment_type


DEFAULT_WEIGHTS = ScoringWeights()


class MatchScorer:
    """Scores profiles against listings. Pure: no I/O and no hidden state."""

    def __init__(self, weights: ScoringWeights = DEFAULT_WEIGHTS):
        if weights.maximum > MAX_SCORE:
            raise ValueError(f"Factor weights sum to {weights.maximum}, above {MAX_SCORE}")
        self.weights = weights

    def score(
        self,
        profile: CandidateProfile,
        preferences: Optional[JobPreferences],
        listing: JobListing
    ) -> ScoreResult:
        """
        Score a listing for a candidate.

        Args:
            profile: Candidate profile holding the skill set
            preferences: Preferences to score with; the profile's own when None
            listing: Listing to score

        Returns:
            Bounded total with the reasons behind it
        """
        prefs = preferences if preferences is not None else profile.preferences

        factors = [
            self._skill_factor(profile, listing),
            self._title_factor(prefs, listing),
            self._location_factor(prefs, listing),
            self._salary_factor(prefs, listing),
            self._employment_type_factor(prefs, listing),
        ]

        breakdown: Dict[FactorKind, float] = {}
        reasons: List[MatchReason] = []
        for kind, value, description in factors:
            breakdown[kind] = round(value, 2)
            if description is not None:
                reasons.append(MatchReason(
                    kind=kind,
                    description=description,
                    contribution=round(value, 2)
                ))

        total = int(round(sum(value for _, value, _ in factors)))
        total = max(0, min(MAX_SCORE, total))

        return ScoreResult(total=total, reasons=reasons, breakdown=breakdown)

    def _skill_factor(
        self,
        profile: CandidateProfile,
        listing: JobListing
    ) -> Tuple[FactorKind, float, Optional[str]]:
        """Fraction of candidate skills found in the listing text."""
        text = f"{listing.title or ''} {listing.description or ''}".strip().lower()
        skills = sorted({s.strip().lower() for s in profile.skills if s and s.strip()})

        if not skills or not text:
            return FactorKind.SKILL, 0.0, None

        matched = [skill for skill in skills if skill in text]
        if not matched:
            return FactorKind.SKILL, 0.0, None

        value = self.weights.skill * len(matched) / len(skills)
        return FactorKind.SKILL, value, f"Skills match: {', '.join(matched)}"

    def _title_factor(
        self,
        prefs: JobPreferences,
        listing: JobListing
    ) -> Tuple[FactorKind, float, Optional[str]]:
        """Desired title contained in the listing title, or the reverse."""
        listing_title = (listing.title or "").strip().lower()

        if listing_title:
            for title in sorted(prefs.desired_titles):
                wanted = title.strip().lower()
                if wanted and (wanted in listing_title or listing_title in wanted):
                    return (
                        FactorKind.TITLE,
                        self.weights.title,
                        f"Title matches preference '{title.strip()}': {listing.title}"
                    )

        return FactorKind.TITLE, self.weights.title_default, None

    def _location_factor(
        self,
        prefs: JobPreferences,
        listing: JobListing
    ) -> Tuple[FactorKind, float, Optional[str]]:
        """Remote preference against the listing's remote type."""
        wanted = prefs.remote_preference
        offered = listing.remote_type

        if wanted == RemotePreference.ANY:
            return FactorKind.LOCATION, self.weights.location, "Open to any work arrangement"

        if offered is None:
            return FactorKind.LOCATION, self.weights.location_default, None

        if wanted.value == offered.value:
            return (
                FactorKind.LOCATION,
                self.weights.location,
                f"{offered.value.capitalize()} work preference match"
            )

        if wanted == RemotePreference.HYBRID:
            return (
                FactorKind.LOCATION,
                self.weights.location_partial,
                f"Hybrid preference partially fits {offered.value} role"
            )

        return FactorKind.LOCATION, self.weights.location_default, None

    def _salary_factor(
        self,
        prefs: JobPreferences,
        listing: JobListing
    ) -> Tuple[FactorKind, float, Optional[str]]:
        """Listing salary against the candidate's floor. Missing data is neutral."""
        offered = parse_salary(listing.salary_range)

        if prefs.min_salary is None or offered is None:
            return FactorKind.SALARY, self.weights.salary_neutral, None

        if offered >= prefs.min_salary:
            return (
                FactorKind.SALARY,
                self.weights.salary,
                f"Salary {listing.salary_range.strip()} meets minimum of {prefs.min_salary}"
            )

        return FactorKind.SALARY, 0.0, None

    def _employment_type_factor(
        self,
        prefs: JobPreferences,
        listing: JobListing
    ) -> Tuple[FactorKind, float, Optional[str]]:
        """Full-time or a preferred employment type."""
        job_type = listing.employment_type

        if job_type == EmploymentType.FULL_TIME:
            return FactorKind.EMPLOYMENT_TYPE, self.weights.employment_type, "Full-time position"

        if job_type is not None and job_type in prefs.employment_types:
            return (
                FactorKind.EMPLOYMENT_TYPE,
                self.weights.employment_type,
                f"Employment type match: {job_type.value}"
            )

        return FactorKind.EMPLOYMENT_TYPE, self.weights.employment_type_default, None
