"""
Read-only student master data from students.csv.

The sponsorship office maintains this file by hand (name, department, class,
contact, photo, short biography). The portal never writes it; per-student
records live in the repository and are joined on "Admission Number".
"""

from __future__ import annotations

import csv
import logging
import re
from pathlib import Path

from cache_backend import get_cache

logger = logging.getLogger(__name__)

ADM_COLUMN = "Admission Number"
PLACEHOLDER_PHOTO = "/images/placeholder.jpg"

DEPARTMENT_ALIASES = {
    "germans": "Germans",
    "italians": "Italians",
    "education": "Education for Generations",
    "education for generation": "Education for Generations",
    "education-for-generation": "Education for Generations",
    "warmhearted": "Warmhearted Group",
    "warmhearted group": "Warmhearted Group",
    "warmhearted-group": "Warmhearted Group",
    "assisted": "Assisted Group",
    "assisted group": "Assisted Group",
    "assisted-group": "Assisted Group",
}

LEVELS = ("Primary", "Highschool", "University", "Other")

_PRIMARY_MARKERS = ("Pri.", "PP.", "Pre-Pri.", "Grade", "Primary", "Std")
_HIGHSCHOOL_MARKERS = ("JSS", "Form", "SS", "Secondary", "High School", "Highschool")
_UNIVERSITY_MARKERS = ("Yr", "University", "College", "Year", "Campus", "Degree", "Bachelor", "Diploma")
_OTHER_EXCLUDES = ("Pri.", "Form", "Yr", "Grade", "University")
_PRIMARY_CLASS = re.compile(r"Class\s*[1-8]", re.IGNORECASE)


def normalize_photo(photo: str) -> str:
    """Turn the assorted photo path formats in the sheet into a URL path."""
    if not photo or photo == "static/images/":
        return PLACEHOLDER_PHOTO
    if photo.startswith("static/"):
        photo = photo[len("static"):]
    if photo.startswith(("/images/", "http")):
        return photo
    if not photo.startswith("/"):
        photo = "/images/" + photo
    return photo


def resolve_department(name: str) -> str:
    return DEPARTMENT_ALIASES.get(name.lower(), name)


def level_of(student: dict) -> list[str]:
    """Return every level the student's Class matches (a class may hit several)."""
    cls = student.get("Class", "") or ""
    if not cls:
        return ["Other"]
    levels = []
    if any(m in cls for m in _PRIMARY_MARKERS) or _PRIMARY_CLASS.search(cls):
        levels.append("Primary")
    if any(m in cls for m in _HIGHSCHOOL_MARKERS):
        levels.append("Highschool")
    if any(m in cls for m in _UNIVERSITY_MARKERS):
        levels.append("University")
    if not any(m in cls for m in _OTHER_EXCLUDES):
        levels.append("Other")
    return levels


def group_by_level(students: list[dict]) -> dict[str, list[dict]]:
    groups: dict[str, list[dict]] = {level: [] for level in LEVELS}
    for s in students:
        for level in level_of(s):
            groups[level].append(s)
    return groups


class StudentDirectory:
    def __init__(self, path: Path | str, cache_ttl: int = 60):
        self.path = Path(path)
        self.cache_ttl = cache_ttl

    @property
    def _cache_key(self) -> str:
        return f"students:{self.path}"

    def _load(self) -> list[dict]:
        if not self.path.exists():
            logger.warning("Student master data not found at %s", self.path)
            return []
        try:
            with open(self.path, encoding="utf-8-sig", newline="") as f:
                rows = [dict(r) for r in csv.DictReader(f)]
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            logger.error("Error reading %s: %s", self.path, e)
            return []
        for row in rows:
            row.pop(None, None)  # overflow cells from ragged rows
            for key, value in row.items():
                row[key] = (value or "").strip() if key == ADM_COLUMN else (value or "")
            row["Photo"] = normalize_photo(row.get("Photo", ""))
        return rows

    def all(self) -> list[dict]:
        cache = get_cache()
        rows = cache.get(self._cache_key)
        if rows is None:
            rows = self._load()
            cache.set(self._cache_key, rows, ttl=self.cache_ttl)
        return rows

    def invalidate(self) -> None:
        get_cache().delete(self._cache_key)

    def get(self, adm_no: str) -> dict | None:
        for s in self.all():
            if s.get(ADM_COLUMN) == adm_no:
                return s
        return None

    def find_case_insensitive(self, adm_no: str) -> dict | None:
        needle = adm_no.strip().lower()
        for s in self.all():
            if s.get(ADM_COLUMN, "").lower() == needle:
                return s
        return None

    def search(self, q: str = "", department: str = "") -> list[dict]:
        q = q.lower()
        department = department.lower()
        results = []
        for s in self.all():
            name = s.get("Full Name", "").lower()
            adm = s.get(ADM_COLUMN, "").lower()
            dept = s.get("Department", "").lower()
            if q and q not in name and q not in adm:
                continue
            if department and department not in dept:
                continue
            results.append(s)
        return results

    def departments(self) -> list[str]:
        seen: dict[str, None] = {}
        for s in self.all():
            if s.get("Department"):
                seen.setdefault(s["Department"], None)
        return list(seen)

    def in_department(self, name: str) -> list[dict]:
        target = resolve_department(name).lower().strip()
        return [s for s in self.all() if s.get("Department", "").lower().strip() == target]
