"""Course catalog loaded from the bundled ``courses.yaml``."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic.alias_generators import to_camel

_CATALOG_PATH = Path(__file__).with_name("courses.yaml")


@dataclass(frozen=True)
class Course:
    slug: str
    title: str
    short_description: str
    full_description: str
    category: str
    level: str
    duration_minutes: int
    price_in_cents: int
    featured: bool = False
    topics: List[str] = field(default_factory=list)
    learning_outcomes: List[str] = field(default_factory=list)
    prerequisites: List[str] = field(default_factory=list)
    instructor: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {to_camel(key): value for key, value in asdict(self).items()}
        data["formattedPrice"] = format_price(self.price_in_cents)
        data["formattedDuration"] = format_duration(self.duration_minutes)
        data["categoryLabel"] = category_labels().get(self.category, self.category)
        data["levelLabel"] = level_labels().get(self.level, self.level)
        return data


@lru_cache(maxsize=1)
def _load_catalog() -> Dict:
    with _CATALOG_PATH.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


@lru_cache(maxsize=1)
def get_all_courses() -> tuple:
    return tuple(Course(**entry) for entry in _load_catalog().get("courses", []))


def category_labels() -> Dict[str, str]:
    return dict(_load_catalog().get("categories", {}))


def level_labels() -> Dict[str, str]:
    return dict(_load_catalog().get("levels", {}))


def get_course_by_slug(slug: str) -> Optional[Course]:
    for course in get_all_courses():
        if course.slug == slug:
            return course
    return None


def get_featured_courses() -> List[Course]:
    return [c for c in get_all_courses() if c.featured]


def get_courses_by_category(category: str) -> List[Course]:
    return [c for c in get_all_courses() if c.category == category]


def get_all_categories() -> List[str]:
    seen: List[str] = []
    for course in get_all_courses():
        if course.category not in seen:
            seen.append(course.category)
    return seen


def format_price(price_in_cents: int) -> str:
    if price_in_cents == 0:
        return "Free"
    return f"${price_in_cents / 100:.2f}"


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours} hr"
    return f"{hours} hr {remaining} min"
