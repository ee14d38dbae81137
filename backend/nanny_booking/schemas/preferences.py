from __future__ import annotations

import enum
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire; both accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DurationType(str, enum.Enum):
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"


class BookingSubType(str, enum.Enum):
    DATE_NIGHT = "date_night"
    EMERGENCY = "emergency"
    TEMPORARY_SUPPORT = "temporary_support"
    SCHOOL_HOLIDAY = "school_holiday"
    DATE_DAY = "date_day"


HOURLY_SUB_TYPES = frozenset({BookingSubType.DATE_NIGHT, BookingSubType.EMERGENCY})


class HomeSize(str, enum.Enum):
    POCKET_PALACE = "pocket_palace"
    FAMILY_HUB = "family_hub"
    GRAND_RETREAT = "grand_retreat"
    EPIC_ESTATES = "epic_estates"

    @classmethod
    def parse(cls, value: Any) -> Any:
        """Map stored/display spellings onto a tier; unknown input passes through."""
        if isinstance(value, cls) or not isinstance(value, str):
            return value
        raw = value.strip().lower()
        if not raw:
            return None
        key = raw.replace("-", "_").replace(" ", "_")
        for member in cls:
            if key == member.value:
                return member
        if "pocket" in raw or raw == "small":
            return cls.POCKET_PALACE
        if "family" in raw or raw == "medium":
            return cls.FAMILY_HUB
        if "epic" in raw or "monumental" in raw or "manor" in raw or raw == "extra_large":
            return cls.EPIC_ESTATES
        if "grand" in raw or raw == "large":
            return cls.GRAND_RETREAT
        return value


class LivingArrangement(str, enum.Enum):
    LIVE_IN = "live-in"
    LIVE_OUT = "live-out"


class ExperienceLevel(str, enum.Enum):
    ONE_TO_THREE = "1-3"
    THREE_TO_SIX = "3-6"
    SIX_PLUS = "6+"


# Anchor date for wall-clock arithmetic on time slots
_SLOT_ANCHOR = date(2000, 1, 1)


class TimeSlot(CamelModel):
    start: str
    end: str

    @field_validator("start", "end", mode="before")
    def wall_clock(cls, v: Any) -> str:
        if isinstance(v, time):
            return v.strftime("%H:%M")
        parsed = time.fromisoformat(str(v).strip())
        return parsed.strftime("%H:%M")

    @property
    def hours(self) -> Decimal:
        """Slot length in hours; an end before the start runs past midnight."""
        start = datetime.combine(_SLOT_ANCHOR, time.fromisoformat(self.start))
        end = datetime.combine(_SLOT_ANCHOR, time.fromisoformat(self.end))
        if end < start:
            end += timedelta(days=1)
        return Decimal(int((end - start).total_seconds())) / Decimal(3600)


class WeeklySchedule(BaseModel):
    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False
    sunday: bool = False


# Remote profile keys that a wizard step can silently blank out
ADDRESS_FIELDS = (
    "street_address",
    "estate_info",
    "suburb",
    "city",
    "province",
    "postal_code",
    "location",
)

# Runtime-only fields that never reach the remote profile
EPHEMERAL_FIELDS = ("experience_level",)

SERVICE_FLAGS = (
    "special_needs",
    "ecd_training",
    "driving_support",
    "cooking",
    "montessori",
    "backup_nanny",
    "light_house_keeping",
    "errand_runs",
    "driving_required",
)


class UserPreferences(CamelModel):
    """The booking wizard's working document for one client session."""

    # Identity / location
    location: str = ""
    street_address: Optional[str] = None
    estate_info: Optional[str] = None
    suburb: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None

    # Household
    number_of_children: int = 0
    children_ages: List[str] = Field(default_factory=list)
    other_dependents: int = 0
    pets_in_home: str = ""
    home_size: Optional[HomeSize] = None

    # Service flags
    special_needs: bool = False
    ecd_training: bool = False
    driving_support: bool = False
    cooking: bool = False
    montessori: bool = False
    backup_nanny: bool = False
    light_house_keeping: bool = False
    errand_runs: bool = False
    driving_required: bool = False

    # Service tags reconciled into the flags above
    household_support: List[str] = Field(default_factory=list)
    childcare_focus_areas: List[str] = Field(default_factory=list)

    # Scheduling
    schedule: WeeklySchedule = Field(default_factory=WeeklySchedule)
    selected_dates: List[str] = Field(default_factory=list)
    time_slots: List[TimeSlot] = Field(default_factory=list)

    # Booking classification
    duration_type: Optional[DurationType] = None
    booking_sub_type: Optional[BookingSubType] = None
    living_arrangement: Optional[LivingArrangement] = None

    # Runtime only
    experience_level: Optional[ExperienceLevel] = None
    languages: str = ""

    @field_validator("duration_type", "booking_sub_type", mode="before")
    def underscore_separators(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower().replace("-", "_")
            return v or None
        return v

    @field_validator("living_arrangement", mode="before")
    def hyphen_separators(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower().replace("_", "-")
            return v or None
        return v

    @field_validator("experience_level", mode="before")
    def blank_experience(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("home_size", mode="before")
    def known_home_size(cls, v: Any) -> Any:
        return HomeSize.parse(v)

    @field_validator(*SERVICE_FLAGS, mode="before")
    def null_flag(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("number_of_children", "other_dependents", mode="before")
    def null_count(cls, v: Any) -> Any:
        if v is None or v == "":
            return 0
        if isinstance(v, float):
            return int(v)
        return v

    @field_validator("number_of_children", "other_dependents", mode="after")
    def clamp_count(cls, v: int) -> int:
        return max(0, v)

    @field_validator("location", "pets_in_home", "languages", mode="before")
    def null_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("children_ages", mode="before")
    def drop_blank_ages(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (str, int, float)):
            v = [v]
        if isinstance(v, (list, tuple)):
            return [str(age).strip() for age in v if age is not None and str(age).strip()]
        return v

    @field_validator("household_support", "childcare_focus_areas", mode="before")
    def tag_set(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple, set, frozenset)):
            tags = [str(t).strip().lower() for t in v if t is not None and str(t).strip()]
            return list(dict.fromkeys(tags))
        return v

    @field_validator("selected_dates", mode="before")
    def iso_dates(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            out = []
            for item in v:
                if isinstance(item, datetime):
                    item = item.date()
                if isinstance(item, date):
                    out.append(item.isoformat())
                    continue
                # Accept full ISO timestamps, keep the calendar date
                out.append(date.fromisoformat(str(item).strip()[:10]).isoformat())
            return out
        return v

    @field_validator("time_slots", "schedule", mode="before")
    def null_collection(cls, v: Any, info) -> Any:
        if v is None:
            return [] if info.field_name == "time_slots" else {}
        return v

    # ─── helpers ────────────────────────────────────────────────────────────
    @classmethod
    def field_key(cls, key: str) -> Optional[str]:
        """Return the attribute name for ``key`` given as name or alias."""
        if key in cls.model_fields:
            return key
        for name, info in cls.model_fields.items():
            if info.alias == key:
                return name
        return None

    def dates(self) -> List[date]:
        return [date.fromisoformat(d) for d in self.selected_dates]

    def has_tag(self, tag: str) -> bool:
        return tag in self.household_support or tag in self.childcare_focus_areas

    def to_document(self, *, exclude: Optional[set[str]] = None) -> Dict[str, Any]:
        """JSON-safe camelCase mapping used by the cache and the remote profile."""
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)

    @classmethod
    def lenient(
        cls,
        document: Dict[str, Any],
        fallback: Optional[Dict[str, Any]] = None,
    ) -> Tuple["UserPreferences", List[str]]:
        """Validate ``document`` without raising.

        A field that fails validation takes its value from ``fallback`` (or
        its default when absent there). Returns the model and the names of
        the fields that were replaced.
        """
        doc: Dict[str, Any] = {}
        for key, value in document.items():
            name = cls.field_key(key)
            if name is not None:
                doc[name] = value
        fallback = fallback or {}
        replaced: List[str] = []
        for _ in range(len(cls.model_fields) + 1):
            try:
                return cls.model_validate(doc), replaced
            except ValidationError as exc:
                bad = {cls.field_key(str(err["loc"][0])) for err in exc.errors() if err.get("loc")}
                bad.discard(None)
                if not bad:
                    break
                for name in bad:
                    replaced.append(name)
                    if name in fallback and doc.get(name) is not fallback[name]:
                        doc[name] = fallback[name]
                    else:
                        doc.pop(name, None)
        return cls(), replaced
