from __future__ import annotations

import json
from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator, model_validator

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

Amount = Literal["少", "中", "多"]
StoolColor = Literal["黃", "啡", "綠", "黑", "紅"]
StoolTexture = Literal["硬", "軟", "稀", "水狀"]
Position = Literal["左", "平", "右"]
ObservationStatus = Literal["N", "P", "S"]


class Problem(BaseModel):
    type: str = "about:blank"
    title: str
    status: int
    detail: str | None = None
    code: str = "unknown_error"
    instance: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class SessionOut(BaseModel):
    user_id: str
    email: str
    display_name: str
    expires_at: datetime


# --- residents --------------------------------------------------------------

class Bed(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bed_number: str
    qr_code_id: str | None = None


class Resident(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bed_code: str
    display_name: str
    sex: Literal["男", "女"] | None = None
    birth_date: date | None = None
    residency_status: str
    care_level: str | None = None
    infection_control: list[str] = Field(default_factory=list)
    photo_url: str | None = None
    bed_id: int | None = None
    age: int | None = None

    @field_validator("infection_control", mode="before")
    @classmethod
    def _decode_tags(cls, v):
        # SQLite hands JSON columns back as text through raw SQL
        if v is None:
            return []
        if isinstance(v, str):
            return json.loads(v) if v.strip() else []
        return v

    def age_on(self, day: date) -> int | None:
        if self.birth_date is None:
            return None
        b = self.birth_date
        years = day.year - b.year
        if (day.month, day.day) < (b.month, b.day):
            years -= 1
        return years


class ScanIn(BaseModel):
    data: str


# --- care records -----------------------------------------------------------

class _RecordBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: int
    recorder: str


class PatrolRecord(_RecordBase):
    care_type: Literal["patrol"] = "patrol"
    patrol_date: date
    scheduled_time: str
    patrol_time: str
    notes: str | None = None


class DiaperRecord(_RecordBase):
    care_type: Literal["diaper"] = "diaper"
    change_date: date
    time_slot: str
    has_urine: bool = False
    has_stool: bool = False
    has_none: bool = False
    urine_amount: Amount | None = None
    stool_color: StoolColor | None = None
    stool_texture: StoolTexture | None = None
    stool_amount: Amount | None = None


class PositionRecord(_RecordBase):
    care_type: Literal["position"] = "position"
    change_date: date
    scheduled_time: str
    position: Position


class RestraintRecord(_RecordBase):
    care_type: Literal["restraint"] = "restraint"
    observation_date: date
    scheduled_time: str
    observation_time: str
    observation_status: ObservationStatus
    notes: str | None = None


AnyRecord = Union[PatrolRecord, DiaperRecord, PositionRecord, RestraintRecord]
CareRecord = Annotated[AnyRecord, Field(discriminator="care_type")]


# --- upsert payloads --------------------------------------------------------

class _PayloadBase(BaseModel):
    recorder: str | None = Field(None, max_length=255)


class PatrolIn(_PayloadBase):
    care_type: Literal["patrol"] = "patrol"
    patrol_time: str = Field(..., pattern=TIME_PATTERN)
    notes: str | None = None


class DiaperIn(_PayloadBase):
    care_type: Literal["diaper"] = "diaper"
    has_urine: bool = False
    has_stool: bool = False
    has_none: bool = False
    urine_amount: Amount | None = None
    stool_color: StoolColor | None = None
    stool_texture: StoolTexture | None = None
    stool_amount: Amount | None = None

    @model_validator(mode="after")
    def _drop_unused_details(self):
        if not self.has_urine:
            self.urine_amount = None
        if not self.has_stool:
            self.stool_color = None
            self.stool_texture = None
            self.stool_amount = None
        return self


class PositionIn(_PayloadBase):
    care_type: Literal["position"] = "position"
    position: Position | None = None


class RestraintIn(_PayloadBase):
    care_type: Literal["restraint"] = "restraint"
    observation_time: str = Field(..., pattern=TIME_PATTERN)
    observation_status: ObservationStatus
    notes: str | None = None


CarePayload = Annotated[
    Union[PatrolIn, DiaperIn, PositionIn, RestraintIn],
    Field(discriminator="care_type"),
]


class CarePayloadIn(RootModel[CarePayload]):
    pass


# --- grid -------------------------------------------------------------------

class GridCell(BaseModel):
    day: date
    status: Literal["completed", "pending", "overdue"]
    record: Optional[CareRecord] = None


class GridRowOut(BaseModel):
    slot: str
    index: int
    suggested_position: Position | None = None
    cells: list[GridCell]


class GridOut(BaseModel):
    resident_id: int
    care_type: str
    dates: list[date]
    rows: list[GridRowOut]
