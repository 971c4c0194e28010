"""근태 정정 요청 Pydantic 스키마.

Correction request schemas: submission, decision, and response.
"""

from datetime import date, datetime
from pydantic import BaseModel, Field

from timekeeper.models.enums import CorrectionKind, CorrectionStatus, Decision


class CorrectionCreate(BaseModel):
    """정정 요청 생성 스키마.

    CLOCK corrections need at least one proposed clock time; BREAK corrections
    need at least one proposed break time. Checked in correction_service.
    """

    work_date: date
    kind: CorrectionKind
    proposed_clock_in: datetime | None = None
    proposed_clock_out: datetime | None = None
    proposed_break_start: datetime | None = None
    proposed_break_end: datetime | None = None
    note: str | None = Field(default=None, max_length=2000)


class CorrectionDecision(BaseModel):
    decision: Decision
    note: str | None = Field(default=None, max_length=2000)


class CorrectionResponse(BaseModel):
    id: str
    user_id: str
    work_date: date
    kind: CorrectionKind
    proposed_clock_in: datetime | None
    proposed_clock_out: datetime | None
    proposed_break_start: datetime | None
    proposed_break_end: datetime | None
    note: str | None
    status: CorrectionStatus
    manager_id: str | None
    admin_id: str | None
    decision_note: str | None
    decided_at: datetime | None
    applied_at: datetime | None
    created_at: datetime
