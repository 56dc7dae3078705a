from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from gigshift.models import AttendanceStatus, PayoutStatus, ScanAction


class QRSessionRead(BaseModel):
    id: int
    gig_id: int
    token: str
    created_at: datetime
    expires_at: datetime
    is_active: bool
    scanned_by: list[int] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class QRSessionRevokeResponse(BaseModel):
    id: int
    gig_id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class AttendanceScanRequest(BaseModel):
    token: str = Field(min_length=1, max_length=255)
    action: ScanAction


class ShiftRead(BaseModel):
    shift_id: int
    gig_id: int
    usher_id: int
    attendance_status: AttendanceStatus
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    check_in_verified: bool
    check_out_verified: bool
    hours_worked: float | None = None
    payout_amount: float | None = None
    payout_status: PayoutStatus

    model_config = ConfigDict(from_attributes=True)


class GigCompletionResponse(BaseModel):
    gig_id: int
    completed_shifts: int
    total_payout: float
    attendance_records: int
    rated_ushers: list[int] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class RatingSubmitRequest(BaseModel):
    gig_id: int = Field(ge=1)
    usher_id: int = Field(ge=1)
    brand_rating: int = Field(ge=1, le=5)
    attendance_days: int = Field(ge=0)
    total_gig_days: int = Field(ge=1)
    notes: str | None = Field(default=None, max_length=2000)


class GigRatingRead(BaseModel):
    id: int
    gig_id: int
    usher_id: int
    brand_rating: int
    attendance_days: int
    total_gig_days: int
    attendance_rating: float
    brand_rating_stars: float
    final_rating: float
    rating_notes: str | None = None
    is_brand_rated: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UsherAggregateRead(BaseModel):
    usher_id: int
    overall_rating: float
    attendance_rating_avg: float
    brand_rating_avg: float
    total_ratings_count: int
    total_gigs_completed: int
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class RatingBreakdownRead(BaseModel):
    five_stars: int
    four_stars: int
    three_stars: int
    two_stars: int
    one_star: int

    model_config = ConfigDict(from_attributes=True)


class UsherRatingStatsRead(BaseModel):
    usher_id: int
    overall_rating: float
    attendance_rating: float
    brand_rating: float
    total_ratings: int
    completed_gigs: int
    attendance_percentage: float
    rating_breakdown: RatingBreakdownRead

    model_config = ConfigDict(from_attributes=True)


class RatingHistoryEntryRead(BaseModel):
    rating_id: int
    gig_id: int
    gig_title: str
    gig_start: datetime
    brand_rating: int
    is_brand_rated: bool
    attendance_days: int
    total_gig_days: int
    attendance_rating: float
    brand_rating_stars: float
    final_rating: float
    rating_notes: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RosterEntryRead(BaseModel):
    usher_id: int
    attendance_status: AttendanceStatus
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    hours_worked: float | None = None
    payout_amount: float | None = None
    payout_status: PayoutStatus | None = None
    attendance_days: int
    is_brand_rated: bool
    brand_rating: int | None = None
    final_rating: float | None = None
    rating_notes: str | None = None

    model_config = ConfigDict(from_attributes=True)
