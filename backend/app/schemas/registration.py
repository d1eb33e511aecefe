"""
Pydantic schemas for registration, cancellation and stats.
"""

from pydantic import BaseModel, EmailStr, Field


class RegistrationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr

    model_config = {"str_strip_whitespace": True}


class RegistrationCancel(BaseModel):
    email: EmailStr


class RegistrationResponse(BaseModel):
    message: str = "Registration successful"
    registration_id: int = Field(..., serialization_alias="registrationId")


class CancelResponse(BaseModel):
    message: str = "Registration cancelled"


class EventStats(BaseModel):
    total_registrations: int = Field(..., serialization_alias="totalRegistrations")
    remaining_capacity: int = Field(..., serialization_alias="remainingCapacity")
    # Two-decimal string, e.g. "30.00"
    percent_used: str = Field(..., serialization_alias="percentUsed")
