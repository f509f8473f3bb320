from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional, Union
from datetime import date

from benefits.status import VerificationStatus

CAMEL_CASE = {"alias_generator": to_camel, "populate_by_name": True}


def _require_text(v: str) -> str:
    if not v or not v.strip():
        raise ValueError('Value is required')
    return v.strip()


def _require_iso_date(v: str) -> str:
    try:
        date.fromisoformat(v)
    except ValueError:
        raise ValueError('Date must be YYYY-MM-DD')
    return v


class VerificationCallRequest(BaseModel):
    patient_name: str = Field(..., min_length=1)
    patient_dob: str = Field(..., alias="patientDOB")
    member_id: str = Field(..., min_length=1)
    insurance_carrier: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    subscriber_name: Optional[str] = None
    subscriber_dob: Optional[str] = Field(default=None, alias="subscriberDOB")
    group_number: Optional[str] = None
    patient_address: Optional[str] = None
    model_config = CAMEL_CASE

    @field_validator('patient_name', 'member_id', 'insurance_carrier', 'phone_number')
    @classmethod
    def validate_required(cls, v: str) -> str:
        return _require_text(v)

    @field_validator('patient_dob')
    @classmethod
    def validate_patient_dob(cls, v: str) -> str:
        return _require_iso_date(_require_text(v))

    @field_validator('subscriber_dob')
    @classmethod
    def validate_subscriber_dob(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return _require_iso_date(v.strip())


class VerificationCallResponse(BaseModel):
    verification_id: str
    model_config = CAMEL_CASE


class VerificationCreate(BaseModel):
    """Manually entered verification."""
    patient_name: str = Field(..., min_length=1)
    patient_dob: Optional[str] = Field(default=None, alias="patientDOB")
    member_id: Optional[str] = None
    insurance_carrier: Optional[str] = None
    phone_number: Optional[str] = None
    status: VerificationStatus = VerificationStatus.IN_PROGRESS
    call_duration: Optional[str] = None
    recording_url: Optional[str] = None
    transcript: Optional[str] = None
    benefits: Optional[Union[Dict[str, Any], str]] = None
    reference_number: Optional[str] = None
    rep_name: Optional[str] = None
    model_config = CAMEL_CASE

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VerificationUpdate(BaseModel):
    """Operator correction. Only the fields sent are changed."""
    patient_name: Optional[str] = None
    patient_dob: Optional[str] = Field(default=None, alias="patientDOB")
    member_id: Optional[str] = None
    insurance_carrier: Optional[str] = None
    phone_number: Optional[str] = None
    status: Optional[VerificationStatus] = None
    call_id: Optional[str] = None
    call_duration: Optional[str] = None
    recording_url: Optional[str] = None
    transcript: Optional[str] = None
    benefits: Optional[Union[Dict[str, Any], str]] = None
    reference_number: Optional[str] = None
    rep_name: Optional[str] = None
    model_config = CAMEL_CASE

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class PracticeUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    npi_practice: Optional[str] = None
    npi_individual: Optional[str] = None
    tax_id: Optional[str] = None
    dentist_name: Optional[str] = None
    model_config = CAMEL_CASE

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)
