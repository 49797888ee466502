from pydantic import BaseModel, Field, field_validator


class PatientCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    age: int = Field(..., gt=0)
    file_number: str = Field(..., min_length=1, max_length=50)
    gender: str | None = None
    additional_notes: str | None = None

    @field_validator("full_name", "file_number")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("gender", "additional_notes")
    @classmethod
    def empty_to_none(cls, value):
        # Blank optional form fields are stored as NULL
        return value or None


class PatientUpdate(BaseModel):
    full_name: str | None = Field(None, min_length=1, max_length=200)
    age: int | None = Field(None, gt=0)
    file_number: str | None = Field(None, min_length=1, max_length=50)
    gender: str | None = None
    additional_notes: str | None = None

    @field_validator("full_name", "file_number")
    @classmethod
    def not_blank(cls, value):
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("gender", "additional_notes")
    @classmethod
    def empty_to_none(cls, value):
        return value or None
