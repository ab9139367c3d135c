"""
Input validation schemas using Pydantic
"""
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator, model_validator

from resume_session.utils.exceptions import ValidationError


class SaveResumeRequest(BaseModel):
    """Validation schema for resume save (create or update) requests"""
    resumeData: Dict[str, Any] = Field(..., description="Resume content")
    title: Optional[str] = Field(None, max_length=200, description="Resume title")
    template: Optional[str] = Field(None, max_length=50, description="Template identifier")
    resumeId: Optional[str] = Field(None, max_length=128, description="Existing resume to update")
    forcedId: Optional[str] = Field(None, max_length=128, description="Id to create the resume with")
    isImport: Optional[bool] = Field(None, description="Resume comes from the import flow")

    @model_validator(mode='before')
    @classmethod
    def accept_data_alias(cls, values):
        # Older clients post the content under "data"
        if isinstance(values, dict) and 'resumeData' not in values and 'data' in values:
            values = {**values, 'resumeData': values['data']}
        return values

    @field_validator('title')
    @classmethod
    def strip_title(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None


class UpdateResumeRequest(BaseModel):
    """Validation schema for updating an existing resume"""
    data: Dict[str, Any] = Field(..., description="Resume content")
    title: Optional[str] = Field(None, max_length=200)
    template: Optional[str] = Field(None, max_length=50)

    @field_validator('title')
    @classmethod
    def strip_title(cls, v):
        return v.strip() if v else v


class UpdateNameRequest(BaseModel):
    """Validation schema for renaming a resume"""
    title: str = Field(..., max_length=200)

    @field_validator('title')
    @classmethod
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()


class ValidateNameRequest(BaseModel):
    """Validation schema for resume name validation requests"""
    name: str = Field(..., max_length=200, description="Candidate resume title")
    resumeId: Optional[str] = Field(None, max_length=128, description="Resume to exclude from the duplicate check")

    @field_validator('name')
    @classmethod
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Resume name cannot be empty')
        return v.strip()


class JobContextPayload(BaseModel):
    """Job targeting payload as carried in the `job` URL parameter"""
    title: str = Field('', max_length=300)
    description: str = Field('', description="Job posting text")
    timestamp: Optional[float] = None

    @model_validator(mode='before')
    @classmethod
    def accept_job_title_alias(cls, values):
        if isinstance(values, dict) and not values.get('title') and values.get('jobTitle'):
            values = {**values, 'title': values['jobTitle']}
        return values


def validate_request(schema_class: type[BaseModel], data: dict, raise_on_error: bool = True):
    """
    Validate request data against a Pydantic schema.

    Args:
        schema_class: Pydantic model class
        data: Request data to validate
        raise_on_error: If True, raise ValidationError. If False, return (is_valid, errors)

    Returns:
        If raise_on_error=True: Validated data dict
        If raise_on_error=False: (is_valid: bool, validated_data: dict, errors: list)
    """
    try:
        validated = schema_class(**(data or {}))
        if raise_on_error:
            return validated.model_dump(exclude_none=True)
        else:
            return True, validated.model_dump(exclude_none=True), []
    except Exception as e:
        if isinstance(e, ValidationError):
            raise
        # Convert Pydantic validation errors to our ValidationError
        errors = []
        if hasattr(e, 'errors'):
            for error in e.errors():
                field = '.'.join(str(x) for x in error.get('loc', []))
                message = error.get('msg', 'Validation error')
                errors.append(f"{field}: {message}")

        error_message = '; '.join(errors) if errors else str(e)

        if raise_on_error:
            raise ValidationError(error_message, details={'validation_errors': errors})
        else:
            return False, {}, errors
