"""Expense data models."""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import ValidationError
from shared.formatters import to_calendar_date


class ExpenseCategory(str, Enum):
    """Closed set of expense categories."""

    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    UTILITIES = "utilities"
    HEALTH = "health"
    EDUCATION = "education"
    TRAVEL = "travel"
    OTHER = "other"


class PhotoData(BaseModel):
    """Base64 photo payload sent by the mobile clients."""

    base64: str = Field(..., description="Base64-encoded image data")
    mime_type: str = Field(default="image/jpeg", alias="mimeType")

    class Config:
        """Pydantic config."""
        populate_by_name = True


class ExpenseCreate(BaseModel):
    """Expense creation request model."""

    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Expense amount")
    category: ExpenseCategory
    description: str = Field(..., min_length=1, max_length=255)
    date: str = Field(..., description="Expense date (YYYY-MM-DD or ISO datetime)")
    photo: Optional[PhotoData] = None

    @field_validator('date')
    @classmethod
    def check_date(cls, value: str) -> str:
        return _iso_date(value)

    class Config:
        """Pydantic config."""
        use_enum_values = True
        str_strip_whitespace = True


class ExpenseUpdate(BaseModel):
    """Expense update request model."""

    amount: Optional[float] = Field(None, gt=0, allow_inf_nan=False, description="Expense amount")
    category: Optional[ExpenseCategory] = Field(None, description="Expense category")
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    date: Optional[str] = Field(None, description="Expense date (YYYY-MM-DD or ISO datetime)")

    @field_validator('date')
    @classmethod
    def check_date(cls, value: Optional[str]) -> Optional[str]:
        return _iso_date(value) if value is not None else None

    class Config:
        """Pydantic config."""
        use_enum_values = True
        str_strip_whitespace = True


class Expense(BaseModel):
    """Expense model."""

    id: str
    user_id: Optional[str] = None
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    category: ExpenseCategory
    description: str = Field(..., min_length=1)
    date: str
    photo_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator('date')
    @classmethod
    def check_date(cls, value: str) -> str:
        return _iso_date(value)

    class Config:
        """Pydantic config."""
        from_attributes = True
        use_enum_values = True

    @property
    def calendar_date(self) -> str:
        """UTC calendar date of the expense (YYYY-MM-DD)."""
        return to_calendar_date(self.date)


class FilterOptions(BaseModel):
    """Optional filter criteria; an absent field does not constrain."""

    category: Optional[ExpenseCategory] = None
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    min_amount: Optional[float] = Field(None, alias="minAmount")
    max_amount: Optional[float] = Field(None, alias="maxAmount")
    search: Optional[str] = None

    class Config:
        """Pydantic config."""
        populate_by_name = True
        use_enum_values = True

    @field_validator('category', mode='before')
    @classmethod
    def blank_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator('search', mode='before')
    @classmethod
    def empty_search_is_absent(cls, value: Any) -> Any:
        # Whitespace is a real substring to match
        return None if value == '' else value

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def normalize_bound(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return _iso_date(value, calendar=True)

    @field_validator('min_amount', 'max_amount', mode='before')
    @classmethod
    def zero_is_absent(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if float(value) == 0:
            return None
        return value

    def is_empty(self) -> bool:
        """True when no constraint is active."""
        return all(value is None for value in self.model_dump().values())


class CategoryTotal(BaseModel):
    """Accumulated amount and count for one category."""

    amount: float = 0.0
    count: int = 0


class ExpenseStats(BaseModel):
    """Totals keyed by raw category value."""

    total_amount: float
    total_count: int
    category_summary: Dict[str, CategoryTotal]


class InsertChange(BaseModel):
    """A row was inserted."""

    type: Literal["INSERT"] = "INSERT"
    record: Expense


class UpdateChange(BaseModel):
    """A row was updated."""

    type: Literal["UPDATE"] = "UPDATE"
    record: Expense


class DeleteChange(BaseModel):
    """A row was deleted."""

    type: Literal["DELETE"] = "DELETE"
    expense_id: str


ExpenseChange = Annotated[
    Union[InsertChange, UpdateChange, DeleteChange],
    Field(discriminator="type")
]


def _iso_date(value: Any, calendar: bool = False) -> str:
    """Check an ISO date or datetime; optionally reduce it to the UTC calendar date."""
    try:
        day = to_calendar_date(value)
    except ValidationError:
        raise ValueError("Invalid date format. Use YYYY-MM-DD or an ISO datetime")
    return day if calendar else value


def parse_expense(data: Union[Dict[str, Any], Expense]) -> Expense:
    """
    Validate one expense record.

    Args:
        data: Raw row or an Expense

    Returns:
        Expense instance

    Raises:
        ValidationError: If a field is missing or malformed
    """
    if isinstance(data, Expense):
        return data

    try:
        return Expense.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid expense record: {_describe(e)}")


def parse_expenses(items: List[Union[Dict[str, Any], Expense]]) -> List[Expense]:
    """Validate a list of expense records, preserving order."""
    return [parse_expense(item) for item in items]


def parse_model(model: type, data: Any) -> Any:
    """Validate request data against a model, raising the domain ValidationError."""
    if isinstance(data, model):
        return data

    try:
        return model.model_validate(data or {})
    except PydanticValidationError as e:
        raise ValidationError(_describe(e))


def _describe(error: PydanticValidationError) -> str:
    """Flatten pydantic errors into one message."""
    parts = []
    for detail in error.errors():
        location = '.'.join(str(part) for part in detail.get('loc', ()))
        message = detail.get('msg', 'invalid value')
        parts.append(f"{location}: {message}" if location else message)
    return '; '.join(parts)
