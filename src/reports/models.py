"""Report and export data models."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from expenses.models import CategoryTotal, Expense, ExpenseCategory


class ExportFormat(str, Enum):
    """Supported export encodings."""

    CSV = "csv"
    JSON = "json"
    SUMMARY = "summary"


class DateRange(BaseModel):
    """Formatted first and last expense dates."""

    start: str = ""
    end: str = ""


class ExportDateRange(BaseModel):
    """Optional inclusive calendar bounds applied before exporting."""

    start: Optional[str] = None
    end: Optional[str] = None


class ExportOptions(BaseModel):
    """Export request options."""

    format: str = Field(..., description="csv, json or summary")
    include_headers: bool = Field(default=True, alias="includeHeaders")
    date_range: Optional[ExportDateRange] = Field(None, alias="dateRange")
    categories: Optional[List[ExpenseCategory]] = None

    class Config:
        """Pydantic config."""
        populate_by_name = True
        use_enum_values = True


class ExportSummary(BaseModel):
    """Totals derived from a set of expenses; recomputed on every export."""

    total_amount: float = 0.0
    total_count: int = 0
    date_range: DateRange = Field(default_factory=DateRange)
    category_summary: Dict[str, CategoryTotal] = Field(default_factory=dict)
    expenses: List[Expense] = Field(default_factory=list)

    @property
    def average_amount(self) -> float:
        """Mean expense amount, 0 for an empty set."""
        return self.total_amount / self.total_count if self.total_count > 0 else 0
