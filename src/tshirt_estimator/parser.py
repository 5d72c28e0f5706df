"""CSV parsing and validation for bulk task import."""

from __future__ import annotations

import csv
import io

import pydantic
import structlog

from .exceptions import ValidationError
from .interfaces import ParserInterface
from .models import TaskDraft

logger = structlog.get_logger(__name__)

REQUIRED_COLUMNS = ("title", "description")


class InputParser(ParserInterface):
    """Turns uploaded CSV text into validated task drafts."""

    def parse_csv(self, csv_data: str) -> list[TaskDraft]:
        """Parse CSV data with ``title`` and ``description`` columns.

        Header names are matched case-insensitively and surrounding whitespace
        is ignored in both headers and cells. Blank lines are skipped; other
        columns are ignored.

        Args:
            csv_data: Raw CSV text including a header row

        Returns:
            One draft per data row, in file order

        Raises:
            ValidationError: If the header is missing a required column, there
                are no data rows, or a row has an empty title or description
        """
        reader = csv.reader(io.StringIO(csv_data.strip()))
        rows = [row for row in reader if any(cell.strip() for cell in row)]

        if not rows:
            raise ValidationError("Invalid CSV format: no header row found")

        header = [name.strip().lower() for name in rows[0]]
        missing = [column for column in REQUIRED_COLUMNS if column not in header]
        if missing:
            raise ValidationError(
                f"Invalid CSV format: missing column(s) {', '.join(missing)}",
                details={"columns": ", ".join(header)},
            )

        title_index = header.index("title")
        description_index = header.index("description")

        drafts: list[TaskDraft] = []
        errors: list[str] = []
        for row_number, row in enumerate(rows[1:], start=2):
            title = row[title_index].strip() if title_index < len(row) else ""
            description = row[description_index].strip() if description_index < len(row) else ""
            try:
                drafts.append(TaskDraft(title=title, description=description))
            except pydantic.ValidationError as e:
                fields = ", ".join(str(error["loc"][0]) for error in e.errors())
                errors.append(f"row {row_number}: {fields} is required")

        if errors:
            logger.warning("Rejected CSV import", errors=errors)
            raise ValidationError(
                "Invalid CSV format: " + "; ".join(errors), details={"rows": "; ".join(errors)}
            )

        if not drafts:
            raise ValidationError("Invalid CSV format: no task rows found")

        logger.info("Parsed CSV import", task_count=len(drafts))
        return drafts
