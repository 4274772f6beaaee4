"""
Chart data projection.

Turns a chart widget's configuration into renderer records, reading the
referenced table through the sheet engine so charts always show computed
values rather than formula text.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .exceptions import NoDataSourceError
from .models import ChartConfig, Section
from .sheet_engine import SheetEngine
from .tree import collect_tables


Record = Dict[str, Union[str, float]]

_LEADING_NUMBER_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_chart_number(text: Optional[str]) -> float:
    """
    Numeric value of a computed cell for charting.

    '$', ',' and '%' are stripped, then the leading number is read; anything
    that does not start with a number counts as 0.
    """
    if not text:
        return 0.0
    match = _LEADING_NUMBER_RE.match(re.sub(r"[$,%]", "", text))
    if not match:
        return 0.0
    return float(match.group(0))


@dataclass
class TableSource:
    """A table widget offered as a chart data source."""

    id: str
    title: str
    data: List[List[str]]


class ChartProjector:
    """
    Projects table contents into chart series records.
    """

    def __init__(self, engine: SheetEngine):
        self.engine = engine

    def available_tables(self, sections: List[Section]) -> List[TableSource]:
        """Every table widget in the document, in section then tree order."""
        return [
            TableSource(id=table.id, title=f"Table in {section.title}", data=table.table_data)
            for section in sections
            for table in collect_tables(section.widgets)
        ]

    def project(self, config: Optional[ChartConfig], sections: List[Section],
                header_rows: int = 1) -> List[Record]:
        """
        Build chart records for a chart configuration.

        Args:
            config: The chart widget's configuration (None when unconfigured)
            sections: All sections of the document
            header_rows: Leading rows treated as headers and not charted

        Returns:
            One record per data row: ``name`` holds the axis label and every
            series column contributes a numeric field named after its header

        Raises:
            NoDataSourceError: If the document contains no table widget at all
        """
        tables = self.available_tables(sections)
        if not tables:
            raise NoDataSourceError("No table available; add a table widget first")
        if config is None:
            return []
        source = next((table for table in tables if table.id == config.table_id), None)
        if source is None or not source.data:
            return []

        self.engine.update_sheet(source.id, source.data)
        computed = self.engine.get_computed_data(source.id, len(source.data), len(source.data[0]))
        headers = computed[0] if computed and header_rows > 0 else []

        records: List[Record] = []
        for index, row in enumerate(computed[header_rows:]):
            label = row[config.x_axis_column] if config.x_axis_column < len(row) else ""
            record: Record = {"name": label or f"Row {index + 1}"}
            for col in config.data_columns:
                header = headers[col] if col < len(headers) else ""
                key = header or f"Col {col}"
                record[key] = parse_chart_number(row[col] if col < len(row) else "")
            records.append(record)
        return records
