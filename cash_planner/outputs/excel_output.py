# cash_planner/outputs/excel_output.py

"""Excel output module backed by XlsxWriter.

Projected occurrences are written one worksheet per month, each formatted as
an Excel table. A ``Summary`` worksheet lists income, expense, net and the
running balance per month, followed by the window totals.
"""

from __future__ import annotations

import logging
import os

import xlsxwriter

from cash_planner.outputs.base import BaseOutput
from cash_planner.projection import cash_flow_summary

logger = logging.getLogger(__name__)


class ExcelOutput(BaseOutput):
    """Generate a local Excel workbook of projected occurrences."""

    MONTH_FMT = "%B %Y"
    SUMMARY = "Summary"
    HEADERS = ["date", "name", "type", "amount", "signed amount"]

    def __init__(self, config: dict):
        self.config = config
        self.output_dir = config.get("output_dir", "data")
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, occurrences, window_start, window_end):
        occurrences = sorted(occurrences, key=lambda o: (o.date, o.transaction_id))
        out_path = os.path.join(
            self.output_dir,
            f"CashPlan{window_start.isoformat()}_{window_end.isoformat()}.xlsx",
        )

        workbook = xlsxwriter.Workbook(out_path)
        amount_fmt = workbook.add_format({"num_format": "$#,##0.00"})

        months = sorted({o.date.strftime("%Y-%m") for o in occurrences})
        for month_str in months:
            month_rows = [o for o in occurrences if o.date.strftime("%Y-%m") == month_str]
            ws = workbook.add_worksheet(month_rows[0].date.strftime(self.MONTH_FMT))
            ws.freeze_panes(1, 0)
            ws.write_row(0, 0, self.HEADERS)
            for row_idx, occ in enumerate(month_rows, start=1):
                ws.write_row(row_idx, 0, [occ.date.isoformat(), occ.name, occ.type])
                ws.write_number(row_idx, 3, float(occ.amount), amount_fmt)
                ws.write_number(row_idx, 4, occ.signed_amount, amount_fmt)
            ws.set_column(3, 4, None, amount_fmt)
            ws.add_table(0, 0, len(month_rows), len(self.HEADERS) - 1, {
                "columns": [{"header": h} for h in self.HEADERS]
            })

        summary = cash_flow_summary(occurrences, period="month")
        summary_ws = workbook.add_worksheet(self.SUMMARY)
        summary_ws.freeze_panes(1, 0)
        summary_ws.set_column(1, 4, None, amount_fmt)
        summary_ws.write_row(0, 0, ["month", "income", "expense", "net", "balance"])
        row_idx = 1
        for row in summary["periods"]:
            summary_ws.write(row_idx, 0, row["period"])
            for col, key in enumerate(("income", "expense", "net", "balance"), start=1):
                summary_ws.write_number(row_idx, col, row[key], amount_fmt)
            row_idx += 1
        summary_ws.write(row_idx, 0, "Total")
        summary_ws.write_number(row_idx, 1, summary["income"], amount_fmt)
        summary_ws.write_number(row_idx, 2, summary["expense"], amount_fmt)
        summary_ws.write_number(row_idx, 3, summary["net"], amount_fmt)

        workbook.close()
        logger.info("Written Excel workbook %s", out_path)
        return out_path
