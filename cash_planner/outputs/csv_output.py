# cash_planner/outputs/csv_output.py

import csv
import logging
import os

from cash_planner.outputs.base import BaseOutput

logger = logging.getLogger(__name__)


class CSVOutput(BaseOutput):
    """
    Writes projected occurrences to Occurrences<start>_<end>.csv, sorted by
    date, with the signed amount next to the raw one.
    """
    HEADERS = ['date', 'transaction_id', 'name', 'type', 'amount', 'signed_amount', 'modified']

    def __init__(self, config):
        self.config     = config
        self.output_dir = config.get('output_dir', 'data')
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, occurrences, window_start, window_end):
        filename = f"Occurrences{window_start.isoformat()}_{window_end.isoformat()}.csv"
        out_path = os.path.join(self.output_dir, filename)

        rows = sorted(occurrences, key=lambda o: (o.date, o.transaction_id))
        with open(out_path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            for occ in rows:
                writer.writerow([
                    occ.date.isoformat(),
                    occ.transaction_id,
                    occ.name,
                    occ.type,
                    f"{occ.amount:.2f}",
                    f"{occ.signed_amount:.2f}",
                    'yes' if occ.modified else '',
                ])

        logger.info("Written %d occurrences to %s", len(rows), out_path)
        return out_path
