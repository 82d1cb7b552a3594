# cash_planner/manual.py
import yaml

from cash_planner.database import add_transactions
from cash_planner.errors import ValidationError


def load_manual_entries(path):
    """Load transaction entries from a YAML file (a list of mappings)."""
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if not isinstance(data, list):
        raise ValidationError(f"Expected a list of transactions in {path}")
    return data


def import_manual_transactions(path, db_path, owner_id):
    """Validate and store every entry of a YAML file for ``owner_id``.

    Entries use the wire field names (``startDate``) or their snake_case
    spelling (``start_date``); YAML dates are accepted unquoted. The file is
    imported all or nothing.
    """
    return add_transactions(db_path, owner_id, load_manual_entries(path))
