#!/usr/bin/env python3
"""
Load a center fare table from a CSV/Excel file.

Uses the same import path as the API: rows are validated first and
written only with --commit.

Example:
  python scripts/seed_rates.py rates.csv --commit
"""

import argparse
import json
import sys
from pathlib import Path

from logiops.core.config import get_config
from logiops.core.errors import LogiOpsError
from logiops.core.logging import configure_logging
from logiops.data.database import create_engine_from_settings, create_session_factory, init_db, session_scope
from logiops.data.models.common import ImportMode
from logiops.services.center_fares import CenterFareService


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import center fares")
    parser.add_argument("path", type=Path, help="CSV or XLSX file")
    parser.add_argument("--commit", action="store_true", help="write valid rows (default: simulate)")
    parser.add_argument("--actor", default="seed", help="user recorded in the audit log")
    args = parser.parse_args(argv)

    config = get_config()
    configure_logging(config.env)

    engine = create_engine_from_settings(config.env)
    init_db(engine)
    mode = ImportMode.COMMIT if args.commit else ImportMode.SIMULATE

    try:
        with session_scope(create_session_factory(engine)) as session:
            service = CenterFareService(session, config, actor=args.actor)
            result = service.import_rows(args.path.name, args.path.read_bytes(), mode.value)
    except LogiOpsError as e:
        print(json.dumps({"ok": False, "error": e.to_dict()}, ensure_ascii=False, indent=2))
        return 1

    print(json.dumps(result.model_dump(exclude={"preview"}), ensure_ascii=False, indent=2))
    return 0 if not result.errors else 2


if __name__ == "__main__":
    sys.exit(main())
