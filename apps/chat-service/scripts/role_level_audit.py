#!/usr/bin/env python3
"""
Role Level Audit Script

Scans chats for role level anomalies and prints a concise report:
- ranked roles without a level (left behind by a failed reorder rollback)
- duplicate, missing or out-of-range levels (levels must be exactly 1..N)
- a level counter that disagrees with the number of ranked roles

Reads the database URL the same way the service does (DATABASE_URL or
POSTGRES_* env vars).

Usage:
  python scripts/role_level_audit.py [--json] [--chat-id UUID] [--repair]

--repair renumbers every anomalous chat to 1..N in current order and syncs
its counter. Exit code is 1 when anomalies were found and not repaired.
"""
from __future__ import annotations

import argparse
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chat_core.db.repositories import roles as roles_repo
from chat_core.utils.log_config import configure_logging

logger = logging.getLogger("role_level_audit")


@dataclass
class AuditReport:
    anomalies: List[Dict[str, Any]]
    repaired: List[str] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps({'anomalies': self.anomalies, 'repaired': self.repaired}, indent=2)

    def pretty(self) -> str:
        if not self.anomalies:
            return "No role level anomalies found"
        lines = []
        for report in self.anomalies:
            lines.append(f"chat {report['chat_id']}:")
            for k in ('role_count', 'counter', 'null_levels', 'duplicate_levels', 'missing_levels', 'unexpected_levels'):
                lines.append(f"  {k}: {report[k]}")
        if self.repaired:
            lines.append(f"repaired: {', '.join(self.repaired)}")
        return "\n".join(lines)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Audit per-chat role levels")
    parser.add_argument('--json', action='store_true', help="print the report as JSON")
    parser.add_argument('--chat-id', type=uuid.UUID, default=None, help="audit a single chat")
    parser.add_argument('--repair', action='store_true', help="renumber anomalous chats to 1..N")
    return parser.parse_args(argv)


def run_audit(db, chat_id: Optional[uuid.UUID] = None, repair: bool = False) -> AuditReport:
    report = AuditReport(anomalies=roles_repo.audit_role_levels(db, chat_id))
    if repair:
        for anomaly in report.anomalies:
            roles_repo.densify_role_levels(db, uuid.UUID(anomaly['chat_id']))
            report.repaired.append(anomaly['chat_id'])
    return report


def main(argv: Optional[List[str]] = None, session_factory=None) -> int:
    configure_logging()
    args = _parse_args(argv)
    if session_factory is None:
        from chat_core.db.database import SessionLocal
        session_factory = SessionLocal

    db = session_factory()
    try:
        report = run_audit(db, args.chat_id, args.repair)
    finally:
        db.close()

    logger.info("role_level_audit: anomalies=%d repaired=%d", len(report.anomalies), len(report.repaired))
    print(report.to_json() if args.json else report.pretty())
    return 1 if report.anomalies and not report.repaired else 0


if __name__ == '__main__':
    raise SystemExit(main())
