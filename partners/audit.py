from collections import defaultdict
from typing import List, Dict, Any, Optional, Tuple
from flask import current_app
from sqlalchemy import select
from extensions import db
from logger import audit_logger
from models import AuditLog, PartnerHierarchy, User
from partners.config import CommissionConfigHelper


class AuditHelper:
    """Audit trail for state-changing partner network operations"""

    @staticmethod
    def log_event(action: str, entity_type: str, entity_id=None, actor_id: Optional[int] = None,
                  details: Optional[Dict[str, Any]] = None, ip_address: Optional[str] = None) -> AuditLog:
        """
        Record an audit row in the current transaction (the caller commits)
        """
        entry = AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details or {},
            ip_address=ip_address,
        )
        db.session.add(entry)

        audit_logger.info(
            f"AUDIT action={action} entity={entity_type}:{entity_id} actor={actor_id} details={details or {}}"
        )
        return entry

    @staticmethod
    def get_entity_history(entity_type: str, entity_id, limit: int = 50) -> List[AuditLog]:
        return AuditLog.query.filter_by(
            entity_type=entity_type,
            entity_id=str(entity_id)
        ).order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()


class HierarchyIntegrityHelper:
    """
    Compares the hierarchy index against the parent_partner_id adjacency list.
    Repairs are append-only: missing rows are inserted, nothing is rewritten.
    """

    @staticmethod
    def _load_parent_map() -> Dict[int, Optional[int]]:
        rows = db.session.execute(select(User.id, User.parent_partner_id)).all()
        return {row.id: row.parent_partner_id for row in rows}

    @staticmethod
    def _expected_chain(partner_id: int, parent_of: Dict[int, Optional[int]]) -> Tuple[List[int], bool]:
        """Ancestor ids nearest first, plus a flag when the chain loops back on itself"""
        chain = []
        visited = {partner_id}
        current = parent_of.get(partner_id)

        while current is not None:
            if current in visited:
                return chain, True
            chain.append(current)
            visited.add(current)
            current = parent_of.get(current)

        return chain, False

    @staticmethod
    def find_inconsistencies() -> List[Dict[str, Any]]:
        """
        Report missing index rows, unexpected index rows and parent-chain cycles
        """
        max_depth = CommissionConfigHelper.MAX_LEVEL
        parent_of = HierarchyIntegrityHelper._load_parent_map()

        indexed = defaultdict(dict)
        for edge in PartnerHierarchy.query.all():
            indexed[edge.child_id][edge.level] = edge.parent_id

        issues = []
        for partner_id in sorted(set(parent_of) | set(indexed)):
            chain, has_cycle = HierarchyIntegrityHelper._expected_chain(partner_id, parent_of)
            if has_cycle:
                issues.append({
                    'type': 'cycle',
                    'partner_id': partner_id,
                    'chain': chain,
                })

            expected = {level: ancestor for level, ancestor in enumerate(chain[:max_depth], start=1)}
            actual = indexed.get(partner_id, {})

            for level, ancestor_id in expected.items():
                if actual.get(level) != ancestor_id:
                    issues.append({
                        'type': 'missing_edge',
                        'partner_id': partner_id,
                        'ancestor_id': ancestor_id,
                        'level': level,
                        'indexed_ancestor_id': actual.get(level),
                    })

            for level, ancestor_id in actual.items():
                if expected.get(level) != ancestor_id:
                    issues.append({
                        'type': 'unexpected_edge',
                        'partner_id': partner_id,
                        'ancestor_id': ancestor_id,
                        'level': level,
                    })

        if issues:
            current_app.logger.warning(f"Hierarchy integrity scan found {len(issues)} issues")
        else:
            current_app.logger.info("Hierarchy integrity scan found no issues")

        return issues

    @staticmethod
    def repair_missing_edges(actor_id: Optional[int] = None) -> int:
        """
        Insert index rows that are missing and whose (child, level) slot is free.
        Returns number of rows inserted.
        """
        issues = HierarchyIntegrityHelper.find_inconsistencies()
        inserted = 0

        for issue in issues:
            if issue['type'] != 'missing_edge' or issue['indexed_ancestor_id'] is not None:
                continue

            already_linked = PartnerHierarchy.query.filter_by(
                child_id=issue['partner_id'],
                parent_id=issue['ancestor_id']
            ).first()
            if already_linked:
                continue

            db.session.add(PartnerHierarchy(
                child_id=issue['partner_id'],
                parent_id=issue['ancestor_id'],
                level=issue['level'],
            ))
            inserted += 1

        if inserted:
            db.session.flush()
            AuditHelper.log_event(
                'hierarchy_repaired', 'partner_hierarchy',
                actor_id=actor_id,
                details={'rows_inserted': inserted}
            )

        current_app.logger.info(f"Hierarchy repair inserted {inserted} rows")
        return inserted
