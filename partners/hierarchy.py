from typing import List, Optional
from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from extensions import db
from models import User, PartnerHierarchy
from partners.audit import AuditHelper
from partners.config import CommissionConfigHelper
from partners.exceptions import AlreadyAttached, CycleDetected, PartnerNotFound


class PartnerHierarchyHelper:
    """
    Partner hierarchy index using the closure table pattern, bounded at the
    deepest payable level.
    Table expected: partner_hierarchy(child_id int, parent_id int, level int)
    """

    MAX_DEPTH = CommissionConfigHelper.MAX_LEVEL

    @staticmethod
    def get_partner(partner_id: int) -> User:
        partner = db.session.get(User, partner_id)
        if partner is None:
            raise PartnerNotFound(f"Partner {partner_id} not found")
        return partner

    @staticmethod
    def get_ancestor_chain(partner_id: int, limit: Optional[int] = None) -> List[int]:
        """
        Ancestor ids nearest first, following parent_partner_id without a depth bound
        """
        partner = PartnerHierarchyHelper.get_partner(partner_id)

        chain = []
        visited = {partner_id}
        parent_id = partner.parent_partner_id

        while parent_id is not None:
            if parent_id in visited:
                current_app.logger.error(
                    f"Cycle in parent chain of partner {partner_id} at {parent_id}: {chain}"
                )
                break

            chain.append(parent_id)
            visited.add(parent_id)
            if limit is not None and len(chain) >= limit:
                break

            parent_id = db.session.execute(
                select(User.parent_partner_id).where(User.id == parent_id)
            ).scalar_one_or_none()

        return chain

    @staticmethod
    def is_descendant(ancestor_id: int, descendant_id: int) -> bool:
        """
        Return True if ancestor_id is an ancestor of descendant_id (level >= 1)
        """
        indexed = PartnerHierarchy.query.filter_by(
            child_id=descendant_id,
            parent_id=ancestor_id
        ).first()
        if indexed:
            return True

        # The index stops at MAX_DEPTH, deeper ancestors need the parent chain
        return ancestor_id in PartnerHierarchyHelper.get_ancestor_chain(descendant_id)

    @staticmethod
    def attach_partner(child_id: int, parent_id: int, actor_id: Optional[int] = None) -> None:
        """
        Recruit child_id under parent_id and extend the hierarchy index.
        Must be called inside an existing transaction (flushes, no commit here).

        Raises CycleDetected, AlreadyAttached or PartnerNotFound; nothing is
        written when any of them is raised.
        """
        if child_id == parent_id:
            current_app.logger.warning(f"Partner {child_id} attempted self-attachment")
            raise CycleDetected(f"Partner {child_id} cannot be its own parent")

        child = PartnerHierarchyHelper.get_partner(child_id)
        PartnerHierarchyHelper.get_partner(parent_id)

        if child.parent_partner_id is not None:
            raise AlreadyAttached(
                f"Partner {child_id} is already attached to {child.parent_partner_id}"
            )

        if PartnerHierarchyHelper.is_descendant(child_id, parent_id):
            current_app.logger.warning(
                f"Cycle detected: parent_id={parent_id} is a descendant of child_id={child_id}"
            )
            raise CycleDetected(f"Partner {parent_id} is a descendant of partner {child_id}")

        parent_edges = PartnerHierarchy.query.filter(
            PartnerHierarchy.child_id == parent_id,
            PartnerHierarchy.level < PartnerHierarchyHelper.MAX_DEPTH
        ).order_by(PartnerHierarchy.level.asc()).all()

        new_edges = [PartnerHierarchy(child_id=child_id, parent_id=parent_id, level=1)]
        new_edges.extend(
            PartnerHierarchy(child_id=child_id, parent_id=edge.parent_id, level=edge.level + 1)
            for edge in parent_edges
        )

        try:
            with db.session.begin_nested():
                # First writer wins: only a still-unattached child is updated
                result = db.session.execute(
                    update(User)
                    .where(User.id == child_id, User.parent_partner_id.is_(None))
                    .values(parent_partner_id=parent_id)
                )
                if result.rowcount == 0:
                    raise AlreadyAttached(f"Partner {child_id} was attached concurrently")

                db.session.add_all(new_edges)
                db.session.flush()
        except IntegrityError as exc:
            current_app.logger.warning(
                f"Concurrent attachment of partner {child_id} lost the race: {exc.orig}"
            )
            raise AlreadyAttached(f"Partner {child_id} was attached concurrently") from exc

        AuditHelper.log_event(
            'partner_attached', 'user', child_id,
            actor_id=actor_id,
            details={
                'parent_id': parent_id,
                'levels_indexed': [edge.level for edge in new_edges],
            }
        )

        current_app.logger.info(
            f"Partner {child_id} attached under {parent_id} ({len(new_edges)} hierarchy rows)"
        )

    @staticmethod
    def set_partner_level(partner_id: int, partner_level: int, actor_id: Optional[int] = None) -> User:
        """
        Set the denormalized commission tier; independent of hierarchy depth
        """
        if not isinstance(partner_level, int) or isinstance(partner_level, bool) or not 1 <= partner_level <= 3:
            raise ValueError("partner_level must be an integer between 1 and 3")

        partner = PartnerHierarchyHelper.get_partner(partner_id)
        previous = partner.partner_level
        partner.partner_level = partner_level

        AuditHelper.log_event(
            'partner_level_changed', 'user', partner_id,
            actor_id=actor_id,
            details={'from': previous, 'to': partner_level}
        )
        return partner
