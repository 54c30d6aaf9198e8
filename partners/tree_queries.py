from collections import defaultdict
from typing import List, Dict, Any, Optional, Iterator
from flask import current_app
from sqlalchemy import func
from extensions import db
from models import User, PartnerHierarchy
from partners.hierarchy import PartnerHierarchyHelper


class TreeNode:
    """One partner in a downline tree, children ordered by partner id"""

    def __init__(self, partner: User, depth: int):
        self.partner_id = partner.id
        self.name = partner.display_name
        self.partner_code = partner.partner_id
        self.referral_code = partner.referral_code
        self.partner_level = partner.partner_level
        self.depth = depth
        self.children: List["TreeNode"] = []

    def iter_descendants(self) -> Iterator["TreeNode"]:
        """Every node below this one, depth first, excluding the node itself"""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def descendant_ids(self) -> List[int]:
        return [node.partner_id for node in self.iter_descendants()]

    def size(self) -> int:
        return sum(1 for _ in self.iter_descendants())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.partner_id,
            "name": self.name,
            "partnerId": self.partner_code,
            "referralCode": self.referral_code,
            "partnerLevel": self.partner_level,
            "depth": self.depth,
            "children": [child.to_dict() for child in self.children],
        }

    def __repr__(self):
        return f'<TreeNode {self.partner_id} depth={self.depth} children={len(self.children)}>'


class PartnerTreeHelper:
    """Read-only hierarchy queries for the dashboard and team views"""

    @staticmethod
    def get_upline(partner_id: int) -> List[PartnerHierarchy]:
        """
        Ancestor rows for the partner, nearest ancestor first.
        Empty for a root partner.
        """
        PartnerHierarchyHelper.get_partner(partner_id)

        return PartnerHierarchy.query.filter_by(
            child_id=partner_id
        ).order_by(PartnerHierarchy.level.asc()).all()

    @staticmethod
    def get_downline(partner_id: int, max_depth: Optional[int] = None) -> TreeNode:
        """
        Nested downline tree rooted at the partner, built on read from
        parent_partner_id one level at a time.

        Args:
            partner_id: Root partner
            max_depth: Levels below the root to include (None = unbounded, 0 = root only)
        """
        if max_depth is not None and max_depth < 0:
            raise ValueError("max_depth must be zero or positive")

        root_partner = PartnerHierarchyHelper.get_partner(partner_id)
        root = TreeNode(root_partner, depth=0)

        nodes = {root_partner.id: root}
        frontier = [root_partner.id]
        depth = 0

        while frontier and (max_depth is None or depth < max_depth):
            depth += 1
            children = User.query.filter(
                User.parent_partner_id.in_(frontier)
            ).order_by(User.id.asc()).all()

            next_frontier = []
            for child in children:
                if child.id in nodes:
                    current_app.logger.error(
                        f"Cycle in downline of partner {partner_id} at partner {child.id}"
                    )
                    continue

                node = TreeNode(child, depth=depth)
                nodes[child.parent_partner_id].children.append(node)
                nodes[child.id] = node
                next_frontier.append(child.id)

            frontier = next_frontier

        return root

    @staticmethod
    def get_level_breakdown(partner_id: int) -> Dict[int, int]:
        """Count of indexed descendants per level, {1: 4, 2: 9, 3: 20}"""
        rows = db.session.query(
            PartnerHierarchy.level,
            func.count(PartnerHierarchy.child_id)
        ).filter(
            PartnerHierarchy.parent_id == partner_id
        ).group_by(PartnerHierarchy.level).all()

        breakdown = defaultdict(int)
        for level, count in rows:
            breakdown[level] = count
        return dict(breakdown)

    @staticmethod
    def get_network_summary(partner_id: int) -> Dict[str, Any]:
        """
        Get comprehensive network summary for a partner
        """
        partner = PartnerHierarchyHelper.get_partner(partner_id)
        upline = PartnerTreeHelper.get_upline(partner_id)

        children = User.query.filter_by(
            parent_partner_id=partner_id
        ).order_by(User.id.asc()).all()

        downline = PartnerTreeHelper.get_downline(partner_id)

        return {
            'partner_id': partner.id,
            'partner_code': partner.partner_id,
            'partner_level': partner.partner_level,
            'depth': len(PartnerHierarchyHelper.get_ancestor_chain(partner_id)),
            'upline': [
                {
                    'id': edge.parent_id,
                    'name': edge.parent.display_name,
                    'level': edge.level,
                }
                for edge in upline
            ],
            'direct_children_count': len(children),
            'direct_children': [
                {
                    'id': child.id,
                    'name': child.display_name,
                    'partner_id': child.partner_id,
                    'created_at': child.created_at.isoformat() if child.created_at else None,
                }
                for child in children
            ],
            'level_breakdown': PartnerTreeHelper.get_level_breakdown(partner_id),
            'total_network_size': downline.size(),
        }
