"""Organization bootstrap and member management."""
from __future__ import annotations

import logging
from typing import Optional

from sqlmodel import Session, select

from ..domain.clock import NowFn, utcnow
from ..domain.errors import Conflict, Forbidden, NotFound
from ..domain.models import Member, Organization, Shift
from ..domain.policy import Action, Role
from ..domain.schemas import MemberCreate, MemberUpdate, Principal
from ..infra.db import storage_errors
from .authz import AccessEvaluator, context_for

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class MemberService:
    def __init__(self, session: Session, now_fn: NowFn = utcnow) -> None:
        self.session = session
        self.now_fn = now_fn

    def bootstrap_organization(self, principal: Principal, name: str) -> tuple[Organization, Member]:
        """Create an organization with the principal as its first coordinator."""
        now = self.now_fn()
        org = Organization(name=name.strip(), created_by=principal.id, created_at=now)
        member = Member(
            organization_id=org.id,
            linked_principal_id=principal.id,
            email=normalize_email(principal.email),
            role=Role.COORDINATOR,
            created_at=now,
            updated_at=now,
        )
        with storage_errors("bootstrap organization"):
            self.session.add(org)
            self.session.add(member)
            self.session.flush()
        logger.info("organization %s bootstrapped by %s", org.id, principal.id)
        return org, member

    def get_organization(self, organization_id: str) -> Organization:
        org = self.session.get(Organization, organization_id)
        if not org:
            raise NotFound("Organization not found")
        return org

    def link_principal(self, organization_id: str, principal: Principal) -> Optional[Member]:
        """Resolve the caller's member record, linking it on first login.

        Lookup goes by linked principal id first, then by email. The link is
        written exactly once; a member already linked to someone else is never
        re-bound. Inactive members resolve to None.
        """
        member = self.session.exec(
            select(Member).where(
                Member.organization_id == organization_id,
                Member.linked_principal_id == principal.id,
            )
        ).first()
        if member is None:
            member = self.session.exec(
                select(Member).where(
                    Member.organization_id == organization_id,
                    Member.email == normalize_email(principal.email),
                )
            ).first()
            if member is None:
                return None
            if member.linked_principal_id is None:
                member.linked_principal_id = principal.id
                member.updated_at = self.now_fn()
                with storage_errors("link member"):
                    self.session.add(member)
                    self.session.flush()
                logger.info("member %s linked to principal %s", member.id, principal.id)
            elif member.linked_principal_id != principal.id:
                logger.warning(
                    "principal %s matched member %s by email but it is linked elsewhere",
                    principal.id,
                    member.id,
                )
                return None
        if not member.active:
            return None
        return member

    def list_members(self, organization_id: str) -> list[Member]:
        stmt = select(Member).where(Member.organization_id == organization_id).order_by(Member.name)
        return list(self.session.exec(stmt).all())

    def get_member(self, organization_id: str, member_id: str) -> Member:
        member = self.session.get(Member, member_id)
        if not member or member.organization_id != organization_id:
            raise NotFound("Member not found")
        return member

    def create_member(self, organization_id: str, actor: Optional[Member], data: MemberCreate) -> Member:
        self._require_team_manager(actor, organization_id)
        email = normalize_email(data.email)
        exists = self.session.exec(
            select(Member).where(Member.organization_id == organization_id, Member.email == email)
        ).first()
        if exists:
            raise Conflict("A member with this email already exists")
        now = self.now_fn()
        member = Member(
            organization_id=organization_id,
            email=email,
            name=data.name.strip(),
            phone=data.phone.strip(),
            role=data.role,
            can_elevate=data.can_elevate and data.role == Role.NURSE,
            color=data.color if data.role == Role.CAREGIVER else None,
            created_at=now,
            updated_at=now,
        )
        with storage_errors("create member"):
            self.session.add(member)
            self.session.flush()
            self.session.refresh(member)
        return member

    def update_member(
        self,
        organization_id: str,
        actor: Optional[Member],
        member_id: str,
        data: MemberUpdate,
    ) -> Member:
        self._require_team_manager(actor, organization_id)
        member = self.get_member(organization_id, member_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field != "color":
                continue
            if isinstance(value, str):
                value = value.strip()
            setattr(member, field, value)
        # elevation and colour only mean something for one role each
        if member.role != Role.NURSE:
            member.can_elevate = False
        if member.role != Role.CAREGIVER:
            member.color = None
        member.updated_at = self.now_fn()
        with storage_errors("update member"):
            self.session.add(member)
            self.session.flush()
            self.session.refresh(member)
        return member

    def deactivate_member(self, organization_id: str, actor: Optional[Member], member_id: str) -> Member:
        return self.update_member(organization_id, actor, member_id, MemberUpdate(active=False))

    def delete_member(self, organization_id: str, actor: Optional[Member], member_id: str) -> None:
        """Hard delete. Historical shifts keep pointing at the removed id."""
        self._require_team_manager(actor, organization_id)
        member = self.get_member(organization_id, member_id)
        if actor is not None and member.id == actor.id:
            raise Forbidden("Coordinators cannot delete themselves")
        referencing = self.session.exec(
            select(Shift).where(Shift.caregiver_id == member.id)
        ).all()
        if referencing:
            logger.warning(
                "hard-deleting member %s leaves %d shift(s) with a dangling caregiver reference",
                member.id,
                len(referencing),
            )
        with storage_errors("delete member"):
            self.session.delete(member)
            self.session.flush()

    def _require_team_manager(self, actor: Optional[Member], organization_id: str) -> None:
        if actor is None or actor.organization_id != organization_id:
            raise Forbidden("Not a member of this organization")
        AccessEvaluator(self.session).enforce(
            context_for(actor), Action.MANAGE_TEAM, f"organizations/{organization_id}/members"
        )
