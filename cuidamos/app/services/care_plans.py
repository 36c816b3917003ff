"""Care-plan collaboration: invite codes, membership and owner-only deletion.

Plans live outside any organization. The owner mints short-lived invite codes;
anyone else holding a live code joins as a collaborator. Collaborator rows
carry the user id and email together, so adding or removing one person is a
single insert or delete and concurrent joins from different users never
overwrite each other.

Every invite row stays redeemable until it expires, even after the owner
mints a newer code: redemption looks the code up directly, while the plan
only keeps a pointer to the most recent one for display.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..config import INVITE_MAX_ATTEMPTS, INVITE_TTL_HOURS
from ..domain.clock import NowFn, utcnow
from ..domain.errors import Conflict, Forbidden, NotFound
from ..domain.invites import generate_invite_code, is_expired, normalize_invite_code, plan_state
from ..domain.models import CarePlan, CareTask, PlanCollaborator, PlanInvite
from ..domain.schemas import (
    CarePlanCreate,
    CarePlanOut,
    CarePlanUpdate,
    CareTaskCreate,
    CareTaskUpdate,
    Principal,
)
from ..infra.db import storage_errors

logger = logging.getLogger(__name__)

INVITE_TTL = timedelta(hours=INVITE_TTL_HOURS)


class CarePlanService:
    def __init__(
        self,
        session: Session,
        now_fn: NowFn = utcnow,
        code_fn: Callable[[], str] = generate_invite_code,
    ) -> None:
        self.session = session
        self.now_fn = now_fn
        self.code_fn = code_fn

    # -- reads -------------------------------------------------------------

    def get_plan(self, plan_id: str) -> Optional[CarePlan]:
        return self.session.get(CarePlan, plan_id)

    def collaborators(self, plan_id: str) -> list[PlanCollaborator]:
        stmt = (
            select(PlanCollaborator)
            .where(PlanCollaborator.plan_id == plan_id)
            .order_by(PlanCollaborator.added_at)
        )
        return list(self.session.exec(stmt).all())

    def plan_for_invite(self, code: str) -> Optional[CarePlan]:
        invite = self.session.get(PlanInvite, normalize_invite_code(code))
        return self.get_plan(invite.plan_id) if invite else None

    def collaborator_ids(self, plan_id: str) -> list[str]:
        return [row.user_id for row in self.collaborators(plan_id)]

    def has_access(self, plan: CarePlan, principal: Principal) -> bool:
        if plan.owner_id == principal.id:
            return True
        return self.session.get(PlanCollaborator, (plan.id, principal.id)) is not None

    def list_plans(self, principal: Principal) -> list[CarePlan]:
        """Plans the principal owns or collaborates on, deduplicated, by name."""
        owned = self.session.exec(select(CarePlan).where(CarePlan.owner_id == principal.id)).all()
        shared = self.session.exec(
            select(CarePlan)
            .join(PlanCollaborator, PlanCollaborator.plan_id == CarePlan.id)
            .where(PlanCollaborator.user_id == principal.id)
        ).all()
        merged = {plan.id: plan for plan in [*owned, *shared]}
        return sorted(merged.values(), key=lambda plan: plan.name.lower())

    def read(self, plan: CarePlan) -> CarePlanOut:
        rows = self.collaborators(plan.id)
        return CarePlanOut(
            id=plan.id,
            name=plan.name,
            description=plan.description,
            patient_name=plan.patient_name,
            owner_id=plan.owner_id,
            owner_email=plan.owner_email,
            collaborator_ids=[row.user_id for row in rows],
            collaborator_emails=[row.email for row in rows],
            invite_code=plan.invite_code,
            invite_expires_at=plan.invite_expires_at,
            state=plan_state(plan.invite_code, plan.invite_expires_at, self.now_fn()),
            created_at=plan.created_at,
            updated_at=plan.updated_at,
        )

    # -- plan lifecycle ----------------------------------------------------

    def create_plan(self, principal: Principal, data: CarePlanCreate) -> CarePlan:
        now = self.now_fn()
        plan = CarePlan(
            name=data.name.strip(),
            description=data.description or None,
            patient_name=data.patient_name or None,
            owner_id=principal.id,
            owner_email=principal.email,
            created_at=now,
            updated_at=now,
        )
        with storage_errors("create plan"):
            self.session.add(plan)
            self.session.flush()
            self.session.refresh(plan)
        return plan

    def update_plan(self, plan_id: str, principal: Principal, data: CarePlanUpdate) -> bool:
        plan = self.get_plan(plan_id)
        if plan is None or not self.has_access(plan, principal):
            return False
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(plan, field, value)
        plan.updated_at = self.now_fn()
        with storage_errors("update plan"):
            self.session.add(plan)
            self.session.flush()
        return True

    def delete_plan(self, plan_id: str, requester: Principal) -> bool:
        """Owner-only. Children go first and the plan row last, in one transaction."""
        plan = self.get_plan(plan_id)
        if plan is None or plan.owner_id != requester.id:
            logger.info("delete of plan %s refused for %s", plan_id, requester.id)
            return False
        with storage_errors("delete plan"):
            for model, column in (
                (CareTask, CareTask.plan_id),
                (PlanInvite, PlanInvite.plan_id),
                (PlanCollaborator, PlanCollaborator.plan_id),
            ):
                for row in self.session.exec(select(model).where(column == plan_id)).all():
                    self.session.delete(row)
            self.session.flush()
            self.session.delete(plan)
            self.session.flush()
        logger.info("plan %s deleted by owner %s", plan_id, requester.id)
        return True

    # -- invites -----------------------------------------------------------

    def generate_invite(self, plan_id: str, requester: Principal) -> PlanInvite:
        plan = self.get_plan(plan_id)
        if plan is None:
            raise NotFound("Plan not found")
        if plan.owner_id != requester.id:
            raise Forbidden("Only the owner can share this plan")

        code = self._fresh_code()
        now = self.now_fn()
        invite = PlanInvite(
            code=code,
            plan_id=plan.id,
            issued_by_owner_id=requester.id,
            issued_at=now,
            expires_at=now + INVITE_TTL,
        )
        plan.invite_code = invite.code
        plan.invite_expires_at = invite.expires_at
        with storage_errors("generate invite"):
            self.session.add(invite)
            self.session.add(plan)
            self.session.flush()
        logger.info("invite issued for plan %s, expires %s", plan.id, invite.expires_at.isoformat())
        return invite

    def join_with_invite(self, code: str, requester: Principal) -> bool:
        """Redeem ``code``. Every rejection collapses to False."""
        normalized = normalize_invite_code(code)
        if not normalized:
            return False
        invite = self.session.get(PlanInvite, normalized)
        if invite is None:
            logger.info("join refused for %s: unknown code", requester.id)
            return False
        if is_expired(invite.expires_at, self.now_fn()):
            logger.info("join refused for %s: code expired", requester.id)
            return False
        if invite.issued_by_owner_id == requester.id:
            logger.info("join refused for %s: owner cannot join own plan", requester.id)
            return False
        plan = self.get_plan(invite.plan_id)
        if plan is None:
            logger.info("join refused for %s: plan %s no longer exists", requester.id, invite.plan_id)
            return False
        if plan.owner_id == requester.id:
            return False

        if self.session.get(PlanCollaborator, (plan.id, requester.id)) is not None:
            return True
        with storage_errors("join plan"):
            try:
                with self.session.begin_nested():
                    self.session.add(
                        PlanCollaborator(
                            plan_id=plan.id,
                            user_id=requester.id,
                            email=requester.email,
                            added_at=self.now_fn(),
                        )
                    )
            except IntegrityError:
                # a concurrent join by the same principal committed first
                logger.info("principal %s already joined plan %s", requester.id, plan.id)
                return True
        logger.info("principal %s joined plan %s", requester.id, plan.id)
        return True

    # -- membership --------------------------------------------------------

    def leave_as_collaborator(self, plan_id: str, requester: Principal) -> bool:
        plan = self.get_plan(plan_id)
        if plan is None:
            return False
        if plan.owner_id == requester.id:
            logger.info("owner %s tried to leave plan %s", requester.id, plan_id)
            return False
        self._remove(plan_id, requester.id, requester.email)
        return True

    def remove_collaborator(
        self,
        plan_id: str,
        requester: Principal,
        target_id: str,
        target_email: str = "",
    ) -> bool:
        """Owner-only; succeeds whether or not the target is present."""
        plan = self.get_plan(plan_id)
        if plan is None or plan.owner_id != requester.id:
            return False
        self._remove(plan_id, target_id, target_email)
        return True

    def _remove(self, plan_id: str, user_id: str, email: str) -> None:
        """Remove by user id; the email is only a fallback when no id is given."""
        if user_id:
            match = PlanCollaborator.user_id == user_id
        elif email:
            match = PlanCollaborator.email == email.strip().lower()
        else:
            return
        rows = self.session.exec(
            select(PlanCollaborator).where(PlanCollaborator.plan_id == plan_id, match)
        ).all()
        with storage_errors("remove collaborator"):
            for row in rows:
                self.session.delete(row)
            self.session.flush()

    # -- plan tasks --------------------------------------------------------

    def list_tasks(self, plan_id: str, principal: Principal) -> list[CareTask]:
        self._require_access(plan_id, principal)
        stmt = select(CareTask).where(CareTask.plan_id == plan_id).order_by(CareTask.date, CareTask.time)
        return list(self.session.exec(stmt).all())

    def create_task(self, plan_id: str, principal: Principal, data: CareTaskCreate) -> CareTask:
        self._require_access(plan_id, principal)
        now = self.now_fn()
        task = CareTask(
            plan_id=plan_id,
            created_by=principal.id,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        with storage_errors("create plan task"):
            self.session.add(task)
            self.session.flush()
            self.session.refresh(task)
        return task

    def update_task(self, plan_id: str, principal: Principal, task_id: str, data: CareTaskUpdate) -> CareTask:
        task = self._load_task(plan_id, principal, task_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(task, field, value)
        task.updated_at = self.now_fn()
        with storage_errors("update plan task"):
            self.session.add(task)
            self.session.flush()
            self.session.refresh(task)
        return task

    def delete_task(self, plan_id: str, principal: Principal, task_id: str) -> None:
        task = self._load_task(plan_id, principal, task_id)
        with storage_errors("delete plan task"):
            self.session.delete(task)
            self.session.flush()

    def toggle_task(self, plan_id: str, principal: Principal, task_id: str) -> CareTask:
        task = self._load_task(plan_id, principal, task_id)
        now = self.now_fn()
        if task.completed:
            task.completed = False
            task.completed_at = None
            task.completed_by = None
            task.completed_by_email = None
        else:
            task.completed = True
            task.completed_at = now
            task.completed_by = principal.id
            task.completed_by_email = principal.email
        task.updated_at = now
        with storage_errors("toggle plan task"):
            self.session.add(task)
            self.session.flush()
            self.session.refresh(task)
        return task

    def _require_access(self, plan_id: str, principal: Principal) -> CarePlan:
        plan = self.get_plan(plan_id)
        if plan is None:
            raise NotFound("Plan not found")
        if not self.has_access(plan, principal):
            raise Forbidden("Not a member of this plan")
        return plan

    def _load_task(self, plan_id: str, principal: Principal, task_id: str) -> CareTask:
        self._require_access(plan_id, principal)
        task = self.session.get(CareTask, task_id)
        if task is None or task.plan_id != plan_id:
            raise NotFound("Task not found")
        return task

    def _fresh_code(self) -> str:
        """Mint a code that does not collide with any stored invite."""
        for _ in range(max(INVITE_MAX_ATTEMPTS, 1)):
            code = self.code_fn()
            if self.session.get(PlanInvite, code) is None:
                return code
            logger.debug("invite code collision, re-rolling")
        raise Conflict("Could not allocate a unique invite code")
