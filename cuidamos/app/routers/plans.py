"""Care-plan endpoints: plans, plan tasks and the invite protocol."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from ..deps import current_principal, db_session, now_fn
from ..domain.clock import NowFn
from ..domain.schemas import (
    CarePlanCreate,
    CarePlanOut,
    CarePlanUpdate,
    CareTaskCreate,
    CareTaskOut,
    CareTaskUpdate,
    InviteOut,
    JoinRequest,
    Principal,
)
from ..services.care_plans import CarePlanService

router = APIRouter()


def _service(session: Session = Depends(db_session), clock: NowFn = Depends(now_fn)) -> CarePlanService:
    return CarePlanService(session, now_fn=clock)


def _visible_plan(service: CarePlanService, plan_id: str, principal: Principal):
    plan = service.get_plan(plan_id)
    if plan is None or not service.has_access(plan, principal):
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan


@router.get("/", response_model=List[CarePlanOut])
def list_plans(
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    return [service.read(plan) for plan in service.list_plans(principal)]


@router.post("/", response_model=CarePlanOut, status_code=status.HTTP_201_CREATED)
def create_plan(
    payload: CarePlanCreate,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    return service.read(service.create_plan(principal, payload))


@router.post("/join", response_model=CarePlanOut)
def join_plan(
    payload: JoinRequest,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    if not service.join_with_invite(payload.code, principal):
        raise HTTPException(status_code=400, detail="Invalid or expired code")
    return service.read(service.plan_for_invite(payload.code))


@router.get("/{plan_id}", response_model=CarePlanOut)
def get_plan(
    plan_id: str,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    return service.read(_visible_plan(service, plan_id, principal))


@router.patch("/{plan_id}", response_model=CarePlanOut)
def update_plan(
    plan_id: str,
    payload: CarePlanUpdate,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    if not service.update_plan(plan_id, principal, payload):
        raise HTTPException(status_code=404, detail="Plan not found")
    return service.read(service.get_plan(plan_id))


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_plan(
    plan_id: str,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    if not service.delete_plan(plan_id, principal):
        raise HTTPException(status_code=403, detail="Only the owner can delete this plan")


@router.post("/{plan_id}/invites", response_model=InviteOut, status_code=status.HTTP_201_CREATED)
def generate_invite(
    plan_id: str,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    invite = service.generate_invite(plan_id, principal)
    return InviteOut(code=invite.code, expires_at=invite.expires_at)


@router.post("/{plan_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_plan(
    plan_id: str,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    if not service.leave_as_collaborator(plan_id, principal):
        raise HTTPException(status_code=400, detail="Owner cannot leave; delete the plan instead")


@router.delete("/{plan_id}/collaborators/{user_id}", response_model=CarePlanOut)
def remove_collaborator(
    plan_id: str,
    user_id: str,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    if not service.remove_collaborator(plan_id, principal, user_id):
        raise HTTPException(status_code=403, detail="Only the owner can remove collaborators")
    return service.read(service.get_plan(plan_id))


@router.get("/{plan_id}/tasks", response_model=List[CareTaskOut])
def list_tasks(
    plan_id: str,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    return service.list_tasks(plan_id, principal)


@router.post("/{plan_id}/tasks", response_model=CareTaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    plan_id: str,
    payload: CareTaskCreate,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    return service.create_task(plan_id, principal, payload)


@router.patch("/{plan_id}/tasks/{task_id}", response_model=CareTaskOut)
def update_task(
    plan_id: str,
    task_id: str,
    payload: CareTaskUpdate,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    return service.update_task(plan_id, principal, task_id, payload)


@router.delete("/{plan_id}/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    plan_id: str,
    task_id: str,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    service.delete_task(plan_id, principal, task_id)


@router.post("/{plan_id}/tasks/{task_id}/toggle", response_model=CareTaskOut)
def toggle_task(
    plan_id: str,
    task_id: str,
    principal: Principal = Depends(current_principal),
    service: CarePlanService = Depends(_service),
):
    return service.toggle_task(plan_id, principal, task_id)
