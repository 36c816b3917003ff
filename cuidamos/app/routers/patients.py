"""Patient records, patient tasks and medications."""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from ..deps import current_member, db_session, now_fn
from ..domain.clock import NowFn
from ..domain.models import Medication, Member, PatientTask
from ..domain.schemas import (
    MedicationCreate,
    MedicationOut,
    PatientCreate,
    PatientOut,
    PatientTaskCreate,
    PatientTaskOut,
    PatientUpdate,
)
from ..services.patients import PatientService

router = APIRouter()


@router.get("/{org_id}/patients", response_model=List[PatientOut])
def list_patients(
    org_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    return PatientService(session).list_patients(org_id, member)


@router.post("/{org_id}/patients", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def create_patient(
    org_id: str,
    payload: PatientCreate,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    return PatientService(session, now_fn=clock).create_patient(org_id, member, payload)


@router.get("/{org_id}/patients/{patient_id}", response_model=PatientOut)
def get_patient(
    org_id: str,
    patient_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    return PatientService(session).get_patient(org_id, member, patient_id)


@router.patch("/{org_id}/patients/{patient_id}", response_model=PatientOut)
def update_patient(
    org_id: str,
    patient_id: str,
    payload: PatientUpdate,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    return PatientService(session, now_fn=clock).update_patient(org_id, member, patient_id, payload)


@router.delete("/{org_id}/patients/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(
    org_id: str,
    patient_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    PatientService(session).delete_patient(org_id, member, patient_id)


@router.get("/{org_id}/patients/{patient_id}/tasks", response_model=List[PatientTaskOut])
def list_tasks(
    org_id: str,
    patient_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    return PatientService(session).list_items(org_id, member, patient_id, PatientTask)


@router.post(
    "/{org_id}/patients/{patient_id}/tasks",
    response_model=PatientTaskOut,
    status_code=status.HTTP_201_CREATED,
)
def create_task(
    org_id: str,
    patient_id: str,
    payload: PatientTaskCreate,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    return PatientService(session, now_fn=clock).create_item(org_id, member, patient_id, payload)


@router.delete("/{org_id}/patients/{patient_id}/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    org_id: str,
    patient_id: str,
    task_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    PatientService(session).delete_item(org_id, member, patient_id, PatientTask, task_id)


@router.post("/{org_id}/patients/{patient_id}/tasks/{task_id}/toggle", response_model=PatientTaskOut)
def toggle_task(
    org_id: str,
    patient_id: str,
    task_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    return PatientService(session, now_fn=clock).toggle_item(org_id, member, patient_id, PatientTask, task_id)


@router.get("/{org_id}/patients/{patient_id}/medications", response_model=List[MedicationOut])
def list_medications(
    org_id: str,
    patient_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    return PatientService(session).list_items(org_id, member, patient_id, Medication)


@router.post(
    "/{org_id}/patients/{patient_id}/medications",
    response_model=MedicationOut,
    status_code=status.HTTP_201_CREATED,
)
def create_medication(
    org_id: str,
    patient_id: str,
    payload: MedicationCreate,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    return PatientService(session, now_fn=clock).create_item(org_id, member, patient_id, payload)


@router.delete(
    "/{org_id}/patients/{patient_id}/medications/{medication_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_medication(
    org_id: str,
    patient_id: str,
    medication_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
):
    PatientService(session).delete_item(org_id, member, patient_id, Medication, medication_id)


@router.post(
    "/{org_id}/patients/{patient_id}/medications/{medication_id}/toggle",
    response_model=MedicationOut,
)
def toggle_medication(
    org_id: str,
    patient_id: str,
    medication_id: str,
    member: Optional[Member] = Depends(current_member),
    session: Session = Depends(db_session),
    clock: NowFn = Depends(now_fn),
):
    return PatientService(session, now_fn=clock).toggle_item(
        org_id, member, patient_id, Medication, medication_id
    )
