"""Patients and their tasks and medications."""
from __future__ import annotations

import logging
from typing import Optional, Type, Union

from sqlmodel import Session, select

from ..domain.clock import NowFn, utcnow
from ..domain.errors import NotFound
from ..domain.models import Medication, Member, Patient, PatientTask
from ..domain.policy import Action
from ..domain.schemas import MedicationCreate, PatientCreate, PatientTaskCreate, PatientUpdate
from ..infra.db import storage_errors
from .authz import AccessEvaluator, context_for
from .shifts import ShiftService

logger = logging.getLogger(__name__)

CareItem = Union[PatientTask, Medication]

# model -> (create, delete, complete) actions
ITEM_ACTIONS = {
    PatientTask: (Action.CREATE_TASK, Action.DELETE_TASK, Action.COMPLETE_TASK),
    Medication: (Action.CREATE_MEDICATION, Action.DELETE_MEDICATION, Action.COMPLETE_MEDICATION),
}


class PatientService:
    def __init__(self, session: Session, now_fn: NowFn = utcnow) -> None:
        self.session = session
        self.now_fn = now_fn
        self.access = AccessEvaluator(session)

    def list_patients(self, organization_id: str, actor: Optional[Member]) -> list[Patient]:
        self.access.enforce(
            context_for(actor), Action.VIEW_PATIENTS, f"organizations/{organization_id}/patients"
        )
        stmt = select(Patient).where(Patient.organization_id == organization_id).order_by(Patient.name)
        return list(self.session.exec(stmt).all())

    def get_patient(self, organization_id: str, actor: Optional[Member], patient_id: str) -> Patient:
        self.access.enforce(context_for(actor), Action.VIEW_PATIENTS, f"patients/{patient_id}")
        return self._load_patient(organization_id, patient_id)

    def create_patient(self, organization_id: str, actor: Optional[Member], data: PatientCreate) -> Patient:
        self.access.enforce(
            context_for(actor), Action.CREATE_PATIENT, f"organizations/{organization_id}/patients"
        )
        now = self.now_fn()
        patient = Patient(organization_id=organization_id, created_at=now, updated_at=now, **data.model_dump())
        with storage_errors("create patient"):
            self.session.add(patient)
            self.session.flush()
            self.session.refresh(patient)
        return patient

    def update_patient(
        self,
        organization_id: str,
        actor: Optional[Member],
        patient_id: str,
        data: PatientUpdate,
    ) -> Patient:
        self.access.enforce(context_for(actor), Action.EDIT_PATIENT, f"patients/{patient_id}")
        patient = self._load_patient(organization_id, patient_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(patient, field, value)
        patient.updated_at = self.now_fn()
        with storage_errors("update patient"):
            self.session.add(patient)
            self.session.flush()
            self.session.refresh(patient)
        return patient

    def delete_patient(self, organization_id: str, actor: Optional[Member], patient_id: str) -> None:
        """Delete a patient together with its tasks and medications."""
        self.access.enforce(context_for(actor), Action.DELETE_PATIENT, f"patients/{patient_id}")
        patient = self._load_patient(organization_id, patient_id)
        with storage_errors("delete patient"):
            for model in (PatientTask, Medication):
                for item in self.session.exec(select(model).where(model.patient_id == patient.id)).all():
                    self.session.delete(item)
            self.session.delete(patient)
            self.session.flush()

    def list_items(
        self,
        organization_id: str,
        actor: Optional[Member],
        patient_id: str,
        model: Type[CareItem],
    ) -> list[CareItem]:
        self.access.enforce(context_for(actor), Action.VIEW_PATIENTS, f"patients/{patient_id}")
        self._load_patient(organization_id, patient_id)
        stmt = select(model).where(model.patient_id == patient_id).order_by(model.date)
        return list(self.session.exec(stmt).all())

    def create_item(
        self,
        organization_id: str,
        actor: Optional[Member],
        patient_id: str,
        data: Union[PatientTaskCreate, MedicationCreate],
    ) -> CareItem:
        model = PatientTask if isinstance(data, PatientTaskCreate) else Medication
        create_action = ITEM_ACTIONS[model][0]
        self.access.enforce(context_for(actor), create_action, f"patients/{patient_id}")
        self._load_patient(organization_id, patient_id)
        now = self.now_fn()
        item = model(
            patient_id=patient_id,
            created_by=actor.id if actor else None,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        with storage_errors(f"create {model.__tablename__}"):
            self.session.add(item)
            self.session.flush()
            self.session.refresh(item)
        return item

    def delete_item(
        self,
        organization_id: str,
        actor: Optional[Member],
        patient_id: str,
        model: Type[CareItem],
        item_id: str,
    ) -> None:
        delete_action = ITEM_ACTIONS[model][1]
        self.access.enforce(context_for(actor), delete_action, f"patients/{patient_id}/{item_id}")
        item = self._load_item(organization_id, patient_id, model, item_id)
        with storage_errors(f"delete {model.__tablename__}"):
            self.session.delete(item)
            self.session.flush()

    def toggle_item(
        self,
        organization_id: str,
        actor: Optional[Member],
        patient_id: str,
        model: Type[CareItem],
        item_id: str,
    ) -> CareItem:
        """Flip completion; caregivers must be on shift with the patient that day."""
        item = self._load_item(organization_id, patient_id, model, item_id)
        complete_action = ITEM_ACTIONS[model][2]
        self.access.enforce_completion(
            context_for(actor),
            patient_id,
            ShiftService(self.session).roster(organization_id),
            day=item.date,
            action=complete_action,
            resource=f"patients/{patient_id}/{item_id}",
        )
        now = self.now_fn()
        if item.completed:
            item.completed = False
            item.completed_at = None
            item.completed_by = None
            item.completed_by_name = None
        else:
            item.completed = True
            item.completed_at = now
            item.completed_by = actor.id
            item.completed_by_name = actor.name
        item.updated_at = now
        with storage_errors(f"toggle {model.__tablename__}"):
            self.session.add(item)
            self.session.flush()
            self.session.refresh(item)
        return item

    def _load_patient(self, organization_id: str, patient_id: str) -> Patient:
        patient = self.session.get(Patient, patient_id)
        if not patient or patient.organization_id != organization_id:
            raise NotFound("Patient not found")
        return patient

    def _load_item(
        self,
        organization_id: str,
        patient_id: str,
        model: Type[CareItem],
        item_id: str,
    ) -> CareItem:
        self._load_patient(organization_id, patient_id)
        item = self.session.get(model, item_id)
        if not item or item.patient_id != patient_id:
            raise NotFound("Item not found")
        return item
