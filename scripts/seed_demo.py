#!/usr/bin/env python3
"""Seed a Cuidamos DB with a demo organization, roster and a shared care plan."""
from __future__ import annotations

import argparse
from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session

from cuidamos.app.domain.clock import today
from cuidamos.app.domain.policy import Role
from cuidamos.app.domain.schemas import (
    CarePlanCreate,
    CareTaskCreate,
    MemberCreate,
    PatientCreate,
    PatientTaskCreate,
    Principal,
    ShiftCreate,
)
from cuidamos.app.infra.db import init_db
from cuidamos.app.services.care_plans import CarePlanService
from cuidamos.app.services.members import MemberService
from cuidamos.app.services.patients import PatientService
from cuidamos.app.services.shifts import ShiftService

COORDINATOR = Principal(id="demo-coordinator", email="coordinacion@cuidamos.demo")
FAMILY = Principal(id="demo-family", email="familia@cuidamos.demo")

CAREGIVERS = [
    ("ana@cuidamos.demo", "Ana", "#f97316"),
    ("luis@cuidamos.demo", "Luis", "#0ea5e9"),
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed DB with a demo organization and care plan")
    parser.add_argument("--days", type=int, default=3, help="days of shifts to schedule")
    parser.add_argument("--database-url", default="sqlite:///./cuidamos.db")
    return parser.parse_args()


def seed_organization(db: Session, days: int) -> str:
    members = MemberService(db)
    org, coordinator = members.bootstrap_organization(COORDINATOR, "Cuidamos Demo")
    members.create_member(
        org.id,
        coordinator,
        MemberCreate(email="enfermeria@cuidamos.demo", name="Marta", role=Role.NURSE, can_elevate=True),
    )
    caregivers = [
        members.create_member(
            org.id, coordinator, MemberCreate(email=email, name=name, role=Role.CAREGIVER, color=color)
        )
        for email, name, color in CAREGIVERS
    ]

    patients = PatientService(db)
    rosa = patients.create_patient(org.id, coordinator, PatientCreate(name="Rosa Martínez"))
    shifts = ShiftService(db)
    start = today()
    for offset in range(days):
        day = start + timedelta(days=offset)
        caregiver = caregivers[offset % len(caregivers)]
        shifts.create_shift(
            org.id,
            coordinator,
            ShiftCreate(
                patient_id=rosa.id,
                caregiver_id=caregiver.id,
                date=day,
                start_time="08:00",
                end_time="16:00",
            ),
        )
        patients.create_item(
            org.id, coordinator, rosa.id, PatientTaskCreate(title="Paseo de la mañana", date=day)
        )
    return org.id


def seed_plan(db: Session) -> str:
    plans = CarePlanService(db)
    plan = plans.create_plan(FAMILY, CarePlanCreate(name="Plan de mamá", patient_name="Rosa Martínez"))
    plans.create_task(plan.id, FAMILY, CareTaskCreate(title="Cita con cardiología", date=today()))
    return plans.generate_invite(plan.id, FAMILY).code


def main() -> int:
    args = parse_args()
    engine = create_engine(args.database_url, future=True)
    init_db(engine, attempts=1)
    SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False)
    with SessionLocal() as db:
        org_id = seed_organization(db, args.days)
        code = seed_plan(db)
        db.commit()
    print(f"Seeded organization {org_id} with {args.days} day(s) of shifts.")
    print(f"Invite code for the demo plan: {code}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
