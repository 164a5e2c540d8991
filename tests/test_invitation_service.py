import uuid

import pytest
from sqlalchemy import event, select, update

from models.invitation import Invitation, InvitationStatus
from models.mdt import MDTSpecialty
from models.user import UserRole
from services.invitation_service import invitation_service
from services.mdt_service import mdt_service
from services.membership_service import membership_service
from utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)


async def invitations_for(db, mdt_id):
    result = await db.execute(
        select(Invitation)
        .where(Invitation.mdt_id == mdt_id)
        .execution_options(populate_existing=True)
    )
    return {inv.receiver_id: inv for inv in result.scalars().all()}


async def slot(db, mdt_id, specialty_id):
    result = await db.execute(
        select(MDTSpecialty)
        .where(MDTSpecialty.mdt_id == mdt_id, MDTSpecialty.specialty_id == specialty_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.fixture
async def team(db, make_user):
    """LOCAL creator A referred by B; C holds Cardiology, D holds Oncology and Cardiology"""
    b = await make_user(role=UserRole.EXTERNAL, first_name="Beth")
    a = await make_user(role=UserRole.LOCAL, first_name="Amir")
    c = await make_user(role=UserRole.EXTERNAL, specialties=["Cardiology"], first_name="Cara")
    d = await make_user(
        role=UserRole.EXTERNAL, specialties=["Oncology", "Cardiology"], first_name="Dev"
    )
    a.referred_by_id = b.id
    await db.commit()
    return {"A": a, "B": b, "C": c, "D": d}


async def test_matching_creates_one_invitation_per_user(db, team, make_mdt, specialty_ids):
    a, b, c, d = team["A"], team["B"], team["C"], team["D"]

    mdt = await make_mdt(a, specialties=["Cardiology", "Oncology"])

    invitations = await invitations_for(db, mdt.id)
    assert set(invitations) == {c.id, d.id}
    assert b.id not in invitations
    assert invitations[c.id].specialty_id == specialty_ids["Cardiology"]
    # D matches both; the lowest shared specialty id wins
    assert invitations[d.id].specialty_id == min(
        specialty_ids["Cardiology"], specialty_ids["Oncology"]
    )
    assert all(inv.status == InvitationStatus.PENDING for inv in invitations.values())
    assert all(inv.sender_id == a.id for inv in invitations.values())


async def test_accepting_fills_slot_and_cancels_competitors(
    db, team, make_mdt, specialty_ids
):
    a, c, d = team["A"], team["C"], team["D"]
    cardiology = specialty_ids["Cardiology"]
    mdt = await make_mdt(a, specialties=["Cardiology", "Oncology"])
    invitations = await invitations_for(db, mdt.id)
    assert invitations[d.id].specialty_id == cardiology

    accepted = await invitation_service.respond(
        db, invitations[d.id].id, d, InvitationStatus.ACCEPTED
    )

    assert accepted.status == InvitationStatus.ACCEPTED
    assert accepted.mdt.has_member(d.id)
    assert (await slot(db, mdt.id, cardiology)).filled is True
    assert (await slot(db, mdt.id, specialty_ids["Oncology"])).filled is False

    invitations = await invitations_for(db, mdt.id)
    assert invitations[c.id].status == InvitationStatus.CANCELLED
    assert await membership_service.is_member(db, mdt.id, d.id)
    assert not await membership_service.is_member(db, mdt.id, c.id)

    # the loser learns the invitation is no longer open, and nothing changes
    with pytest.raises(ConflictException):
        await invitation_service.respond(
            db, invitations[c.id].id, c, InvitationStatus.ACCEPTED
        )
    assert (await invitations_for(db, mdt.id))[c.id].status == InvitationStatus.CANCELLED


async def test_second_response_always_conflicts(db, team, make_mdt):
    a, c = team["A"], team["C"]
    mdt = await make_mdt(a, specialties=["Cardiology"])
    invitation = (await invitations_for(db, mdt.id))[c.id]

    await invitation_service.respond(db, invitation.id, c, InvitationStatus.DECLINED)

    for action in (InvitationStatus.ACCEPTED, InvitationStatus.DECLINED):
        with pytest.raises(ConflictException):
            await invitation_service.respond(db, invitation.id, c, action)

    refreshed = (await invitations_for(db, mdt.id))[c.id]
    assert refreshed.status == InvitationStatus.DECLINED
    assert not await membership_service.is_member(db, mdt.id, c.id)


async def test_accept_on_filled_slot_leaves_invitation_pending(
    db, team, make_mdt, specialty_ids
):
    a, c = team["A"], team["C"]
    cardiology = specialty_ids["Cardiology"]
    mdt = await make_mdt(a, specialties=["Cardiology"])
    invitation_id = (await invitations_for(db, mdt.id))[c.id].id
    mdt_id = mdt.id

    # another transaction won the slot first
    await db.execute(
        update(MDTSpecialty)
        .where(MDTSpecialty.mdt_id == mdt_id, MDTSpecialty.specialty_id == cardiology)
        .values(filled=True)
    )
    await db.commit()

    with pytest.raises(ConflictException) as exc:
        await invitation_service.respond(db, invitation_id, c, InvitationStatus.ACCEPTED)
    assert "filled" in exc.value.detail

    invitation = await invitation_service.get(db, invitation_id)
    assert invitation.status == InvitationStatus.PENDING
    assert not await membership_service.is_member(db, mdt_id, invitation.receiver_id)


def record_updates(engine):
    tables = []

    def on_execute(conn, cursor, statement, parameters, context, executemany):
        words = statement.split()
        if words and words[0].upper() == "UPDATE":
            tables.append(words[1].strip('"'))

    event.listen(engine.sync_engine, "before_cursor_execute", on_execute)

    def stop():
        event.remove(engine.sync_engine, "before_cursor_execute", on_execute)

    return tables, stop


async def test_accept_claims_slot_before_touching_invitations(
    db, engine, team, make_mdt
):
    a, c, d = team["A"], team["C"], team["D"]
    mdt = await make_mdt(a, specialties=["Cardiology"])
    invitations = await invitations_for(db, mdt.id)

    tables, stop = record_updates(engine)
    try:
        await invitation_service.respond(
            db, invitations[d.id].id, d, InvitationStatus.DECLINED
        )
        declined = list(tables)
        tables.clear()
        await invitation_service.respond(
            db, invitations[c.id].id, c, InvitationStatus.ACCEPTED
        )
    finally:
        stop()

    # declining never locks the slot row
    assert declined == ["invitations"]
    # slot row first, then the answered invitation, then its competitors
    assert tables[:3] == ["mdt_specialties", "invitations", "invitations"]
    assert "mdts" in tables[3:]


async def test_respond_preconditions(db, team, make_mdt):
    a, c, d = team["A"], team["C"], team["D"]
    mdt = await make_mdt(a, specialties=["Cardiology"])
    invitation = (await invitations_for(db, mdt.id))[c.id]

    with pytest.raises(NotFoundException):
        await invitation_service.respond(db, uuid.uuid4(), c, InvitationStatus.ACCEPTED)
    with pytest.raises(ForbiddenException):
        await invitation_service.respond(db, invitation.id, d, InvitationStatus.ACCEPTED)
    with pytest.raises(ValidationException):
        await invitation_service.respond(db, invitation.id, c, InvitationStatus.CANCELLED)


async def test_direct_invite_and_accept_adds_member_only(db, team, make_mdt, make_user):
    a = team["A"]
    guest = await make_user(role=UserRole.EXTERNAL, email="guest@clinic.org")
    mdt = await make_mdt(a, specialties=["Cardiology"])

    invitation = await invitation_service.invite(db, a, mdt.id, "Guest@Clinic.org")
    assert invitation.specialty_id is None
    assert invitation.status == InvitationStatus.PENDING

    with pytest.raises(ConflictException):
        await invitation_service.invite(db, a, mdt.id, "guest@clinic.org")

    await invitation_service.respond(db, invitation.id, guest, InvitationStatus.ACCEPTED)

    refreshed = await mdt_service.get_mdt(db, mdt.id, guest)
    assert refreshed.has_member(guest.id)
    assert not any(s.filled for s in refreshed.required_specialties)
    pending = [
        inv for inv in refreshed.invitations if inv.status == InvitationStatus.PENDING
    ]
    assert {inv.receiver_id for inv in pending} == {team["C"].id, team["D"].id}


async def test_invite_failures(db, team, make_mdt, make_user):
    a, c = team["A"], team["C"]
    outsider = await make_user(role=UserRole.LOCAL)
    mdt = await make_mdt(a)

    with pytest.raises(ForbiddenException):
        await invitation_service.invite(db, c, mdt.id, "anyone@clinic.org")
    with pytest.raises(NotFoundException):
        await invitation_service.invite(db, a, mdt.id, "nobody@clinic.org")
    with pytest.raises(NotFoundException):
        await invitation_service.invite(db, outsider, mdt.id, c.email)


async def test_cancel_by_sender_only(db, team, make_mdt):
    a, c = team["A"], team["C"]
    mdt = await make_mdt(a, specialties=["Cardiology"])
    invitation = (await invitations_for(db, mdt.id))[c.id]

    with pytest.raises(ForbiddenException):
        await invitation_service.cancel(db, invitation.id, c)

    cancelled = await invitation_service.cancel(db, invitation.id, a)
    assert cancelled.status == InvitationStatus.CANCELLED

    with pytest.raises(ConflictException):
        await invitation_service.cancel(db, invitation.id, a)
    assert await invitation_service.list_pending(db, c) == []


async def test_list_pending_newest_first(db, team, make_mdt):
    a, d = team["A"], team["D"]
    older = await make_mdt(a, specialties=["Oncology"], name="Older")
    newer = await make_mdt(a, specialties=["Oncology"], name="Newer")

    pending = await invitation_service.list_pending(db, d)

    assert [inv.mdt.name for inv in pending] == ["Newer", "Older"]
    assert pending[0].sender.id == a.id
    assert pending[0].mdt.patient_profile.unique_id == "PAT-001"
    assert {older.id, newer.id} == {inv.mdt_id for inv in pending}


async def test_invitation_visibility(db, team, make_mdt, make_user):
    a, c, d = team["A"], team["C"], team["D"]
    outsider = await make_user(role=UserRole.LOCAL)
    mdt = await make_mdt(a, specialties=["Cardiology"])
    invitation_id = (await invitations_for(db, mdt.id))[c.id].id

    for viewer in (a, c):
        seen = await invitation_service.get_invitation(db, invitation_id, viewer)
        assert seen.id == invitation_id
        assert [m.name for m in seen.mdt.patient_profile.medications] == [
            "Aspirin",
            "Atorvastatin",
        ]

    # D was invited to the same MDT but is neither sender, receiver nor member
    for viewer in (d, outsider):
        with pytest.raises(NotFoundException):
            await invitation_service.get_invitation(db, invitation_id, viewer)
