import pytest
import pytest_asyncio
from pydantic import ValidationError as SchemaValidationError

from idealplots.core.exceptions import (
    AuthorizationError, NotFoundError, StateTransitionError, ValidationError,
)
from idealplots.models import AuditLog, Enquiry, EnquiryNote
from idealplots.models.enums import EnquiryPriority, EnquiryStatus, NoteType, UserStatus
from idealplots.schemas.enquiry import EnquiryIntake, EnquiryNoteCreate, EnquiryPatch
from idealplots.services.enquiry_services import EnquiryServices
from tests import factories


async def new_enquiry(database) -> int:
    result = await database.run(
        EnquiryServices.handle_enquiry,
        EnquiryIntake(name="Lead", email="lead@example.com", phone="+919800000001", requirements="2BHK in Kochi"),
    )
    return result.enquiry_id


@pytest_asyncio.fixture
async def assigned(database):
    """An enquiry assigned to an agent by an admin: (admin, agent, enquiry_id)."""
    admin = await database.run(factories.create_admin)
    agent = await database.run(factories.create_agent, name="Meera")
    enquiry_id = await new_enquiry(database)
    await database.run(EnquiryServices.assign_enquiry, admin.id, enquiry_id, agent.id, "Kochi specialist")
    return admin, agent, enquiry_id


# =============================================================================
# Assignment
# =============================================================================
@pytest.mark.asyncio
async def test_assign_enquiry(database, assigned):
    _, agent, enquiry_id = assigned

    enquiry = await database.run(factories.get, Enquiry, enquiry_id)
    assert enquiry.assigned_to == agent.id
    assert enquiry.status == EnquiryStatus.ASSIGNED

    notes = await database.run(factories.rows, EnquiryNote)
    assert notes[0].note == "Enquiry assigned to Meera (Coastal Realty). Reason: Kochi specialist"
    assert notes[0].note_type == NoteType.SYSTEM

    audit = (await database.run(factories.rows, AuditLog, AuditLog.action == "assign_enquiry"))[0]
    assert audit.new_values == {"assigned_to": agent.id}


@pytest.mark.asyncio
async def test_assign_to_inactive_agent(database):
    admin = await database.run(factories.create_admin)
    agent = await database.run(factories.create_agent, status=UserStatus.SUSPENDED)
    enquiry_id = await new_enquiry(database)

    with pytest.raises(ValidationError):
        await database.run(EnquiryServices.assign_enquiry, admin.id, enquiry_id, agent.id)


# =============================================================================
# Agent work
# =============================================================================
@pytest.mark.asyncio
async def test_only_assignee_can_add_notes(database, assigned):
    _, agent, enquiry_id = assigned
    other_agent = await database.run(factories.create_agent)

    with pytest.raises(AuthorizationError):
        await database.run(
            EnquiryServices.add_enquiry_note, other_agent.id, enquiry_id, EnquiryNoteCreate(note="Called")
        )


@pytest.mark.asyncio
async def test_first_note_sets_first_response(database):
    agent = await database.run(factories.create_agent)
    enquiry_id = await new_enquiry(database)

    async def assign_without_note(session):
        enquiry = await session.get(Enquiry, enquiry_id)
        enquiry.assigned_to = agent.id

    await database.run(assign_without_note)
    assert (await database.run(factories.get, Enquiry, enquiry_id)).first_response_at is None

    await database.run(
        EnquiryServices.add_enquiry_note, agent.id, enquiry_id, EnquiryNoteCreate(note="Called the client")
    )
    first = (await database.run(factories.get, Enquiry, enquiry_id)).first_response_at
    assert first is not None

    await database.run(EnquiryServices.add_enquiry_note, agent.id, enquiry_id, EnquiryNoteCreate(note="Again"))
    assert (await database.run(factories.get, Enquiry, enquiry_id)).first_response_at == first


@pytest.mark.asyncio
async def test_resolve_and_reopen(database, assigned):
    _, agent, enquiry_id = assigned

    enquiry = await database.run(
        EnquiryServices.update_enquiry,
        agent.id,
        enquiry_id,
        EnquiryPatch(status=EnquiryStatus.RESOLVED, resolution_notes="Site visit booked"),
    )
    assert enquiry.status == EnquiryStatus.RESOLVED
    assert enquiry.resolved_at is not None

    notes = await database.run(factories.rows, EnquiryNote, EnquiryNote.user_id == agent.id)
    assert notes[-1].note == "Enquiry updated: Status changed to resolved. Resolution notes added."
    assert notes[-1].note_type == NoteType.SYSTEM

    enquiry = await database.run(
        EnquiryServices.update_enquiry, agent.id, enquiry_id, EnquiryPatch(status=EnquiryStatus.IN_PROGRESS)
    )
    assert enquiry.resolved_at is None


@pytest.mark.asyncio
async def test_backwards_move_is_rejected(database, assigned):
    _, agent, enquiry_id = assigned
    await database.run(
        EnquiryServices.update_enquiry, agent.id, enquiry_id, EnquiryPatch(status=EnquiryStatus.IN_PROGRESS)
    )

    with pytest.raises(StateTransitionError):
        await database.run(
            EnquiryServices.update_enquiry, agent.id, enquiry_id, EnquiryPatch(status=EnquiryStatus.ASSIGNED)
        )


@pytest.mark.asyncio
async def test_closed_enquiry_is_terminal(database, assigned):
    admin, agent, enquiry_id = assigned

    with pytest.raises(StateTransitionError):
        await database.run(EnquiryServices.close_enquiry, admin.id, enquiry_id)

    await database.run(
        EnquiryServices.update_enquiry, agent.id, enquiry_id, EnquiryPatch(status=EnquiryStatus.RESOLVED)
    )
    await database.run(EnquiryServices.close_enquiry, admin.id, enquiry_id)

    with pytest.raises(StateTransitionError):
        await database.run(
            EnquiryServices.update_enquiry, agent.id, enquiry_id, EnquiryPatch(priority=EnquiryPriority.HIGH)
        )
    with pytest.raises(StateTransitionError):
        await database.run(EnquiryServices.assign_enquiry, admin.id, enquiry_id, agent.id)


def test_patch_cannot_close_or_be_empty():
    with pytest.raises(SchemaValidationError):
        EnquiryPatch(status=EnquiryStatus.CLOSED)
    with pytest.raises(SchemaValidationError):
        EnquiryPatch()


# =============================================================================
# Queues
# =============================================================================
@pytest.mark.asyncio
async def test_agent_queue_and_notes(database, assigned):
    admin, agent, enquiry_id = assigned
    outsider = await database.run(factories.create_user)

    items, total = await database.run(EnquiryServices.list_agent_enquiries, agent.id, 0, 20)
    assert total == 1
    assert items[0].id == enquiry_id

    _, total = await database.run(
        EnquiryServices.list_agent_enquiries, agent.id, 0, 20, EnquiryStatus.RESOLVED
    )
    assert total == 0

    assert len(await database.run(EnquiryServices.list_enquiry_notes, agent.id, enquiry_id)) == 1
    assert len(await database.run(EnquiryServices.list_enquiry_notes, admin.id, enquiry_id)) == 1
    with pytest.raises(AuthorizationError):
        await database.run(EnquiryServices.list_enquiry_notes, outsider.id, enquiry_id)


# =============================================================================
# Tracking & the enquirer's own view
# =============================================================================
@pytest.mark.asyncio
async def test_track_enquiry_by_ticket(database, assigned):
    _, agent, enquiry_id = assigned
    enquiry = await database.run(factories.get, Enquiry, enquiry_id)

    tracking = await database.run(EnquiryServices.track_enquiry, enquiry.ticket_number)

    assert tracking.ticket_number == enquiry.ticket_number
    assert tracking.status == EnquiryStatus.ASSIGNED
    assert tracking.agent_name == "Meera"
    assert tracking.agent_phone == agent.phone
    assert tracking.resolved_at is None
    assert "email" not in tracking.model_dump()

    with pytest.raises(NotFoundError):
        await database.run(EnquiryServices.track_enquiry, "TKT-20000101-000000")


@pytest.mark.asyncio
async def test_users_see_only_their_own_enquiries(database):
    buyer = await database.run(factories.create_user, email="lead@example.com")
    other = await database.run(factories.create_user)
    first = await new_enquiry(database)
    second = await new_enquiry(database)
    await database.run(
        EnquiryServices.handle_enquiry,
        EnquiryIntake(name="Other", email="other-lead@example.com", phone="+919800000002", requirements="Plot"),
    )

    items, total = await database.run(EnquiryServices.list_user_enquiries, buyer.id, 0, 10)
    assert [item.id for item in items] == [second, first]
    assert total == 2

    closed, closed_total = await database.run(
        EnquiryServices.list_user_enquiries, buyer.id, 0, 10, EnquiryStatus.CLOSED
    )
    assert (closed, closed_total) == ([], 0)

    enquiry = await database.run(EnquiryServices.get_user_enquiry, buyer.id, first)
    assert enquiry.user_id == buyer.id
    with pytest.raises(AuthorizationError):
        await database.run(EnquiryServices.get_user_enquiry, other.id, first)
    with pytest.raises(NotFoundError):
        await database.run(EnquiryServices.get_user_enquiry, buyer.id, 999999)
