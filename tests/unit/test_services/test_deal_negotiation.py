"""Tests for deal proposals: caps, duplicates, owner decisions and write races."""

import pytest
from unittest.mock import patch

from estate.models.property import DealStatus, DealTerms, PropertyCreate
from estate.models.user import Role
from estate.utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from tests.utils.assertions import assert_single_notification
from tests.utils.factories import create_property_data
from tests.utils.helpers import seed_user


async def _setup(services, listing_type="sale", agents=1):
    seller = await seed_user(services, Role.SELLER)
    prop = await services.properties.create_property(
        PropertyCreate(**create_property_data(listing_type)), seller
    )
    agent_actors = [await seed_user(services, Role.AGENT) for _ in range(agents)]
    return seller, prop, agent_actors


@pytest.mark.unit
@pytest.mark.asyncio
async def test_send_deal_request(services, memory_store):
    """Test that a proposal snapshots the agent's contact details and notifies the owner."""
    seller, prop, (agent,) = await _setup(services)
    agent_user = await services.users.get(agent.user_id)

    updated = await services.properties.send_deal_request(
        prop.id, DealTerms(commission_rate=2.5, terms="Exclusive for 90 days"), agent
    )

    assert len(updated.agents) == 1
    proposal = updated.agents[0]
    assert proposal.agent_id == agent.user_id
    assert proposal.status == DealStatus.PENDING
    assert proposal.commission_rate == 2.5
    assert proposal.first_name == agent_user.first_name
    assert proposal.phone == agent_user.phone
    assert proposal.proposed_at is not None

    notification = assert_single_notification(memory_store, "deal_request", prop.id)
    assert notification["user_id"] == seller.user_id
    assert notification["related_model"] == "Property"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_deal_request_requires_agent_role(services):
    _, prop, _ = await _setup(services, agents=0)
    buyer = await seed_user(services, Role.BUYER)

    with pytest.raises(ForbiddenError):
        await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), buyer)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_deal_request_missing_property(services):
    agent = await seed_user(services, Role.AGENT)

    with pytest.raises(NotFoundError):
        await services.properties.send_deal_request("missing", DealTerms(commission_rate=2), agent)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_open_proposal_conflicts(services):
    _, prop, (agent,) = await _setup(services)
    await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agent)

    with pytest.raises(ConflictError):
        await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=1), agent)

    assert len((await services.properties.get(prop.id)).agents) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rejected_agent_may_propose_again(services):
    seller, prop, (agent,) = await _setup(services)
    await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=4), agent)
    await services.properties.reject_deal(prop.id, agent.user_id, seller)

    updated = await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=3), agent)

    assert [p.status for p in updated.agents] == [DealStatus.REJECTED, DealStatus.PENDING]


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("listing_type,cap", [("rent", 2), ("sale", 4)])
async def test_deal_cap_per_listing_type(services, listing_type, cap):
    _, prop, agents = await _setup(services, listing_type, agents=cap + 1)
    for agent in agents[:cap]:
        await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agent)

    with pytest.raises(BadRequestError) as exc_info:
        await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agents[cap])

    assert exc_info.value.detail["cap"] == cap
    assert len((await services.properties.get(prop.id)).agents) == cap


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rejected_proposals_free_a_slot(services):
    seller, prop, agents = await _setup(services, "rent", agents=3)
    for agent in agents[:2]:
        await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agent)
    await services.properties.reject_deal(prop.id, agents[0].user_id, seller)

    updated = await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agents[2])

    assert len(updated.outstanding_proposals()) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_accept_deal_leaves_siblings_pending(services):
    seller, prop, agents = await _setup(services, "rent", agents=2)
    for agent in agents:
        await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agent)

    updated = await services.properties.accept_deal(prop.id, agents[0].user_id, seller)

    assert [p.status for p in updated.agents] == [DealStatus.ACCEPTED, DealStatus.PENDING]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_second_accept_conflicts(services):
    seller, prop, agents = await _setup(services, agents=2)
    for agent in agents:
        await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agent)
    await services.properties.accept_deal(prop.id, agents[0].user_id, seller)

    with pytest.raises(ConflictError):
        await services.properties.accept_deal(prop.id, agents[1].user_id, seller)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_decision_on_decided_proposal(services):
    seller, prop, (agent,) = await _setup(services)
    await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agent)
    await services.properties.accept_deal(prop.id, agent.user_id, seller)

    with pytest.raises(BadRequestError) as exc_info:
        await services.properties.reject_deal(prop.id, agent.user_id, seller)

    assert "already accepted" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_accept_unknown_agent(services):
    seller, prop, _ = await _setup(services, agents=0)

    with pytest.raises(NotFoundError) as exc_info:
        await services.properties.accept_deal(prop.id, "nobody", seller)

    assert "Agent not found in requests" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_only_owner_decides(services):
    """Admins manage listings but do not decide on deals for other owners."""
    _, prop, (agent,) = await _setup(services)
    admin = await seed_user(services, Role.ADMIN)
    await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agent)

    with pytest.raises(ForbiddenError):
        await services.properties.accept_deal(prop.id, agent.user_id, admin)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_proposals_cannot_exceed_cap(services, memory_store):
    """Two agents racing for the last rent slot: the stale writer gets a conflict."""
    _, prop, agents = await _setup(services, "rent", agents=3)
    await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agents[0])
    stale = await services.properties.get(prop.id)
    await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agents[1])

    with patch.object(services.properties, "get", return_value=stale):
        with pytest.raises(ConflictError):
            await services.properties.send_deal_request(prop.id, DealTerms(commission_rate=2), agents[2])

    stored = await services.properties.get(prop.id)
    assert [p.agent_id for p in stored.agents] == [agents[0].user_id, agents[1].user_id]
