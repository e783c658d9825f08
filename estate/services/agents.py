"""Agent onboarding - request, approve/reject, admin-created agents, commission credit."""

import asyncio
from typing import Optional

from estate.models.actor import Actor
from estate.models.agent import Agent, AgentDetails, AgentStatus, AgentUpdate
from estate.models.notification import NotificationPurpose, NotificationSpec, RelatedModel
from estate.models.user import Role, User
from estate.services.contracts import DocumentStore, NotificationSender
from estate.services.users import UserDirectory
from estate.utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from estate.utils.ids import generate_document_id, generate_license, utc_now
from estate.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

AGENTS = "agents"


class AgentOnboarding:
    """
    State machine for agent records: pending -> approved | rejected.

    Both outcomes are terminal. Approval (and the admin-direct path) issues a
    license and adds the agent role to the owning user exactly once.
    """

    def __init__(self, store: DocumentStore, users: UserDirectory, notifier: NotificationSender):
        self.store = store
        self.users = users
        self.notifier = notifier

    async def _ensure_no_record(self, user_id: str) -> None:
        existing = await self.store.find_one(AGENTS, {"user_id": user_id})
        if existing:
            raise ConflictError(
                "An agent record already exists for this user",
                detail={"user_id": user_id, "status": existing.get("status")},
            )

    async def _insert(self, agent: Agent) -> Agent:
        doc = await self.store.save(AGENTS, agent.model_dump(mode="json"))
        return Agent.model_validate(doc)

    async def _transition(self, agent: Agent, changes: dict) -> Agent:
        changes = {**changes, "updated_at": utc_now(), "revision": agent.revision + 1}
        doc = await self.store.update_if(
            AGENTS,
            agent.id,
            {"revision": agent.revision, "status": agent.status.value},
            changes,
        )
        if doc is None:
            raise ConflictError("Agent record was modified concurrently", detail={"agent_id": agent.id})
        return Agent.model_validate(doc)

    async def request_agent(self, user_id: str, details: AgentDetails) -> Agent:
        await self.users.get(user_id)
        await self._ensure_no_record(user_id)

        now = utc_now()
        agent = await self._insert(Agent(
            id=generate_document_id(),
            user_id=user_id,
            status=AgentStatus.PENDING,
            created_at=now,
            updated_at=now,
            **details.model_dump(),
        ))
        logger.info("Agent request created", agent_id=agent.id, user_id=mask_user_id(user_id))
        return agent

    async def approve_agent(self, request_id: str) -> Agent:
        agent = await self.get(request_id)
        if agent.status != AgentStatus.PENDING:
            raise BadRequestError(
                f"Agent request is already {agent.status.value}",
                detail={"agent_id": request_id},
            )

        await self.users.get(agent.user_id)
        agent = await self._transition(agent, {
            "status": AgentStatus.APPROVED.value,
            "license": generate_license(),
        })
        await self.users.add_role(agent.user_id, Role.AGENT)

        logger.info("Agent approved", agent_id=agent.id, user_id=mask_user_id(agent.user_id))

        await self.notifier.send(NotificationSpec(
            user_id=agent.user_id,
            message=f"Your agent request has been approved. License: {agent.license}",
            allowed_roles=[Role.AGENT],
            purpose=NotificationPurpose.AGENT_APPROVED,
            related_id=agent.id,
            related_model=RelatedModel.AGENT,
        ))
        return agent

    async def reject_agent(self, request_id: str) -> Agent:
        agent = await self.get(request_id)
        if agent.status != AgentStatus.PENDING:
            raise BadRequestError(
                f"Agent request is already {agent.status.value}",
                detail={"agent_id": request_id},
            )

        await self.users.get(agent.user_id)
        agent = await self._transition(agent, {"status": AgentStatus.REJECTED.value})

        logger.info("Agent rejected", agent_id=agent.id, user_id=mask_user_id(agent.user_id))

        await self.notifier.send(NotificationSpec(
            user_id=agent.user_id,
            message="Your agent request has been rejected.",
            allowed_roles=[Role.USER],
            purpose=NotificationPurpose.AGENT_REJECTED,
            related_id=agent.id,
            related_model=RelatedModel.AGENT,
        ))
        return agent

    async def create_agent(self, admin: Actor, details: AgentDetails, target_user_id: str) -> Agent:
        """Admin-direct path: skips pending, approved with a license immediately."""
        if not admin.is_admin:
            raise ForbiddenError("Only admins can create agents directly")
        await self.users.get(target_user_id)
        await self._ensure_no_record(target_user_id)

        now = utc_now()
        agent = await self._insert(Agent(
            id=generate_document_id(),
            user_id=target_user_id,
            status=AgentStatus.APPROVED,
            license=generate_license(),
            created_at=now,
            updated_at=now,
            **details.model_dump(),
        ))
        await self.users.add_role(target_user_id, Role.AGENT)

        logger.info(
            "Agent created by admin",
            agent_id=agent.id,
            user_id=mask_user_id(target_user_id),
            admin_id=mask_user_id(admin.user_id),
        )
        return agent

    async def credit_commission(self, agent_id: str, amount: float) -> Agent:
        if amount <= 0:
            raise BadRequestError("Commission amount must be positive")
        agent = await self.get(agent_id)
        doc = await self.store.update_if(
            AGENTS,
            agent.id,
            {"revision": agent.revision},
            {
                "balance": agent.balance + amount,
                "updated_at": utc_now(),
                "revision": agent.revision + 1,
            },
        )
        if doc is None:
            raise ConflictError("Agent record was modified concurrently", detail={"agent_id": agent_id})
        agent = Agent.model_validate(doc)
        logger.info("Commission credited", agent_id=agent.id, amount=amount, balance=agent.balance)
        return agent

    async def update_agent(self, agent_id: str, patch: AgentUpdate) -> Agent:
        agent = await self.get(agent_id)
        changes = patch.model_dump(mode="json", exclude_unset=True)
        if not changes:
            return agent
        doc = await self.store.update_if(
            AGENTS,
            agent.id,
            {"revision": agent.revision},
            {**changes, "updated_at": utc_now(), "revision": agent.revision + 1},
        )
        if doc is None:
            raise ConflictError("Agent record was modified concurrently", detail={"agent_id": agent_id})
        return Agent.model_validate(doc)

    async def remove_agent(self, agent_id: str) -> None:
        """Explicit admin removal. The user's role set is left as is."""
        await self.get(agent_id)
        await self.store.delete_one(AGENTS, {"id": agent_id})
        logger.info("Agent record removed", agent_id=agent_id)

    # Queries

    async def get(self, agent_id: str) -> Agent:
        doc = await self.store.find_by_id(AGENTS, agent_id)
        if not doc:
            raise NotFoundError("Agent not found", detail={"agent_id": agent_id})
        return Agent.model_validate(doc)

    async def find_by_user(self, user_id: str) -> Optional[Agent]:
        doc = await self.store.find_one(AGENTS, {"user_id": user_id})
        return Agent.model_validate(doc) if doc else None

    async def list_pending(self) -> list[Agent]:
        docs = await self.store.find(
            AGENTS, {"status": AgentStatus.PENDING.value}, sort=[("created_at", False)]
        )
        return [Agent.model_validate(d) for d in docs]

    async def list_approved_with_users(self) -> list[tuple[Agent, Optional[User]]]:
        docs = await self.store.find(
            AGENTS, {"status": AgentStatus.APPROVED.value}, sort=[("created_at", False)]
        )
        agents = [Agent.model_validate(d) for d in docs]
        users = await asyncio.gather(*(self.users.find_by_id(a.user_id) for a in agents))
        return list(zip(agents, users))
