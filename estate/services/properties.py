"""Property lifecycle - moderation status, image gallery, and deal negotiation."""

from typing import Iterable, Optional, Union

from pydantic import ValidationError

from estate.config import settings
from estate.models.actor import Actor
from estate.models.notification import NotificationPurpose, NotificationSpec, RelatedModel
from estate.models.property import (
    MAX_IMAGES,
    DealProposal,
    DealStatus,
    DealTerms,
    ImageUpload,
    Property,
    PropertyCreate,
    PropertySearch,
    PropertyStatus,
    PropertyUpdate,
    can_transition,
    deal_cap,
)
from estate.models.user import Role, User
from estate.services.contracts import DocumentStore, MediaStore, NotificationSender
from estate.services.users import UserDirectory
from estate.utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from estate.utils.ids import generate_document_id, utc_now
from estate.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

PROPERTIES = "properties"
IMAGE_CATEGORY = "property"
NEWEST_FIRST = [("created_at", True), ("id", True)]


class PropertyLifecycle:
    """
    Listings and the deal proposals agents make on them.

    Every mutation of an existing listing is committed with a conditional
    write on the document revision. Cap checks (images, outstanding
    proposals) are evaluated against the revision being replaced, so a
    concurrent writer cannot push a listing past its cap: the loser gets
    ConflictError and nothing is retried.
    """

    def __init__(
        self,
        store: DocumentStore,
        users: UserDirectory,
        notifier: NotificationSender,
        media: MediaStore,
    ):
        self.store = store
        self.users = users
        self.notifier = notifier
        self.media = media

    # Helpers

    @staticmethod
    def _require_owner_or_admin(prop: Property, actor: Actor, action: str) -> None:
        if prop.owner_id != actor.user_id and not actor.is_admin:
            raise ForbiddenError(
                f"You can only {action} your own properties",
                detail={"property_id": prop.id},
            )

    @staticmethod
    def _require_owner(prop: Property, actor: Actor) -> None:
        if prop.owner_id != actor.user_id:
            raise ForbiddenError("Only the owner can decide on deals", detail={"property_id": prop.id})

    async def _commit(self, prop: Property, changes: dict) -> Property:
        try:
            Property.model_validate({**prop.model_dump(mode="json"), **changes})
        except ValidationError as e:
            raise BadRequestError(
                "Invalid property changes",
                detail={"property_id": prop.id, "fields": sorted(changes), "error": str(e)},
            )
        doc = await self.store.update_if(
            PROPERTIES,
            prop.id,
            {"revision": prop.revision},
            {**changes, "updated_at": utc_now(), "revision": prop.revision + 1},
        )
        if doc is None:
            raise ConflictError("Property was modified concurrently", detail={"property_id": prop.id})
        return Property.model_validate(doc)

    async def _notify(
        self,
        recipient: Optional[User],
        property_id: str,
        purpose: NotificationPurpose,
        message: str,
        allowed_roles: Iterable[Role] = (),
    ) -> None:
        # Recipients are resolved before the write; one deleted since is skipped
        if recipient is None:
            logger.warning(
                "Notification skipped, recipient no longer exists",
                property_id=property_id,
                purpose=purpose.value,
            )
            return
        await self.notifier.send(NotificationSpec(
            user_id=recipient.id,
            message=message,
            allowed_roles=list(allowed_roles),
            purpose=purpose,
            related_id=property_id,
            related_model=RelatedModel.PROPERTY,
        ))

    async def _discard_uploads(self, uris: list[str]) -> None:
        for uri in uris:
            try:
                await self.media.delete(uri)
            except Exception as e:
                logger.warning("Failed to delete stored image (non-fatal)", uri=uri, error=str(e))

    # Lifecycle

    async def create_property(self, details: PropertyCreate, actor: Actor) -> Property:
        if not actor.has_role(Role.SELLER, Role.ADMIN):
            raise ForbiddenError("Only sellers or admins can create properties")
        creator = await self.users.get(actor.user_id)

        now = utc_now()
        prop = Property(
            id=generate_document_id(),
            owner_id=actor.user_id,
            status=PropertyStatus.PENDING,
            images=[],
            agents=[],
            created_at=now,
            updated_at=now,
            **details.model_dump(),
        )
        doc = await self.store.save(PROPERTIES, prop.model_dump(mode="json"))
        prop = Property.model_validate(doc)

        logger.info(
            "Property created",
            property_id=prop.id,
            owner_id=mask_user_id(prop.owner_id),
            listing_type=prop.type.value,
        )
        await self._notify(
            creator,
            prop.id,
            NotificationPurpose.PROPERTY_CREATED,
            f"Property '{prop.title}' was created and is awaiting review.",
            allowed_roles=[Role.ADMIN, Role.SELLER],
        )
        return prop

    async def get(self, property_id: str) -> Property:
        doc = await self.store.find_by_id(PROPERTIES, property_id)
        if not doc:
            raise NotFoundError("Property not found", detail={"property_id": property_id})
        return Property.model_validate(doc)

    async def update_property(self, property_id: str, patch: PropertyUpdate, actor: Actor) -> Property:
        prop = await self.get(property_id)
        self._require_owner_or_admin(prop, actor, "update")

        changes = patch.model_dump(mode="json", exclude_unset=True)
        if not changes:
            return prop
        owner = await self.users.find_by_id(prop.owner_id)
        prop = await self._commit(prop, changes)

        logger.info("Property updated", property_id=prop.id, fields=sorted(changes))
        await self._notify(
            owner,
            prop.id,
            NotificationPurpose.PROPERTY_UPDATED,
            f"Property '{prop.title}' was updated.",
        )
        return prop

    async def delete_property(self, property_id: str, actor: Actor) -> None:
        prop = await self.get(property_id)
        self._require_owner_or_admin(prop, actor, "delete")

        owner = await self.users.find_by_id(prop.owner_id)
        await self.store.delete_one(PROPERTIES, {"id": prop.id})
        logger.info("Property deleted", property_id=prop.id, deleted_by=mask_user_id(actor.user_id))

        await self._notify(
            owner,
            prop.id,
            NotificationPurpose.PROPERTY_DELETED,
            f"Property '{prop.title}' was deleted.",
            allowed_roles=[Role.ADMIN],
        )
        await self._discard_uploads(prop.images)

    async def update_status_by_admin(
        self, property_id: str, new_status: Union[PropertyStatus, str], actor: Actor
    ) -> Property:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can change a property's status")
        try:
            status = PropertyStatus(new_status)
        except ValueError:
            raise BadRequestError(f"Invalid status: {new_status}")

        prop = await self.get(property_id)
        if status == prop.status:
            raise BadRequestError(f"Property is already {status.value}")
        if not can_transition(prop.status, status):
            raise BadRequestError(f"Cannot move a property from {prop.status.value} to {status.value}")

        previous = prop.status
        changes: dict = {"status": status.value}
        if status == PropertyStatus.ACTIVE and not prop.listing_date:
            changes["listing_date"] = utc_now()
        owner = await self.users.find_by_id(prop.owner_id)
        prop = await self._commit(prop, changes)

        logger.info(
            "Property status changed",
            property_id=prop.id,
            from_status=previous.value,
            to_status=status.value,
        )
        await self._notify(
            owner,
            prop.id,
            NotificationPurpose.PROPERTY_STATUS_CHANGED,
            f"Property '{prop.title}' status changed from {previous.value} to {status.value}.",
            allowed_roles=[Role.ADMIN],
        )
        return prop

    async def record_view(self, property_id: str) -> Property:
        """Bump the view counter; a lost race drops the increment."""
        prop = await self.get(property_id)
        doc = await self.store.update_if(
            PROPERTIES, prop.id, {"revision": prop.revision},
            {"views": prop.views + 1, "revision": prop.revision + 1},
        )
        if doc is None:
            logger.debug("View increment lost to a concurrent write", property_id=prop.id)
            return prop
        return Property.model_validate(doc)

    # Images

    async def add_images(self, property_id: str, files: list[ImageUpload], actor: Actor) -> list[str]:
        prop = await self.get(property_id)
        self._require_owner_or_admin(prop, actor, "upload images for")

        if not files:
            raise BadRequestError("No files uploaded")
        current = len(prop.images)
        if current >= MAX_IMAGES:
            raise BadRequestError(f"Maximum {MAX_IMAGES} images allowed per property")
        if current + len(files) > MAX_IMAGES:
            raise BadRequestError(
                f"Adding {len(files)} images would exceed the {MAX_IMAGES}-image limit. "
                f"Current: {current}, Max: {MAX_IMAGES}"
            )

        uris: list[str] = []
        try:
            for upload in files:
                uris.append(await self.media.store(upload.content, IMAGE_CATEGORY, upload.filename))
            await self._commit(prop, {"images": [*prop.images, *uris]})
        except Exception:
            await self._discard_uploads(uris)
            raise

        logger.info("Images added", property_id=prop.id, added=len(uris), total=current + len(uris))
        return uris

    async def remove_image(self, property_id: str, image_uri: str, actor: Actor) -> Property:
        prop = await self.get(property_id)
        self._require_owner_or_admin(prop, actor, "remove images from")

        if image_uri not in prop.images:
            raise BadRequestError("Image not found on this property", detail={"image": image_uri})

        prop = await self._commit(prop, {"images": [uri for uri in prop.images if uri != image_uri]})
        logger.info("Image removed", property_id=prop.id, remaining=len(prop.images))

        # The listing is the source of truth; a stale file is only logged
        await self._discard_uploads([image_uri])
        return prop

    # Deal negotiation

    async def send_deal_request(self, property_id: str, deal: DealTerms, actor: Actor) -> Property:
        if not actor.has_role(Role.AGENT):
            raise ForbiddenError("Only agents can send deal requests")
        prop = await self.get(property_id)

        outstanding = prop.outstanding_proposals()
        if any(p.agent_id == actor.user_id for p in outstanding):
            raise ConflictError("You already have an open proposal on this property")
        cap = deal_cap(prop.type)
        if len(outstanding) >= cap:
            raise BadRequestError(
                f"Agent limit reached ({cap} for {prop.type.value} listings)",
                detail={"property_id": prop.id, "cap": cap},
            )

        agent_user = await self.users.get(actor.user_id)
        owner = await self.users.find_by_id(prop.owner_id)
        proposal = DealProposal(
            agent_id=actor.user_id,
            commission_rate=deal.commission_rate,
            terms=deal.terms,
            status=DealStatus.PENDING,
            first_name=agent_user.first_name,
            last_name=agent_user.last_name,
            phone=agent_user.phone,
            profile_photos=list(agent_user.profile_photos),
            proposed_at=utc_now(),
        )
        agents = [*prop.agents, proposal]
        prop = await self._commit(prop, {"agents": [p.model_dump(mode="json") for p in agents]})

        logger.info(
            "Deal request sent",
            property_id=prop.id,
            agent_id=mask_user_id(actor.user_id),
            outstanding=len(outstanding) + 1,
            cap=cap,
        )
        await self._notify(
            owner,
            prop.id,
            NotificationPurpose.DEAL_REQUEST,
            f"New deal request from {agent_user.display_name} on '{prop.title}' "
            f"at {deal.commission_rate}% commission.",
        )
        return prop

    async def _decide(self, property_id: str, agent_id: str, actor: Actor, outcome: DealStatus) -> Property:
        prop = await self.get(property_id)
        self._require_owner(prop, actor)

        index = prop.find_proposal(agent_id)
        if index is None:
            raise NotFoundError("Agent not found in requests", detail={"agent_id": agent_id})
        proposal = prop.agents[index]
        if proposal.status != DealStatus.PENDING:
            raise BadRequestError(f"Proposal is already {proposal.status.value}")
        if outcome == DealStatus.ACCEPTED and any(p.status == DealStatus.ACCEPTED for p in prop.agents):
            raise ConflictError("Another proposal has already been accepted for this property")

        agents = list(prop.agents)
        agents[index] = proposal.model_copy(update={"status": outcome})
        prop = await self._commit(prop, {"agents": [p.model_dump(mode="json") for p in agents]})

        logger.info(
            "Deal proposal decided",
            property_id=prop.id,
            agent_id=mask_user_id(agent_id),
            outcome=outcome.value,
        )
        return prop

    async def accept_deal(self, property_id: str, agent_id: str, actor: Actor) -> Property:
        """Accept one pending proposal. Sibling proposals are left untouched."""
        return await self._decide(property_id, agent_id, actor, DealStatus.ACCEPTED)

    async def reject_deal(self, property_id: str, agent_id: str, actor: Actor) -> Property:
        return await self._decide(property_id, agent_id, actor, DealStatus.REJECTED)

    # Queries

    async def search(self, criteria: PropertySearch) -> tuple[list[Property], int]:
        filters: dict = {}
        if criteria.type:
            filters["type"] = criteria.type.value
        if criteria.status:
            filters["status"] = criteria.status.value
        if criteria.owner_id:
            filters["owner_id"] = criteria.owner_id
        price = _range(criteria.min_price, criteria.max_price)
        if price:
            filters["price"] = price
        area = _range(criteria.min_area, criteria.max_area)
        if area:
            filters["area"] = area
        if criteria.beds is not None:
            filters["bedrooms"] = {"gte": criteria.beds}
        if criteria.baths is not None:
            filters["bathrooms"] = {"gte": criteria.baths}

        limit = min(criteria.limit or settings.PROPERTY_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        docs = await self.store.find(
            PROPERTIES, filters, skip=(criteria.page - 1) * limit, limit=limit, sort=NEWEST_FIRST
        )
        total = await self.store.count_documents(PROPERTIES, filters)
        return [Property.model_validate(d) for d in docs], total

    async def list_approved(self, criteria: Optional[PropertySearch] = None) -> tuple[list[Property], int]:
        criteria = (criteria or PropertySearch()).model_copy(update={"status": PropertyStatus.ACTIVE})
        return await self.search(criteria)

    async def list_by_owner(self, owner_id: str) -> list[Property]:
        docs = await self.store.find(PROPERTIES, {"owner_id": owner_id}, sort=NEWEST_FIRST)
        return [Property.model_validate(d) for d in docs]


def _range(low: Optional[float], high: Optional[float]) -> dict:
    bounds = {}
    if low is not None:
        bounds["gte"] = low
    if high is not None:
        bounds["lte"] = high
    return bounds
