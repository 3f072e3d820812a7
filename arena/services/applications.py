from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from arena.errors import Forbidden, InvalidTransition, NotFound
from arena.schemas import Application
from arena.services.challenges import ChallengeService
from arena.services.store import APPLICATIONS, DocumentStore

_LOGGER = logging.getLogger(__name__)

DECISIONS = frozenset({"approved", "rejected"})


class ApplicationService:
    """Requests to join private challenges and the creator's decision on them.

    Approval only flips the status; admitting the applicant is a separate
    join call. Duplicate applications are not rejected here, callers check
    ``get_user_application`` first.
    """

    def __init__(self, store: DocumentStore, challenges: ChallengeService) -> None:
        self.store = store
        self.challenges = challenges

    async def submit_application(
        self, challenge_id: str, applicant_uid: str, message: Optional[str] = None
    ) -> Application:
        await self.challenges.require_challenge(challenge_id)
        application_id = await self.store.create(
            APPLICATIONS,
            {
                "challenge_id": challenge_id,
                "applicant_uid": applicant_uid,
                "message": message,
                "status": "pending",
            },
        )
        _LOGGER.info("Application %s submitted by %s for %s", application_id, applicant_uid, challenge_id)
        return await self.require_application(application_id)

    async def get_application(self, application_id: str) -> Optional[Application]:
        doc = await self.store.get(APPLICATIONS, application_id)
        return Application.model_validate(doc.as_record()) if doc else None

    async def require_application(self, application_id: str) -> Application:
        application = await self.get_application(application_id)
        if application is None:
            raise NotFound("Application not found")
        return application

    async def get_applications_by_challenge(self, challenge_id: str) -> list[Application]:
        page = await self.store.query(APPLICATIONS, filters={"challenge_id": challenge_id})
        return [Application.model_validate(doc.as_record()) for doc in page.items]

    async def get_user_application(self, challenge_id: str, user_uid: str) -> Optional[Application]:
        page = await self.store.query(
            APPLICATIONS,
            filters={"challenge_id": challenge_id, "applicant_uid": user_uid},
            descending=False,
            limit=1,
        )
        return Application.model_validate(page.items[0].as_record()) if page.items else None

    async def get_user_applications(self, user_uid: str) -> list[Application]:
        page = await self.store.query(APPLICATIONS, filters={"applicant_uid": user_uid})
        return [Application.model_validate(doc.as_record()) for doc in page.items]

    async def update_application_status(
        self, application_id: str, actor_uid: str, status: str
    ) -> Application:
        if status not in DECISIONS:
            raise InvalidTransition(f"Applications cannot be moved to {status}")

        application = await self.require_application(application_id)
        challenge = await self.challenges.require_challenge(application.challenge_id)
        if challenge.creator_uid != actor_uid:
            raise Forbidden("Only the challenge creator can review applications")
        if application.status != "pending":
            raise InvalidTransition(f"Application is already {application.status}")

        await self.store.update(
            APPLICATIONS, application_id, {"status": status}, expected_version=application.version
        )
        _LOGGER.info("Application %s %s by %s", application_id, status, actor_uid)
        return await self.require_application(application_id)

    async def approve(self, application_id: str, actor_uid: str) -> Application:
        return await self.update_application_status(application_id, actor_uid, "approved")

    async def reject(self, application_id: str, actor_uid: str) -> Application:
        return await self.update_application_status(application_id, actor_uid, "rejected")

    async def update_application(self, application_id: str, updates: Mapping[str, Any]) -> Application:
        await self.store.update(APPLICATIONS, application_id, updates)
        return await self.require_application(application_id)


__all__ = ["ApplicationService"]
