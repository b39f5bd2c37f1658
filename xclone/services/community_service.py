from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, or_, desc
import logging

from xclone.models.user import User
from xclone.models.tweet import Tweet
from xclone.models.community import Community, CommunityMember
from xclone.schemas.community_schema import (
    CommunityCreate,
    CommunityResponse,
    CommunityRole,
    CommunityUpdate,
    MemberResponse,
    MembershipResponse,
)
from xclone.schemas.user_schema import UserSummary
from xclone.services.counter_service import add_unique, decrement, increment
from xclone.services.tweet_service import TweetService, newest_first, visible_to
from xclone.utils.errors import APIError
from xclone.utils.pagination import paginate, paginated
from xclone.utils.security import slugify

logger = logging.getLogger(__name__)

ROLES = {role.value for role in CommunityRole}


class CommunityService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tweets = TweetService(db)

    async def get_community_or_404(self, community_id: int) -> Community:
        community = await self.db.get(Community, community_id)
        if community is None:
            raise APIError(404, "Community not found")
        return community

    async def get_membership(self, community_id: int, user_id: int) -> Optional[CommunityMember]:
        result = await self.db.execute(
            select(CommunityMember).where(
                CommunityMember.community_id == community_id,
                CommunityMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _require_role(self, community_id: int, user_id: int, *roles: CommunityRole) -> CommunityMember:
        membership = await self.get_membership(community_id, user_id)
        if membership is None or membership.role not in {r.value for r in roles}:
            raise APIError(403, "You do not have permission to manage this community")
        return membership

    async def _ensure_name_available(self, name: str, slug: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(Community).where(or_(Community.name == name, Community.slug == slug))
        if exclude_id is not None:
            stmt = stmt.where(Community.id != exclude_id)
        if (await self.db.execute(stmt)).scalars().first() is not None:
            raise APIError(409, "A community with this name already exists")

    async def create_community(self, user_id: int, data: CommunityCreate) -> CommunityResponse:
        name = data.name.strip()
        slug = slugify(name)
        if not name or not slug:
            raise APIError(400, "Community name must contain letters or numbers")

        await self._ensure_name_available(name, slug)

        community = Community(
            name=name,
            slug=slug,
            description=data.description,
            creator_id=user_id,
            is_private=data.is_private,
            members_count=1,
        )
        self.db.add(community)
        await self.db.flush()

        self.db.add(CommunityMember(community_id=community.id, user_id=user_id, role=CommunityRole.ADMIN.value))
        await self.db.flush()

        logger.info(f"User {user_id} created community {community.id} ({slug})")
        return CommunityResponse.model_validate(community)

    async def list_communities(self, query: Optional[str], page: int, limit: int) -> dict:
        """Communities by size then recency, optionally filtered by name or description"""
        stmt = select(Community)
        if query and query.strip():
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(or_(Community.name.ilike(pattern), Community.description.ilike(pattern)))
        stmt = stmt.order_by(desc(Community.members_count), desc(Community.created_at), desc(Community.id))

        communities, total = await paginate(self.db, stmt, page, limit)
        items = [CommunityResponse.model_validate(c) for c in communities]
        return paginated("communities", items, page, limit, total)

    async def get_community(self, identifier: str) -> CommunityResponse:
        """Look a community up by numeric id or by slug"""
        if identifier.isdigit():
            community = await self.db.get(Community, int(identifier))
        else:
            result = await self.db.execute(select(Community).where(Community.slug == identifier.lower()))
            community = result.scalar_one_or_none()

        if community is None:
            raise APIError(404, "Community not found")
        return CommunityResponse.model_validate(community)

    async def update_community(self, community_id: int, user_id: int, data: CommunityUpdate) -> CommunityResponse:
        community = await self.get_community_or_404(community_id)
        await self._require_role(community_id, user_id, CommunityRole.ADMIN)

        if data.name is not None and data.name.strip() != community.name:
            name = data.name.strip()
            slug = slugify(name)
            if not slug:
                raise APIError(400, "Community name must contain letters or numbers")
            await self._ensure_name_available(name, slug, exclude_id=community_id)
            community.name = name
            community.slug = slug

        if data.description is not None:
            community.description = data.description
        if data.is_private is not None:
            community.is_private = data.is_private

        await self.db.flush()
        return CommunityResponse.model_validate(community)

    async def delete_community(self, community_id: int, user_id: int) -> None:
        community = await self.get_community_or_404(community_id)
        await self._require_role(community_id, user_id, CommunityRole.ADMIN)

        await self.db.execute(delete(CommunityMember).where(CommunityMember.community_id == community_id))
        await self.db.delete(community)
        await self.db.flush()
        logger.info(f"User {user_id} deleted community {community_id}")

    async def get_user_communities(self, user_id: int, page: int, limit: int) -> dict:
        stmt = (
            select(Community)
            .join(CommunityMember, CommunityMember.community_id == Community.id)
            .where(CommunityMember.user_id == user_id)
            .order_by(desc(CommunityMember.created_at), desc(CommunityMember.id))
        )
        communities, total = await paginate(self.db, stmt, page, limit)
        items = [CommunityResponse.model_validate(c) for c in communities]
        return paginated("communities", items, page, limit, total)

    async def get_community_feed(self, viewer_id: int, page: int, limit: int) -> dict:
        """Non-reply posts by members of any community the viewer belongs to"""
        my_communities = select(CommunityMember.community_id).where(CommunityMember.user_id == viewer_id)
        members = select(CommunityMember.user_id).where(CommunityMember.community_id.in_(my_communities))

        stmt = newest_first(
            select(Tweet).where(
                Tweet.author_id.in_(members),
                Tweet.is_reply.is_(False),
                visible_to(viewer_id),
            )
        )
        tweets, total = await paginate(self.db, stmt, page, limit)
        return paginated("tweets", await self.tweets.build_views(tweets, viewer_id), page, limit, total)

    async def get_community_posts(self, community_id: int, viewer_id: int, page: int, limit: int) -> dict:
        """Posts by the members of one community; members only"""
        await self.get_community_or_404(community_id)
        if await self.get_membership(community_id, viewer_id) is None:
            raise APIError(403, "Only members can view community posts")

        members = select(CommunityMember.user_id).where(CommunityMember.community_id == community_id)
        stmt = newest_first(
            select(Tweet).where(
                Tweet.author_id.in_(members),
                Tweet.is_reply.is_(False),
                visible_to(viewer_id),
            )
        )
        tweets, total = await paginate(self.db, stmt, page, limit)
        return paginated("tweets", await self.tweets.build_views(tweets, viewer_id), page, limit, total)

    async def join_community(self, community_id: int, user_id: int) -> MembershipResponse:
        await self.get_community_or_404(community_id)
        if await self.get_membership(community_id, user_id) is not None:
            raise APIError(409, "You are already a member of this community")

        membership = CommunityMember(community_id=community_id, user_id=user_id, role=CommunityRole.MEMBER.value)
        if not await add_unique(self.db, membership):
            raise APIError(409, "You are already a member of this community")

        await increment(self.db, Community, community_id, "members_count")
        logger.info(f"User {user_id} joined community {community_id}")
        return await self._membership_view(membership)

    async def leave_community(self, community_id: int, user_id: int) -> None:
        await self.get_community_or_404(community_id)
        membership = await self.get_membership(community_id, user_id)
        if membership is None:
            raise APIError(400, "You are not a member of this community")
        if membership.role == CommunityRole.ADMIN.value:
            raise APIError(400, "Admins cannot leave their community")

        await self.db.delete(membership)
        await decrement(self.db, Community, community_id, "members_count")
        await self.db.flush()
        logger.info(f"User {user_id} left community {community_id}")

    async def get_members(
        self, community_id: int, role: Optional[str], page: int, limit: int
    ) -> dict:
        await self.get_community_or_404(community_id)
        if role is not None and role not in ROLES:
            raise APIError(400, f"Invalid role: {role}")

        stmt = (
            select(CommunityMember)
            .where(CommunityMember.community_id == community_id)
            .order_by(CommunityMember.created_at, CommunityMember.id)
        )
        if role is not None:
            stmt = stmt.where(CommunityMember.role == role)

        memberships, total = await paginate(self.db, stmt, page, limit)
        users = {
            u.id: u for u in (await self.db.execute(
                select(User).where(User.id.in_([m.user_id for m in memberships]))
            )).scalars().all()
        } if memberships else {}

        items: List[MemberResponse] = [
            MemberResponse(role=m.role, joined_at=m.created_at, user=UserSummary.model_validate(users[m.user_id]))
            for m in memberships
            if m.user_id in users
        ]
        return paginated("members", items, page, limit, total)

    async def update_member_role(
        self, community_id: int, member_id: int, role: str, user_id: int
    ) -> MemberResponse:
        await self.get_community_or_404(community_id)
        await self._require_role(community_id, user_id, CommunityRole.ADMIN)

        if role not in ROLES:
            raise APIError(400, f"Invalid role: {role}")

        membership = await self.get_membership(community_id, member_id)
        if membership is None:
            raise APIError(404, "Member not found")

        if membership.role == CommunityRole.ADMIN.value and role != CommunityRole.ADMIN.value:
            admins = await self.db.scalar(
                select(func.count()).select_from(CommunityMember).where(
                    CommunityMember.community_id == community_id,
                    CommunityMember.role == CommunityRole.ADMIN.value,
                )
            )
            if admins <= 1:
                raise APIError(400, "A community needs at least one admin")

        membership.role = role
        await self.db.flush()
        logger.info(f"User {user_id} set role {role} for user {member_id} in community {community_id}")

        member = await self.db.get(User, member_id)
        return MemberResponse(role=membership.role, joined_at=membership.created_at,
                              user=UserSummary.model_validate(member))

    async def remove_member(self, community_id: int, member_id: int, user_id: int) -> None:
        """Admins and moderators remove members; only admins remove admins"""
        await self.get_community_or_404(community_id)
        actor = await self._require_role(community_id, user_id, CommunityRole.ADMIN, CommunityRole.MODERATOR)

        if member_id == user_id and actor.role == CommunityRole.ADMIN.value:
            raise APIError(400, "Admins cannot remove themselves")

        membership = await self.get_membership(community_id, member_id)
        if membership is None:
            raise APIError(404, "Member not found")

        if membership.role == CommunityRole.ADMIN.value and actor.role != CommunityRole.ADMIN.value:
            raise APIError(403, "Only admins can remove admins")

        await self.db.delete(membership)
        await decrement(self.db, Community, community_id, "members_count")
        await self.db.flush()
        logger.info(f"User {user_id} removed user {member_id} from community {community_id}")

    async def check_membership(self, community_id: int, user_id: int) -> dict:
        await self.get_community_or_404(community_id)
        membership = await self.get_membership(community_id, user_id)
        return {
            "is_member": membership is not None,
            "role": membership.role if membership else None,
        }

    async def _membership_view(self, membership: CommunityMember) -> MembershipResponse:
        community = await self.db.get(Community, membership.community_id, populate_existing=True)
        return MembershipResponse(
            role=membership.role,
            joined_at=membership.created_at,
            community=CommunityResponse.model_validate(community),
        )

    async def get_user_memberships(self, user_id: int) -> List[MembershipResponse]:
        result = await self.db.execute(
            select(CommunityMember, Community)
            .join(Community, Community.id == CommunityMember.community_id)
            .where(CommunityMember.user_id == user_id)
            .order_by(desc(CommunityMember.created_at), desc(CommunityMember.id))
        )
        return [
            MembershipResponse(
                role=membership.role,
                joined_at=membership.created_at,
                community=CommunityResponse.model_validate(community),
            )
            for membership, community in result.all()
        ]
