from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.schemas.community_schema import CommunityCreate, CommunityUpdate, MemberRoleUpdate
from xclone.services.auth_service import get_current_user
from xclone.services.community_service import CommunityService
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_community(
    data: CommunityCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a community; the creator becomes its admin"""
    try:
        community = await CommunityService(db).create_community(current_user.id, data)
        return envelope(201, community, "Community created successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error creating community: {e}")
        raise APIError(500, "Failed to create community")


@router.get("/")
async def list_communities(
    q: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List or search communities"""
    try:
        communities = await CommunityService(db).list_communities(q, page, limit)
        return envelope(200, communities, "Communities fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error listing communities: {e}")
        raise APIError(500, "Failed to fetch communities")


@router.get("/joined")
async def get_user_communities(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Communities the current user belongs to"""
    try:
        communities = await CommunityService(db).get_user_communities(current_user.id, page, limit)
        return envelope(200, communities, "User communities fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching communities of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch user communities")


@router.get("/feed")
async def get_community_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Posts from members of the current user's communities"""
    try:
        feed = await CommunityService(db).get_community_feed(current_user.id, page, limit)
        return envelope(200, feed, "Community feed fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching community feed of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch community feed")


@router.get("/memberships")
async def get_user_memberships(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The current user's memberships with their roles"""
    try:
        memberships = await CommunityService(db).get_user_memberships(current_user.id)
        return envelope(200, memberships, "Memberships fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching memberships of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch memberships")


@router.get("/{identifier}")
async def get_community(
    identifier: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a community by id or slug"""
    try:
        community = await CommunityService(db).get_community(identifier)
        return envelope(200, community, "Community fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching community {identifier}: {e}")
        raise APIError(500, "Failed to fetch community")


@router.put("/{community_id}")
async def update_community(
    community_id: int,
    data: CommunityUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update a community (admins only)"""
    try:
        community = await CommunityService(db).update_community(community_id, current_user.id, data)
        return envelope(200, community, "Community updated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error updating community {community_id}: {e}")
        raise APIError(500, "Failed to update community")


@router.delete("/{community_id}")
async def delete_community(
    community_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a community (admins only)"""
    try:
        await CommunityService(db).delete_community(community_id, current_user.id)
        return envelope(200, None, "Community deleted successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error deleting community {community_id}: {e}")
        raise APIError(500, "Failed to delete community")


@router.get("/{community_id}/posts")
async def get_community_posts(
    community_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Posts by members of a community (members only)"""
    try:
        posts = await CommunityService(db).get_community_posts(community_id, current_user.id, page, limit)
        return envelope(200, posts, "Community posts fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching posts of community {community_id}: {e}")
        raise APIError(500, "Failed to fetch community posts")


@router.post("/{community_id}/join", status_code=status.HTTP_201_CREATED)
async def join_community(
    community_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        membership = await CommunityService(db).join_community(community_id, current_user.id)
        return envelope(201, membership, "Joined community successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error joining community {community_id}: {e}")
        raise APIError(500, "Failed to join community")


@router.post("/{community_id}/leave")
async def leave_community(
    community_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await CommunityService(db).leave_community(community_id, current_user.id)
        return envelope(200, None, "Left community successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error leaving community {community_id}: {e}")
        raise APIError(500, "Failed to leave community")


@router.get("/{community_id}/members")
async def get_community_members(
    community_id: int,
    role: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Members of a community, optionally filtered by role"""
    try:
        members = await CommunityService(db).get_members(community_id, role, page, limit)
        return envelope(200, members, "Members fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching members of community {community_id}: {e}")
        raise APIError(500, "Failed to fetch members")


@router.put("/{community_id}/members/{member_id}/role")
async def update_member_role(
    community_id: int,
    member_id: int,
    data: MemberRoleUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change a member's role (admins only)"""
    try:
        member = await CommunityService(db).update_member_role(community_id, member_id, data.role, current_user.id)
        return envelope(200, member, "Member role updated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error updating role of user {member_id} in community {community_id}: {e}")
        raise APIError(500, "Failed to update member role")


@router.delete("/{community_id}/members/{member_id}")
async def remove_member(
    community_id: int,
    member_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove a member (admins and moderators)"""
    try:
        await CommunityService(db).remove_member(community_id, member_id, current_user.id)
        return envelope(200, None, "Member removed successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error removing user {member_id} from community {community_id}: {e}")
        raise APIError(500, "Failed to remove member")


@router.get("/{community_id}/membership")
async def check_membership(
    community_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        membership = await CommunityService(db).check_membership(community_id, current_user.id)
        return envelope(200, membership, "Membership status fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error checking membership in community {community_id}: {e}")
        raise APIError(500, "Failed to check membership")
