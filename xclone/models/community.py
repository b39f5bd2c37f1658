from sqlalchemy import Column, String, Text, Integer, ForeignKey, Boolean, UniqueConstraint, Index
from xclone.db.base import BaseModel


class Community(BaseModel):
    __tablename__ = "communities"

    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(120), unique=True, index=True, nullable=False)
    description = Column(Text)
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)
    members_count = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index('ix_communities_members_count', 'members_count'),
    )


class CommunityMember(BaseModel):
    __tablename__ = "community_members"

    community_id = Column(Integer, ForeignKey("communities.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), default="member", nullable=False)  # member, moderator, admin

    __table_args__ = (
        UniqueConstraint('community_id', 'user_id', name='unique_community_member'),
        Index('ix_community_members_user_id', 'user_id'),
        Index('ix_community_members_community_id', 'community_id'),
    )
