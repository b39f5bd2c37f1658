"""
Models package for X Clone API
"""
from xclone.db.base import Base, BaseModel
from xclone.models.user import User
from xclone.models.tweet import Tweet
from xclone.models.like import Like
from xclone.models.bookmark import Bookmark
from xclone.models.retweet import Retweet
from xclone.models.follow import Follow
from xclone.models.message import Message
from xclone.models.notification import Notification
from xclone.models.community import Community, CommunityMember
from xclone.models.ai_chat import AIConversation, AIMessage

__all__ = [
    'Base',
    'BaseModel',
    'User',
    'Tweet',
    'Like',
    'Bookmark',
    'Retweet',
    'Follow',
    'Message',
    'Notification',
    'Community',
    'CommunityMember',
    'AIConversation',
    'AIMessage',
]
