"""
Test helpers for dynamodb-entities.

Entity models shared by unit and integration tests.
"""

from .entities import (
    ALL_ENTITIES,
    BLOG_ENTITIES,
    Address,
    Comment,
    Document,
    Post,
    PostTag,
    Priority,
    Profile,
    SimpleEntity,
    Tag,
    User,
)

__all__ = [
    'ALL_ENTITIES',
    'BLOG_ENTITIES',
    'Address',
    'Comment',
    'Document',
    'Post',
    'PostTag',
    'Priority',
    'Profile',
    'SimpleEntity',
    'Tag',
    'User',
]
