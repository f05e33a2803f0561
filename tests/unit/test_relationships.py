"""
Tests for RelationshipResolver join planning and loading.
"""

from typing import Annotated, Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from dynamodb_entities import (
    BelongsTo,
    HasMany,
    HasOne,
    JoinError,
    KeyRole,
    PartitionKey,
    QueryResult,
    RelationKind,
    RelationshipError,
    SortKey,
)
from dynamodb_entities.core.relationships import RelationshipResolver
from tests.helpers import Comment, Post, Profile, Tag, User
from tests.helpers.entities import user_from_key, user_key


# Models with modeling mistakes

class Reply(BaseModel):
    author: Annotated[Dict[str, Any], BelongsTo(lambda: Owner, user_key, user_from_key)]
    id: Annotated[str, SortKey()]
    editor: Annotated[Dict[str, Any], BelongsTo(lambda: Owner, user_key, user_from_key, key_role=KeyRole.INDEX)]


class Note(BaseModel):
    id: Annotated[str, PartitionKey()]
    owner: Annotated[Dict[str, Any], BelongsTo(lambda: Owner, user_key, user_from_key, key_role=None)]


class Owner(BaseModel):
    id: Annotated[str, PartitionKey()]
    replies: Annotated[Optional[List[Any]], HasMany(lambda: Reply)] = None
    edited: Annotated[Optional[List[Any]], HasMany(lambda: Reply, foreign_key="editor")] = None
    tags: Annotated[Optional[List[Any]], HasMany(lambda: Tag)] = None
    notes: Annotated[Optional[List[Any]], HasMany(lambda: Note)] = None
    misnamed: Annotated[Optional[Any], HasOne(lambda: Reply, foreign_key="reviewer")] = None


@pytest.fixture
def repository_factory():
    factory = MagicMock()
    factory.return_value.query.return_value = QueryResult([])
    return factory


@pytest.fixture
def resolver_for(registry, repository_factory):
    def _make(model_class, query_limit=1000):
        return RelationshipResolver(registry.resolve(model_class), registry, repository_factory, query_limit)
    return _make


class TestPlan:
    """Test join planning."""

    def test_has_many_on_table_partition_key(self, resolver_for):
        plan = resolver_for(User).plan("posts")

        assert plan.related_model is Post
        assert plan.foreign_key == "user_id"
        assert plan.index_name is None
        assert plan.relation.kind == RelationKind.HAS_MANY

    def test_has_one(self, resolver_for):
        plan = resolver_for(User).plan("profile")

        assert plan.related_model is Profile
        assert plan.relation.kind == RelationKind.HAS_ONE

    def test_explicit_foreign_key_on_index(self, resolver_for):
        plan = resolver_for(User).plan("comments")

        assert plan.related_model is Comment
        assert plan.foreign_key == "author_id"
        assert plan.index_name == "author_idGlobalIndex"

    def test_explicit_foreign_key_disambiguates(self, resolver_for):
        plan = resolver_for(Owner).plan("edited")

        assert plan.foreign_key == "editor"
        assert plan.index_name == "editorGlobalIndex"

    def test_plans_are_cached(self, resolver_for):
        resolver = resolver_for(User)

        assert resolver.plan("posts") is resolver.plan("posts")

    def test_unknown_relation(self, resolver_for):
        with pytest.raises(RelationshipError, match="no has-one or has-many relation named 'friends'"):
            resolver_for(User).plan("friends")

    def test_belongs_to_is_not_joinable(self, resolver_for):
        with pytest.raises(RelationshipError):
            resolver_for(Post).plan("user_id")

    def test_ambiguous_foreign_key(self, resolver_for):
        with pytest.raises(RelationshipError, match="ambiguous") as exc_info:
            resolver_for(Owner).plan("replies")

        assert exc_info.value.relation == "replies"

    def test_missing_foreign_key(self, resolver_for):
        with pytest.raises(RelationshipError, match="Tag has no belongs-to field referencing Owner"):
            resolver_for(Owner).plan("tags")

    def test_missing_named_foreign_key(self, resolver_for):
        with pytest.raises(RelationshipError, match="named 'reviewer'"):
            resolver_for(Owner).plan("misnamed")

    def test_foreign_key_must_be_a_partition_key(self, resolver_for):
        with pytest.raises(RelationshipError, match="is not the partition key"):
            resolver_for(Owner).plan("notes")

    def test_validate_plans_every_join(self, resolver_for):
        resolver_for(User).validate()
        resolver_for(Post).validate()

        with pytest.raises(RelationshipError):
            resolver_for(Owner).validate()


class TestLoad:
    """Test loading related rows through the related repository."""

    def test_has_one_returns_first_row(self, resolver_for, repository_factory):
        profile = Profile(user_id={"id": "u1"}, bio="hi")
        repository_factory.return_value.query.return_value = QueryResult([profile])
        user = User(id="u1", email="a@example.com", name="Ann")

        assert resolver_for(User).load(user, "profile") is profile

        repository_factory.assert_called_once_with(Profile)
        owner_key, = repository_factory.return_value.query.call_args.args
        assert owner_key["id"] == "u1"
        assert "profile" not in owner_key
        assert repository_factory.return_value.query.call_args.kwargs == {"index_name": None, "limit": 1000}

    def test_has_one_without_rows(self, resolver_for):
        user = User(id="u1", email="a@example.com", name="Ann")

        assert resolver_for(User).load(user, "profile") is None

    def test_has_many_queries_index(self, resolver_for, repository_factory):
        comments = [MagicMock(), MagicMock()]
        repository_factory.return_value.query.return_value = QueryResult(comments)
        user = User(id="u1", email="a@example.com", name="Ann")

        assert resolver_for(User, query_limit=25).load(user, "comments") == comments
        assert repository_factory.return_value.query.call_args.kwargs == {
            "index_name": "author_idGlobalIndex",
            "limit": 25,
        }

    def test_has_many_overflow(self, resolver_for, repository_factory):
        repository_factory.return_value.query.return_value = QueryResult([MagicMock()], last_key='{"id": "x"}')
        user = User(id="u1", email="a@example.com", name="Ann")

        with pytest.raises(JoinError, match="Unable to join all rows of Post"):
            resolver_for(User).load(user, "posts")

    def test_related_repositories_are_reused(self, resolver_for, repository_factory):
        resolver = resolver_for(User)
        user = User(id="u1", email="a@example.com", name="Ann")

        resolver.load(user, "posts")
        resolver.load(user, "posts")

        repository_factory.assert_called_once_with(Post)
