"""
Relationship Resolver

Loads has-one and has-many relations through the related type's own
repository. The related type must declare a belongs-to field whose target is
the owning type; that field has to be the partition key of the related table
or of one of its secondary indexes. The owning instance itself is the query's
partition value, serialized by that field's serializer.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..config import DEFAULT_QUERY_LIMIT
from ..exceptions import JoinError, RelationshipError
from ..schema import EntitySchema, RelationKind, RelationshipDescriptor, SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinPlan:
    """How one relation is loaded: which related field and key scope to query."""
    relation: RelationshipDescriptor
    related_schema: EntitySchema
    foreign_key: str
    index_name: Optional[str] = None

    @property
    def related_model(self) -> type:
        return self.related_schema.model_class


class RelationshipResolver:
    """Plans and loads the joins of one entity type.

    Args:
        schema: Schema of the owning entity type
        registry: Registry used to resolve related schemas
        repository_factory: Builds a repository for a related model class
        query_limit: Page size of join queries
    """

    def __init__(
        self,
        schema: EntitySchema,
        registry: SchemaRegistry,
        repository_factory: Callable[[type], Any],
        query_limit: int = DEFAULT_QUERY_LIMIT
    ):
        self.schema = schema
        self.registry = registry
        self.repository_factory = repository_factory
        self.query_limit = query_limit
        self._plans: Dict[str, JoinPlan] = {}
        self._repositories: Dict[type, Any] = {}

    def plan(self, relation_name: str) -> JoinPlan:
        """Work out how to load a relation.

        Raises:
            RelationshipError: If the relation is unknown, or the related type has
                no single belongs-to field keyed to the owning type
        """
        plan = self._plans.get(relation_name)
        if plan is not None:
            return plan

        entity = self.schema.entity_name
        relation = self.schema.relationship(relation_name)
        if relation is None or relation.kind == RelationKind.BELONGS_TO:
            raise RelationshipError(
                f"{entity} has no has-one or has-many relation named '{relation_name}'",
                entity=entity,
                relation=relation_name
            )

        related = self.registry.resolve(relation.related_model())
        candidates = [r for r in related.belongs_to() if r.related_model() is self.schema.model_class]
        if relation.foreign_key:
            candidates = [r for r in candidates if r.field_name == relation.foreign_key]

        if not candidates:
            named = f" named '{relation.foreign_key}'" if relation.foreign_key else ""
            raise RelationshipError(
                f"{related.entity_name} has no belongs-to field{named} referencing {entity} "
                f"(relation '{relation_name}')",
                entity=entity,
                relation=relation_name
            )
        if len(candidates) > 1:
            names = [c.field_name for c in candidates]
            raise RelationshipError(
                f"Relation '{relation_name}' of {entity} is ambiguous: {related.entity_name} fields {names} "
                f"all reference {entity}; name one with foreign_key=...",
                entity=entity,
                relation=relation_name
            )

        foreign_key = candidates[0].field_name
        plan = JoinPlan(relation, related, foreign_key, self._scope_for(related, foreign_key, relation_name))
        self._plans[relation_name] = plan
        return plan

    def _scope_for(self, related: EntitySchema, foreign_key: str, relation_name: str) -> Optional[str]:
        if related.partition_key == foreign_key:
            return None
        for index in related.indexes:
            if index.partition_key == foreign_key:
                return index.name
        raise RelationshipError(
            f"{related.entity_name}.{foreign_key} is not the partition key of its table or of any index "
            f"(relation '{relation_name}' of {self.schema.entity_name})",
            entity=self.schema.entity_name,
            relation=relation_name
        )

    def validate(self) -> None:
        """Plan every has-one/has-many relation, raising on the first modeling error."""
        for relation in self.schema.joins():
            self.plan(relation.field_name)

    def repository_for(self, model: type):
        repository = self._repositories.get(model)
        if repository is None:
            repository = self.repository_factory(model)
            self._repositories[model] = repository
        return repository

    def load(self, entity: Any, relation_name: str):
        """Load one relation of an entity instance.

        Returns:
            The first related row (or None) for has-one, a list for has-many

        Raises:
            JoinError: If a has-many relation does not fit in one page
        """
        plan = self.plan(relation_name)
        repository = self.repository_for(plan.related_model)
        owner_key = {name: getattr(entity, name, None) for name in self.schema.stored_field_names}

        logger.debug(
            f"Joining {self.schema.entity_name}.{relation_name} via "
            f"{plan.related_schema.entity_name}.{plan.foreign_key} (index={plan.index_name})"
        )
        result = repository.query(owner_key, index_name=plan.index_name, limit=self.query_limit)

        if plan.relation.kind == RelationKind.HAS_ONE:
            return result.items[0] if result.items else None

        if result.last_key:
            raise JoinError(
                f"Unable to join all rows of {plan.related_schema.entity_name}",
                entity=self.schema.entity_name,
                relation=relation_name
            )
        items: List[Any] = list(result.items)
        return items
