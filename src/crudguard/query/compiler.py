"""
SQLAlchemy query compiler.

Compiles QueryPlans into SQLAlchemy select statements.
"""

from typing import Any

from sqlalchemy import Select, and_, false, func, inspect, select
from sqlalchemy.orm import load_only, selectinload
from sqlalchemy.orm.exc import UnmappedColumnError

from crudguard.query.plan import QueryPlan, RelationLoad


class SQLAlchemyCompiler:
    """
    Compiles QueryPlans into SQLAlchemy statements.

    Column restriction uses load_only(); relation loads use selectinload()
    with the relation's ownership conditions attached as loader criteria.
    """

    def compile(self, plan: QueryPlan) -> Select:
        """Compile a plan into a SELECT of the root entity."""
        model_class = plan.model_class
        stmt = select(model_class)

        if plan.columns:
            columns = list(plan.columns)
            for load in plan.relation_loads:
                columns.extend(self._local_linkage(model_class, load.relation))
            stmt = stmt.options(load_only(*self._attributes(model_class, columns)))

        stmt = self._apply_conditions(stmt, plan)

        for load in plan.relation_loads:
            stmt = stmt.options(self._loader_option(model_class, load))

        # Relations already loaded in the session must be reloaded under this plan's criteria
        return stmt.execution_options(populate_existing=True)

    def compile_page(self, plan: QueryPlan, per_page: int, page: int) -> Select:
        """Compile one page of a plan, ordered by primary key."""
        pk = getattr(plan.model_class, plan.model.primary_key)
        return (
            self.compile(plan)
            .order_by(pk)
            .limit(per_page)
            .offset((page - 1) * per_page)
        )

    def compile_count(self, plan: QueryPlan) -> Select:
        """Compile a COUNT(*) over the rows a plan matches."""
        stmt = select(func.count()).select_from(plan.model_class)
        return self._apply_conditions(stmt, plan)

    def compile_lookup(self, plan: QueryPlan, id: Any) -> Select:
        """Compile a primary key lookup within a plan's constraints."""
        pk = getattr(plan.model_class, plan.model.primary_key)
        return self.compile(plan).where(pk == id).limit(1)

    def _apply_conditions(self, stmt: Select, plan: QueryPlan) -> Select:
        if plan.match_nothing:
            return stmt.where(false())
        if plan.conditions:
            return stmt.where(and_(*plan.conditions))
        return stmt

    def _loader_option(self, model_class: type, load: RelationLoad) -> Any:
        """Build the selectinload option for one relation load."""
        relationship = getattr(model_class, load.relation)
        if load.match_nothing:
            relationship = relationship.and_(false())
        elif load.conditions:
            relationship = relationship.and_(*load.conditions)

        option = selectinload(relationship)
        target_class = load.target.model_class
        columns = list(load.columns)
        if columns:
            columns.extend(self._remote_linkage(model_class, load.relation))
            option = option.load_only(*self._attributes(target_class, columns))
        return option

    def _local_linkage(self, model_class: type, relation: str) -> list[str]:
        """Root attributes a relation joins on (e.g. a many-to-one foreign key)."""
        mapper = inspect(model_class)
        rel = mapper.relationships[relation]
        return self._column_keys(mapper, rel.local_columns)

    def _remote_linkage(self, model_class: type, relation: str) -> list[str]:
        """Target attributes a relation joins on (e.g. a one-to-many foreign key)."""
        rel = inspect(model_class).relationships[relation]
        return self._column_keys(rel.mapper, rel.remote_side)

    def _column_keys(self, mapper: Any, columns: Any) -> list[str]:
        keys = []
        for column in columns:
            try:
                keys.append(mapper.get_property_by_column(column).key)
            except UnmappedColumnError:
                # Association table columns of many-to-many relations
                continue
        return keys

    def _attributes(self, model_class: type, columns: list[str]) -> list[Any]:
        seen: dict[str, Any] = {}
        for name in columns:
            if name not in seen:
                seen[name] = getattr(model_class, name)
        return list(seen.values())
