"""Unit tests for projects/store.py -- ProjectStore, AccessStore, QueryStore.

Covers:
- create() gives the owner an Editor access row; (owner, name) is unique
- updating components_info flips every fresh query of that project to
  outdated and leaves other projects' queries untouched
- a failed project write rolls back the invalidation (no partial update)
- ownership transfer grants the new owner Editor
- delete() cascades queries and access rows
- authorize(): no row is Denied for every role; role order Reader < Commenter < Editor
- QueryStore: new queries are fresh; save_result() only clears outdated when
  the project still has the components the result was computed from
"""

import pytest

from auth.models import User
from auth.store import UserStore
from db.errors import ConstraintViolation, RecordNotFound
from projects.models import Access, Decision, Project, Query, Role
from projects.store import AccessStore, ProjectStore, QueryStore


@pytest.fixture
def users(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def projects(engine) -> ProjectStore:
    return ProjectStore(engine)


@pytest.fixture
def access(engine) -> AccessStore:
    return AccessStore(engine)


@pytest.fixture
def queries(engine) -> QueryStore:
    return QueryStore(engine)


@pytest.fixture
def alice(users: UserStore) -> User:
    return users.create(User(username="alice123", email="a@b.com", password="digest"))


@pytest.fixture
def bob(users: UserStore) -> User:
    return users.create(User(username="bob_1", email="bob@b.com", password="digest"))


class TestProjectCreate:
    def test_owner_gets_editor(self, projects: ProjectStore, access: AccessStore, alice: User) -> None:
        project = projects.create(Project(name="train", owner_id=alice.id, components_info={"a": 1}))
        row = access.get_by_user_and_project(alice.id, project.id)
        assert row.role is Role.EDITOR
        assert projects.get_by_id(project.id).components_info == {"a": 1}

    def test_owner_name_unique(self, projects: ProjectStore, alice: User, bob: User) -> None:
        projects.create(Project(name="train", owner_id=alice.id))
        projects.create(Project(name="train", owner_id=bob.id))  # other owner is fine
        with pytest.raises(ConstraintViolation) as info:
            projects.create(Project(name="train", owner_id=alice.id))
        assert info.value.kind == "unique"

    def test_list_for_user(self, projects: ProjectStore, access: AccessStore, alice: User, bob: User) -> None:
        mine = projects.create(Project(name="mine", owner_id=alice.id))
        theirs = projects.create(Project(name="theirs", owner_id=bob.id))
        projects.create(Project(name="hidden", owner_id=bob.id))
        access.create(Access(role=Role.READER, user_id=alice.id, project_id=theirs.id))
        infos = projects.list_for_user(alice.id)
        assert [(i.project_id, i.role) for i in infos] == [(mine.id, Role.EDITOR), (theirs.id, Role.READER)]

    def test_list_for_user_without_access(self, projects: ProjectStore, bob: User) -> None:
        assert projects.list_for_user(bob.id) == []


class TestProjectUpdateInvalidation:
    def test_components_change_marks_queries_outdated(
        self, projects: ProjectStore, queries: QueryStore, alice: User
    ) -> None:
        target = projects.create(Project(name="target", owner_id=alice.id, components_info={"v": 1}))
        other = projects.create(Project(name="other", owner_id=alice.id, components_info={"v": 1}))
        q1 = queries.create(Query(project_id=target.id, string="q1"))
        q2 = queries.create(Query(project_id=target.id, string="q2"))
        q_other = queries.create(Query(project_id=other.id, string="q3"))
        assert not queries.get_by_id(q1.id).outdated

        updated = projects.update(target.id, components_info={"v": 2})

        assert updated.components_info == {"v": 2}
        assert queries.get_by_id(q1.id).outdated
        assert queries.get_by_id(q2.id).outdated
        assert not queries.get_by_id(q_other.id).outdated

    def test_rename_keeps_queries_fresh(self, projects: ProjectStore, queries: QueryStore, alice: User) -> None:
        project = projects.create(Project(name="before", owner_id=alice.id))
        q = queries.create(Query(project_id=project.id, string="q"))
        projects.update(project.id, name="after")
        assert not queries.get_by_id(q.id).outdated

    def test_failed_write_rolls_back_invalidation(
        self, projects: ProjectStore, queries: QueryStore, alice: User
    ) -> None:
        """A name clash on the project write must leave the queries fresh."""
        projects.create(Project(name="taken", owner_id=alice.id))
        project = projects.create(Project(name="mine", owner_id=alice.id, components_info={"v": 1}))
        q = queries.create(Query(project_id=project.id, string="q"))

        with pytest.raises(ConstraintViolation):
            projects.update(project.id, name="taken", components_info={"v": 2})

        assert not queries.get_by_id(q.id).outdated
        assert projects.get_by_id(project.id).components_info == {"v": 1}

    def test_update_missing_project(self, projects: ProjectStore) -> None:
        with pytest.raises(RecordNotFound):
            projects.update(999, components_info={})

    def test_owner_transfer_grants_editor(
        self, projects: ProjectStore, access: AccessStore, alice: User, bob: User
    ) -> None:
        project = projects.create(Project(name="p", owner_id=alice.id))
        access.create(Access(role=Role.READER, user_id=bob.id, project_id=project.id))
        updated = projects.update(project.id, owner_id=bob.id)
        assert updated.owner_id == bob.id
        assert access.get_by_user_and_project(bob.id, project.id).role is Role.EDITOR


class TestProjectDelete:
    def test_delete_cascades(
        self, projects: ProjectStore, access: AccessStore, queries: QueryStore, alice: User, bob: User
    ) -> None:
        project = projects.create(Project(name="p", owner_id=alice.id))
        access.create(Access(role=Role.READER, user_id=bob.id, project_id=project.id))
        queries.create(Query(project_id=project.id, string="q"))
        deleted = projects.delete(project.id)
        assert deleted.name == "p"
        assert access.list_for_project(project.id) == []
        assert queries.list_for_project(project.id) == []
        with pytest.raises(RecordNotFound):
            projects.delete(project.id)


class TestAuthorize:
    @pytest.fixture
    def project(self, projects: ProjectStore, alice: User) -> Project:
        return projects.create(Project(name="p", owner_id=alice.id))

    def test_no_row_denied_for_every_role(self, access: AccessStore, project: Project, bob: User) -> None:
        for role in Role:
            assert access.authorize(bob.id, project.id, role) is Decision.DENIED

    @pytest.mark.parametrize(
        "held, minimum, expected",
        [
            (Role.COMMENTER, Role.READER, Decision.ALLOWED),
            (Role.COMMENTER, Role.COMMENTER, Decision.ALLOWED),
            (Role.COMMENTER, Role.EDITOR, Decision.DENIED),
            (Role.READER, Role.COMMENTER, Decision.DENIED),
            (Role.EDITOR, Role.EDITOR, Decision.ALLOWED),
        ],
    )
    def test_role_order(
        self, access: AccessStore, project: Project, bob: User, held: Role, minimum: Role, expected: Decision
    ) -> None:
        access.create(Access(role=held, user_id=bob.id, project_id=project.id))
        assert access.authorize(bob.id, project.id, minimum) is expected

    def test_one_role_per_user_and_project(self, access: AccessStore, project: Project, bob: User) -> None:
        access.create(Access(role=Role.READER, user_id=bob.id, project_id=project.id))
        with pytest.raises(ConstraintViolation):
            access.create(Access(role=Role.EDITOR, user_id=bob.id, project_id=project.id))

    def test_update_and_delete(self, access: AccessStore, project: Project, bob: User) -> None:
        row = access.create(Access(role=Role.READER, user_id=bob.id, project_id=project.id))
        assert access.update(row.id, Role.COMMENTER).role is Role.COMMENTER
        assert access.delete(row.id).role is Role.COMMENTER
        assert access.get_by_id(row.id) is None


class TestQueryStore:
    @pytest.fixture
    def project(self, projects: ProjectStore, alice: User) -> Project:
        return projects.create(Project(name="p", owner_id=alice.id, components_info={"v": 1}))

    def test_new_query_is_fresh(self, queries: QueryStore, project: Project) -> None:
        q = queries.create(Query(project_id=project.id, string="E<> done"))
        stored = queries.get_by_id(q.id)
        assert stored.outdated is False
        assert stored.result is None

    def test_query_needs_project(self, queries: QueryStore) -> None:
        with pytest.raises(ConstraintViolation):
            queries.create(Query(project_id=999, string="q"))

    def test_update_keeps_result_and_flag(
        self, queries: QueryStore, projects: ProjectStore, project: Project
    ) -> None:
        q = queries.create(Query(project_id=project.id, string="old"))
        queries.save_result(q.id, {"sat": True}, {"v": 1})
        projects.update(project.id, components_info={"v": 2})
        updated = queries.update(q.id, "new")
        assert updated.string == "new"
        assert updated.result == {"sat": True}
        assert updated.outdated is True

    def test_save_result_clears_outdated(self, queries: QueryStore, projects: ProjectStore, project: Project) -> None:
        q = queries.create(Query(project_id=project.id, string="q"))
        projects.update(project.id, components_info={"v": 2})
        saved = queries.save_result(q.id, {"sat": False}, {"v": 2})
        assert saved.outdated is False
        assert saved.result == {"sat": False}

    def test_save_result_against_stale_components_stays_outdated(
        self, queries: QueryStore, projects: ProjectStore, project: Project
    ) -> None:
        q = queries.create(Query(project_id=project.id, string="q"))
        projects.update(project.id, components_info={"v": 2})
        saved = queries.save_result(q.id, {"sat": True}, {"v": 1})
        assert saved.outdated is True
        assert saved.result == {"sat": True}

    def test_save_result_missing_query(self, queries: QueryStore) -> None:
        with pytest.raises(RecordNotFound):
            queries.save_result(999, {}, {})
