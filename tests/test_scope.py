import asyncio
import unittest

import pytest

from wirebind import ClassProvider, Container, Lifetime, ProviderNotFoundError, ValueProvider, create_token


class TestContainerHierarchy(unittest.TestCase):
    parent: Container
    child: Container

    def setUp(self):
        self.parent = Container()
        self.child = self.parent.create_child()
        self.token = create_token("Service")

    def test_child_keeps_reference_to_parent_only(self):
        assert self.child.parent is self.parent
        assert self.parent.parent is None

    def test_child_resolves_from_parent_when_not_registered_locally(self):
        self.parent.register_value(self.token, "parent")

        assert self.child.get(self.token) == "parent"

    def test_child_registration_overrides_parent_registration(self):
        self.parent.register_value(self.token, "parent")
        self.child.register_value(self.token, "child")

        assert self.child.get(self.token) == "child"
        assert self.parent.get(self.token) == "parent"

    def test_create_child_with_overrides(self):
        self.parent.register_value(self.token, "parent")
        child = self.parent.create_child([(self.token, ValueProvider("override"))])

        assert child.get(self.token) == "override"
        assert self.parent.get(self.token) == "parent"

    def test_singleton_is_shared_with_descendants(self):
        self.parent.register_class(self.token, object)
        grandchild = self.child.create_child()

        assert self.child.get(self.token) is self.parent.get(self.token)
        assert grandchild.get(self.token) is self.parent.get(self.token)

    def test_singleton_first_resolved_from_child_is_owned_by_parent(self):
        self.parent.register_class(self.token, object)

        from_child = self.child.get(self.token)
        sibling = self.parent.create_child()

        assert sibling.get(self.token) is from_child

    def test_singleton_dependencies_come_from_owning_container(self):
        dep = create_token("dep")
        self.parent.register_value(dep, "parent-dep")
        self.parent.register_factory(self.token, lambda d: d, [dep], lifetime=Lifetime.SINGLETON)
        self.child.register_value(dep, "child-dep")

        assert self.child.get(self.token) == "parent-dep"

    def test_transient_dependencies_come_from_resolving_container(self):
        dep = create_token("dep")
        self.parent.register_value(dep, "parent-dep")
        self.parent.register_factory(self.token, lambda d: d, [dep])
        self.child.register_value(dep, "child-dep")

        assert self.child.get(self.token) == "child-dep"
        assert self.parent.get(self.token) == "parent-dep"

    def test_has_walks_parent_chain(self):
        self.parent.register_value(self.token, 1)

        assert self.child.has(self.token)
        assert self.child.registration_for(self.token) is not None
        assert self.child.registration_for(self.token, local=True) is None

    def test_has_on_parent_ignores_child_registrations(self):
        self.child.register_value(self.token, 1)

        assert not self.parent.has(self.token)

    def test_clear_child_does_not_affect_parent(self):
        self.parent.register_value(self.token, "parent")
        self.child.register_value(self.token, "child")

        self.child.clear()

        assert self.child.get(self.token) == "parent"
        assert self.parent.get(self.token) == "parent"

    def test_child_inherits_allow_optional(self):
        parent = Container(allow_optional=True)
        child = parent.create_child()

        assert child.allow_optional
        assert child.get(self.token) is None


class TestScopes(unittest.TestCase):
    def setUp(self):
        self.root = Container()
        self.token = create_token("RequestId")

    def test_run_in_scope_returns_callback_result(self):
        self.root.register_value(self.token, "root")

        result = self.root.run_in_scope(lambda scope: scope.get(self.token))

        assert result == "root"

    def test_run_in_scope_applies_overrides(self):
        result = self.root.run_in_scope(
            lambda scope: scope.get(self.token),
            [(self.token, ValueProvider("req-1"))],
        )

        assert result == "req-1"
        assert not self.root.has(self.token)

    def test_registrations_made_in_scope_are_gone_afterwards(self):
        captured = []

        def callback(scope):
            scope.register_value(self.token, "inside")
            captured.append(scope)

        self.root.run_in_scope(callback)

        assert not self.root.has(self.token)
        assert not captured[0].has(self.token)

    def test_scope_is_discarded_when_callback_raises(self):
        captured = []

        def callback(scope):
            scope.register_value(self.token, "inside")
            captured.append(scope)
            msg = "boom"
            raise RuntimeError(msg)

        with pytest.raises(RuntimeError, match="boom"):
            self.root.run_in_scope(callback)

        assert not self.root.has(self.token)
        assert captured[0].debug().tokens == []

    def test_scope_context_manager(self):
        self.root.register(self.token, ClassProvider(object, lifetime=Lifetime.SCOPED))

        with self.root.scope() as first, self.root.scope() as second:
            assert first.get(self.token) is first.get(self.token)
            assert first.get(self.token) is not second.get(self.token)

        with pytest.raises(ProviderNotFoundError):
            with self.root.scope() as scope:
                scope.get(create_token("missing"))

    def test_run_in_scope_async_awaits_coroutine(self):
        self.root.register_value(self.token, "root")

        async def callback(scope):
            await asyncio.sleep(0)
            return scope.get(self.token)

        assert asyncio.run(self.root.run_in_scope_async(callback)) == "root"

    def test_run_in_scope_async_accepts_sync_callback(self):
        result = asyncio.run(
            self.root.run_in_scope_async(
                lambda scope: scope.get(self.token),
                [(self.token, ValueProvider("sync"))],
            )
        )

        assert result == "sync"

    def test_run_in_scope_async_cleans_up_on_error(self):
        captured = []

        async def callback(scope):
            scope.register_value(self.token, "inside")
            captured.append(scope)
            msg = "async boom"
            raise ValueError(msg)

        with pytest.raises(ValueError, match="async boom"):
            asyncio.run(self.root.run_in_scope_async(callback))

        assert not self.root.has(self.token)
        assert not captured[0].has(self.token)

    def test_run_in_scope_rejects_async_callback(self):
        captured = []

        async def callback(scope):
            return scope

        def run(scope):
            captured.append(scope)
            return callback(scope)

        with pytest.raises(TypeError, match="run_in_scope_async"):
            self.root.run_in_scope(run)

        assert captured[0].debug().tokens == []
