"""Unit tests for parent propagation."""

import asyncio

from session_continuity.lineage.context import current_parent, detached, parent_scope, with_parent


class TestParentScope:
    """Scopes set and restore the propagated parent."""

    def test_default_is_none(self):
        """Test no parent is propagated outside any scope."""
        assert current_parent() is None

    def test_nested_scopes_restore(self):
        """Test each scope restores the previous parent on exit."""
        with parent_scope("a"):
            assert current_parent() == "a"
            with parent_scope("b"):
                assert current_parent() == "b"
            assert current_parent() == "a"
        assert current_parent() is None

    def test_restored_on_exception(self):
        """Test the parent is restored when the body raises."""
        try:
            with parent_scope("a"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert current_parent() is None

    def test_detached_clears_parent(self):
        """Test detached() yields root emission inside a scope."""
        with parent_scope("a"):
            with detached():
                assert current_parent() is None
            assert current_parent() == "a"


class TestWithParent:
    """with_parent runs sync and async callables inside a scope."""

    async def test_sync_callable(self):
        """Test a sync callable sees the parent and its result is returned."""
        assert await with_parent("p", current_parent) == "p"

    async def test_async_callable_with_args(self):
        """Test an async callable is awaited with its arguments."""

        async def work(suffix, *, sep):
            await asyncio.sleep(0)
            return f"{current_parent()}{sep}{suffix}"

        assert await with_parent("p", work, "x", sep=":") == "p:x"
        assert current_parent() is None

    async def test_concurrent_scopes_are_isolated(self):
        """Test sibling tasks never observe each other's parent."""

        async def observe(parent_id):
            async def inner():
                seen = []
                for _ in range(5):
                    seen.append(current_parent())
                    await asyncio.sleep(0)
                return seen

            return await with_parent(parent_id, inner)

        results = await asyncio.gather(*(observe(f"p{i}") for i in range(10)))

        for i, seen in enumerate(results):
            assert seen == [f"p{i}"] * 5

    async def test_spawned_task_inherits_scope(self):
        """Test a task created inside a scope inherits its parent."""
        with parent_scope("outer"):
            child = asyncio.create_task(_read_parent())

        assert await child == "outer"


async def _read_parent():
    await asyncio.sleep(0)
    return current_parent()
