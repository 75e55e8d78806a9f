"""
ResourceController actions — index, list, show, store, update, destroy,
check, csrf_token, plus the operation failure boundary.
"""

import pytest

from apitoolbox.controllers.attachments import AttachmentPolicy
from apitoolbox.core.events import ApiEvent
from apitoolbox.controllers.base import ResourceController
from apitoolbox.core.exceptions import ComponentNotFoundError, PermissionsDeniedError
from apitoolbox.core.response import Result

from conftest import FakeCollection, NoteController, Record


class SlugNoteController(NoteController):
    lookup_key = "title"


class LockedNoteController(NoteController):
    async def has_permission(self, action: str) -> bool:
        return False


class KeepFilesNoteController(NoteController):
    attachment_policy = AttachmentPolicy.EXPLICIT_CLEAR


def failure(result: Result, code: str, status: int = 403):
    assert result.success is False
    assert result.error_code == code
    assert result.message == code.replace("_", " ")
    assert result.status_code == status


class TestIndex:

    async def test_default_sort_and_meta(self, make_controller):
        result = await make_controller(user=None).index()

        assert result.success
        assert [item["title"] for item in result.data["data"]] == ["alpha", "beta", "delta", "gamma"]
        assert result.data["meta"] == {"total": 4, "page": 1, "limit": 10, "pages": 1}

    async def test_items_are_shaped_by_schema(self, make_controller):
        result = await make_controller().index()
        assert result.data["data"][0] == {"id": 2, "title": "alpha", "status": "active", "ownerId": "bob"}

    async def test_per_page_and_page(self, make_controller):
        result = await make_controller(query={"per_page": "2", "page": "2"}).index()

        assert [item["title"] for item in result.data["data"]] == ["delta", "gamma"]
        assert result.data["meta"] == {"total": 4, "page": 2, "limit": 2, "pages": 2}

    async def test_filters_and_sort_from_query(self, make_controller):
        query = {"filters": '{"status": "active"}', "sort": "title|desc"}
        result = await make_controller(query=query).index()
        assert [item["title"] for item in result.data["data"]] == ["delta", "beta", "alpha"]

    async def test_registry_filter_intersects(self, make_controller):
        class Picky(NoteController):
            filters = {"mine": lambda collection, value: {1: True, 3: True}}

        result = await make_controller(Picky, query={"mine": "1"}).index()
        assert sorted(item["id"] for item in result.data["data"]) == [1, 3]

    async def test_before_filter_listener_adds_filters(self, make_controller, bus):
        bus.listen(ApiEvent.BEFORE_FILTER, lambda filters: {"status": "archived"})
        result = await make_controller().index()
        assert [item["title"] for item in result.data["data"]] == ["gamma"]

    async def test_extend_index_listener_replaces_collection(self, make_controller, bus):
        bus.listen(ApiEvent.EXTEND_INDEX, lambda collection: FakeCollection([Record(id=9, title="x")]))
        result = await make_controller().index()

        assert [item["id"] for item in result.data["data"]] == [9]
        assert result.data["meta"]["total"] == 1

    async def test_without_store_no_records(self, make_controller):
        failure(await make_controller(repository=None).index(), "records_not_found")


class TestList:

    async def test_returns_every_value(self, make_controller):
        result = await make_controller().list()
        assert result.success
        assert len(result.data) == 4

    async def test_extend_list_hook(self, make_controller):
        class Trimmed(NoteController):
            async def extend_list(self):
                self.collection = FakeCollection(self.collection.items[:1])

        result = await make_controller(Trimmed).list()
        assert [item["title"] for item in result.data] == ["alpha"]


class TestShow:

    async def test_found(self, make_controller):
        result = await make_controller().show(3)
        assert result.success
        assert result.data["title"] == "gamma"

    @pytest.mark.parametrize("identifier", [99, "", None])
    async def test_unresolvable_identifier(self, make_controller, identifier):
        failure(await make_controller().show(identifier), "record_not_found")

    async def test_lookup_column(self, make_controller):
        result = await make_controller(SlugNoteController).show("delta")
        assert result.data["id"] == 4

    async def test_before_show_rewrites_identifier(self, make_controller, bus):
        bus.listen(ApiEvent.BEFORE_SHOW, lambda value: 1)
        result = await make_controller().show(99)
        assert result.data["title"] == "beta"

    async def test_extend_show_sees_item(self, make_controller, bus):
        seen = []
        bus.listen(ApiEvent.EXTEND_SHOW, seen.append)
        await make_controller().show(2)
        assert [item.title for item in seen] == ["alpha"]


class TestStore:

    async def test_persists_and_reports_created(self, make_controller, store):
        result = await make_controller(data={"title": "epsilon"}).store()

        assert result.success
        assert result.message == "record created"
        assert result.status_code == 201
        assert result.data["ownerId"] == "alice"
        assert store.records[5].title == "epsilon"

    async def test_without_token(self, make_controller, store):
        failure(await make_controller(data={"title": "x"}, user=None).store(), "token_not_found")
        assert store.saves == 0

    async def test_inactive_user(self, make_controller, users):
        users.users["alice"].is_active = False
        failure(await make_controller(data={"title": "x"}).store(), "user_not_found")

    async def test_without_user_provider(self, make_controller):
        failure(await make_controller(data={"title": "x"}, users=None).store(), "jwt_auth_not_found", 500)

    async def test_permission_denied(self, make_controller, store):
        failure(await make_controller(LockedNoteController, data={"title": "x"}).store(), "insufficient_permissions")
        assert store.saves == 0

    async def test_validation_failure(self, make_controller, store):
        result = await make_controller(data={"title": ""}).store()

        failure(result, "validation_failed", 422)
        assert result.data[0]["loc"] == ["title"]
        assert store.saves == 0

    async def test_before_save_may_mutate_input(self, make_controller, bus, store):
        bus.listen(ApiEvent.BEFORE_SAVE, lambda entity, data: data.update(status="active"))
        await make_controller(data={"title": "x"}).store()
        assert store.records[5].status == "active"

    async def test_after_save_fired(self, make_controller, bus):
        seen = []
        bus.listen(ApiEvent.AFTER_SAVE, lambda entity, data: seen.append(entity.title))
        await make_controller(data={"title": "x"}).store()
        assert seen == ["x"]

    async def test_attachment_keys_never_reach_entity(self, make_controller, store):
        await make_controller(data={"title": "x", "preview_image": "junk"}).store()
        assert not hasattr(store.records[5], "preview_image")

    async def test_single_upload_stored_and_resaved(self, make_controller, store, files, upload):
        result = await make_controller(data={"title": "x"}, uploads={"preview_image": [upload()]}).store()

        assert result.message == "record created"
        assert files.deleted == []
        assert len(files.created) == 1
        assert store.attached[(5, "preview_image")] == files.created
        assert store.saves == 2

    async def test_no_uploads_single_save(self, make_controller, store):
        await make_controller(data={"title": "x"}).store()
        assert store.saves == 1

    async def test_store_failure(self, make_controller, store):
        store.save_result = False
        result = await make_controller(data={"title": "x"}).store()

        failure(result, "record_not_created", 200)
        assert result.data is None


class TestUpdate:

    async def test_owner_updates(self, make_controller, store):
        result = await make_controller(data={"title": "beta2"}).update(1)

        assert result.success
        assert result.message == "record updated"
        assert store.records[1].title == "beta2"
        assert store.records[1].status == "active"

    async def test_missing_record_is_not_written(self, make_controller, store):
        failure(await make_controller(data={"title": "x"}).update(99), "record_not_found")
        assert store.saves == 0

    async def test_non_owner_denied(self, make_controller, store):
        failure(await make_controller(data={"title": "x"}).update(2), "insufficient_permissions")
        assert store.records[2].title == "alpha"

    async def test_admin_updates_any(self, make_controller, store):
        result = await make_controller(data={"title": "x"}, user="root").update(2)
        assert result.success
        assert store.records[2].title == "x"

    async def test_uses_lookup_column(self, make_controller, store):
        await make_controller(SlugNoteController, data={"title": "beta3"}).update("beta")
        assert store.records[1].title == "beta3"

    async def test_absent_file_input_clears_attachment(self, make_controller, store, files, upload):
        await make_controller(data={"title": "x"}, uploads={"preview_image": [upload()]}).update(1)
        await make_controller(data={"title": "y"}).update(1)

        assert len(files.deleted) == 1
        assert store.attached[(1, "preview_image")] == []

    async def test_explicit_clear_policy_keeps_attachment(self, make_controller, store, upload):
        await make_controller(KeepFilesNoteController, data={"title": "x"}, uploads={"preview_image": [upload()]}).update(1)
        await make_controller(KeepFilesNoteController, data={"title": "y"}).update(1)

        assert len(store.attached[(1, "preview_image")]) == 1

    async def test_update_failure(self, make_controller, store):
        store.save_result = False
        failure(await make_controller(data={"title": "x"}).update(1), "record_not_updated", 200)


class TestDestroy:

    async def test_missing_record(self, make_controller, store):
        failure(await make_controller().destroy(42), "record_not_found")
        assert store.deleted == []

    async def test_non_owner_denied(self, make_controller, store):
        failure(await make_controller().destroy(2), "insufficient_permissions")
        assert 2 in store.records

    async def test_owner_deletes(self, make_controller, store, bus):
        seen = []
        bus.listen(ApiEvent.BEFORE_DESTROY, lambda entity: seen.append(entity.id))
        result = await make_controller().destroy(1)

        assert result.success
        assert result.message == "record deleted"
        assert seen == [1]
        assert store.deleted == [1]

    async def test_extend_destroy_hook_runs(self, make_controller):
        calls = []

        class Audited(NoteController):
            async def extend_destroy(self):
                calls.append(self.entity.id)

        await make_controller(Audited).destroy(1)
        assert calls == [1]

    async def test_delete_failure(self, make_controller, store):
        store.delete_result = False
        failure(await make_controller().destroy(1), "record_not_deleted", 200)


class TestWriteSavepoints:

    def test_repository_does_not_shadow_store_action(self, make_controller, store):
        controller = make_controller()
        assert controller.repository is store
        assert controller.store.__func__ is ResourceController.store

    async def test_successful_store_keeps_savepoint(self, make_controller, store):
        await make_controller(data={"title": "x"}).store()
        assert store.savepoints == ["commit"]

    async def test_unsaved_entity_rolls_back(self, make_controller, store):
        store.save_result = False
        await make_controller(data={"title": "x"}).store()
        assert store.savepoints == ["rollback"]

    async def test_error_after_save_rolls_back(self, make_controller, store, bus):
        def reject(entity, data):
            raise PermissionsDeniedError()

        bus.listen(ApiEvent.AFTER_SAVE, reject)
        failure(await make_controller(data={"title": "x"}).store(), "insufficient_permissions")
        assert store.saves == 1
        assert store.savepoints == ["rollback"]

    async def test_unexpected_error_rolls_back_and_propagates(self, make_controller, store, bus):
        def crash(entity, data):
            raise RuntimeError("listener bug")

        bus.listen(ApiEvent.AFTER_SAVE, crash)
        with pytest.raises(RuntimeError):
            await make_controller(data={"title": "beta2"}).update(1)
        assert store.savepoints == ["rollback"]

    async def test_denied_destroy_rolls_back(self, make_controller, store):
        await make_controller().destroy(2)
        assert store.savepoints == ["rollback"]

    async def test_reads_open_no_savepoint(self, make_controller, store):
        await make_controller().index()
        await make_controller().show(1)
        assert store.savepoints == []


class TestSessionHelpers:

    async def test_check_lists_groups(self, make_controller):
        result = await make_controller(user="root").check()
        assert result.to_json() == {"success": True, "data": {"group": ["admins"]}}

    async def test_check_without_token(self, make_controller):
        failure(await make_controller(user=None).check(), "token_not_found")

    async def test_csrf_token(self, make_controller):
        first = await make_controller().csrf_token()
        second = await make_controller().csrf_token()

        assert first.success
        assert first.data["token"]
        assert first.data["token"] != second.data["token"]

    async def test_is_backend(self, make_controller):
        assert await make_controller(headers={"X-ENV": "backend"}).is_backend() is True
        assert await make_controller().is_backend() is False
        assert await make_controller(user=None, headers={"X-ENV": "backend"}).is_backend() is False

    def test_component_lookup(self, make_controller, cache):
        cache.register("greeter", lambda **props: object())
        controller = make_controller()

        assert controller.component("greeter") is controller.component("greeter")
        with pytest.raises(ComponentNotFoundError):
            controller.component("missing")


class TestOperationBoundary:

    async def test_unexpected_errors_propagate(self, make_controller, store):
        async def broken(pk):
            raise RuntimeError("db down")

        store.get = broken
        with pytest.raises(RuntimeError):
            await make_controller().show(1)

    async def test_failure_envelope_shape(self, make_controller):
        result = await make_controller().show(99)
        assert result.to_json() == {
            "success": False,
            "message": "record not found",
            "errorCode": "record_not_found",
        }
