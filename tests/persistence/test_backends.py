"""
Tests for dedup, cache, delivery log and object storage backends.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from wagate.core.errors import StorageError
from wagate.domain.models import DeliveryLogEntry, DeliveryStatus
from wagate.persistence.key_factory import KeyFactory
from wagate.persistence.memory import InMemoryDedupStore
from wagate.persistence.redis import RedisConversationCache, RedisDedupStore
from wagate.persistence.storage import LocalObjectStorage


class TestKeyFactory:
    def test_keys_are_tenant_scoped(self):
        keys = KeyFactory()

        assert keys.chat_list("t1") == "chat_list:t1"
        assert keys.recent_messages("t1", "c1") == "recent_messages:t1:c1"

    def test_event_id_colons_are_escaped(self):
        assert KeyFactory().inbound_event("t1", "wamid:AB:CD") == "wa_event:t1:wamid_AB_CD"


class TestInMemoryDedupStore:
    async def test_second_claim_loses(self):
        store = InMemoryDedupStore()

        assert await store.claim("k", 60) is True
        assert await store.claim("k", 60) is False

    async def test_release_allows_reclaim(self):
        store = InMemoryDedupStore()
        await store.claim("k", 60)

        await store.release("k")

        assert await store.claim("k", 60) is True

    async def test_expired_claim_is_purged(self, monkeypatch):
        clock = {"now": 1000.0}
        monkeypatch.setattr(
            "wagate.persistence.memory.dedup_store.time.monotonic", lambda: clock["now"]
        )
        store = InMemoryDedupStore()
        await store.claim("k", 60)

        clock["now"] += 61

        assert await store.claim("k", 60) is True
        assert len(store._claims) == 1


class TestRedisBackends:
    async def test_claim_uses_set_nx_ex(self):
        redis = MagicMock()
        redis.set = AsyncMock(return_value=True)
        store = RedisDedupStore(redis)

        assert await store.claim("wa_event:t1:m1", 600) is True
        redis.set.assert_awaited_once_with("wa_event:t1:m1", "1", nx=True, ex=600)

    async def test_existing_key_is_not_claimed(self):
        redis = MagicMock()
        redis.set = AsyncMock(return_value=None)

        assert await RedisDedupStore(redis).claim("k", 600) is False

    async def test_release_deletes_key(self):
        redis = MagicMock()
        redis.delete = AsyncMock(return_value=1)

        await RedisDedupStore(redis).release("k")

        redis.delete.assert_awaited_once_with("k")

    async def test_cache_invalidation_deletes_both_views(self):
        redis = MagicMock()
        redis.delete = AsyncMock(return_value=2)

        await RedisConversationCache(redis).invalidate("t1", "c1")

        redis.delete.assert_awaited_once_with("chat_list:t1", "recent_messages:t1:c1")


class TestLocalObjectStorage:
    @pytest.fixture
    def local_storage(self, tmp_path) -> LocalObjectStorage:
        return LocalObjectStorage(tmp_path, "https://gw.test/media/")

    async def test_put_get_delete(self, local_storage, tmp_path):
        url = await local_storage.put_object("acme/incoming/1_a.jpg", b"bytes", "image/jpeg")

        assert url == "https://gw.test/media/acme/incoming/1_a.jpg"
        assert (tmp_path / "acme" / "incoming" / "1_a.jpg").read_bytes() == b"bytes"
        assert await local_storage.get_object("acme/incoming/1_a.jpg") == b"bytes"

        assert await local_storage.delete_object("acme/incoming/1_a.jpg") is True
        assert await local_storage.get_object("acme/incoming/1_a.jpg") is None

    async def test_delete_missing_object(self, local_storage):
        assert await local_storage.delete_object("acme/none.jpg") is False

    async def test_key_cannot_escape_root(self, local_storage):
        with pytest.raises(StorageError):
            await local_storage.put_object("../outside.jpg", b"x", "image/jpeg")


class TestInMemoryDeliveryLog:
    async def test_message_id_belongs_to_one_tenant(self, repository):
        await repository.upsert_delivery_log(
            DeliveryLogEntry(tenant_id="t1", provider_message_id="wamid.1", category="utility")
        )

        with pytest.raises(StorageError):
            await repository.upsert_delivery_log(
                DeliveryLogEntry(
                    tenant_id="t2",
                    provider_message_id="wamid.1",
                    status=DeliveryStatus.READ,
                )
            )

        entry = await repository.get_delivery_log("t1", "wamid.1")
        assert entry.status == DeliveryStatus.SENT
        assert await repository.get_delivery_log("t2", "wamid.1") is None
