"""Tests for the remote metadata index and the directory store it reads."""

from __future__ import annotations

import io
from unittest.mock import patch

import pytest

from conftest import at
from worldsync.errors import DataIntegrityError, TransportError
from worldsync.models import WorldRole, WorldSource
from worldsync.remote.base import RemoteMetadata, RemoteQuery
from worldsync.remote_index import RemoteFilter, RemoteIndex, parse_record
from worldsync.writer import build_properties


def _props(name="Base", instance="survival", role=WorldRole.MASTER, host=None):
    return build_properties(instance, name, role, host)


def _seed(store, root, props, when=None, name="obj"):
    return store.create(io.BytesIO(b"archive"), name, props, root, modified_time=when or at(0))


class TestParseRecord:
    def test_master(self):
        record = parse_record(RemoteMetadata(id="1", name="n", properties=_props(), modified_time=at(5)))
        assert record.source == WorldSource.REMOTE
        assert record.role == WorldRole.MASTER
        assert record.name == "Base"
        assert record.instance == "survival"
        assert record.host is None
        assert record.last_updated == at(5)
        assert record.object_id == "1"

    def test_proxy_carries_host(self):
        props = _props(role=WorldRole.PROXY, host="desktop")
        record = parse_record(RemoteMetadata(id="2", name="n", properties=props, modified_time=at(0)))
        assert record.role == WorldRole.PROXY
        assert record.host == "desktop"

    @pytest.mark.parametrize("missing", ["saveName", "instance", "role"])
    def test_missing_identity_rejected(self, missing):
        props = _props()
        del props[missing]
        with pytest.raises(DataIntegrityError):
            parse_record(RemoteMetadata(id="1", name="n", properties=props, modified_time=at(0)))

    def test_proxy_without_host_rejected(self):
        props = _props()
        props["role"] = "proxy"
        with pytest.raises(DataIntegrityError):
            parse_record(RemoteMetadata(id="1", name="n", properties=props, modified_time=at(0)))

    def test_unknown_role_rejected(self):
        props = _props()
        props["role"] = "mirror"
        with pytest.raises(DataIntegrityError):
            parse_record(RemoteMetadata(id="1", name="n", properties=props, modified_time=at(0)))

    def test_old_schema_rejected(self):
        props = _props()
        props["schemaVersion"] = "1"
        with pytest.raises(DataIntegrityError):
            parse_record(RemoteMetadata(id="1", name="n", properties=props, modified_time=at(0)))

    def test_missing_schema_rejected(self):
        props = _props()
        del props["schemaVersion"]
        with pytest.raises(DataIntegrityError):
            parse_record(RemoteMetadata(id="1", name="n", properties=props, modified_time=at(0)))


class TestRemoteIndex:
    def test_empty_store_returns_empty_list(self, store):
        index = RemoteIndex(store, store.resolve_root())
        assert index.search(RemoteFilter(instance="survival")) == []

    def test_follows_pagination(self, store):
        root = store.resolve_root()
        for i in range(5):
            _seed(store, root, _props(name=f"World{i}"), name=f"obj{i}")

        index = RemoteIndex(store, root)
        with patch.object(store, "search_page", wraps=store.search_page) as spy:
            worlds = index.search(RemoteFilter(instance="survival", role=WorldRole.MASTER))

        assert sorted(w.name for w in worlds) == [f"World{i}" for i in range(5)]
        assert spy.call_count == 3

    def test_filters_by_instance_host_and_role(self, store):
        root = store.resolve_root()
        _seed(store, root, _props())
        _seed(store, root, _props(role=WorldRole.PROXY, host="desktop"))
        _seed(store, root, _props(role=WorldRole.PROXY, host="laptop"))
        _seed(store, root, _props(instance="creative"))

        index = RemoteIndex(store, root)
        masters = index.search(RemoteFilter(instance="survival", role=WorldRole.MASTER))
        desktop = index.search(RemoteFilter(instance="survival", host="desktop", role=WorldRole.PROXY))
        everything = index.search(RemoteFilter())

        assert len(masters) == 1 and masters[0].instance == "survival"
        assert len(desktop) == 1 and desktop[0].host == "desktop"
        assert len(everything) == 4

    def test_malformed_records_are_excluded(self, store):
        root = store.resolve_root()
        good = _seed(store, root, _props(name="Good"))
        bad = _seed(store, root, {"instance": "survival", "role": "master"}, name="foreign")

        index = RemoteIndex(store, root)
        worlds = index.search(RemoteFilter(instance="survival"))

        assert [w.backing_ref for w in worlds] == [good.id]
        assert index.rejected == [bad.id]

    def test_transport_errors_propagate(self, store):
        index = RemoteIndex(store, str(store.root_path / "gone"))
        with pytest.raises(TransportError):
            index.search(RemoteFilter())


class TestLocalDirStore:
    def test_resolve_root_is_idempotent(self, store):
        assert store.resolve_root() == store.resolve_root()
        assert store.root_path.is_dir()

    def test_create_download_update(self, store):
        root = store.resolve_root()
        created = store.create(io.BytesIO(b"v1"), "name", _props(), root, modified_time=at(1))

        with store.download(created.id) as f:
            assert f.read() == b"v1"

        updated = store.update(io.BytesIO(b"v2"), created.id, modified_time=at(2))
        assert updated.id == created.id
        assert updated.modified_time == at(2)
        assert updated.properties == created.properties
        with store.download(created.id) as f:
            assert f.read() == b"v2"

    def test_update_unknown_object(self, store):
        store.resolve_root()
        with pytest.raises(TransportError):
            store.update(io.BytesIO(b""), "missing", modified_time=at(0))

    def test_download_unknown_object(self, store):
        store.resolve_root()
        with pytest.raises(TransportError):
            store.download("missing")

    def test_query_matches(self):
        q = RemoteQuery(instance="i", role="proxy")
        assert q.matches({"instance": "i", "role": "proxy", "host": "h"})
        assert not q.matches({"instance": "i", "role": "master"})
        assert RemoteQuery().matches({})
