"""
Unit tests for the ranked mirror registry (mirrors.yaml).
"""

from datetime import datetime, timedelta, timezone

import pytest
import responses
import yaml

from zigkit.core.exceptions import MirrorSyncError
from zigkit.mirrors.models import FailureClass, Mirror, MirrorsConfig
from zigkit.mirrors.registry import MirrorRegistry, parse_mirror_list

MIRRORS_URL = "https://ziglang.org/download/community-mirrors.txt"

MIRROR_LIST = """\
https://pkg.machengine.org/zig
https://zigmirror.hryx.net/zig

# comment
http://insecure.example/zig
https://ziglang.freetls.fastly.net
https://pkg.machengine.org/zig
"""


@pytest.fixture
def registry(temp_dir):
    return MirrorRegistry(temp_dir / "mirrors.yaml", mirrors_url=MIRRORS_URL)


def seed(registry, *mirrors, last_synced=None):
    registry.save(MirrorsConfig(mirrors=list(mirrors), last_synced=last_synced))


class TestParseMirrorList:
    def test_parse(self):
        assert parse_mirror_list(MIRROR_LIST) == [
            "https://pkg.machengine.org/zig",
            "https://zigmirror.hryx.net/zig",
            "https://ziglang.freetls.fastly.net",
        ]

    def test_empty(self):
        assert parse_mirror_list("") == []


class TestLoadSave:
    """Test registry persistence."""

    def test_missing_file(self, registry):
        assert registry.load() == MirrorsConfig()

    def test_round_trip(self, registry):
        seed(registry, Mirror("https://a.example", 1), Mirror("https://b.example", 3))
        config = registry.load()
        assert [(m.url, m.rank) for m in config.mirrors] == [
            ("https://a.example", 1),
            ("https://b.example", 3),
        ]

    def test_file_is_yaml(self, registry):
        seed(
            registry,
            Mirror("https://a.example", 2),
            last_synced="2024-01-01T00:00:00+00:00",
        )
        data = yaml.safe_load(registry.registry_path.read_text())
        assert data["mirrors"] == [{"url": "https://a.example", "rank": 2}]
        assert data["last_synced"] == "2024-01-01T00:00:00+00:00"

    @pytest.mark.parametrize(
        "content",
        [
            "mirrors: [unclosed",
            "- just\n- a list\n",
            "mirrors:\n  - url: http://insecure.example\n    rank: 1\n",
            "mirrors:\n  - url: https://a.example\n    rank: 0\n",
            "mirrors:\n  - url: https://a.example\n    rank: fast\n",
        ],
    )
    def test_corrupt_file_gives_empty_registry(self, registry, content, caplog):
        registry.registry_path.write_text(content)

        assert registry.load() == MirrorsConfig()
        assert registry.registry_path.read_text() == content
        assert "using empty registry" in caplog.text


class TestSync:
    """Test sync with the upstream community list."""

    @responses.activate
    def test_sync_replaces_registry(self, registry):
        seed(registry, Mirror("https://manual.example", 7))
        responses.add(responses.GET, MIRRORS_URL, body=MIRROR_LIST)

        count = registry.sync()

        config = registry.load()
        assert count == 3
        assert [m.url for m in config.mirrors] == parse_mirror_list(MIRROR_LIST)
        assert all(m.rank == 1 for m in config.mirrors)
        assert config.last_synced is not None
        assert not registry.is_sync_expired()

    @responses.activate
    def test_sync_failure_leaves_file_untouched(self, registry):
        seed(
            registry,
            Mirror("https://a.example", 4),
            last_synced="2020-01-01T00:00:00+00:00",
        )
        before = registry.registry_path.read_text()
        responses.add(responses.GET, MIRRORS_URL, status=503)

        with pytest.raises(MirrorSyncError):
            registry.sync()

        assert registry.registry_path.read_text() == before

    @responses.activate
    def test_sync_if_expired_swallows_failure(self, registry):
        seed(registry, Mirror("https://a.example", 4))
        responses.add(responses.GET, MIRRORS_URL, status=500)

        assert registry.sync_if_expired() is False
        assert registry.list_mirrors()[0].rank == 4

    @responses.activate
    def test_sync_if_expired_skips_fresh_registry(self, registry):
        now = datetime.now(timezone.utc).isoformat()
        seed(registry, Mirror("https://a.example", 4), last_synced=now)

        assert registry.sync_if_expired() is False
        assert len(responses.calls) == 0


class TestIsSyncExpired:
    def test_never_synced(self, registry):
        assert registry.is_sync_expired()

    def test_unparsable_timestamp(self, registry):
        seed(registry, last_synced="yesterday-ish")
        assert registry.is_sync_expired()

    def test_threshold(self, registry):
        now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        seed(registry, last_synced=(now - timedelta(hours=23)).isoformat())
        assert not registry.is_sync_expired(24, now=now)
        assert registry.is_sync_expired(24, now=now + timedelta(hours=1))

    def test_naive_timestamp_is_utc(self, registry):
        now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        seed(registry, last_synced="2024-06-01T11:00:00")
        assert not registry.is_sync_expired(24, now=now)


class TestUpdateRank:
    """Test failure penalties."""

    @pytest.mark.parametrize(
        "failure,expected",
        [
            (FailureClass.TIMEOUT, 2),
            (FailureClass.SIGNATURE, 3),
            (FailureClass.CHECKSUM, 3),
            ("timeout", 2),
        ],
    )
    def test_penalties(self, registry, failure, expected):
        seed(registry, Mirror("https://a.example", 1))
        registry.update_rank("https://a.example", failure)
        assert registry.list_mirrors()[0].rank == expected

    def test_penalties_accumulate(self, registry):
        seed(registry, Mirror("https://a.example", 1))
        registry.update_rank("https://a.example", FailureClass.CHECKSUM)
        registry.update_rank("https://a.example", FailureClass.TIMEOUT)
        assert registry.list_mirrors()[0].rank == 4

    def test_unknown_url_is_inserted(self, registry):
        registry.update_rank("https://new.example", FailureClass.SIGNATURE)
        mirrors = registry.list_mirrors()
        assert [(m.url, m.rank) for m in mirrors] == [("https://new.example", 3)]

    def test_invalid_url_ignored(self, registry):
        registry.update_rank("http://insecure.example", FailureClass.TIMEOUT)
        assert registry.list_mirrors() == []

    def test_unknown_failure_class_ignored(self, registry):
        seed(registry, Mirror("https://a.example", 1))
        registry.update_rank("https://a.example", "cosmic-rays")
        assert registry.list_mirrors()[0].rank == 1

    def test_other_mirrors_untouched(self, registry):
        seed(registry, Mirror("https://a.example", 1), Mirror("https://b.example", 5))
        registry.update_rank("https://a.example", FailureClass.TIMEOUT)
        ranks = {m.url: m.rank for m in registry.list_mirrors()}
        assert ranks == {"https://a.example": 2, "https://b.example": 5}


class TestResetAndSelect:
    def test_reset_ranks(self, registry):
        seed(
            registry,
            Mirror("https://a.example", 5),
            Mirror("https://b.example", 9),
            last_synced="2024-01-01T00:00:00+00:00",
        )

        assert registry.reset_ranks() == 2

        config = registry.load()
        assert [m.rank for m in config.mirrors] == [1, 1]
        assert config.last_synced == "2024-01-01T00:00:00+00:00"

    def test_select_best(self, registry):
        seed(registry, Mirror("https://a.example", 1), Mirror("https://b.example", 1))
        assert sorted(registry.select_best(5)) == [
            "https://a.example",
            "https://b.example",
        ]

    def test_select_best_empty_registry(self, registry):
        assert registry.select_best(3) == []
