"""
Tests for MixService and SourceService with fake collaborators.
"""

import asyncio
import uuid

import pytest

from ratiomix.mixers.types import AD_HOC_SOURCE
from ratiomix.schemas.mix import MixCreateIn, MixPublishIn
from ratiomix.services.mix_service import MixService
from ratiomix.services.source_service import SourceService


def _inline_source(sid, n, **quota):
    return {
        "source_id": sid,
        "tracks": [
            {"track_id": f"{sid}{i}", "duration_ms": 200_000, "popularity": 10 * i, "uri": f"spotify:track:{sid}{i}"}
            for i in range(n)
        ],
        "quota": quota,
    }


def _payload(**overrides):
    body = {
        "sources": [_inline_source("A", 5), _inline_source("B", 5)],
        "target": {"mode": "count", "value": 6},
        "seed": 7,
    }
    body.update(overrides)
    return MixCreateIn.model_validate(body)


class TestMixServiceCreate:
    def test_inline_sources(self):
        out = asyncio.run(MixService(None).create_mix(_payload()))
        assert len(out.tracklist) == 6
        assert [t.position for t in out.tracklist] == list(range(6))
        assert out.breakdown["A"].count == 3
        assert out.breakdown["B"].count == 3
        assert out.total_duration_ms == 1_200_000
        assert out.total_duration_formatted == "20:00"
        assert out.requested == 6
        assert out.shortfall == 0
        assert out.nothing_to_mix is False
        assert out.debug is None

    def test_debug_payload_when_enabled(self):
        out = asyncio.run(MixService(None, enable_debug_logs=True).create_mix(_payload()))
        assert out.debug["decisions"]["stop_reason"] == "target_reached"

    def test_shortfall_and_warnings(self):
        payload = _payload(
            sources=[_inline_source("A", 2), _inline_source("B", 10)],
            target={"mode": "count", "value": 20},
        )
        out = asyncio.run(MixService(None).create_mix(payload))
        assert len(out.tracklist) == 12
        assert out.shortfall == 8
        assert out.warnings.exceeds_limit.available == 12
        assert out.warnings.ratio_imbalance.limiting_source_id == "A"

    def test_ad_hoc_tracks_appended_once(self):
        payload = _payload(
            ad_hoc_tracks=[
                {"track_id": "extra", "duration_ms": 60_000},
                {"track_id": "A0", "duration_ms": 200_000},
            ]
        )
        out = asyncio.run(MixService(None).create_mix(payload))
        assert out.tracklist[-1].track_id == "extra"
        assert out.tracklist[-1].source_id == AD_HOC_SOURCE
        assert [t.track_id for t in out.tracklist].count("A0") == 1
        assert out.total_duration_ms == 6 * 200_000 + 60_000

    def test_nothing_to_mix(self):
        payload = _payload(sources=[{"source_id": "A", "tracks": []}])
        out = asyncio.run(MixService(None).create_mix(payload))
        assert out.tracklist == []
        assert out.nothing_to_mix is True
        assert out.total_duration_formatted == "0:00"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"sources": [_inline_source("A", 3, min_group=3, max_group=1)]},
            {"sources": [_inline_source("A", 3, weight=0)]},
            {"target": {"mode": "count", "value": 0}},
            {"strategy": {"popularity_strategy": "random"}},
            {"sources": [_inline_source("A", 3), _inline_source("A", 3)]},
            {"sources": [{"source_id": "A"}]},
            {"sources": [{"source_id": "A", "tracks": [], "stored_source_id": str(uuid.uuid4())}]},
            {"sources": [_inline_source(AD_HOC_SOURCE, 3)]},
        ],
    )
    def test_bad_requests_raise_value_error(self, overrides):
        with pytest.raises(ValueError):
            asyncio.run(MixService(None).create_mix(_payload(**overrides)))


class TestStoredSources:
    def _import(self, fake_db, fake_catalog, playlist_id="cat-a"):
        svc = SourceService(fake_db, catalog=fake_catalog)
        return asyncio.run(svc.import_playlist(catalog_playlist_id=playlist_id))

    def test_import_and_read_back(self, fake_source_repo, fake_db, fake_catalog):
        source = self._import(fake_db, fake_catalog)
        assert source.name == "Playlist cat-a"
        assert source.track_count == 4

        svc = SourceService(fake_db)
        detail = asyncio.run(svc.get_source(uuid.UUID(source.source_id)))
        assert [t.track_id for t in detail.tracks] == ["a0", "a1", "a2", "a3"]
        listed = asyncio.run(svc.list_sources())
        assert [s.source_id for s in listed.sources] == [source.source_id]

    def test_unknown_source(self, fake_source_repo, fake_db):
        with pytest.raises(KeyError):
            asyncio.run(SourceService(fake_db).get_source(uuid.uuid4()))

    def test_mix_from_stored_snapshots(self, fake_source_repo, fake_db, fake_catalog):
        a = self._import(fake_db, fake_catalog, "cat-a")
        b = self._import(fake_db, fake_catalog, "cat-b")
        payload = MixCreateIn.model_validate(
            {
                "sources": [
                    {"source_id": "first", "stored_source_id": a.source_id},
                    {"source_id": "second", "stored_source_id": b.source_id},
                ],
                "target": {"mode": "all"},
                "strategy": {"popularity_strategy": "front-loaded"},
            }
        )
        out = asyncio.run(MixService(fake_db).create_mix(payload))
        assert len(out.tracklist) == 8
        assert {t.source_id for t in out.tracklist} == {"first", "second"}
        assert out.breakdown["first"].count == out.breakdown["second"].count == 4

    def test_stored_source_errors(self, fake_source_repo, fake_db):
        bad_id = MixCreateIn.model_validate(
            {"sources": [{"source_id": "A", "stored_source_id": "not-a-uuid"}], "target": {"mode": "all"}}
        )
        with pytest.raises(ValueError):
            asyncio.run(MixService(fake_db).create_mix(bad_id))

        missing = MixCreateIn.model_validate(
            {"sources": [{"source_id": "A", "stored_source_id": str(uuid.uuid4())}], "target": {"mode": "all"}}
        )
        with pytest.raises(KeyError):
            asyncio.run(MixService(fake_db).create_mix(missing))

    def test_stored_source_needs_a_session(self):
        payload = MixCreateIn.model_validate(
            {"sources": [{"source_id": "A", "stored_source_id": str(uuid.uuid4())}], "target": {"mode": "all"}}
        )
        with pytest.raises(RuntimeError):
            asyncio.run(MixService(None).create_mix(payload))


class TestPublish:
    def test_creates_then_uploads_in_order(self, fake_catalog):
        uris = [f"spotify:track:{i}" for i in range(5)]
        payload = MixPublishIn(user_id="u1", name="My mix", uris=uris)
        out = asyncio.run(MixService(None, catalog=fake_catalog).publish_mix(payload))
        assert out.uploaded == 5
        assert fake_catalog.added[out.playlist_id] == uris
        assert fake_catalog.created[0]["name"] == "My mix"

    def test_empty_uris(self, fake_catalog):
        payload = MixPublishIn(user_id="u1", name="My mix", uris=[])
        with pytest.raises(ValueError):
            asyncio.run(MixService(None, catalog=fake_catalog).publish_mix(payload))


class TestPresetMixes:
    def _named_source(self, sid, name, n=5):
        src = _inline_source(sid, n)
        del src["quota"]
        src["name"] = name
        return src

    def test_preset_supplies_quotas_strategy_and_target(self):
        payload = MixCreateIn.model_validate(
            {
                "sources": [
                    self._named_source("A", "Bachata Classics"),
                    self._named_source("B", "Salsa Night"),
                ],
                "preset": "karimctiva",
                "seed": 7,
            }
        )
        out = asyncio.run(MixService(None, enable_debug_logs=True).create_mix(payload))
        decisions = out.debug["decisions"]
        assert decisions["strategy"] == "mid-peak"
        assert decisions["target"] == {"mode": "duration", "value": 300 * 60_000}
        assert decisions["group_bounds"] == {"A": [2, 2], "B": [1, 2]}
        assert decisions["normalized_weights"] == pytest.approx({"A": 0.55, "B": 0.45})
        # 300 minutes is far more than ten tracks hold
        assert len(out.tracklist) == 10
        assert out.warnings.exceeds_limit.unit == "ms"

    def test_explicit_fields_override_the_preset(self):
        sources = [self._named_source("A", "Gym"), self._named_source("B", "Running")]
        sources[0]["quota"] = {"min_group": 1, "max_group": 1}
        payload = MixCreateIn.model_validate(
            {
                "sources": sources,
                "preset": "workout-mix",
                "target": {"mode": "count", "value": 4},
                "seed": 7,
            }
        )
        out = asyncio.run(MixService(None, enable_debug_logs=True).create_mix(payload))
        decisions = out.debug["decisions"]
        assert len(out.tracklist) == 4
        assert decisions["strategy"] == "front-loaded"
        assert decisions["group_bounds"] == {"A": [1, 1], "B": [3, 5]}

    def test_unknown_preset_is_a_bad_request(self):
        payload = MixCreateIn.model_validate({"sources": [self._named_source("A", "x")], "preset": "lounge"})
        with pytest.raises(ValueError):
            asyncio.run(MixService(None).create_mix(payload))

    def test_target_required_without_preset(self):
        payload = MixCreateIn.model_validate({"sources": [_inline_source("A", 3)]})
        with pytest.raises(ValueError):
            asyncio.run(MixService(None).create_mix(payload))

    def test_list_presets(self):
        out = MixService(None).list_presets()
        by_id = {p.preset_id: p for p in out.presets}
        assert set(by_id) == {"karimctiva", "workout-mix", "road-trip"}
        karimctiva = by_id["karimctiva"]
        assert karimctiva.target.mode == "duration"
        assert karimctiva.target.value == 18_000_000
        assert karimctiva.name_rules["bachata"].weight == 55
        assert karimctiva.default_quota.weight_type == "time"
        assert by_id["road-trip"].name_rules == {}


class TestMixOutputStats:
    def test_popularity_metrics_of_the_tracklist(self):
        out = asyncio.run(MixService(None).create_mix(_payload(target={"mode": "all"})))
        metrics = out.popularity
        assert metrics.total_tracks == 10
        assert metrics.scored_tracks == 10
        assert metrics.average_popularity == 20.0
        assert (metrics.popularity_range.min, metrics.popularity_range.max) == (0, 40)
        assert metrics.distribution == {"top_hits": 0, "popular": 0, "moderate": 2, "deep_cuts": 8}

    def test_zero_length_time_weighted_source(self):
        payload = _payload(
            sources=[
                {
                    "source_id": "A",
                    "tracks": [{"track_id": f"A{i}", "duration_ms": 0} for i in range(3)],
                    "quota": {"weight_type": "time"},
                },
                _inline_source("B", 3),
            ],
            target={"mode": "count", "value": 4},
        )
        out = asyncio.run(MixService(None).create_mix(payload))
        assert len(out.tracklist) == 4
        assert out.warnings.ratio_imbalance is None
