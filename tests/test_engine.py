"""Tests for the engine facade."""

import threading
from collections.abc import Iterator

import pytest

from vfrplan.core.config import EngineSettings
from vfrplan.core.errors import ChartNotLoaded, CorruptArchive, NotAZip
from vfrplan.core.tasks import Completion
from vfrplan.engine import NASR_SLOT, Engine, chart_slot
from vfrplan.nasr import dataset as dataset_module

SEA = (47.4495, -122.3094)


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = Engine()
    yield engine
    engine.close()


def drain(engine: Engine) -> list[Completion]:
    assert engine.wait(timeout=10.0)
    return engine.process_completions()


class TestBackgroundLoading:
    """Tests for the open_* calls and process_completions()."""

    def test_open_nasr_archive(self, engine: Engine, nasr_file) -> None:
        generation = engine.open_nasr_archive(nasr_file)
        assert engine.dataset is None

        (completion,) = drain(engine)

        assert completion.ok
        assert completion.generation == generation
        assert engine.find_by_identifier("KSEA").identifier == "SEA"
        assert len(engine.warnings) == 1

    def test_open_chart(self, engine: Engine, chart_zip: bytes) -> None:
        engine.open_chart(chart_zip, chart_id=2, viewport=(400, 200))
        drain(engine)

        chart = engine.chart(2)
        assert chart.package.name == "Seattle SEC"
        assert (chart.view.viewport_width, chart.view.viewport_height) == (400, 200)
        assert chart.view.zoom == 1.0

    def test_failure_recorded(self, engine: Engine) -> None:
        engine.open_nasr_archive(b"definitely not a zip")
        (completion,) = drain(engine)

        assert not completion.ok
        assert isinstance(engine.errors[NASR_SLOT], NotAZip)
        assert engine.dataset is None

    def test_error_cleared_by_next_open(self, engine: Engine, nasr_zip: bytes) -> None:
        engine.open_nasr_archive(b"definitely not a zip")
        drain(engine)

        engine.open_nasr_archive(nasr_zip)

        assert NASR_SLOT not in engine.errors
        drain(engine)
        assert engine.dataset is not None

    def test_on_complete_after_state_update(self, nasr_zip: bytes) -> None:
        seen = []
        engine = Engine(on_complete=lambda completion: seen.append(engine.dataset is not None))
        try:
            engine.open_nasr_archive(nasr_zip)
            drain(engine)
        finally:
            engine.close()

        assert seen == [True]

    def test_superseded_load_discarded(
        self, engine: Engine, nasr_zip: bytes, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test only the newest NASR load is applied."""
        release = threading.Event()
        original = dataset_module.load_nasr_archive

        def load(source, settings=None, cancel=None):
            if source == b"first":
                release.wait(5.0)
                return "stale"
            return original(source, settings, cancel)

        monkeypatch.setattr("vfrplan.engine.load_nasr_archive", load)

        engine.open_nasr_archive(b"first")
        second = engine.open_nasr_archive(nasr_zip)
        release.set()
        completions = drain(engine)

        assert [c.generation for c in completions] == [second]
        assert engine.dataset.records

    def test_busy(self, engine: Engine, nasr_zip: bytes) -> None:
        assert not engine.busy
        engine.open_nasr_archive(nasr_zip)
        drain(engine)
        assert not engine.busy

    def test_close_nasr_archive_discards_pending(self, engine: Engine, nasr_zip: bytes) -> None:
        engine.load_nasr_archive(nasr_zip)
        engine.open_nasr_archive(nasr_zip)
        engine.close_nasr_archive()

        assert drain(engine) == []
        assert engine.dataset is None


class TestSynchronousLoading:
    """Tests for load_nasr_archive() and load_chart()."""

    def test_load_nasr_archive(self, engine: Engine, nasr_zip: bytes) -> None:
        dataset = engine.load_nasr_archive(nasr_zip)

        assert engine.dataset is dataset
        assert len(dataset.records) == 6

    def test_load_errors_raise(self, engine: Engine) -> None:
        with pytest.raises(CorruptArchive):
            engine.load_nasr_archive(b"")

    def test_load_chart_replaces_slot(self, engine: Engine, chart_zip: bytes) -> None:
        first = engine.load_chart(chart_zip)
        second = engine.load_chart(chart_zip)

        assert engine.chart() is second is not first

    def test_close_chart(self, engine: Engine, chart_zip: bytes) -> None:
        engine.load_chart(chart_zip)
        engine.close_chart()

        with pytest.raises(ChartNotLoaded):
            engine.chart()

    def test_context_manager(self, nasr_zip: bytes) -> None:
        with Engine(EngineSettings(include_private_heliports=True)) as engine:
            engine.load_nasr_archive(nasr_zip)
            assert engine.search_by_name("childrens").first().identifier == "WA12"

        assert engine.dataset is None


class TestQueries:
    """Tests for facility queries through the engine."""

    def test_queries_without_data(self, engine: Engine) -> None:
        assert engine.find_by_identifier("SEA") is None
        assert list(engine.search_by_name("seattle")) == []
        assert list(engine.find_near(*SEA, 10)) == []
        assert engine.warnings == ()

    def test_negative_radius_without_data(self, engine: Engine) -> None:
        with pytest.raises(ValueError):
            engine.find_near(*SEA, -1.0)

    def test_queries(self, engine: Engine, nasr_zip: bytes) -> None:
        engine.load_nasr_archive(nasr_zip)

        assert [r.identifier for r in engine.search_by_name("seattle")] == ["SEA", "2WA1"]
        assert [hit.record.identifier for hit in engine.find_near(47.45, -122.30, 5)] == ["SEA", "RNT", "BFI"]


class TestChartViews:
    """Tests for view transitions through the engine."""

    @pytest.fixture
    def loaded(self, chart_zip: bytes) -> Iterator[Engine]:
        engine = Engine(EngineSettings(max_zoom=16.0))
        engine.load_chart(chart_zip, viewport=(400, 200))
        yield engine
        engine.close()

    def test_no_chart(self, engine: Engine) -> None:
        with pytest.raises(ChartNotLoaded):
            engine.pan(1.0, 1.0)
        with pytest.raises(ChartNotLoaded):
            engine.geodetic_to_screen(*SEA)

    def test_transitions_update_view(self, loaded: Engine) -> None:
        view = loaded.zoom(2.0)

        assert view.zoom == 4.0
        assert loaded.chart().view is view
        assert loaded.rotate(-90.0).rotation_deg == 270.0
        assert loaded.resize(0, 0).viewport_width == 1

    def test_center_on_and_map(self, loaded: Engine) -> None:
        loaded.center_on(*SEA)

        screen = loaded.geodetic_to_screen(*SEA)

        assert screen == pytest.approx((200.0, 100.0))
        assert loaded.screen_to_geodetic(*screen) == pytest.approx(SEA, abs=1e-9)

    def test_pan(self, loaded: Engine) -> None:
        before = loaded.chart().view
        after = loaded.pan(10.0, 0.0)

        assert after.center_x == before.center_x - 5.0

    def test_slot_names(self) -> None:
        assert chart_slot(3) == "chart:3"
