"""Engine facade used by the presentation layer.

The engine owns the loaded NASR dataset, the open charts and their views.
Opening archives runs in the background; the owning thread calls
``process_completions()`` (typically once per UI frame) to apply finished
loads. Searches and coordinate conversions run synchronously.

Typical usage:
    from vfrplan.engine import Engine

    engine = Engine()
    engine.open_nasr_archive("28DaySubscription.zip")
    engine.open_chart("Seattle.zip", viewport=(1280, 800))
    while engine.busy:
        engine.process_completions()
    sea = engine.find_by_identifier("KSEA")
    print(engine.geodetic_to_screen(sea.latitude, sea.longitude))
"""

import math
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from vfrplan.chart.package import ChartPackage, open_chart_package
from vfrplan.core.config import EngineSettings
from vfrplan.core.errors import ChartNotLoaded, ParseWarning
from vfrplan.core.logging_system import LoggerMixin
from vfrplan.core.tasks import BackgroundLoader, Completion
from vfrplan.index.facility_index import LazyResults, NearbyFacility
from vfrplan.nasr.dataset import NasrDataset, load_nasr_archive
from vfrplan.nasr.records import FacilityKind, FacilityRecord
from vfrplan.view.mapper import ViewMapper
from vfrplan.view.view_state import ViewLimits, ViewState

NASR_SLOT = "nasr"
DEFAULT_VIEWPORT = (800, 600)

Source = str | Path | bytes | BinaryIO


def chart_slot(chart_id: int) -> str:
    return f"chart:{chart_id}"


@dataclass
class ChartView:
    """An open chart and the caller's current view of it.

    Attributes:
        package: The georeferenced chart.
        mapper: View transitions and mapping for the chart.
        view: Current view state; replaced on every transition.
    """

    package: ChartPackage
    mapper: ViewMapper
    view: ViewState


class Engine(LoggerMixin):
    """Facility data and chart views behind one object.

    Not thread-safe: call every method from the owning thread. Background
    results are applied only inside process_completions().
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        on_complete: Callable[[Completion], None] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Engine settings; defaults when None.
            on_complete: Called with each applied completion, after the
                engine state has been updated.
        """
        self.attach_logger("vfrplan.engine")
        self.settings = settings or EngineSettings()
        self.limits = ViewLimits.from_settings(self.settings)
        self.dataset: NasrDataset | None = None
        self.charts: dict[int, ChartView] = {}
        self.errors: dict[str, BaseException] = {}

        self._on_complete = on_complete
        self._viewports: dict[str, tuple[int, int]] = {}
        self._loader = BackgroundLoader(handler=self._apply)

    # Loading

    def open_nasr_archive(self, source: Source) -> int:
        """Start loading a NASR archive in the background.

        Any load already in flight is superseded. The current dataset stays
        in place until the new one arrives.

        Returns:
            Generation number of the load.
        """
        self.errors.pop(NASR_SLOT, None)
        settings = self.settings
        self.log_info("Opening NASR archive %s", _describe(source))
        return self._loader.submit(NASR_SLOT, lambda cancel: load_nasr_archive(source, settings, cancel))

    def open_chart(
        self,
        source: Source,
        chart_id: int = 0,
        member: str | None = None,
        viewport: tuple[int, int] = DEFAULT_VIEWPORT,
    ) -> int:
        """Start opening a chart package into a chart slot.

        Args:
            source: Chart package path, bytes, or stream.
            chart_id: Slot to open it in; replaces the chart already there.
            member: Raster member to use; picked automatically when None.
            viewport: Viewport size for the initial view.

        Returns:
            Generation number of the load.
        """
        slot = chart_slot(chart_id)
        self.errors.pop(slot, None)
        self._viewports[slot] = viewport
        self.log_info("Opening chart %s in slot %s", _describe(source), slot)
        return self._loader.submit(slot, lambda cancel: open_chart_package(source, member, cancel))

    def load_nasr_archive(self, source: Source) -> NasrDataset:
        """Load a NASR archive on the calling thread and make it current.

        Any background load of the NASR slot is cancelled.
        """
        self._loader.cancel(NASR_SLOT)
        self.dataset = load_nasr_archive(source, self.settings)
        return self.dataset

    def load_chart(
        self,
        source: Source,
        chart_id: int = 0,
        member: str | None = None,
        viewport: tuple[int, int] = DEFAULT_VIEWPORT,
    ) -> ChartView:
        """Open a chart on the calling thread and make it current in its slot."""
        self._loader.cancel(chart_slot(chart_id))
        chart = self._make_chart_view(open_chart_package(source, member), viewport)
        self.charts[chart_id] = chart
        return chart

    def process_completions(self, max_completions: int = 100) -> list[Completion]:
        """Apply finished background loads. Call from the owning thread."""
        return self._loader.process(max_completions)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until background loads finish; see BackgroundLoader.wait()."""
        return self._loader.wait(timeout)

    @property
    def busy(self) -> bool:
        """True while a background load is running."""
        return self._loader.pending()

    def _make_chart_view(self, package: ChartPackage, viewport: tuple[int, int]) -> ChartView:
        mapper = ViewMapper(package.georeference, self.limits)
        return ChartView(package, mapper, mapper.initial_view(*viewport))

    def _apply(self, completion: Completion) -> None:
        slot = completion.slot
        if not completion.ok:
            self.errors[slot] = completion.error
            self.log_error("Loading %s failed: %s", slot, completion.error)
        elif slot == NASR_SLOT:
            self.dataset = completion.result
            self.log_info("NASR data ready: %d facilities", len(self.dataset.index))
        else:
            chart_id = int(slot.split(":", 1)[1])
            viewport = self._viewports.pop(slot, DEFAULT_VIEWPORT)
            self.charts[chart_id] = self._make_chart_view(completion.result, viewport)
            self.log_info("Chart %s ready in slot %s", completion.result.name, slot)

        if self._on_complete is not None:
            self._on_complete(completion)

    # Closing

    def close_nasr_archive(self) -> None:
        """Drop the NASR dataset and cancel any load in flight."""
        self._loader.cancel(NASR_SLOT)
        self.dataset = None

    def close_chart(self, chart_id: int = 0) -> None:
        """Close a chart slot and cancel any load in flight for it."""
        slot = chart_slot(chart_id)
        self._loader.cancel(slot)
        self._viewports.pop(slot, None)
        self.charts.pop(chart_id, None)

    def close(self) -> None:
        """Cancel all loads and release every dataset and chart."""
        self._loader.shutdown()
        self.dataset = None
        self.charts.clear()
        self._viewports.clear()
        self.log_info("Engine closed")

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Facility queries

    @property
    def warnings(self) -> tuple[ParseWarning, ...]:
        return self.dataset.warnings if self.dataset else ()

    def find_by_identifier(self, identifier: str, kind: FacilityKind = FacilityKind.AIRPORT) -> FacilityRecord | None:
        if self.dataset is None:
            return None
        return self.dataset.index.find_by_identifier(identifier, kind)

    def search_by_name(self, query: str) -> LazyResults[FacilityRecord]:
        if self.dataset is None:
            return LazyResults(list)
        return self.dataset.index.search_by_name(query)

    def find_near(self, latitude: float, longitude: float, radius_nm: float) -> LazyResults[NearbyFacility]:
        """Facilities within a radius, nearest first; empty with no data loaded.

        Raises:
            ValueError: If the radius is negative or not finite.
        """
        if not math.isfinite(radius_nm) or radius_nm < 0:
            raise ValueError(f"radius must be a non-negative number, got {radius_nm}")
        if self.dataset is None:
            return LazyResults(list)
        return self.dataset.index.find_near(latitude, longitude, radius_nm)

    # Chart views

    def chart(self, chart_id: int = 0) -> ChartView:
        """Return an open chart.

        Raises:
            ChartNotLoaded: If the slot holds no chart.
        """
        try:
            return self.charts[chart_id]
        except KeyError:
            raise ChartNotLoaded(f"no chart open in slot {chart_id}") from None

    def _transition(self, chart_id: int, step: Callable[[ViewMapper, ViewState], ViewState]) -> ViewState:
        chart = self.chart(chart_id)
        chart.view = step(chart.mapper, chart.view)
        return chart.view

    def pan(self, dx: float, dy: float, chart_id: int = 0) -> ViewState:
        return self._transition(chart_id, lambda mapper, view: mapper.pan(view, dx, dy))

    def zoom(self, factor: float, pivot: tuple[float, float] | None = None, chart_id: int = 0) -> ViewState:
        return self._transition(chart_id, lambda mapper, view: mapper.zoom(view, factor, pivot))

    def rotate(self, delta_deg: float, chart_id: int = 0) -> ViewState:
        return self._transition(chart_id, lambda mapper, view: mapper.rotate(view, delta_deg))

    def resize(self, viewport_width: int, viewport_height: int, chart_id: int = 0) -> ViewState:
        return self._transition(chart_id, lambda mapper, view: mapper.resize(view, viewport_width, viewport_height))

    def center_on(self, latitude: float, longitude: float, chart_id: int = 0) -> ViewState:
        return self._transition(chart_id, lambda mapper, view: mapper.center_on(view, latitude, longitude))

    def screen_to_geodetic(self, sx: float, sy: float, chart_id: int = 0) -> tuple[float, float]:
        chart = self.chart(chart_id)
        return chart.mapper.screen_to_geodetic(chart.view, sx, sy)

    def geodetic_to_screen(self, latitude: float, longitude: float, chart_id: int = 0) -> tuple[float, float] | None:
        """Screen position of a geodetic point, or None when off screen."""
        chart = self.chart(chart_id)
        return chart.mapper.geodetic_to_screen(chart.view, latitude, longitude)


def _describe(source: Source) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    return getattr(source, "name", "<stream>")
