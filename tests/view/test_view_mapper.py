"""Tests for view transitions and screen mapping."""

import pytest

from vfrplan.chart.georeference import ChartGeoreference, RasterGeoTags
from vfrplan.core.config import EngineSettings
from vfrplan.view import ViewLimits, ViewMapper, ViewState

from conftest import CHART_GEO_TRANSFORM, CHART_HEIGHT, CHART_PROJ4, CHART_WIDTH

SEA = (47.4495, -122.3094)


@pytest.fixture
def georef() -> ChartGeoreference:
    tags = RasterGeoTags(CHART_WIDTH, CHART_HEIGHT, CHART_GEO_TRANSFORM, CHART_PROJ4)
    return ChartGeoreference.from_raster_metadata(tags)


@pytest.fixture
def mapper(georef: ChartGeoreference) -> ViewMapper:
    return ViewMapper(georef, ViewLimits(min_zoom=0.125, max_zoom=16.0))


@pytest.fixture
def view(mapper: ViewMapper) -> ViewState:
    """The 200x100 raster fitted into a 400x200 viewport at zoom 2."""
    return mapper.initial_view(400, 200)


class TestViewLimits:
    """Tests for ViewLimits."""

    def test_defaults(self) -> None:
        limits = ViewLimits()

        assert (limits.min_zoom, limits.max_zoom, limits.fill_viewport) == (0.125, 1.0, False)

    @pytest.mark.parametrize(("min_zoom", "max_zoom"), [(0.0, 1.0), (-1.0, 1.0), (2.0, 1.0), (float("nan"), 1.0)])
    def test_invalid(self, min_zoom: float, max_zoom: float) -> None:
        with pytest.raises(ValueError):
            ViewLimits(min_zoom, max_zoom)

    def test_from_settings(self) -> None:
        limits = ViewLimits.from_settings(EngineSettings(min_zoom=0.5, max_zoom=4.0, fill_viewport=True))

        assert limits == ViewLimits(0.5, 4.0, True)


class TestInitialView:
    """Tests for initial_view()."""

    def test_fit_and_centre(self, view: ViewState) -> None:
        assert (view.center_x, view.center_y, view.zoom, view.rotation_deg) == (100.0, 50.0, 2.0, 0.0)
        assert (view.viewport_width, view.viewport_height) == (400, 200)

    def test_fit_clamped_to_max_zoom(self, georef: ChartGeoreference) -> None:
        assert ViewMapper(georef).initial_view(800, 600).zoom == 1.0

    def test_degenerate_viewport(self, mapper: ViewMapper) -> None:
        view = mapper.initial_view(0, -10)

        assert (view.viewport_width, view.viewport_height) == (1, 1)


class TestMapping:
    """Tests for the screen and chart pixel mapping."""

    def test_centre_maps_to_viewport_centre(self, mapper: ViewMapper, view: ViewState) -> None:
        assert mapper.chart_pixel_to_screen(view, 100.0, 50.0) == (200.0, 100.0)
        assert mapper.chart_pixel_to_screen(view, 0.0, 0.0) == (0.0, 0.0)

    def test_rotation_is_clockwise(self, mapper: ViewMapper, view: ViewState) -> None:
        """Test content east of centre appears below it after a 90 degree turn."""
        rotated = mapper.rotate(view, 90.0)

        assert mapper.chart_pixel_to_screen(rotated, 110.0, 50.0) == pytest.approx((200.0, 120.0))

    @pytest.mark.parametrize("rotation", [0.0, 30.0, 135.0, 290.0])
    def test_screen_round_trip(self, mapper: ViewMapper, view: ViewState, rotation: float) -> None:
        rotated = mapper.rotate(view, rotation)

        chart = mapper.screen_to_chart_pixel(rotated, 37.0, 151.0)

        assert mapper.chart_pixel_to_screen(rotated, *chart) == pytest.approx((37.0, 151.0))

    def test_geodetic_round_trip(self, mapper: ViewMapper, view: ViewState) -> None:
        screen = mapper.geodetic_to_screen(view, *SEA)

        assert screen is not None
        assert mapper.screen_to_geodetic(view, *screen) == pytest.approx(SEA, abs=1e-9)

    def test_screen_origin_is_chart_corner(self, mapper: ViewMapper, view: ViewState, georef: ChartGeoreference) -> None:
        assert mapper.screen_to_geodetic(view, 0.0, 0.0) == pytest.approx(georef.to_geodetic(0.0, 0.0))

    def test_off_chart_is_none(self, mapper: ViewMapper, view: ViewState) -> None:
        assert mapper.geodetic_to_screen(view, 46.0, -122.0) is None

    def test_unprojectable_is_none(self, mapper: ViewMapper, view: ViewState) -> None:
        assert mapper.geodetic_to_screen(view, -90.0, -121.0) is None

    def test_off_viewport_is_none(self, mapper: ViewMapper, view: ViewState) -> None:
        """Test a point on the chart but outside the viewport maps to None."""
        close = mapper.center_on(mapper.zoom(view, 8.0), *SEA)
        assert mapper.geodetic_to_screen(close, *SEA) == pytest.approx((200.0, 100.0))

        panned = mapper.pan(close, 300.0, 0.0)

        assert mapper.geodetic_to_screen(panned, *SEA) is None

    def test_non_finite_screen_point(self, mapper: ViewMapper, view: ViewState) -> None:
        with pytest.raises(ValueError):
            mapper.screen_to_geodetic(view, float("nan"), 0.0)


class TestTransitions:
    """Tests for pan, zoom, rotate, resize and center_on."""

    def test_pan_drags_content(self, mapper: ViewMapper, view: ViewState) -> None:
        """Test the chart moves with the drag delta."""
        panned = mapper.pan(view, 20.0, 10.0)

        assert (panned.center_x, panned.center_y) == (90.0, 45.0)
        assert mapper.chart_pixel_to_screen(panned, 100.0, 50.0) == (220.0, 110.0)

    def test_pan_rotated(self, mapper: ViewMapper, view: ViewState) -> None:
        rotated = mapper.rotate(view, 90.0)

        panned = mapper.pan(rotated, 20.0, 0.0)

        assert mapper.chart_pixel_to_screen(panned, 100.0, 50.0) == pytest.approx((220.0, 100.0))

    def test_pan_clamps_centre_to_raster(self, mapper: ViewMapper, view: ViewState) -> None:
        panned = mapper.pan(view, -10000.0, 10000.0)

        assert (panned.center_x, panned.center_y) == (200.0, 0.0)

    def test_pan_non_finite(self, mapper: ViewMapper, view: ViewState) -> None:
        with pytest.raises(ValueError):
            mapper.pan(view, float("inf"), 0.0)

    def test_zoom_clamps(self, mapper: ViewMapper, view: ViewState) -> None:
        assert mapper.zoom(view, 1e-6).zoom == 0.125
        assert mapper.zoom(view, 1e6).zoom == 16.0

    @pytest.mark.parametrize("rotation", [0.0, 45.0])
    def test_zoom_keeps_pivot_fixed(self, mapper: ViewMapper, view: ViewState, rotation: float) -> None:
        """Test the chart point under the pivot stays under it."""
        rotated = mapper.rotate(view, rotation)
        anchor = mapper.screen_to_chart_pixel(rotated, 150.0, 80.0)

        zoomed = mapper.zoom(rotated, 2.0, pivot=(150.0, 80.0))

        assert zoomed.zoom == 4.0
        assert mapper.chart_pixel_to_screen(zoomed, *anchor) == pytest.approx((150.0, 80.0))

    def test_zoom_default_pivot_is_centre(self, mapper: ViewMapper, view: ViewState) -> None:
        zoomed = mapper.zoom(view, 3.0)

        assert (zoomed.center_x, zoomed.center_y, zoomed.zoom) == (100.0, 50.0, 6.0)

    @pytest.mark.parametrize("factor", [0.0, -2.0, float("nan"), float("inf")])
    def test_zoom_invalid_factor(self, mapper: ViewMapper, view: ViewState, factor: float) -> None:
        with pytest.raises(ValueError):
            mapper.zoom(view, factor)

    def test_rotation_wraps(self, mapper: ViewMapper, view: ViewState) -> None:
        assert mapper.rotate(view, -30.0).rotation_deg == 330.0
        assert mapper.rotate(view, 720.0).rotation_deg == 0.0
        assert mapper.rotate(mapper.rotate(view, 350.0), 20.0).rotation_deg == pytest.approx(10.0)

    def test_rotation_tiny_negative_is_zero(self, mapper: ViewMapper, view: ViewState) -> None:
        """Test a sum that rounds to a full turn stays inside [0, 360)."""
        assert mapper.rotate(view, -1e-20).rotation_deg == 0.0

    def test_resize_keeps_one_pixel(self, mapper: ViewMapper, view: ViewState) -> None:
        resized = mapper.resize(view, 0, -3)

        assert (resized.viewport_width, resized.viewport_height) == (1, 1)

    def test_resize_non_finite(self, mapper: ViewMapper, view: ViewState) -> None:
        with pytest.raises(ValueError):
            mapper.resize(view, float("nan"), 100)

    def test_center_on(self, mapper: ViewMapper, view: ViewState, georef: ChartGeoreference) -> None:
        centred = mapper.center_on(view, *SEA)

        assert (centred.center_x, centred.center_y) == pytest.approx(georef.to_pixel(*SEA))

    def test_transitions_return_new_state(self, mapper: ViewMapper, view: ViewState) -> None:
        mapper.pan(view, 5.0, 5.0)
        mapper.zoom(view, 2.0)

        assert (view.center_x, view.center_y, view.zoom) == (100.0, 50.0, 2.0)


class TestFillViewport:
    """Tests for limits that keep the raster filling the viewport."""

    @pytest.fixture
    def fill_mapper(self, georef: ChartGeoreference) -> ViewMapper:
        return ViewMapper(georef, ViewLimits(min_zoom=0.125, max_zoom=16.0, fill_viewport=True))

    def test_min_zoom_fills_viewport(self, fill_mapper: ViewMapper) -> None:
        view = fill_mapper.initial_view(400, 200)

        assert fill_mapper.min_zoom(view) == 2.0
        assert fill_mapper.zoom(view, 0.5).zoom == 2.0

    def test_centre_keeps_edges_on_screen(self, fill_mapper: ViewMapper) -> None:
        view = fill_mapper.zoom(fill_mapper.initial_view(400, 200), 2.0)

        panned = fill_mapper.pan(view, -10000.0, -10000.0)

        assert (panned.center_x, panned.center_y) == (150.0, 75.0)

    def test_fill_capped_at_max_zoom(self, georef: ChartGeoreference) -> None:
        mapper = ViewMapper(georef, ViewLimits(min_zoom=0.125, max_zoom=1.0, fill_viewport=True))

        assert mapper.initial_view(4000, 2000).zoom == 1.0


class TestVisiblePixelRect:
    """Tests for visible_pixel_rect()."""

    def test_whole_raster(self, mapper: ViewMapper, view: ViewState) -> None:
        assert mapper.visible_pixel_rect(view) == (0.0, 0.0, 200.0, 100.0)

    def test_zoomed_in(self, mapper: ViewMapper, view: ViewState) -> None:
        assert mapper.visible_pixel_rect(mapper.zoom(view, 2.0)) == (50.0, 25.0, 150.0, 75.0)

    def test_rotated(self, mapper: ViewMapper, view: ViewState) -> None:
        rect = mapper.visible_pixel_rect(mapper.rotate(view, 90.0))

        assert rect == pytest.approx((50.0, 0.0, 150.0, 100.0))

    def test_nothing_visible(self, mapper: ViewMapper) -> None:
        assert mapper.visible_pixel_rect(ViewState(1000.0, 1000.0, 1.0, 0.0, 10, 10)) is None
