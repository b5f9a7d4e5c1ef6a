import sys
from pathlib import Path

import pytest

# Ensure the `alumni_geo` package is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from alumni_geo.models import BoundingBox  # noqa: E402

WORLD = BoundingBox(west=-180.0, south=-85.0, east=180.0, north=85.0)


class FakeMapView:
    """Map double: set_view jumps immediately and fires move end."""

    def __init__(self, zoom=4, max_zoom=18, bounds=WORLD):
        self.zoom = zoom
        self.max_zoom = max_zoom
        self.bounds = bounds
        self.center = (0.0, 0.0)
        self.handlers = {}
        self.set_view_calls = []

    def get_bounds(self):
        return self.bounds

    def get_zoom(self):
        return self.zoom

    def get_max_zoom(self):
        return self.max_zoom

    def set_view(self, center, zoom, *, animate=True, duration=0.5):
        self.set_view_calls.append((center, zoom, animate, duration))
        self.center = center
        self.zoom = zoom
        self.fire("moveend")

    def on(self, event, callback):
        self.handlers.setdefault(event, []).append(callback)

    def off(self, event, callback):
        callbacks = self.handlers.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def fire(self, event):
        for callback in list(self.handlers.get(event, [])):
            callback()


@pytest.fixture
def map_view():
    return FakeMapView()
