import os
from typing import List, Optional

import pytest

from note_overlay.surface import SurfaceView


def pytest_runtest_setup(item):
    if item.get_closest_marker("pyqt_required"):
        if not os.getenv("PYQT_TESTS"):
            pytest.skip("PYQT_TESTS not set; skipping PyQt-dependent test")


class RecordingSurface:
    def __init__(self) -> None:
        self.mounted = False
        self.mount_count = 0
        self.unmount_count = 0
        self.views: List[SurfaceView] = []
        self.buffer: Optional[str] = None

    def mount(self) -> None:
        self.mounted = True
        self.mount_count += 1

    def unmount(self) -> None:
        self.mounted = False
        self.unmount_count += 1

    def apply(self, view: SurfaceView) -> None:
        self.views.append(view)

    def edit_buffer(self) -> Optional[str]:
        return self.buffer

    @property
    def last_view(self) -> SurfaceView:
        return self.views[-1]


class SurfaceFactory:
    def __init__(self) -> None:
        self.created: List[RecordingSurface] = []

    def __call__(self) -> RecordingSurface:
        surface = RecordingSurface()
        self.created.append(surface)
        return surface

    @property
    def current(self) -> RecordingSurface:
        return self.created[-1]


@pytest.fixture
def surfaces() -> SurfaceFactory:
    return SurfaceFactory()
