from exercises.hold import HoldTimer
from exercises.neck_rotation import NeckRotationCounter
from exercises.neck_tilt import NeckTiltCounter
from exercises.sit_tall import SitTallMonitor

__all__ = [
    "SitTallMonitor",
    "NeckTiltCounter",
    "NeckRotationCounter",
    "HoldTimer",
]
