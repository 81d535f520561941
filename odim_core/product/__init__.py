"""Product classes mapping convention fields onto typed properties."""
from .profile import Profile, VerticalProfile
from .volume import PolarVolume, Scan

__all__ = ["PolarVolume", "Profile", "Scan", "VerticalProfile"]
