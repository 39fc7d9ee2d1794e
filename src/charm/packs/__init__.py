"""Sound pack discovery and the read-only pack configuration."""

from .loader import PackLoader, find_pack, resolve_sounds
from .models import ChannelSounds, SoundPack

__all__ = ["ChannelSounds", "PackLoader", "SoundPack", "find_pack", "resolve_sounds"]
