"""Terminal rendering of pipeline step traces."""

from harborline.monitor.renderer import TraceRenderer

__all__ = ["TraceRenderer"]
