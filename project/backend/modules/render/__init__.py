"""
Render Module.

Shotstack timeline building, render submission and status polling.
"""

from modules.render.export import ExportService
from modules.render.shotstack import ShotstackClient
from modules.render.timeline import build_edit

__all__ = [
    "ExportService",
    "ShotstackClient",
    "build_edit",
]
