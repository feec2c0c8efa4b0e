"""
tilekit: XYZ raster tile downloader + local tile server

- Enumerates {z}/{x}/{y} tiles around a center point and radius
- Fetches them from a templated remote source into `{root}/{z}/{x}/{y}.{ext}`
- Serves the same tree over HTTP at /tiles/{z}/{x}/{y}.{ext} (plus /health, /stats)
"""

__version__ = "0.3.0"
