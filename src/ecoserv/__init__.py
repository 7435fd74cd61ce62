"""ecoserv

Ecosystem-service indicator rasters from a classified land-cover basemap.

Subpackages:
- ecoserv.habitat → habitat code lookup and feature filtering
- ecoserv.geo     → grid, rasterizing, focal/distance kernels, rescaling
- ecoserv.models  → the climate regulation and pollination demand models (+ CLI)
"""

__version__ = "0.1.0"
