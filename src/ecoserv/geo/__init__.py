"""ecoserv.geo

Spatial building blocks shared by the models. Everything works on a
RasterGrid in British National Grid with NaN as no-data.
"""
