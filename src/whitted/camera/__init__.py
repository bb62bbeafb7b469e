"""Camera module for primary ray generation.

Components:
    camera: Pinhole camera with a view transform
    sampling: Single and grid sub-pixel sampling strategies

Both modules own Taichi fields; import them after ti.init().
"""
