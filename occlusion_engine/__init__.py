"""HorizonOcclusion — Occlusion Engine Package.

Fixed-precision arithmetic, geometric primitives, solid geometry and the
horizon/plane occlusion classifier for a rotating test sphere.
"""
