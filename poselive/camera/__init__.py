"""
Camera frame sources.

Sources own the capture device and hand out one tensor-sized Frame at a time;
the latest full-size image is kept separately for preview rendering.
"""
