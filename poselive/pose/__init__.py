"""
Pose model adapters and keypoint mapping.

Models are injected behind the PoseModel interface; the pump never inspects
their internal (possibly temporally smoothed) state.
"""
