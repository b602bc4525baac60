"""
Pair calculations: kinematics and cascading tracklet counts.
"""
