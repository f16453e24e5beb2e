"""
Record management and comparative analysis for industrial dryer measurements.
"""

__version__ = "1.0.0"
