"""ClearDesk Estimating - Cloud Functions.

This package contains the Python Cloud Functions for the ClearDesk
blueprint-to-estimate pipeline.

Architecture:
- Blueprint processor: PDF tokens -> rooms, devices and job metadata
- Estimation engine: blueprint + company pricing -> priced, phase-bucketed estimate
- Estimation service: manual estimate workflow, takeoffs and comparisons
- Timeline prediction: similarity scoring against completed projects
"""

__version__ = "1.0.0"
