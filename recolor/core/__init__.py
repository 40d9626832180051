"""recolor.core: foundation layer.

Contains the colour primitives, type definitions, substitution engine,
scheduler, image codec helpers, rule parser and report builder.
This module has NO dependencies on recolor.commands.
Only stdlib, numpy, and PIL are allowed here.
"""
