"""
Soil Biology Calculator - Microscopy Biomass Utility

Computes bacterial and fungal biomass, F:B ratio, protozoa counts and nematode
abundance per gram of soil from raw microscopy counts and dilution metadata.
"""

__version__ = "0.1.0"
__author__ = "Soil Food Web Lab"
