"""
Script analysis module.

Source video -> transcript -> sectioned ad script.
"""

from modules.script_analysis.process import process_analysis

__all__ = ["process_analysis"]
