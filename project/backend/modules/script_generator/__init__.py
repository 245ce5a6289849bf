"""
Script generator module.

LLM-based structure extraction from transcripts.
"""

from modules.script_generator.structure_client import generate_structure, parse_structure

__all__ = ["generate_structure", "parse_structure"]
