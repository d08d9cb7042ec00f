"""
Graph package for the LangGraph resolution chain.
"""

from clinic_assistant.graph.builder import build_graph
from clinic_assistant.graph.nodes import ResolutionNodes
from clinic_assistant.graph.edges import route_after_stage, route_after_classification

__all__ = [
    "build_graph",
    "ResolutionNodes",
    "route_after_stage",
    "route_after_classification",
]
