"""Concept graph and per-concept policy tables for the triangles topic."""

from .models import ConceptGraph, ConceptNode, LevelNode
from .policies import ConceptPolicyProvider, get_policy_provider
from .triangles import ONTOLOGY, TRIANGLES_GRADE6, TRIANGLES_GRAPH_ID

__all__ = [
    "ConceptGraph",
    "ConceptNode",
    "LevelNode",
    "ConceptPolicyProvider",
    "get_policy_provider",
    "ONTOLOGY",
    "TRIANGLES_GRADE6",
    "TRIANGLES_GRAPH_ID",
]
