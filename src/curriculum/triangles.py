"""
Grade 6 triangles curriculum.

Five levels, from recognising a right angle up to applying the
Pythagorean theorem in word problems. Each level must be fully mastered
before the next one unlocks.
"""

from __future__ import annotations

from src.curriculum.models import ConceptGraph

TRIANGLES_GRAPH_ID = "g6.geometry.triangles.v1"

TRIANGLES_GRADE6 = ConceptGraph.build(
    graph_id=TRIANGLES_GRAPH_ID,
    topic="Grade 6 Triangles",
    levels=[
        (
            "Triangle & Angle Basics",
            [
                ("tri.basics.identify_right_angle", "Identify right angle"),
                ("tri.basics.identify_right_triangle", "Identify right-angled triangle"),
                ("tri.basics.vertices_sides_angles", "Vertices, sides, and angles"),
            ],
        ),
        (
            "Right Triangle Structure",
            [
                ("tri.structure.hypotenuse", "Hypotenuse"),
                ("tri.structure.legs", "Legs"),
                ("tri.structure.opposite_adjacent_relative", "Opposite/Adjacent (relative)"),
            ],
        ),
        (
            "Properties & Reasoning",
            [
                ("tri.reasoning.compare_side_lengths", "Compare side lengths"),
                ("tri.reasoning.hypotenuse_longest", "Hypotenuse is longest"),
                ("tri.reasoning.informal_side_relationships", "Informal side relationships"),
            ],
        ),
        (
            "Pythagorean Theorem",
            [
                ("tri.pyth.check_if_right_triangle", "Check if triangle is right"),
                ("tri.pyth.equation_a2_b2_c2", "a² + b² = c²"),
                ("tri.pyth.solve_missing_side", "Solve missing side"),
                ("tri.pyth.square_area_intuition", "Square area intuition"),
                ("tri.pyth.square_numbers_refresher", "Square numbers refresher"),
            ],
        ),
        (
            "Applications",
            [
                ("tri.app.mixed_mastery_test", "Mixed mastery test"),
                ("tri.app.real_life_modeling", "Real-life modeling"),
                ("tri.app.word_problems", "Word problems"),
            ],
        ),
    ],
)

# The fixed ontology every generated item must stay inside.
ONTOLOGY: frozenset[str] = frozenset(TRIANGLES_GRADE6.concepts)
