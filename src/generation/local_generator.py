"""
Local Item Generator: deterministic triangle items from templates.

No model calls. Every concept has templates for the interaction types
it supports, rendered over three triangle orientations, four real-world
scenes and four Pythagorean triples. The same request and learner
history always produce the same item.

Used two ways:
- as the primary generator when no item service is configured
- as the orchestrator's terminal fallback (build_item), which is
  synchronous and always returns an item that passes structural
  validation for concepts in the ontology
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from src.adaptive.learner_context import LearnerContext
from src.curriculum.policies import (
    HIGHLIGHT,
    MULTIPLE_CHOICE,
    NUMERIC_INPUT,
    ConceptPolicyProvider,
    get_policy_provider,
)
from src.generation.capabilities import GenerationRequest
from src.generation.item_validator import ItemSpecValidator
from src.generation.schemas import (
    ITEM_SCHEMA_VERSION,
    AssessmentContract,
    DiagramPoint,
    DiagramSpec,
    ExpectedAnswer,
    ItemSpec,
    ResponseContract,
    ResponseOption,
)
from src.grading.base import NumericRule


# =============================================================================
# Variant Data
# =============================================================================


def seg(p: str, q: str) -> str:
    """Canonical segment name, vertices in alphabetical order."""
    return "".join(sorted(p + q))


@dataclass(frozen=True)
class Orientation:
    """A right triangle ABC laid out in the unit square."""

    key: str
    points: tuple[tuple[str, float, float], ...]
    right: str

    @property
    def acute(self) -> tuple[str, str]:
        p, q = (v for v in "ABC" if v != self.right)
        return p, q

    @property
    def hypotenuse(self) -> str:
        return seg(*self.acute)

    @property
    def legs(self) -> tuple[str, str]:
        p, q = self.acute
        return seg(p, self.right), seg(q, self.right)

    def length(self, side: str) -> float:
        coords = {pid: (x, y) for pid, x, y in self.points}
        (x1, y1), (x2, y2) = coords[side[0]], coords[side[1]]
        return math.hypot(x2 - x1, y2 - y1)

    @property
    def shortest(self) -> str:
        return min(("AB", "AC", "BC"), key=self.length)

    def diagram(self) -> DiagramSpec:
        return DiagramSpec(
            type="triangle",
            points=[DiagramPoint(pid, x, y) for pid, x, y in self.points],
            right_angle_at=self.right,
        )


ORIENTATIONS: tuple[Orientation, ...] = (
    Orientation("ra", (("A", 0.2, 0.8), ("B", 0.85, 0.8), ("C", 0.2, 0.3)), "A"),
    Orientation("rb", (("A", 0.15, 0.8), ("B", 0.8, 0.8), ("C", 0.8, 0.25)), "B"),
    Orientation("rc", (("A", 0.1, 0.5), ("B", 0.9, 0.7), ("C", 0.4, 0.2)), "C"),
)


@dataclass(frozen=True)
class Scene:
    key: str
    opener: str
    real_world: str


SCENES: tuple[Scene, ...] = (
    Scene(
        "ramp",
        "A skateboard ramp seen from the side is shaped like triangle ABC.",
        "Builders check ramps and roofs for square corners so they stand safely.",
    ),
    Scene(
        "ladder",
        "A ladder leaning on a wall makes triangle ABC with the ground.",
        "A ladder leaning on a wall forms a right triangle with the wall and the floor.",
    ),
    Scene(
        "sail",
        "A small boat has a sail cut in the shape of triangle ABC.",
        "Sail makers measure each edge of a triangular sail before cutting the cloth.",
    ),
    Scene(
        "garden",
        "A corner garden bed is laid out as triangle ABC.",
        "Gardeners mark square corners for garden beds using a rope with knots.",
    ),
)

# Pythagorean triples, easiest first.
TRIPLES: tuple[tuple[int, int, int], ...] = ((3, 4, 5), (6, 8, 10), (5, 12, 13), (8, 15, 17))

VARIANT_COUNT = 12


@dataclass(frozen=True)
class Variant:
    index: int
    orientation: Orientation
    scene: Scene
    triple: tuple[int, int, int]

    @classmethod
    def build(cls, index: int, difficulty: int) -> Variant:
        return cls(
            index=index,
            orientation=ORIENTATIONS[index % len(ORIENTATIONS)],
            scene=SCENES[index % len(SCENES)],
            triple=TRIPLES[(difficulty - 1 + index // len(SCENES)) % len(TRIPLES)],
        )

    @property
    def key(self) -> str:
        return f"{self.scene.key}.{self.orientation.key}"


@dataclass
class ItemDraft:
    """Text and answer a template produces, before it is wrapped in an ItemSpec."""

    prompt: str
    hint: str
    explanation: str
    answer_kind: str
    answer_value: str
    objective: str
    schema: str
    strategy: str
    feedback_policy: str
    options: list[ResponseOption] | None = None
    numeric_rule: NumericRule | None = None


def choices(correct: str, distractors: list[str], position: int) -> tuple[list[ResponseOption], str]:
    """Options with ids a, b, c... and the correct one placed at ``position``."""
    texts = list(distractors)
    slot = position % (len(texts) + 1)
    texts.insert(slot, correct)
    options = [ResponseOption(id=chr(ord("a") + i), text=text) for i, text in enumerate(texts)]
    return options, options[slot].id


def _highlight(prompt, hint, explanation, kind, value, objective) -> ItemDraft:
    return ItemDraft(
        prompt=prompt,
        hint=hint,
        explanation=explanation,
        answer_kind=kind,
        answer_value=value,
        objective=objective,
        schema="point_set" if kind == "point_set" else "segment_set",
        strategy="vision_locator",
        feedback_policy="fp.highlight_retry",
    )


def _choice(prompt, hint, explanation, correct, distractors, position, objective, symbolic=False) -> ItemDraft:
    options, answer_id = choices(correct, distractors, position)
    return ItemDraft(
        prompt=prompt,
        hint=hint,
        explanation=explanation,
        answer_kind="option_id",
        answer_value=answer_id,
        objective=objective,
        schema="expression_equivalence" if symbolic else "enum",
        strategy="symbolic_equivalence" if symbolic else "deterministic_rule",
        feedback_policy="fp.choice_explain",
        options=options,
    )


def _numeric(prompt, hint, explanation, value, objective, unit=None) -> ItemDraft:
    return ItemDraft(
        prompt=prompt,
        hint=hint,
        explanation=explanation,
        answer_kind="number",
        answer_value=str(value),
        objective=objective,
        schema="numeric_with_tolerance",
        strategy="deterministic_rule",
        feedback_policy="fp.numeric_bounded",
        numeric_rule=NumericRule(tolerance=0.01, min_value=0, unit=unit),
    )


SIDE_OPTIONS = ("Side AB", "Side AC", "Side BC")
VERTEX_OPTIONS = ("Vertex A", "Vertex B", "Vertex C")


def _side_choice(correct_side: str) -> tuple[str, list[str]]:
    correct = f"Side {correct_side}"
    return correct, [text for text in SIDE_OPTIONS if text != correct]


# =============================================================================
# Template Registry
# =============================================================================

Template = Callable[[Variant], ItemDraft]
TEMPLATES: dict[str, dict[str, Template]] = {}


def template(concept_id: str, interaction_type: str):
    """Register a template for a concept and interaction type."""

    def decorator(func: Template) -> Template:
        TEMPLATES.setdefault(concept_id, {})[interaction_type] = func
        return func

    return decorator


# ----- Level 1: basics -------------------------------------------------------


@template("tri.basics.identify_right_angle", HIGHLIGHT)
def _right_angle_highlight(v: Variant) -> ItemDraft:
    r = v.orientation.right
    return _highlight(
        f"{v.scene.opener} Tap the vertex of triangle ABC where the right angle is.",
        "A right angle is a square corner that measures exactly 90 degrees, like the corner of a page.",
        f"The two sides that meet at vertex {r} make a square corner, so the right angle is at {r}.",
        "point_set", r, "identify_vertex",
    )


@template("tri.basics.identify_right_angle", MULTIPLE_CHOICE)
def _right_angle_choice(v: Variant) -> ItemDraft:
    r = v.orientation.right
    correct = f"Vertex {r}"
    return _choice(
        f"{v.scene.opener} Which vertex of triangle ABC has the right angle?",
        "A right angle is a square corner that measures exactly 90 degrees, like the corner of a page.",
        f"The two sides that meet at vertex {r} make a square corner, so the right angle is at {r}.",
        correct, [t for t in VERTEX_OPTIONS if t != correct], v.index, "identify_vertex",
    )


@template("tri.basics.identify_right_triangle", HIGHLIGHT)
def _right_triangle_highlight(v: Variant) -> ItemDraft:
    r = v.orientation.right
    return _highlight(
        f"{v.scene.opener} Triangle ABC is a right triangle. Tap the vertex that makes it right-angled.",
        "Look for the one corner that is a square corner of exactly 90 degrees.",
        f"The corner at {r} is a right angle, and a triangle with one right angle is called a right triangle.",
        "point_set", r, "identify_angle",
    )


@template("tri.basics.identify_right_triangle", MULTIPLE_CHOICE)
def _right_triangle_choice(v: Variant) -> ItemDraft:
    r = v.orientation.right
    return _choice(
        f"{v.scene.opener} Is triangle ABC a right triangle?",
        "Look for one corner that is a square corner of exactly 90 degrees.",
        f"The corner at {r} is a right angle, and a triangle with one right angle is called a right triangle.",
        "Yes, it has a right angle",
        ["No, all of its corners are smaller than a right angle", "No, it has two right angles"],
        v.index, "classify_triangle",
    )


@template("tri.basics.vertices_sides_angles", HIGHLIGHT)
def _parts_highlight(v: Variant) -> ItemDraft:
    p, q = v.orientation.acute
    side = seg(p, q)
    return _highlight(
        f"{v.scene.opener} Tap the side of triangle ABC that joins vertex {p} and vertex {q}.",
        "A triangle has three vertices, three sides and three angles. A side is named by the two vertices at its ends.",
        f"Side {side} starts at vertex {p} and ends at vertex {q}, so it is the side joining those two corners.",
        "segment", side, "identify_segment",
    )


@template("tri.basics.vertices_sides_angles", MULTIPLE_CHOICE)
def _parts_choice(v: Variant) -> ItemDraft:
    return _choice(
        f"{v.scene.opener} How many vertices, sides and angles does triangle ABC have altogether?",
        "Count the corners, then the straight edges, then the angles inside the corners, and add the three counts.",
        "Every triangle has 3 vertices, 3 sides and 3 angles, and 3 + 3 + 3 makes 9 parts in total.",
        "9", ["3", "6", "12"], v.index, "classify_triangle",
    )


# ----- Level 2: structure ----------------------------------------------------


@template("tri.structure.hypotenuse", HIGHLIGHT)
def _hypotenuse_highlight(v: Variant) -> ItemDraft:
    o = v.orientation
    return _highlight(
        f"{v.scene.opener} The right angle is at vertex {o.right}. Tap the hypotenuse of right triangle ABC.",
        "The hypotenuse is the side across from the right angle. It never touches the square corner.",
        f"Side {o.hypotenuse} does not touch vertex {o.right}, so it lies opposite the right angle and is the hypotenuse.",
        "segment", o.hypotenuse, "identify_segment",
    )


@template("tri.structure.hypotenuse", MULTIPLE_CHOICE)
def _hypotenuse_choice(v: Variant) -> ItemDraft:
    o = v.orientation
    correct, distractors = _side_choice(o.hypotenuse)
    return _choice(
        f"{v.scene.opener} The right angle is at vertex {o.right}. Which side is the hypotenuse?",
        "The hypotenuse is the side across from the right angle. It never touches the square corner.",
        f"Side {o.hypotenuse} does not touch vertex {o.right}, so it lies opposite the right angle and is the hypotenuse.",
        correct, distractors, v.index, "identify_segment",
    )


@template("tri.structure.legs", HIGHLIGHT)
def _legs_highlight(v: Variant) -> ItemDraft:
    o = v.orientation
    first, second = o.legs
    return _highlight(
        f"{v.scene.opener} The right angle is at {o.right} and one leg is side {first}. Tap the other leg.",
        "The legs are the two sides that meet at the right angle and form its square corner.",
        f"Sides {first} and {second} both touch vertex {o.right}, so they are the legs of triangle ABC.",
        "segment", second, "identify_segment",
    )


@template("tri.structure.legs", MULTIPLE_CHOICE)
def _legs_choice(v: Variant) -> ItemDraft:
    o = v.orientation
    first, second = o.legs
    pairs = {"AB": "Sides AC and BC", "AC": "Sides AB and BC", "BC": "Sides AB and AC"}
    correct = pairs[o.hypotenuse]
    return _choice(
        f"{v.scene.opener} The right angle is at {o.right}. Which two sides are the legs?",
        "The legs are the two sides that meet at the right angle and form its square corner.",
        f"Sides {first} and {second} both touch vertex {o.right}, so they are the legs of triangle ABC.",
        correct, [text for text in pairs.values() if text != correct], v.index, "identify_segment",
    )


def _opposite_parts(o: Orientation) -> tuple[str, str, str]:
    p, q = o.acute
    return p, seg(q, o.right), seg(p, o.right)


@template("tri.structure.opposite_adjacent_relative", HIGHLIGHT)
def _opposite_highlight(v: Variant) -> ItemDraft:
    o = v.orientation
    p, opposite, adjacent = _opposite_parts(o)
    return _highlight(
        f"{v.scene.opener} Stand at the angle at vertex {p}. Tap the side opposite this angle.",
        f"The opposite side does not touch vertex {p}. The two sides that touch {p} are adjacent to it.",
        f"Side {opposite} is across from vertex {p}, so it is opposite; sides {adjacent} and {o.hypotenuse} are adjacent to the angle at {p}.",
        "segment", opposite, "identify_segment",
    )


@template("tri.structure.opposite_adjacent_relative", MULTIPLE_CHOICE)
def _adjacent_choice(v: Variant) -> ItemDraft:
    o = v.orientation
    p, opposite, adjacent = _opposite_parts(o)
    correct, distractors = _side_choice(adjacent)
    return _choice(
        f"{v.scene.opener} Which side is adjacent to the angle at vertex {p} and is not the longest side?",
        f"Adjacent sides touch vertex {p}; the opposite side is the one across from it.",
        f"Sides {adjacent} and {o.hypotenuse} touch vertex {p}, and side {opposite} is opposite. {o.hypotenuse} is longest, so the answer is {adjacent}.",
        correct, distractors, v.index, "identify_segment",
    )


# ----- Level 3: reasoning ----------------------------------------------------


@template("tri.reasoning.compare_side_lengths", HIGHLIGHT)
def _shortest_highlight(v: Variant) -> ItemDraft:
    side = v.orientation.shortest
    return _highlight(
        f"{v.scene.opener} Tap the shortest side of triangle ABC.",
        "Compare the sides by eye or with a ruler: the shortest side has its two endpoints closest together.",
        f"Side {side} is shorter than the other two sides, so it is the shortest side of the triangle.",
        "segment", side, "compare_lengths",
    )


@template("tri.reasoning.compare_side_lengths", MULTIPLE_CHOICE)
def _longest_choice(v: Variant) -> ItemDraft:
    o = v.orientation
    correct, distractors = _side_choice(o.hypotenuse)
    return _choice(
        f"{v.scene.opener} Which side of triangle ABC is the longest?",
        "Compare the sides by eye or with a ruler: the longest side has its two endpoints furthest apart.",
        f"Side {o.hypotenuse} stretches further than the other two sides, so it is the longest side of the triangle.",
        correct, distractors, v.index, "compare_lengths",
    )


@template("tri.reasoning.hypotenuse_longest", HIGHLIGHT)
def _hyp_longest_highlight(v: Variant) -> ItemDraft:
    o = v.orientation
    return _highlight(
        f"{v.scene.opener} The right angle is at {o.right}. Tap the longest side of right triangle ABC.",
        "In every right triangle one special side is always the longest. It sits across from the right angle.",
        f"Side {o.hypotenuse} is the hypotenuse because it is opposite the right angle, and the hypotenuse is always the longest side.",
        "segment", o.hypotenuse, "compare_lengths",
    )


@template("tri.reasoning.hypotenuse_longest", MULTIPLE_CHOICE)
def _hyp_longest_choice(v: Variant) -> ItemDraft:
    return _choice(
        f"{v.scene.opener} In any right triangle, which side is always the longest?",
        "Think about which side sits across from the biggest angle, the square corner.",
        "The hypotenuse faces the right angle, the largest angle of the triangle, so it is always the longest side.",
        "The hypotenuse", ["The shorter leg", "The longer leg", "It depends on the triangle"],
        v.index, "compare_lengths",
    )


@template("tri.reasoning.informal_side_relationships", HIGHLIGHT)
def _relationship_highlight(v: Variant) -> ItemDraft:
    o = v.orientation
    return _highlight(
        f"{v.scene.opener} The right angle is at {o.right}. Tap the side that is longer than each of the other two sides.",
        "The side across from the biggest angle is the longest side, and the biggest angle here is the square corner.",
        f"Side {o.hypotenuse} faces the right angle, the largest angle in the triangle, so it is longer than each other side.",
        "segment", o.hypotenuse, "compare_lengths",
    )


@template("tri.reasoning.informal_side_relationships", MULTIPLE_CHOICE)
def _relationship_choice(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _choice(
        f"{v.scene.opener} Two sides measure {a} cm and {b} cm and meet at a right angle. Which length could the third side have?",
        "The third side must be longer than the longer of the two sides but shorter than both added together.",
        f"{c} cm is longer than {b} cm and shorter than {a} + {b} = {a + b} cm, so only {c} cm can close the triangle.",
        f"{c} cm", [f"{a + b} cm", f"{a + b + 3} cm", f"{max(1, b - a)} cm"], v.index, "compare_lengths",
    )


# ----- Level 4: Pythagorean theorem ------------------------------------------


@template("tri.pyth.check_if_right_triangle", HIGHLIGHT)
def _check_highlight(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    r = v.orientation.right
    return _highlight(
        f"{v.scene.opener} Its sides measure {a}, {b} and {c}. Use Pythagoras to check it is a right triangle, then tap the vertex with the right angle.",
        "If the two shorter sides give a² + b² equal to the longest side squared, the triangle is a right triangle.",
        f"{a}² + {b}² = {a * a} + {b * b} = {c * c} = {c}², so it is a right triangle and the right angle is opposite the longest side, at {r}.",
        "point_set", r, "identify_vertex",
    )


@template("tri.pyth.check_if_right_triangle", MULTIPLE_CHOICE)
def _check_choice(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    is_right = v.index % 2 == 0
    third = c if is_right else c + 1
    yes, no = "Yes, a² + b² equals c²", "No, a² + b² does not equal c²"
    verdict = "is" if is_right else "is not"
    return _choice(
        f"{v.scene.opener} A triangle has sides {a}, {b} and {third}. Is it a right triangle?",
        "Square the two shorter sides and add them, then compare the total with the longest side squared.",
        f"{a}² + {b}² = {a * a + b * b} and {third}² = {third * third}, so by Pythagoras the triangle {verdict} a right triangle.",
        yes if is_right else no, [no if is_right else yes], v.index, "classify_triangle",
    )


@template("tri.pyth.check_if_right_triangle", NUMERIC_INPUT)
def _check_numeric(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _numeric(
        f"{v.scene.opener} A right triangle has legs {a} and {b}. Using Pythagoras, what is a² + b² for these legs?",
        "Square each leg by multiplying it by itself, then add the two square numbers together.",
        f"{a}² = {a * a} and {b}² = {b * b}, and {a * a} + {b * b} = {c * c}, which equals {c}², so it is a right triangle.",
        c * c, "compute_value",
    )


@template("tri.pyth.equation_a2_b2_c2", MULTIPLE_CHOICE)
def _equation_choice(v: Variant) -> ItemDraft:
    return _choice(
        f"{v.scene.opener} In right triangle ABC the legs are a and b and the hypotenuse is c. Which equation is the Pythagorean theorem?",
        "The theorem links the squares of all three sides, and the side standing alone is the longest one.",
        "Adding the squares of the two legs gives the square of the hypotenuse, so a² + b² = c² is the Pythagorean theorem.",
        "a² + b² = c²", ["a + b = c", "a² + c² = b²", "2a + 2b = 2c"], v.index, "select_equation",
        symbolic=True,
    )


@template("tri.pyth.solve_missing_side", MULTIPLE_CHOICE)
def _missing_side_choice(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _choice(
        f"{v.scene.opener} Right triangle ABC has legs {a} cm and {b} cm. Use Pythagoras to find the missing side.",
        "Square both legs, add them, then find the number that multiplies by itself to make the total.",
        f"{a}² + {b}² = {a * a} + {b * b} = {c * c}, and {c} × {c} = {c * c}, so the missing side is {c} cm.",
        f"{c} cm", [f"{a + b} cm", f"{c + 1} cm", f"{c * c} cm"], v.index, "compute_value",
    )


@template("tri.pyth.solve_missing_side", NUMERIC_INPUT)
def _missing_side_numeric(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _numeric(
        f"{v.scene.opener} Right triangle ABC has legs {a} cm and {b} cm. Use Pythagoras to find the missing side in cm.",
        "Square both legs, add them, then find the number that multiplies by itself to make the total.",
        f"{a}² + {b}² = {a * a} + {b * b} = {c * c}, and {c} × {c} = {c * c}, so the missing side is {c} cm.",
        c, "compute_value", unit="cm",
    )


@template("tri.pyth.square_area_intuition", HIGHLIGHT)
def _square_area_highlight(v: Variant) -> ItemDraft:
    o = v.orientation
    return _highlight(
        f"{v.scene.opener} A square is drawn on each side of right triangle ABC. Tap the side whose square has the biggest area.",
        "A longer side makes a bigger square, because the area of a square is its side times itself.",
        f"Side {o.hypotenuse} is the longest side, so the square drawn on it has the biggest area of the three squares.",
        "segment", o.hypotenuse, "compare_lengths",
    )


@template("tri.pyth.square_area_intuition", MULTIPLE_CHOICE)
def _square_area_choice(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _choice(
        f"{v.scene.opener} Squares drawn on the two legs of a right triangle have areas {a * a} and {b * b}. What is the area of the square on the third side?",
        "The two smaller squares together cover exactly the same area as the biggest square.",
        f"{a * a} + {b * b} = {c * c}, so the square on the longest side has area {c * c}.",
        str(c * c), [str((a + b) ** 2), str(c), str(c * c + 1)], v.index, "compute_value",
    )


@template("tri.pyth.square_area_intuition", NUMERIC_INPUT)
def _square_area_numeric(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _numeric(
        f"{v.scene.opener} Squares drawn on the two legs of a right triangle have areas {a * a} and {b * b}. What is the area of the square on the third side?",
        "The two smaller squares together cover exactly the same area as the biggest square.",
        f"{a * a} + {b * b} = {c * c}, so the square on the longest side has area {c * c}.",
        c * c, "compute_value",
    )


@template("tri.pyth.square_numbers_refresher", MULTIPLE_CHOICE)
def _square_number_choice(v: Variant) -> ItemDraft:
    c = v.triple[2]
    return _choice(
        f"{v.scene.opener} Its longest side is {c}. Which of these numbers is a square number?",
        "A square number is what you get when you multiply a whole number by itself.",
        f"{c} × {c} = {c * c}, so {c * c} is a square number; the other choices are not a whole number times itself.",
        str(c * c), [str(c * c + 2), str(c * c - 1), str(2 * c)], v.index, "compute_value",
    )


@template("tri.pyth.square_numbers_refresher", NUMERIC_INPUT)
def _square_number_numeric(v: Variant) -> ItemDraft:
    c = v.triple[2]
    return _numeric(
        f"{v.scene.opener} Its longest side is {c}. What is {c} squared, that is {c} times {c}?",
        "A square number is what you get when you multiply a whole number by itself.",
        f"{c} × {c} = {c * c}, so {c} squared is {c * c}.",
        c * c, "compute_value",
    )


# ----- Level 5: applications -------------------------------------------------

_APPLY_HINT = "Draw the right triangle, label the two legs, and use a² + b² = c² to find the longest side."


def _apply_explanation(a: int, b: int, c: int) -> str:
    return f"{a}² + {b}² = {a * a} + {b * b} = {c * c} = {c}², so the answer is {c}."


@template("tri.app.mixed_mastery_test", MULTIPLE_CHOICE)
def _mixed_choice(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _choice(
        f"{v.scene.opener} A right triangle has legs {a} and {b}. Which statement about it is true?",
        _APPLY_HINT,
        _apply_explanation(a, b, c),
        f"The hypotenuse is {c}",
        [f"The hypotenuse is {a + b}", "The triangle has two right angles", "The legs are the longest sides"],
        v.index, "apply_in_context",
    )


@template("tri.app.mixed_mastery_test", NUMERIC_INPUT)
def _mixed_numeric(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _numeric(
        f"{v.scene.opener} A right triangle has hypotenuse {c} and one leg {a}. What is the other leg?",
        "Square the hypotenuse, take away the square of the known leg, then find the number that squares to the rest.",
        f"{c}² - {a}² = {c * c} - {a * a} = {b * b} = {b}², so the other leg is {b}.",
        b, "apply_in_context",
    )


@template("tri.app.real_life_modeling", MULTIPLE_CHOICE)
def _modeling_choice(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _choice(
        f"{v.scene.opener} Model it as a right triangle with legs {a} m and {b} m. How long is the third side?",
        _APPLY_HINT,
        _apply_explanation(a, b, c),
        f"{c} m", [f"{a + b} m", f"{c + 3} m", f"{b - 1} m"], v.index, "apply_in_context",
    )


@template("tri.app.real_life_modeling", NUMERIC_INPUT)
def _modeling_numeric(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _numeric(
        f"{v.scene.opener} Model it as a right triangle with legs {a} m and {b} m. How long is the third side in metres?",
        _APPLY_HINT,
        _apply_explanation(a, b, c),
        c, "apply_in_context", unit="m",
    )


@template("tri.app.word_problems", MULTIPLE_CHOICE)
def _word_choice(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _choice(
        f"{v.scene.opener} A ladder's foot is {a} m from a wall and it reaches {b} m up the wall. How long is the ladder?",
        _APPLY_HINT,
        _apply_explanation(a, b, c),
        f"{c} m", [f"{a + b} m", f"{c + 1} m", f"{b} m"], v.index, "apply_in_context",
    )


@template("tri.app.word_problems", NUMERIC_INPUT)
def _word_numeric(v: Variant) -> ItemDraft:
    a, b, c = v.triple
    return _numeric(
        f"{v.scene.opener} A ladder's foot is {a} m from a wall and it reaches {b} m up the wall. How long is the ladder in metres?",
        _APPLY_HINT,
        _apply_explanation(a, b, c),
        c, "apply_in_context", unit="m",
    )


# Concepts outside the template set still get a renderable item.
DEFAULT_TEMPLATE: Template = _right_angle_choice


# =============================================================================
# Generator
# =============================================================================


class LocalItemGenerator:
    """
    Deterministic template generator.

    generate() walks the variants in order and returns the first one
    the learner's recent history does not make a repeat of. build_item()
    is the synchronous entry point the orchestrator uses for fallback.
    """

    def __init__(
        self,
        policies: ConceptPolicyProvider | None = None,
        validator: ItemSpecValidator | None = None,
        grade: int = 6,
        id_prefix: str = "local",
    ):
        self.policies = policies or get_policy_provider()
        self.validator = validator or ItemSpecValidator(policies=self.policies, grade=grade)
        self.grade = grade
        self.id_prefix = id_prefix

    async def generate(self, request: GenerationRequest) -> ItemSpec:
        return self.build_item(
            request.concept_id,
            request.requested_difficulty,
            request.allowed_interaction_types,
            context=request.learner_context,
        )

    def build_item(
        self,
        concept_id: str,
        difficulty: int,
        allowed_interaction_types: list[str] | None = None,
        context: LearnerContext | None = None,
    ) -> ItemSpec:
        """
        Build an item for a concept. Never raises for valid input types.

        Args:
            concept_id: Concept the item must teach
            difficulty: Requested difficulty, clamped to [1, 4]
            allowed_interaction_types: Preferred interaction types, in order
            context: Recent history used to avoid repeating an item

        Returns:
            ItemSpec in the contract-based shape
        """
        difficulty = max(1, min(4, int(difficulty)))
        allowed = allowed_interaction_types or self.policies.allowed_interaction_types(concept_id)
        interaction, render = self._select_template(concept_id, allowed)

        first: ItemSpec | None = None
        for index in range(VARIANT_COUNT):
            item = self._render(concept_id, difficulty, interaction, render, Variant.build(index, difficulty))
            if context is None:
                return item
            if first is None:
                first = item
            if self.validator.validate_novelty(item, context).is_valid:
                return item

        logger.debug(f"No novel local variant for {concept_id}; reusing the first one")
        return first

    def _select_template(self, concept_id: str, allowed: list[str]) -> tuple[str, Template]:
        templates = TEMPLATES.get(concept_id)
        if not templates:
            return MULTIPLE_CHOICE, DEFAULT_TEMPLATE
        for interaction in allowed:
            render = templates.get(interaction)
            if render is None:
                continue
            sample = render(Variant.build(0, 1))
            if self.policies.allows_grading_strategy(concept_id, sample.strategy):
                return interaction, render
        # Nothing matched the allowed list; use the concept's own first template.
        interaction = next(iter(templates))
        return interaction, templates[interaction]

    def _render(
        self,
        concept_id: str,
        difficulty: int,
        interaction: str,
        render: Template,
        variant: Variant,
    ) -> ItemSpec:
        draft = render(variant)
        answer = ExpectedAnswer(kind=draft.answer_kind, value=draft.answer_value)
        short_name = concept_id.rsplit(".", 1)[-1]
        return ItemSpec(
            schema_version=ITEM_SCHEMA_VERSION,
            item_id=f"{self.id_prefix}.{concept_id}.{interaction}.{variant.key}.d{difficulty}.v{variant.index}",
            question_family=f"{short_name}.{interaction}.{variant.key}",
            concept_id=concept_id,
            grade=self.grade,
            interaction_type=interaction,
            diagram=variant.orientation.diagram(),
            prompt=draft.prompt,
            hint=draft.hint,
            explanation=draft.explanation,
            real_world_connection=variant.scene.real_world,
            response_contract=ResponseContract(
                mode=interaction,
                answer=answer,
                options=draft.options,
                numeric_rule=draft.numeric_rule,
            ),
            assessment_contract=AssessmentContract(
                interaction_type=interaction,
                objective_type=draft.objective,
                answer_schema=draft.schema,
                grading_strategy_id=draft.strategy,
                feedback_policy_id=draft.feedback_policy,
                expected_answer=ExpectedAnswer(kind=answer.kind, value=answer.value),
                options=draft.options,
                numeric_rule=draft.numeric_rule,
            ),
            generator_self_rating=difficulty,
        )
