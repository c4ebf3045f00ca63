"""
Caret-aware text editing for question and solution content.

Content is plain text mixing Markdown (bold, italic, images) with LaTeX
delimited by `$...$` (inline symbols) and `$$...$$` (blocks). The functions
here take an `EditorState` (the text plus the current selection) and return a
new state, so the HTTP layer can stay stateless: the client posts its text and
selection offsets and receives the edited text and the caret to restore.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Symbol:
    symbol: str
    name: str
    latex: str
    placeholder: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "latex": self.latex,
            "placeholder": self.placeholder,
        }


@dataclass(frozen=True)
class Template:
    name: str
    latex: str
    description: str

    def as_dict(self) -> dict:
        return {"name": self.name, "latex": self.latex, "description": self.description}


MATH_SYMBOLS: tuple[Symbol, ...] = (
    # Basic operations
    Symbol("+", "Plus", "+"),
    Symbol("−", "Minus", "-"),
    Symbol("×", "Multiply", r"\times"),
    Symbol("÷", "Divide", r"\div"),
    Symbol("=", "Equals", "="),
    Symbol("≠", "Not Equal", r"\neq"),
    Symbol("≈", "Approx", r"\approx"),
    # Fractions and roots
    Symbol("½", "Half", r"\frac{1}{2}"),
    Symbol("⅓", "Third", r"\frac{1}{3}"),
    Symbol("¼", "Quarter", r"\frac{1}{4}"),
    Symbol("√", "Square Root", r"\sqrt{}", "x"),
    Symbol("∛", "Cube Root", r"\sqrt[3]{}", "x"),
    Symbol("ⁿ√", "nth Root", r"\sqrt[n]{}", "x"),
    # Greek letters
    Symbol("α", "Alpha", r"\alpha"),
    Symbol("β", "Beta", r"\beta"),
    Symbol("γ", "Gamma", r"\gamma"),
    Symbol("θ", "Theta", r"\theta"),
    Symbol("π", "Pi", r"\pi"),
    Symbol("Δ", "Delta", r"\Delta"),
    Symbol("Σ", "Sigma", r"\Sigma"),
    Symbol("Ω", "Omega", r"\Omega"),
    # Calculus
    Symbol("∫", "Integral", r"\int", "f(x)dx"),
    Symbol("∑", "Summation", r"\sum_{}^{}", "n=1,∞"),
    Symbol("∂", "Partial", r"\partial"),
    Symbol("∞", "Infinity", r"\infty"),
    Symbol("→", "Limit", r"\to"),
    # Geometry
    Symbol("∠", "Angle", r"\angle"),
    Symbol("°", "Degree", r"^{\circ}"),
    Symbol("∥", "Parallel", r"\parallel"),
    Symbol("⊥", "Perpendicular", r"\perp"),
    Symbol("△", "Triangle", r"\triangle"),
    Symbol("□", "Square", r"\square"),
    Symbol("○", "Circle", r"\circ"),
    # Sets and logic
    Symbol("∈", "In", r"\in"),
    Symbol("∉", "Not In", r"\notin"),
    Symbol("⊂", "Subset", r"\subset"),
    Symbol("∪", "Union", r"\cup"),
    Symbol("∩", "Intersection", r"\cap"),
    Symbol("∅", "Empty Set", r"\emptyset"),
    # Chemistry
    Symbol("→", "React", r"\rightarrow"),
    Symbol("⇌", "Equilibrium", r"\rightleftharpoons"),
    Symbol("⇒", "Implies", r"\Rightarrow"),
    Symbol("⇔", "Equiv", r"\Leftrightarrow"),
    Symbol("↑", "Gas", r"\uparrow"),
    Symbol("↓", "Precipitate", r"\downarrow"),
    # Superscripts and subscripts
    Symbol("x²", "Square", "^{2}"),
    Symbol("x³", "Cube", "^{3}"),
    Symbol("xⁿ", "Power", "^{n}"),
    Symbol("x₁", "Sub 1", "_{1}"),
    Symbol("xₙ", "Sub n", "_{n}"),
    Symbol("⁺", "Plus Charge", "^{+}"),
    Symbol("⁻", "Minus Charge", "^{-}"),
    # Other
    Symbol("±", "Plus Minus", r"\pm"),
    Symbol("·", "Dot", r"\cdot"),
    Symbol("∴", "Therefore", r"\therefore"),
    Symbol("∵", "Because", r"\because"),
    Symbol("%", "Percent", r"\%"),
    Symbol("‰", "Per Mille", r"\permil"),
)

LATEX_TEMPLATES: tuple[Template, ...] = (
    Template("Fraction", r"\frac{}{}", "Create a fraction"),
    Template("Square Root", r"\sqrt{}", "Square root"),
    Template("Definite Integral", r"\int_{}^{} \, dx", "Integral with limits"),
    Template("Summation", r"\sum_{}^{}", "Sum with limits"),
    Template("Limit", r"\lim_{x \to }", "Limit expression"),
    Template("Matrix", r"\begin{bmatrix}  & \\  & \end{bmatrix}", "2x2 matrix"),
    Template("Vector", r"\vec{}", "Vector notation"),
    Template("Chemical Equation", r"\ce{ +  ->  }", "Chemical reaction"),
)

# Snippets offered by the compact editor used for answer options.
OPTION_SNIPPETS: dict[str, str] = {
    "latex": "$$ $$",
    "fraction": r"\frac{}{}",
    "root": r"\sqrt{}",
}

NUMERICAL_SNIPPETS: dict[str, str] = {
    "answer": "\n**Answer:** ",
    "steps": "\n**Step-by-Step Solution:**\n1. ",
    "formula": "\n**Formula Used:** $$",
    "units": " (units)",
}

LATEX_BLOCK = "$$ $$"
PLACEHOLDER = "{}"
_BLOCK_SPLIT = re.compile(r"(\$\$.*?\$\$)")


@dataclass(frozen=True)
class EditorState:
    """Editor text and selection. Offsets are clamped into the text."""

    text: str = ""
    selection_start: int = 0
    selection_end: int = 0

    def __post_init__(self):
        text = self.text or ""
        start = min(max(self.selection_start, 0), len(text))
        end = min(max(self.selection_end, 0), len(text))
        if end < start:
            start, end = end, start
        object.__setattr__(self, "text", text)
        object.__setattr__(self, "selection_start", start)
        object.__setattr__(self, "selection_end", end)

    @property
    def selected_text(self) -> str:
        return self.text[self.selection_start : self.selection_end]

    @property
    def caret(self) -> int:
        return self.selection_end

    def as_dict(self) -> dict:
        return {
            "text": self.text,
            "selection_start": self.selection_start,
            "selection_end": self.selection_end,
        }


def insert_at_cursor(state: EditorState, snippet: str) -> EditorState:
    """Replace the selection with `snippet` and put the caret right after it."""
    start, end = state.selection_start, state.selection_end
    text = state.text[:start] + snippet + state.text[end:]
    caret = start + len(snippet)
    return EditorState(text, caret, caret)


def insert_symbol(state: EditorState, latex: str) -> EditorState:
    """
    Insert a palette symbol as inline math.

    Symbols with an empty argument (`\\sqrt{}`) are inserted bare and the caret
    lands inside the first `{}` so the argument can be typed immediately.
    Other symbols are padded with spaces and the caret goes after them.
    """
    if PLACEHOLDER in latex:
        snippet = f"${latex}$"
        edited = insert_at_cursor(state, snippet)
        caret = state.selection_start + 1 + latex.index(PLACEHOLDER) + 1
        return EditorState(edited.text, caret, caret)
    return insert_at_cursor(state, f" ${latex}$ ")


def insert_template(state: EditorState, latex: str) -> EditorState:
    """Insert `latex` as a display block on its own paragraph."""
    return insert_at_cursor(state, f"\n\n$${latex}$$\n\n")


def insert_latex_block(state: EditorState) -> EditorState:
    return insert_at_cursor(state, LATEX_BLOCK)


def format_selection(state: EditorState, prefix: str, suffix: str) -> EditorState:
    """Wrap the selection, or the word `text` when nothing is selected."""
    selected = state.selected_text or "text"
    return insert_at_cursor(state, prefix + selected + suffix)


def bold(state: EditorState) -> EditorState:
    return format_selection(state, "**", "**")


def italic(state: EditorState) -> EditorState:
    return format_selection(state, "*", "*")


def quick_insert_numerical(state: EditorState, kind: str) -> EditorState:
    snippet = NUMERICAL_SNIPPETS.get(kind)
    if snippet is None:
        return state
    return insert_at_cursor(state, snippet)


def insert_image(state: EditorState, url: str) -> EditorState:
    return insert_at_cursor(state, f"\n\n![Image]({url})\n\n")


def insert_option_snippet(state: EditorState, kind: str) -> EditorState:
    snippet = OPTION_SNIPPETS.get(kind)
    if snippet is None:
        return state
    return insert_at_cursor(state, snippet)


@dataclass
class PreviewSegment:
    kind: str  # "latex" or "text"
    content: str
    lines: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        payload = {"kind": self.kind, "content": self.content}
        if self.kind == "text":
            payload["lines"] = self.lines
        return payload


def split_preview(content: str) -> list[PreviewSegment]:
    """
    Split content into LaTeX blocks and plain text for rendering.

    Blocks are the shortest `$$...$$` runs on a single line; text between them
    is kept with its line breaks so the renderer can emit `<br>`s.
    """
    if not content:
        return []
    segments: list[PreviewSegment] = []
    # re.split with a capturing group puts the matches at odd indices.
    for index, part in enumerate(_BLOCK_SPLIT.split(content)):
        if index % 2 == 1:
            segments.append(PreviewSegment("latex", part[2:-2]))
        elif part:
            segments.append(PreviewSegment("text", part, part.split("\n")))
    return segments


def apply_action(
    state: EditorState,
    action: str,
    *,
    latex: str | None = None,
    kind: str | None = None,
    url: str | None = None,
    snippet: str | None = None,
) -> EditorState:
    """Dispatch a named editor action. Raises ValueError for unknown actions."""
    if action == "insert":
        return insert_at_cursor(state, snippet or "")
    if action == "symbol":
        if not latex:
            raise ValueError("symbol action requires latex")
        return insert_symbol(state, latex)
    if action == "template":
        if not latex:
            raise ValueError("template action requires latex")
        return insert_template(state, latex)
    if action == "latex_block":
        return insert_latex_block(state)
    if action == "bold":
        return bold(state)
    if action == "italic":
        return italic(state)
    if action == "numerical":
        return quick_insert_numerical(state, kind or "")
    if action == "option":
        return insert_option_snippet(state, kind or "")
    if action == "image":
        if not url:
            raise ValueError("image action requires url")
        return insert_image(state, url)
    raise ValueError(f"Unknown editor action: {action}")


def palette() -> dict:
    return {
        "symbols": [s.as_dict() for s in MATH_SYMBOLS],
        "templates": [t.as_dict() for t in LATEX_TEMPLATES],
        "option_snippets": dict(OPTION_SNIPPETS),
        "numerical_snippets": dict(NUMERICAL_SNIPPETS),
    }
