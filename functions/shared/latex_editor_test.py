import unittest

from shared import latex_editor
from shared.latex_editor import EditorState


class EditorStateTest(unittest.TestCase):
    def test_offsets_are_clamped_and_ordered(self):
        state = EditorState("abc", 10, -4)
        self.assertEqual((state.selection_start, state.selection_end), (0, 3))
        self.assertEqual(state.selected_text, "abc")


class InsertTest(unittest.TestCase):
    def test_insert_replaces_selection(self):
        state = latex_editor.insert_at_cursor(EditorState("hello world", 6, 11), "there")
        self.assertEqual(state.text, "hello there")
        self.assertEqual(state.caret, 11)

    def test_plain_symbol_is_padded(self):
        state = latex_editor.insert_symbol(EditorState("a", 1, 1), r"\alpha")
        self.assertEqual(state.text, r"a $\alpha$ ")
        self.assertEqual(state.caret, len(state.text))

    def test_symbol_with_argument_puts_caret_inside(self):
        # The same snippet earlier in the text must not move the caret there.
        text = r"$\frac{}{}$ and "
        state = latex_editor.insert_symbol(EditorState(text, len(text), len(text)), r"\frac{}{}")
        self.assertEqual(state.text, text + r"$\frac{}{}$")
        self.assertEqual(state.caret, len(text) + len(r"$\frac{"))

    def test_template_and_block(self):
        state = latex_editor.insert_template(EditorState(), r"\vec{}")
        self.assertEqual(state.text, "\n\n$$\\vec{}$$\n\n")
        state = latex_editor.insert_latex_block(EditorState("x"))
        self.assertEqual(state.text, "$$ $$x")

    def test_formatting(self):
        state = latex_editor.bold(EditorState("make bold", 5, 9))
        self.assertEqual(state.text, "make **bold**")
        state = latex_editor.italic(EditorState("", 0, 0))
        self.assertEqual(state.text, "*text*")

    def test_numerical_snippets(self):
        state = latex_editor.quick_insert_numerical(EditorState(), "answer")
        self.assertEqual(state.text, "\n**Answer:** ")
        state = latex_editor.quick_insert_numerical(EditorState(), "units")
        self.assertEqual(state.text, " (units)")
        unchanged = EditorState("x", 1, 1)
        self.assertIs(latex_editor.quick_insert_numerical(unchanged, "nope"), unchanged)

    def test_image(self):
        state = latex_editor.insert_image(EditorState(), "https://cdn.test/a.png")
        self.assertEqual(state.text, "\n\n![Image](https://cdn.test/a.png)\n\n")

    def test_apply_action_dispatch(self):
        state = latex_editor.apply_action(EditorState(), "option", kind="root")
        self.assertEqual(state.text, r"\sqrt{}")
        with self.assertRaises(ValueError):
            latex_editor.apply_action(EditorState(), "symbol")
        with self.assertRaises(ValueError):
            latex_editor.apply_action(EditorState(), "shrink")


class PreviewTest(unittest.TestCase):
    def test_split_preview(self):
        segments = latex_editor.split_preview("Given:\n$$a^2$$ then $$b$$")
        self.assertEqual(
            [(s.kind, s.content) for s in segments],
            [("text", "Given:\n"), ("latex", "a^2"), ("text", " then "), ("latex", "b")],
        )
        self.assertEqual(segments[0].lines, ["Given:", ""])

    def test_multiline_block_is_text(self):
        segments = latex_editor.split_preview("$$a\nb$$")
        self.assertEqual([s.kind for s in segments], ["text"])

    def test_empty(self):
        self.assertEqual(latex_editor.split_preview(""), [])


class PaletteTest(unittest.TestCase):
    def test_palette_contents(self):
        palette = latex_editor.palette()
        self.assertEqual(len(palette["templates"]), 8)
        self.assertEqual(len(palette["symbols"]), len(latex_editor.MATH_SYMBOLS))
        roots = [s for s in palette["symbols"] if s["name"] == "Square Root"]
        self.assertEqual(roots[0]["placeholder"], "x")


if __name__ == "__main__":
    unittest.main()
