import sys
import tempfile
import unittest
from pathlib import Path

# Make src importable
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Real Tree-sitter must be available for these tests
try:
    from tree_sitter_language_pack import get_parser  # noqa: F401
except ModuleNotFoundError:  # pragma: no cover - environment dependent
    import pytest

    pytest.skip("tree_sitter_language_pack not installed", allow_module_level=True)

import chunker  # type: ignore

from tests.fixtures import load_bytes

ADD_C = b"int add(int a, int b) {\n    return a + b;\n}\n"


class TestCChunks(unittest.TestCase):
    def test_small_file_is_whole_translation_unit(self):
        chunks = list(chunker.chunk_source(ADD_C, "c", 1000))
        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0].node_type, "translation_unit")
        self.assertFalse(chunks[0].collapsed)
        self.assertEqual(chunks[0].content.strip(), ADD_C.decode().strip())

    def test_whole_file_chunk_spans_from_line_one(self):
        source = b"\n\n/* hdr */\nint x;\n"
        chunks = list(chunker.chunk_source(source, "c", 1000))
        self.assertEqual(len(chunks), 1)
        self.assertEqual((chunks[0].start_line, chunks[0].end_line), (1, 4))
        self.assertEqual((chunks[0].start_bytes, chunks[0].end_bytes), (0, len(source)))
        self.assertEqual(chunks[0].content, source.decode())

    def test_oversized_function_keeps_signature_only(self):
        chunks = list(chunker.chunk_source(ADD_C, "c", 8))
        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0].node_type, "function_definition")
        self.assertTrue(chunks[0].collapsed)
        self.assertEqual(chunks[0].content, "int add(int a, int b) { ... }")
        self.assertEqual((chunks[0].start_line, chunks[0].end_line), (1, 3))

    def test_top_level_functions_become_chunks(self):
        source = load_bytes("sample.c")
        chunks = list(chunker.chunk_source(source, "c", 20, path="sample.c"))
        self.assertEqual([(c.node_type, c.collapsed) for c in chunks], [
            ("function_definition", True),
            ("function_definition", False),
        ])
        self.assertEqual(chunks[0].content, "int add(int a, int *b) { ... }")
        self.assertTrue(chunks[1].content.startswith("int main(void) {"))
        self.assertEqual(chunks[1].start_line, 15)
        self.assertTrue(all(c.language == "c" and c.path == "sample.c" for c in chunks))


class TestPythonChunks(unittest.TestCase):
    def test_class_collapsed_then_methods(self):
        source = load_bytes("greeter.py")
        chunks = list(chunker.chunk_source(source, "python", 12))
        self.assertEqual([(c.node_type, c.collapsed, c.start_line) for c in chunks], [
            ("class_definition", True, 1),
            ("function_definition", False, 2),
            ("function_definition", True, 5),
        ])

        container = chunks[0].content
        self.assertTrue(container.startswith("class Greeter:"))
        self.assertEqual(container.count("..."), 2)
        self.assertIn("def hello(self):", container)
        self.assertIn("def shout(self, name):", container)
        self.assertNotIn("return", container)

        self.assertEqual(chunks[1].content, 'def hello(self):\n        return "hi"')

        shout = chunks[2].content
        self.assertTrue(shout.startswith("class Greeter:"))
        self.assertIn("...\n\n    def shout(self, name):", shout)
        self.assertTrue(shout.endswith("..."))
        self.assertNotIn("upper", shout)


    def test_decorated_method_is_an_evictable_member(self):
        source = load_bytes("decorated.py")
        chunks = list(chunker.chunk_source(source, "python", 10))
        self.assertEqual([(c.node_type, c.collapsed, c.start_line) for c in chunks], [
            ("class_definition", True, 1),
            ("function_definition", False, 2),
            ("function_definition", False, 5),
            ("decorated_definition", True, 8),
        ])

        container = chunks[0].content
        self.assertIn("def g(self):", container)
        self.assertNotIn("@property", container)
        self.assertNotIn("7 + 8", container)

        self.assertEqual(
            chunks[3].content,
            "class A:\n    ...\n\n    @property\n    def h(self):\n        ...",
        )


class TestRustChunks(unittest.TestCase):
    def test_impl_evicts_last_method(self):
        source = load_bytes("counter.rs")
        chunks = list(chunker.chunk_source(source, "rust", 15))
        self.assertEqual([(c.node_type, c.collapsed) for c in chunks], [
            ("impl_item", True),
            ("function_item", False),
            ("function_item", False),
        ])
        self.assertEqual(chunks[0].content, "impl Counter {\n    fn new() -> Self { ... }\n    \n}")
        self.assertTrue(chunks[2].content.startswith("fn bump(&mut self) {"))


class TestChunkFile(unittest.TestCase):
    def test_reads_file_and_picks_grammar_by_extension(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "add.c"
            path.write_bytes(ADD_C)
            chunks = list(chunker.chunk_file(str(path), 8))
        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0].path, str(path))
        self.assertEqual(chunks[0].language, "c")

    def test_unsupported_extension_yields_nothing(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "notes.txt"
            path.write_text("just some words", encoding="utf-8")
            with self.assertLogs("chunker", level="WARNING"):
                chunks = list(chunker.chunk_file(str(path)))
        self.assertEqual(chunks, [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
