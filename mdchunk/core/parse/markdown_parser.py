from typing import List
from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

class MarkdownParser:
    """
    Thin wrapper around markdown-it-py.
    Produces the top-level block nodes of a document; the tree is never mutated.
    """

    def __init__(self):
        self.md = MarkdownIt("commonmark", {"html": True}).enable(["table", "strikethrough"])

    def parse(self, text: str) -> List[SyntaxTreeNode]:
        tokens = self.md.parse(text)
        root = SyntaxTreeNode(tokens)
        return list(root.children)
