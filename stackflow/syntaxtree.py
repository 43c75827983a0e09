"""Resolve template paths to source spans."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import yaml
from lsprotocol.types import Position, Range

from .documents import DocumentStore, DocumentType, detect_document_type

logger = logging.getLogger(__name__)


class SyntaxTree(Protocol):
    def resolve_path(self, segments: Sequence[str]) -> Optional[Range]:
        """Return the span for a resource/property path, if present."""


class SyntaxTreeProvider(Protocol):
    def get_tree(self, uri: str) -> Optional[SyntaxTree]:
        """Return the syntax tree for ``uri``, if it can be parsed."""


def split_path(path: str) -> List[str]:
    """Split ``Resources/Bucket/Properties/BucketName`` (or a dotted path)."""
    separator = "/" if "/" in path else "."
    return [segment for segment in path.split(separator) if segment]


def _mark_to_position(mark: yaml.Mark) -> Position:
    return Position(line=mark.line, character=mark.column)


class YamlSyntaxTree(SyntaxTree):
    """Syntax tree over PyYAML's composed node graph.

    JSON templates are composed by the same parser. Short-form intrinsic
    tags such as ``!Ref`` are kept as node tags and never constructed.
    """

    def __init__(self, root: yaml.Node) -> None:
        self._root = root

    @classmethod
    def parse(
        cls, body: str, document_type: Optional[DocumentType] = None
    ) -> Optional["YamlSyntaxTree"]:
        if (document_type or detect_document_type("", body)) == DocumentType.JSON:
            # JSON strings cannot hold a raw tab, so this only rewrites indentation.
            body = body.replace("\t", " ")
        try:
            root = yaml.compose(body, Loader=yaml.SafeLoader)
        except yaml.YAMLError as e:
            logger.warning(f"Unable to parse template: {e}")
            return None
        if root is None:
            return None
        return cls(root)

    def resolve_path(self, segments: Sequence[str]) -> Optional[Range]:
        if not segments:
            return None

        node = self._root
        key_node: Optional[yaml.Node] = None
        for segment in segments:
            found = self._child(node, segment)
            if found is None:
                return None
            key_node, node = found

        return Range(
            start=_mark_to_position(key_node.start_mark),
            end=_mark_to_position(node.end_mark),
        )

    @staticmethod
    def _child(node: yaml.Node, segment: str) -> Optional[Tuple[yaml.Node, yaml.Node]]:
        if isinstance(node, yaml.MappingNode):
            for key, value in node.value:
                if isinstance(key, yaml.ScalarNode) and key.value == segment:
                    return key, value
        elif isinstance(node, yaml.SequenceNode) and segment.isdigit():
            index = int(segment)
            if index < len(node.value):
                item = node.value[index]
                return item, item
        return None


class YamlSyntaxTreeProvider(SyntaxTreeProvider):
    """Parses open documents on demand, caching by document text."""

    def __init__(self, documents: DocumentStore) -> None:
        self._documents = documents
        self._cache: Dict[str, Tuple[str, Optional[YamlSyntaxTree]]] = {}

    def get_tree(self, uri: str) -> Optional[YamlSyntaxTree]:
        document = self._documents.get(uri)
        if document is None:
            self._cache.pop(uri, None)
            return None

        cached = self._cache.get(uri)
        if cached is not None and cached[0] == document.body:
            return cached[1]

        tree = YamlSyntaxTree.parse(document.body, document.type)
        self._cache[uri] = (document.body, tree)
        return tree
