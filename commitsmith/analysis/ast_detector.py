"""Refactor Detector - compare old and new syntax trees of one file.

Parses both versions with tree-sitter and reports renames, structural
additions/removals/modifications and their impact on the public API. A file
whose grammar is not installed, or whose source does not parse cleanly,
yields an empty ASTAnalysis.
"""

import importlib
from dataclasses import dataclass
from importlib.util import find_spec
from pathlib import PurePosixPath
from typing import Any

import structlog
import tree_sitter

from commitsmith.analysis.models import ASTAnalysis, Refactoring, SemanticImpact, StructuralChange
from commitsmith.analysis.similarity import is_similar

log = structlog.get_logger(__name__)

# extension -> (grammar module, language function, dialect)
LANGUAGE_GRAMMARS: dict[str, tuple[str, str, str]] = {
    '.ts': ('tree_sitter_typescript', 'language_typescript', 'ecmascript'),
    '.mts': ('tree_sitter_typescript', 'language_typescript', 'ecmascript'),
    '.tsx': ('tree_sitter_typescript', 'language_tsx', 'ecmascript'),
    '.js': ('tree_sitter_javascript', 'language', 'ecmascript'),
    '.jsx': ('tree_sitter_javascript', 'language', 'ecmascript'),
    '.mjs': ('tree_sitter_javascript', 'language', 'ecmascript'),
    '.cjs': ('tree_sitter_javascript', 'language', 'ecmascript'),
    '.py': ('tree_sitter_python', 'language', 'python'),
}

FUNCTION_VALUE_TYPES = frozenset({
    'arrow_function', 'function_expression', 'function', 'generator_function',
})
CLASS_TYPES = frozenset({'class_declaration', 'abstract_class_declaration', 'class'})
FUNCTION_TYPES = frozenset({'function_declaration', 'generator_function_declaration'})
VARIABLE_TYPES = frozenset({'lexical_declaration', 'variable_declaration'})


@dataclass(frozen=True)
class Declaration:
    """A named declaration found in one version of a file."""
    name: str
    node_kind: str
    body: str
    start_line: int
    end_line: int
    is_public: bool = True
    class_name: str | None = None


def _text(node) -> str:
    if node is None or node.text is None:
        return ''
    return node.text.decode('utf-8', errors='replace')


def _declaration(node, name: str, node_kind: str, body_node, is_public: bool = True,
                 class_name: str | None = None) -> Declaration:
    return Declaration(
        name=name,
        node_kind=node_kind,
        body=_text(body_node) if body_node is not None else _text(node),
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
        is_public=is_public,
        class_name=class_name,
    )


# ----------------------------------------------------------------------
# ECMAScript (TypeScript / TSX / JavaScript)
# ----------------------------------------------------------------------

def _ecmascript_member_is_public(member) -> bool:
    for child in member.children:
        if child.type == 'accessibility_modifier' and _text(child) in ('private', 'protected'):
            return False
    name = member.child_by_field_name('name')
    if name is not None and name.type == 'private_property_identifier':
        return False
    return True


def _collect_ecmascript(root) -> list[Declaration]:
    declarations: list[Declaration] = []

    def visit(node, outer=None):
        outer = outer or node
        if node.type in FUNCTION_TYPES:
            name = node.child_by_field_name('name')
            if name is not None:
                declarations.append(_declaration(outer, _text(name), 'function', node.child_by_field_name('body')))

        elif node.type in VARIABLE_TYPES:
            for declarator in node.named_children:
                if declarator.type != 'variable_declarator':
                    continue
                value = declarator.child_by_field_name('value')
                name = declarator.child_by_field_name('name')
                if value is None or name is None or value.type not in FUNCTION_VALUE_TYPES:
                    continue
                declarations.append(_declaration(outer, _text(name), 'function', value.child_by_field_name('body')))

        elif node.type in CLASS_TYPES:
            name = node.child_by_field_name('name')
            body = node.child_by_field_name('body')
            if name is None:
                return
            class_name = _text(name)
            declarations.append(_declaration(outer, class_name, 'class', body))
            for member in (body.named_children if body is not None else []):
                if member.type != 'method_definition':
                    continue
                member_name = member.child_by_field_name('name')
                if member_name is None:
                    continue
                declarations.append(_declaration(
                    member,
                    f"{class_name}.{_text(member_name)}",
                    'method',
                    member.child_by_field_name('body'),
                    is_public=_ecmascript_member_is_public(member),
                    class_name=class_name,
                ))

        elif node.type == 'interface_declaration':
            name = node.child_by_field_name('name')
            if name is not None:
                declarations.append(_declaration(outer, _text(name), 'interface', node.child_by_field_name('body')))

        elif node.type == 'type_alias_declaration':
            name = node.child_by_field_name('name')
            if name is not None:
                declarations.append(_declaration(outer, _text(name), 'type', node.child_by_field_name('value')))

    for node in root.named_children:
        if node.type == 'export_statement':
            for child in node.named_children:
                visit(child, outer=node)
        else:
            visit(node)

    return declarations


# ----------------------------------------------------------------------
# Python
# ----------------------------------------------------------------------

def _python_is_public(name: str) -> bool:
    if name.startswith('__') and name.endswith('__'):
        return True
    return not name.startswith('_')


def _unwrap_decorated(node):
    if node.type == 'decorated_definition':
        return node.child_by_field_name('definition'), node
    return node, node


def _collect_python(root) -> list[Declaration]:
    declarations: list[Declaration] = []

    for top in root.named_children:
        node, outer = _unwrap_decorated(top)
        if node is None:
            continue
        name = node.child_by_field_name('name')
        if name is None:
            continue

        if node.type == 'function_definition':
            declarations.append(_declaration(
                outer, _text(name), 'function', node.child_by_field_name('body'),
                is_public=_python_is_public(_text(name)),
            ))

        elif node.type == 'class_definition':
            class_name = _text(name)
            body = node.child_by_field_name('body')
            declarations.append(_declaration(
                outer, class_name, 'class', body, is_public=_python_is_public(class_name),
            ))
            for member in (body.named_children if body is not None else []):
                method, method_outer = _unwrap_decorated(member)
                if method is None or method.type != 'function_definition':
                    continue
                method_name = _text(method.child_by_field_name('name'))
                declarations.append(_declaration(
                    method_outer,
                    f"{class_name}.{method_name}",
                    'method',
                    method.child_by_field_name('body'),
                    is_public=_python_is_public(class_name) and _python_is_public(method_name),
                    class_name=class_name,
                ))

    return declarations


COLLECTORS = {
    'ecmascript': _collect_ecmascript,
    'python': _collect_python,
}


class RefactorDetector:
    """Syntax-tree based rename and structural change detection."""

    RENAME_SIMILARITY = 0.9
    MODIFIED_SIMILARITY = 0.95

    # (declaration kind, refactoring kind, confidence, label)
    RENAME_RULES = [
        ('function', 'function_rename', 0.95, 'Function'),
        ('method', 'method_rename', 0.9, 'Method'),
        ('class', 'class_rename', 0.9, 'Class'),
    ]

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._languages: dict[str, Any] = {}
        self._available: set[str] = set()
        if enabled:
            installed = {module for module, _, _ in LANGUAGE_GRAMMARS.values() if find_spec(module) is not None}
            self._available = {ext for ext, (module, _, _) in LANGUAGE_GRAMMARS.items() if module in installed}
        log.debug("refactor_detector_ready", enabled=enabled, extensions=sorted(self._available))

    def supports_file(self, path: str) -> bool:
        return self.enabled and PurePosixPath(path).suffix.lower() in self._available

    def analyze_file_ast(self, path: str, old_content: str, new_content: str) -> ASTAnalysis:
        """Compare two versions of a file. Never raises."""
        if not self.supports_file(path):
            return ASTAnalysis()

        try:
            old_decls = self._parse_declarations(path, old_content)
            new_decls = self._parse_declarations(path, new_content)
        except (ValueError, TypeError) as e:
            log.debug("ast_parse_unavailable", file=path, error=str(e))
            return ASTAnalysis()

        if old_decls is None or new_decls is None:
            return ASTAnalysis()

        refactorings = self._detect_renames(path, old_decls, new_decls)
        structural = self._detect_structural_changes(path, old_decls, new_decls)
        impact = self._assess_semantic_impact(path, structural)

        return ASTAnalysis(
            refactorings=tuple(refactorings),
            structural_changes=tuple(structural),
            semantic_impact=tuple(impact),
        )

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _get_language(self, ext: str):
        if ext in self._languages:
            return self._languages[ext]
        module_name, func_name, _ = LANGUAGE_GRAMMARS[ext]
        try:
            module = importlib.import_module(module_name)
            language = tree_sitter.Language(getattr(module, func_name)())
        except (ImportError, AttributeError) as err:
            raise ValueError(f"Language not available: {module_name}") from err
        self._languages[ext] = language
        return language

    def _parse_declarations(self, path: str, content: str) -> list[Declaration] | None:
        """Declarations of one version, or None when it does not parse cleanly."""
        ext = PurePosixPath(path).suffix.lower()
        parser = tree_sitter.Parser()
        parser.language = self._get_language(ext)
        tree = parser.parse((content or '').encode('utf-8'))
        if tree.root_node.has_error:
            log.debug("ast_parse_error", file=path)
            return None
        dialect = LANGUAGE_GRAMMARS[ext][2]
        return COLLECTORS[dialect](tree.root_node)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def _detect_renames(self, path: str, old_decls: list[Declaration],
                        new_decls: list[Declaration]) -> list[Refactoring]:
        refactorings = []
        for decl_kind, refactor_kind, confidence, label in self.RENAME_RULES:
            old_map = {d.name: d for d in old_decls if d.node_kind == decl_kind}
            new_map = {d.name: d for d in new_decls if d.node_kind == decl_kind}
            vanished = [d for name, d in old_map.items() if name not in new_map]
            appeared = [d for name, d in new_map.items() if name not in old_map]

            claimed = set()
            for old in vanished:
                for new in appeared:
                    if new.name in claimed or old.class_name != new.class_name:
                        continue
                    if is_similar(old.body, new.body, self.RENAME_SIMILARITY):
                        claimed.add(new.name)
                        refactorings.append(Refactoring(
                            kind=refactor_kind,
                            source=old.name,
                            target=new.name,
                            confidence=confidence,
                            file=path,
                            description=f"{label} renamed from {old.name} to {new.name}",
                        ))
                        break
        return refactorings

    def _detect_structural_changes(self, path: str, old_decls: list[Declaration],
                                   new_decls: list[Declaration]) -> list[StructuralChange]:
        old_map: dict[str, Declaration] = {}
        new_map: dict[str, Declaration] = {}
        for d in old_decls:
            old_map.setdefault(d.name, d)
        for d in new_decls:
            new_map.setdefault(d.name, d)

        changes = []
        for name, new in new_map.items():
            old = old_map.get(name)
            if old is None:
                changes.append(self._change('added', new, path))
            elif old.body != new.body and not is_similar(old.body, new.body, self.MODIFIED_SIMILARITY):
                changes.append(self._change('modified', new, path, is_public=old.is_public or new.is_public))

        for name, old in old_map.items():
            if name not in new_map:
                changes.append(self._change('removed', old, path))

        return changes

    def _change(self, kind: str, decl: Declaration, path: str, is_public: bool | None = None) -> StructuralChange:
        return StructuralChange(
            kind=kind,
            node_kind=decl.node_kind,
            name=decl.name,
            file=path,
            line_range=(decl.start_line, decl.end_line),
            is_public_api=decl.is_public if is_public is None else is_public,
        )

    def _assess_semantic_impact(self, path: str, changes: list[StructuralChange]) -> list[SemanticImpact]:
        removed = [c.name for c in changes if c.kind == 'removed' and c.is_public_api]
        if removed:
            return [SemanticImpact(
                kind='breaking_change',
                file=path,
                severity='high',
                description=f"Public API removed or modified: {', '.join(removed)}",
            )]

        modified = [c.name for c in changes if c.kind == 'modified' and c.is_public_api]
        if modified:
            return [SemanticImpact(
                kind='api_change',
                file=path,
                severity='medium',
                description=f"Public API changed: {', '.join(modified)}",
            )]
        return []
