"""Derivation trees, and the code that rebuilds them from chart edges.

The chart never stores trees. Each edge remembers only the edges for the
nonterminals it has matched so far (its history), as indices into the chart's
list of edges. Terminals leave no history at all, so when we rebuild a tree we
walk the production's right-hand side and put the terminal leaves back where
they belong.
"""

import typing
from dataclasses import dataclass

from .grammar import Nonterminal, Symbol, Terminal

if typing.TYPE_CHECKING:
    from .chart import Edge


class DerivationError(RuntimeError):
    """Rebuilding a tree found an edge that is (transitively) part of its own
    history. The chart never builds such edges, so this means the edges were
    tampered with or came from somewhere else.
    """

    pass


@dataclass(frozen=True)
class Tree:
    """One node of a derivation tree.

    Interior nodes are labelled with a Nonterminal; leaves are labelled with
    the Terminal they matched. `start` and `end` are token positions, so a
    leaf always covers exactly one token and a nonterminal that derived the
    empty string covers none.
    """

    label: Symbol
    start: int
    end: int
    children: typing.Tuple["Tree", ...] = ()

    @property
    def is_leaf(self) -> bool:
        return isinstance(self.label, Terminal)

    def leaves(self) -> list[Terminal]:
        """The terminals at the bottom of the tree, left to right."""
        result = []
        stack = [self]
        while len(stack) > 0:
            node = stack.pop()
            if isinstance(node.label, Terminal):
                result.append(node.label)
            else:
                stack.extend(reversed(node.children))
        return result

    def depth(self) -> int:
        """The number of nonterminal nodes on the longest path from the root."""
        best = 0
        stack = [(self, 0)]
        while len(stack) > 0:
            node, d = stack.pop()
            if isinstance(node.label, Nonterminal):
                d += 1
                best = max(best, d)
                stack.extend((child, d) for child in node.children)
        return best

    def to_tuple(self) -> typing.Any:
        """The tree as nested tuples of raw symbol values: a leaf is just its
        value, and a node is (value, child, child, ...). This is mostly for
        writing tests, because it is much shorter than spelling out Trees.
        """
        return self._bottom_up(
            lambda node, children: (
                node.label.value
                if isinstance(node.label, Terminal)
                else (node.label.value,) + tuple(children)
            )
        )

    def format_lines(self) -> list[str]:
        lines = []
        stack = [(self, 0)]
        while len(stack) > 0:
            node, indent = stack.pop()
            lines.append((" " * indent) + f"{node.label} [{node.start}, {node.end})")
            stack.extend((child, indent + 2) for child in reversed(node.children))
        return lines

    def format(self) -> str:
        return "\n".join(self.format_lines())

    def draw_lines(self) -> list[str]:
        """Draw the tree top-down with ASCII branches, leaves along the
        bottom:

            VP
            |___
            |   |
            V   N
            |   |
            can fish
        """
        return self._bottom_up(_draw_node)

    def draw(self) -> str:
        return "\n".join(line.rstrip() for line in self.draw_lines())

    def __str__(self) -> str:
        return self.format()

    def _bottom_up(self, combine: typing.Callable[["Tree", list], typing.Any]) -> typing.Any:
        """Fold the tree from the leaves up, calling `combine(node, results)`
        once per node with the results for its children.

        Like `derive`, this keeps its own stack so that deep trees don't run
        into the recursion limit.
        """
        results: list[typing.Any] = []
        stack: list[typing.Tuple[Tree, bool]] = [(self, False)]
        while len(stack) > 0:
            node, expanded = stack.pop()
            if not expanded:
                stack.append((node, True))
                stack.extend((child, False) for child in reversed(node.children))
                continue

            # The children finished last, so their results are on top.
            count = len(node.children)
            children = results[len(results) - count :]
            del results[len(results) - count :]
            results.append(combine(node, children))

        return results[0]


def _draw_node(node: Tree, blocks: list[list[str]]) -> list[str]:
    label = str(node.label)
    if len(blocks) == 0:
        return [label]
    if len(blocks) == 1:
        return [label, "|"] + blocks[0]

    height = max(len(block) for block in blocks)

    # Hang every subtree from the branch, stretching the shorter ones so
    # that all of them end on the same line.
    blocks = [["|"] * (height - len(block) + 1) + block for block in blocks]

    branch_length = 0
    for block in blocks[:-1]:
        width = max(len(line) for line in block) + 1
        branch_length += width
        block[:] = [line.ljust(width) for line in block]

    rows = ["".join(block[i] for block in blocks) for i in range(height + 1)]
    return [label, "|" + "_" * (branch_length - 1)] + rows


def derive(edges: typing.Sequence["Edge"], index: int) -> Tree:
    """Rebuild the tree for `edges[index]` from the histories in `edges`.

    This is a depth-first walk with an explicit stack instead of recursion,
    because long inputs with left- or right-recursive rules make trees far
    deeper than Python's recursion limit.

    The edge does not need to be complete: an incomplete edge yields the tree
    for the part of its rule to the left of the dot.
    """
    built: dict[int, Tree] = {}
    on_path: set[int] = set()

    stack: list[typing.Tuple[int, bool]] = [(index, False)]
    while len(stack) > 0:
        current, expanded = stack.pop()
        if current in built:
            continue

        edge = edges[current]
        if expanded:
            on_path.discard(current)
            built[current] = _node(edge, [built[h] for h in edge.history])
            continue

        if current in on_path:
            raise DerivationError(f"Edge {current} ({edge.format()}) is part of its own history")
        on_path.add(current)

        stack.append((current, True))
        for child in reversed(edge.history):
            if child not in built:
                stack.append((child, False))

    return built[index]


def _node(edge: "Edge", subtrees: list[Tree]) -> Tree:
    """Interleave the subtrees for the nonterminals with fresh leaves for the
    terminals, in right-hand-side order.
    """
    children = []
    remaining = iter(subtrees)
    position = edge.start
    for symbol in edge.rule.production.rhs[: edge.rule.position]:
        match symbol:
            case Terminal():
                children.append(Tree(symbol, position, position + 1))
                position += 1

            case Nonterminal():
                subtree = next(remaining, None)
                if subtree is None:
                    raise DerivationError(
                        f"Edge {edge.format()} has fewer history entries than nonterminals"
                    )
                children.append(subtree)
                position = subtree.end

            case _:
                typing.assert_never(symbol)

    return Tree(edge.rule.lhs, edge.start, edge.end, tuple(children))
