"""The Earley chart.

A chart is built once for a grammar and an input, and then driven to a fixed
point one edge at a time. Every edge we discover goes into `Chart.edges` (an
append-only list, so an edge's index is also its discovery order) and onto a
FIFO worklist. Processing an edge does one of three things, depending on what
comes after the dot:

- nothing (the rule is complete): *complete*. Advance every edge that was
  waiting for this nonterminal at the place where this edge starts.
- a nonterminal: *predict*. Add a fresh, empty edge for each of its
  productions right here, and advance over any edge that already completed
  that nonterminal here.
- a terminal: *scan*. If the next token matches, advance over it; otherwise
  this line of inquiry just dies.

Completion happens from both directions on purpose. An edge that starts
waiting for X *after* X was already completed at that position (this is what
nullable nonterminals do all the time, and what differing discovery orders do
occasionally) gets advanced when it is processed, and an X that completes
after somebody started waiting gets pushed to them when *it* is processed.
Whichever one is processed second sees the other, so no derivation is lost.

Edges compare equal only if their rule, span *and* history are equal. That
means two different derivations of the same thing are two different edges,
and that is how we find every parse of an ambiguous sentence. All new edges
go through `_add_edge`, which refuses duplicates; that is what makes recursive
grammars terminate.

It is not quite enough on its own, though: with history in the mix a grammar
like `A -> A | x` can derive A from A forever over the same span, making a
new, distinct edge every time. So the gate also refuses complete edges that
contain a complete edge for the same nonterminal over the same span. Those
derivations are cycles; dropping them leaves a finite set of edges for any
finite grammar and input.
"""

import collections
import enum
import logging
import typing

from .grammar import DottedRule, Grammar, Nonterminal, Terminal
from .tree import Tree, derive


chart_log = logging.getLogger("earley.chart")


class ChartExhausted(RuntimeError):
    """Raised by `Chart.process_one` when there is nothing left to process."""

    pass


class Edge(typing.NamedTuple):
    """A dotted rule that has matched the tokens in [start, end).

    `history` holds the indices (into `Chart.edges`) of the complete edges
    that matched the nonterminals to the left of the dot, in order. Terminals
    do not appear in the history; their position in the rule says everything.
    """

    rule: DottedRule
    start: int
    end: int
    history: typing.Tuple[int, ...] = ()

    @property
    def lhs(self) -> Nonterminal:
        return self.rule.lhs

    @property
    def at_end(self) -> bool:
        return self.rule.at_end

    def format(self) -> str:
        return f"{self.rule.format()} [{self.start}, {self.end})"


class Action(enum.Enum):
    """The step that discovered an edge."""

    Seed = "seed"
    Predict = "predict"
    Scan = "scan"
    Complete = "complete"


class TraceRow(typing.NamedTuple):
    index: int
    edge: Edge
    action: Action

    @property
    def history(self) -> typing.Tuple[int, ...]:
        return self.edge.history


class Trace:
    """Every edge the chart accepted, in the order it accepted them, along
    with the step that produced it.

    The history in each row refers back to earlier rows by number. (Since the
    chart keeps its edges in discovery order this is the same numbering as
    `Chart.edges`.)
    """

    rows: list[TraceRow]

    def __init__(self):
        self.rows = []

    def append(self, edge: Edge, action: Action) -> TraceRow:
        row = TraceRow(index=len(self.rows), edge=edge, action=action)
        self.rows.append(row)
        return row

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> typing.Iterator[TraceRow]:
        return iter(self.rows)

    def __getitem__(self, index: int) -> TraceRow:
        return self.rows[index]

    def format(self) -> str:
        """Format the trace as a numbered table."""
        rules = [row.edge.rule.format() for row in self.rows]
        width = max([len("rule")] + [len(r) for r in rules])

        def format_row(index, rule, start, end, action, history) -> str:
            return f"{index: >4} | {rule: <{width}} | {start: >5} | {end: >5} | {action: <8} | {history}"

        header = format_row("#", "rule", "start", "end", "action", "history")
        lines = [header, "-" * len(header)] + [
            format_row(
                row.index,
                rule,
                row.edge.start,
                row.edge.end,
                row.action.value,
                " ".join(str(h) for h in row.history),
            ).rstrip()
            for row, rule in zip(self.rows, rules)
        ]
        return "\n".join(lines)


class Chart:
    """The state of one parse: a grammar, an input, and every edge found so
    far.

    Nothing here is shared between charts, so you can have as many of them
    as you like going at once. A single chart is not thread-safe.
    """

    grammar: Grammar
    tokens: typing.Tuple[typing.Hashable, ...]
    edges: list[Edge]
    trace: Trace | None

    # Edge -> index in `edges`, for the duplicate check.
    _index: dict[Edge, int]
    # Indices of edges not yet processed.
    _pending: collections.deque[int]
    # Indices of complete start-symbol edges that span the whole input.
    _derivations: list[int]
    # (nonterminal, position) -> incomplete edges ending at position whose
    # next symbol is the nonterminal.
    _waiting: dict[typing.Tuple[Nonterminal, int], list[int]]
    # (nonterminal, position) -> complete edges for the nonterminal that
    # start at position.
    _completed: dict[typing.Tuple[Nonterminal, int], list[int]]
    # Per edge, the nonterminals of the complete edges reachable through
    # history without the span changing.
    _same_span: list[frozenset[Nonterminal]]

    def __init__(
        self,
        grammar: Grammar,
        tokens: typing.Iterable[typing.Hashable],
        *,
        trace: bool = False,
    ):
        self.grammar = grammar
        self.tokens = tuple(t.value if isinstance(t, Terminal) else t for t in tokens)
        self.edges = []
        self.trace = Trace() if trace else None

        self._index = {}
        self._pending = collections.deque()
        self._derivations = []
        self._waiting = {}
        self._completed = {}
        self._same_span = []

        for production in grammar.productions_for(grammar.start):
            self._add_edge(Edge(DottedRule.from_production(production), 0, 0), Action.Seed)

    def more_to_process(self) -> bool:
        return len(self._pending) > 0

    def process_all(self) -> "Chart":
        """Process edges until there are none left."""
        while len(self._pending) > 0:
            self.process_one()

        if chart_log.isEnabledFor(logging.INFO):
            chart_log.info(
                "%d tokens: %d edges, %d complete derivations",
                len(self.tokens),
                len(self.edges),
                len(self._derivations),
            )
        return self

    def process_one(self) -> Edge:
        """Process the next pending edge, returning it.

        Calling this when there is nothing left to do is a bug in the caller,
        and raises ChartExhausted.
        """
        if len(self._pending) == 0:
            raise ChartExhausted("No edges left to process")

        index = self._pending.popleft()
        edge = self.edges[index]

        cl = chart_log
        if cl.isEnabledFor(logging.DEBUG):
            cl.debug("{index: >4} {edge}".format(index=index, edge=edge.format()))

        match edge.rule.next:
            case None:
                self._complete(index, edge)

            case Nonterminal() as nonterminal:
                self._predict(index, edge, nonterminal)

            case Terminal() as terminal:
                self._scan(edge, terminal)

            case _:
                typing.assert_never(edge.rule.next)

        return edge

    def _complete(self, index: int, edge: Edge):
        lhs = edge.rule.lhs
        if lhs == self.grammar.start and edge.start == 0 and edge.end == len(self.tokens):
            chart_log.debug("     complete derivation")
            self._derivations.append(index)

        # NOTE: Build the whole list before adding anything; adding can
        #       extend the list we're reading.
        new_edges = [self._advance(waiting, index) for waiting in self._waiting.get((lhs, edge.start), ())]
        for new_edge in new_edges:
            self._add_edge(new_edge, Action.Complete)

    def _predict(self, index: int, edge: Edge, nonterminal: Nonterminal):
        for production in self.grammar.productions_for(nonterminal):
            self._add_edge(
                Edge(DottedRule.from_production(production), edge.end, edge.end),
                Action.Predict,
            )

        new_edges = [self._advance(index, done) for done in self._completed.get((nonterminal, edge.end), ())]
        for new_edge in new_edges:
            self._add_edge(new_edge, Action.Complete)

    def _scan(self, edge: Edge, terminal: Terminal):
        # Terminals add nothing to the history, but the nonterminals already
        # matched still have to come along.
        if edge.end < len(self.tokens) and self.tokens[edge.end] == terminal.value:
            self._add_edge(
                Edge(edge.rule.advance(), edge.start, edge.end + 1, edge.history),
                Action.Scan,
            )
        elif chart_log.isEnabledFor(logging.DEBUG):
            chart_log.debug("     no match for %s at %d", terminal, edge.end)

    def _advance(self, waiting: int, child: int) -> Edge:
        """Advance the dot of edge `waiting` over the complete edge `child`."""
        edge = self.edges[waiting]
        return Edge(
            rule=edge.rule.advance(),
            start=edge.start,
            end=self.edges[child].end,
            history=edge.history + (child,),
        )

    def _add_edge(self, edge: Edge, action: Action) -> bool:
        """The insertion gate: add the edge unless it's already here (or is a
        cyclic derivation), returning True if it was added.
        """
        if edge in self._index:
            return False

        same_span = frozenset(
            symbol
            for child in edge.history
            if self.edges[child].start == edge.start and self.edges[child].end == edge.end
            for symbol in self._same_span[child] | {self.edges[child].lhs}
        )
        if edge.rule.at_end and edge.rule.lhs in same_span:
            if chart_log.isEnabledFor(logging.DEBUG):
                chart_log.debug("     dropping cyclic derivation %s", edge.format())
            return False

        index = len(self.edges)
        self.edges.append(edge)
        self._index[edge] = index
        self._same_span.append(same_span)
        self._pending.append(index)

        match edge.rule.next:
            case None:
                self._completed.setdefault((edge.rule.lhs, edge.start), []).append(index)
            case Nonterminal() as nonterminal:
                self._waiting.setdefault((nonterminal, edge.end), []).append(index)
            case _:
                pass

        if self.trace is not None:
            self.trace.append(edge, action)

        return True

    def index_of(self, edge: Edge) -> int:
        """The position of the edge in `edges`. Raises KeyError if the edge
        is not in this chart.
        """
        return self._index[edge]

    def complete_derivations(self) -> list[Edge]:
        """The complete derivations found so far, in the order they were
        found.
        """
        return [self.edges[i] for i in self._derivations]

    def accepts(self) -> bool:
        return len(self._derivations) > 0

    def tree(self, edge: Edge | int) -> Tree:
        """Rebuild the derivation tree for an edge (or an edge index)."""
        if isinstance(edge, Edge):
            edge = self.index_of(edge)
        return derive(self.edges, edge)

    def derivation_trees(self) -> list[Tree]:
        return [derive(self.edges, i) for i in self._derivations]


def parse(grammar: Grammar, tokens: typing.Iterable[typing.Hashable]) -> list[Tree]:
    """Parse the tokens all the way, returning every derivation tree. An
    empty list means the tokens are not in the language.
    """
    return Chart(grammar, tokens).process_all().derivation_trees()
