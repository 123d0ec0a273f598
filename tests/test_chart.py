import pytest

from hypothesis import given, settings
from hypothesis.strategies import lists, sampled_from

from earley import (
    Chart,
    ChartExhausted,
    Edge,
    Grammar,
    GrammarError,
    Nonterminal,
    Production,
    Terminal,
    alt,
    parse,
    rule,
    seq,
)


def _trees(grammar: Grammar, tokens) -> list:
    return [tree.to_tuple() for tree in parse(grammar, tokens)]


def _arith() -> Grammar:
    @rule("E")
    def expression():
        return alt(
            seq(expression, PLUS, expression),
            seq(expression, TIMES, expression),
            seq(LPAREN, expression, RPAREN),
            ONE,
        )

    PLUS = Terminal("+")
    TIMES = Terminal("*")
    LPAREN = Terminal("(")
    RPAREN = Terminal(")")
    ONE = Terminal("1")

    return Grammar.from_rule(expression)


def test_single_terminal():
    grammar = Grammar.from_dict("S", {"S": [["a"]]})

    chart = Chart(grammar, ["a"]).process_all()
    assert len(chart.complete_derivations()) == 1
    assert [t.to_tuple() for t in chart.derivation_trees()] == [("S", "a")]


def test_too_much_input():
    grammar = Grammar.from_dict("S", {"S": [["a"]]})

    chart = Chart(grammar, ["a", "a"]).process_all()
    assert chart.complete_derivations() == []
    assert not chart.accepts()


def test_too_little_input():
    grammar = Grammar.from_dict("S", {"S": [["a", "b"]]})
    assert _trees(grammar, ["a"]) == []


def test_ambiguity():
    grammar = Grammar.from_dict("S", {"S": [["A"], ["B"]], "A": [["x"]], "B": [["x"]]})

    chart = Chart(grammar, ["x"]).process_all()
    assert len(chart.complete_derivations()) == 2

    trees = [t.to_tuple() for t in chart.derivation_trees()]
    assert sorted(trees) == [("S", ("A", "x")), ("S", ("B", "x"))]


def test_left_recursion():
    grammar = Grammar.from_dict("S", {"S": [["S", "x"], ["x"]]})

    chart = Chart(grammar, ["x", "x", "x"]).process_all()
    assert len(chart.complete_derivations()) == 1

    (tree,) = chart.derivation_trees()
    assert tree.to_tuple() == ("S", ("S", ("S", "x"), "x"), "x")
    assert tree.depth() == 3


def test_scan_keeps_history():
    grammar = Grammar.from_dict("S", {"S": [["A", "b", "c"]], "A": [["a"]]})

    chart = Chart(grammar, ["a", "b", "c"]).process_all()
    (a,) = [i for i, e in enumerate(chart.edges) if e.lhs == Nonterminal("A") and e.at_end]

    scanned = [e for e in chart.edges if e.lhs == Nonterminal("S") and e.rule.position > 1]
    assert [e.format() for e in scanned] == [
        "S -> A b * c [0, 2)",
        "S -> A b c * [0, 3)",
    ]
    assert all(e.history == (a,) for e in scanned)


def test_right_recursion():
    grammar = Grammar.from_dict("S", {"S": [["x", "S"], ["x"]]})

    assert _trees(grammar, ["x", "x", "x"]) == [("S", "x", ("S", "x", ("S", "x")))]


def test_terminals_are_interleaved_in_order():
    grammar = Grammar.from_dict(
        "S",
        {
            "S": [["(", "A", ",", "A", ")"]],
            "A": [["x"], ["y"]],
        },
    )

    assert _trees(grammar, ["(", "y", ",", "x", ")"]) == [
        ("S", "(", ("A", "y"), ",", ("A", "x"), ")"),
    ]


def test_ambiguous_expressions():
    grammar = _arith()

    # Catalan numbers: 1, 2, 5.
    assert len(parse(grammar, "1 + 1".split())) == 1
    assert len(parse(grammar, "1 + 1 * 1".split())) == 2
    assert len(parse(grammar, "1 + 1 + 1 + 1".split())) == 5
    assert len(parse(grammar, "( 1 + 1 ) * 1".split())) == 1
    assert len(parse(grammar, "( 1 + 1 * 1".split())) == 0


def test_every_tree_is_different():
    trees = parse(_arith(), "1 + 1 + 1 + 1".split())
    assert len({t.to_tuple() for t in trees}) == len(trees)


def test_empty_input():
    grammar = Grammar.from_dict("S", {"S": [[]]})
    assert _trees(grammar, []) == [("S",)]
    assert _trees(grammar, ["a"]) == []


def test_nullable_nonterminals():
    grammar = Grammar.from_dict("S", {"S": [["A", "A"]], "A": [[], ["a"]]})

    assert sorted(_trees(grammar, ["a"])) == [
        ("S", ("A",), ("A", "a")),
        ("S", ("A", "a"), ("A",)),
    ]
    assert _trees(grammar, []) == [("S", ("A",), ("A",))]


def test_completion_before_anyone_waits():
    """The B branch reaches `S -> B * X` well after X has been completed at
    position 1 for the A branch. It still has to find that X.
    """
    grammar = Grammar.from_dict(
        "S",
        {
            "S": [["A", "X"], ["B", "X"]],
            "A": [["a"]],
            "B": [["D"]],
            "D": [["E"]],
            "E": [["a"]],
            "X": [["x"]],
        },
    )

    assert sorted(_trees(grammar, ["a", "x"])) == [
        ("S", ("A", "a"), ("X", "x")),
        ("S", ("B", ("D", ("E", "a"))), ("X", "x")),
    ]


def test_cyclic_grammar_terminates():
    grammar = Grammar.from_dict("A", {"A": [["A"], ["x"]]})
    assert _trees(grammar, ["x"]) == [("A", "x")]


def test_unit_cycle_terminates():
    grammar = Grammar.from_dict(
        "S",
        {
            "S": [["A"]],
            "A": [["B"], ["x"]],
            "B": [["A"]],
        },
    )
    assert _trees(grammar, ["x"]) == [("S", ("A", "x"))]


def test_empty_cycle_terminates():
    grammar = Grammar.from_dict("A", {"A": [["A", "A"], []]})

    assert _trees(grammar, []) == [("A",)]


def test_initial_edges():
    grammar = Grammar.from_dict("S", {"S": [["a"], ["S", "b"]]})

    chart = Chart(grammar, ["a"])
    assert [e.format() for e in chart.edges] == [
        "S -> * a [0, 0)",
        "S -> * S b [0, 0)",
    ]
    assert all(e.history == () for e in chart.edges)
    assert chart.more_to_process()


def test_process_one_is_fifo():
    grammar = Grammar.from_dict("S", {"S": [["a"], ["b"]]})

    chart = Chart(grammar, ["a"])
    first, second = chart.edges
    assert chart.process_one() == first
    assert chart.process_one() == second


def test_process_one_when_done():
    grammar = Grammar.from_dict("S", {"S": [["a"]]})

    chart = Chart(grammar, ["a"]).process_all()
    assert not chart.more_to_process()
    with pytest.raises(ChartExhausted):
        chart.process_one()


def test_undefined_nonterminal():
    S = Nonterminal("S")
    grammar = Grammar([Production(S, [Nonterminal("nope")])], start=S)

    chart = Chart(grammar, ["a"])
    with pytest.raises(GrammarError):
        chart.process_all()


def test_tokens_can_be_terminals():
    grammar = Grammar.from_dict("S", {"S": [["a", "b"]]})
    assert _trees(grammar, [Terminal("a"), Terminal("b")]) == [("S", "a", "b")]


def test_tokens_can_be_anything_hashable():
    S = Nonterminal("S")
    grammar = Grammar([Production(S, [Terminal(1), Terminal((2, 3))])], start=S)
    assert _trees(grammar, [1, (2, 3)]) == [("S", 1, (2, 3))]


def test_tree_for_edge():
    grammar = Grammar.from_dict("S", {"S": [["A", "b"]], "A": [["a"]]})

    chart = Chart(grammar, ["a", "b"]).process_all()
    (derivation,) = chart.complete_derivations()
    assert chart.tree(derivation).to_tuple() == ("S", ("A", "a"), "b")
    assert chart.tree(chart.index_of(derivation)) == chart.tree(derivation)


def test_fish():
    @rule("S")
    def sentence():
        return seq(noun_phrase, verb_phrase)

    @rule("NP")
    def noun_phrase():
        return noun | seq(noun, prepositional_phrase)

    @rule("PP")
    def prepositional_phrase():
        return seq(IN, noun_phrase)

    @rule("VP")
    def verb_phrase():
        return alt(
            verb,
            seq(verb, noun_phrase),
            seq(verb, verb_phrase),
            seq(verb_phrase, prepositional_phrase),
        )

    @rule("N")
    def noun():
        return alt(CAN, FISH, RIVERS, THEY)

    @rule("V")
    def verb():
        return CAN | FISH

    CAN = Terminal("can")
    FISH = Terminal("fish")
    RIVERS = Terminal("rivers")
    THEY = Terminal("they")
    IN = Terminal("in")

    grammar = Grammar.from_rule(sentence)
    assert sorted(_trees(grammar, "they can fish".split())) == [
        ("S", ("NP", ("N", "they")), ("VP", ("V", "can"), ("NP", ("N", "fish")))),
        ("S", ("NP", ("N", "they")), ("VP", ("V", "can"), ("VP", ("V", "fish")))),
    ]

    words = "they can fish in rivers".split()
    trees = parse(grammar, words)
    assert len(trees) > 2
    for tree in trees:
        assert [t.value for t in tree.leaves()] == words


def test_same_edges_every_time():
    grammar = _arith()
    tokens = "1 + 1 * 1 + 1".split()

    first = Chart(grammar, tokens).process_all()
    second = Chart(grammar, tokens).process_all()
    assert first.edges == second.edges
    assert first.complete_derivations() == second.complete_derivations()


def test_no_duplicate_edges():
    chart = Chart(_arith(), "1 + 1 * 1 + 1".split()).process_all()
    assert len(set(chart.edges)) == len(chart.edges)


def _check_chart(chart: Chart):
    tokens = chart.tokens
    start = chart.grammar.start

    for derivation in chart.complete_derivations():
        assert derivation.start == 0
        assert derivation.end == len(tokens)
        assert derivation.at_end
        assert derivation.lhs == start

    for index, edge in enumerate(chart.edges):
        matched = edge.rule.production.rhs[: edge.rule.position]
        assert len(edge.history) == len([s for s in matched if isinstance(s, Nonterminal)])
        assert edge.end - edge.start >= len([s for s in matched if isinstance(s, Terminal)])

        for child in edge.history:
            assert child < index
            assert chart.edges[child].at_end


@settings(deadline=None)
@given(lists(sampled_from(["1", "+", "*", "(", ")"]), max_size=7))
def test_arith_properties(tokens):
    chart = Chart(_arith(), tokens).process_all()
    assert not chart.more_to_process()
    _check_chart(chart)

    for tree in chart.derivation_trees():
        assert [t.value for t in tree.leaves()] == tokens


@settings(deadline=None)
@given(lists(sampled_from(["a", "b"]), max_size=5))
def test_nasty_grammar_properties(tokens):
    # Nullable, cyclic, and left- and right-recursive, all at once.
    grammar = Grammar.from_dict(
        "S",
        {
            "S": [["S", "S"], ["A"], []],
            "A": [["a"], ["A", "b"], ["S"]],
        },
    )

    chart = Chart(grammar, tokens).process_all()
    assert not chart.more_to_process()
    _check_chart(chart)

    again = Chart(grammar, tokens).process_all()
    assert len(again.edges) == len(chart.edges)


def test_edge_equality_includes_history():
    grammar = Grammar.from_dict(
        "S",
        {
            "S": [["X"]],
            "X": [["A"], ["B"]],
            "A": [["x"]],
            "B": [["x"]],
        },
    )
    chart = Chart(grammar, ["x"]).process_all()

    # Same rule, same span, different derivations: two edges.
    first, second = chart.complete_derivations()
    assert first.rule == second.rule
    assert (first.start, first.end) == (second.start, second.end)
    assert first.history != second.history
    assert first != second
    assert first == Edge(first.rule, first.start, first.end, first.history)
