"""Grammars for the Earley chart parser.

A grammar here is nothing fancier than a bag of productions and a start
symbol. Symbols wrap whatever hashable values you like: strings, small enums,
interned whatever. Two symbols are the same symbol if they wrap equal values
and are of the same kind, so `Terminal("a")` and `Nonterminal("a")` never
collide.

There are three ways to build one. The most direct is to hand over the
productions yourself:

    S = Nonterminal("S")
    grammar = Grammar([Production(S, [Terminal("a")])], start=S)

If you are happy with strings you can use the table form, where every key is
a nonterminal and anything else on a right-hand side is a terminal:

    grammar = Grammar.from_dict("S", {"S": [["a"], ["S", "a"]]})

And if you want your tools to help you (jump-to-definition, typo detection,
all that) you can write rules as decorated Python functions:

    @rule
    def S():
        return seq(S, A) | A

    A = Terminal("a")

    grammar = Grammar.from_rule(S)
"""

import abc
import dataclasses
import inspect
import logging
import typing


grammar_log = logging.getLogger("earley.grammar")


class GrammarError(ValueError):
    """Something is wrong with the grammar in a way that means no parse can
    ever make progress: a start symbol with no productions, a nonterminal
    nobody defined, two rules with the same name.
    """

    pass


###############################################################################
# Sugar for constructing grammars
###############################################################################
FlattenedRule = list["Terminal | Nonterminal | RuleDefinition"]


class Rule:
    """A terminal, a nonterminal, or some other combination thereof. Rules are
    composed and then flattened into productions.
    """

    def __or__(self, other) -> "Rule":
        return AlternativeRule(self, other)

    def __add__(self, other) -> "Rule":
        return SequenceRule(self, other)

    @abc.abstractmethod
    def flatten(self) -> typing.Generator[FlattenedRule, None, None]:
        """Convert this potentially nested and branching set of rules into a
        series of nice, flat symbol lists.

        e.g., if this rule is (X + (A | (B + C | D))) then flattening will
        yield something like:

            ["X", "A"]
            ["X", "B", "C"]
            ["X", "B", "D"]
        """
        raise NotImplementedError()


###############################################################################
# Symbols
###############################################################################
@dataclasses.dataclass(frozen=True, slots=True)
class Terminal(Rule):
    """A terminal symbol: matches exactly one input token equal to `value`."""

    value: typing.Hashable

    def flatten(self) -> typing.Generator[FlattenedRule, None, None]:
        yield [self]

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"Terminal({self.value!r})"


@dataclasses.dataclass(frozen=True, slots=True)
class Nonterminal(Rule):
    """A nonterminal symbol, expanded by the productions whose left-hand side
    it is.
    """

    value: typing.Hashable

    def flatten(self) -> typing.Generator[FlattenedRule, None, None]:
        yield [self]

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"Nonterminal({self.value!r})"


Symbol = Terminal | Nonterminal


@dataclasses.dataclass(frozen=True, slots=True)
class Production:
    """A rewrite rule, `lhs -> rhs`. The right-hand side may be empty."""

    lhs: Nonterminal
    rhs: tuple[Symbol, ...]

    def __init__(self, lhs: Nonterminal, rhs: typing.Iterable[Symbol] = ()):
        object.__setattr__(self, "lhs", lhs)
        object.__setattr__(self, "rhs", tuple(rhs))

    def format(self) -> str:
        if len(self.rhs) == 0:
            return f"{self.lhs} ->"
        return f"{self.lhs} -> {' '.join(str(s) for s in self.rhs)}"

    def __str__(self) -> str:
        return self.format()


class DottedRule(typing.NamedTuple):
    """A production with a position marker (the "dot") in it. Everything to
    the left of the dot has been matched, everything to the right has not.

    We make a lot of these, so they are small, immutable, and hashable.
    """

    production: Production
    position: int

    @classmethod
    def from_production(cls, production: Production, position: int = 0) -> "DottedRule":
        if position < 0 or position > len(production.rhs):
            raise ValueError(
                f"Attempted to create a dotted rule at position {position}, but "
                f"`{production.format()}` only has {len(production.rhs)} symbols"
            )
        return DottedRule(production=production, position=position)

    @property
    def lhs(self) -> Nonterminal:
        return self.production.lhs

    @property
    def at_end(self) -> bool:
        return self.position == len(self.production.rhs)

    @property
    def next(self) -> Symbol | None:
        """The symbol right after the dot, or None if the rule is complete."""
        if self.at_end:
            return None
        return self.production.rhs[self.position]

    def advance(self) -> "DottedRule":
        """Move the dot over one symbol. Advancing a complete rule is a bug in
        the caller, not a parse failure, and raises ValueError.
        """
        if self.at_end:
            raise ValueError(f"Attempted to advance the dot past the end of `{self.format()}`")
        return DottedRule(production=self.production, position=self.position + 1)

    def format(self) -> str:
        bits = [
            ("* " + str(sym)) if i == self.position else str(sym)
            for i, sym in enumerate(self.production.rhs)
        ]
        if self.at_end:
            bits.append("*")
        return f"{self.production.lhs} -> {' '.join(bits)}"

    def __repr__(self) -> str:
        return self.format()


###############################################################################
# More sugar
###############################################################################
class RuleDefinition(Rule):
    """A nonterminal along with the function that defines its body.

    You probably don't want to create this directly; instead you probably want
    to use the `@rule` decorator.
    """

    fn: typing.Callable[[], Rule]
    name: str
    definition_location: str
    _body: list[FlattenedRule] | None

    def __init__(self, fn: typing.Callable[[], Rule], name: str | None = None):
        self.fn = fn
        self.name = name or fn.__name__
        self._body = None

        # The first frame outside this module is where the rule was written.
        stack = inspect.stack()
        caller = next((f for f in stack[1:] if f.filename != __file__), stack[1])
        self.definition_location = f"{caller.filename}:{caller.lineno}"

    @property
    def symbol(self) -> Nonterminal:
        return Nonterminal(self.name)

    @property
    def body(self) -> list[FlattenedRule]:
        """The flattened body of the rule, one list per alternative."""
        if self._body is None:
            self._body = list(self.fn().flatten())
        return self._body

    def flatten(self) -> typing.Generator[FlattenedRule, None, None]:
        # When flattened we're being asked in the context of some other
        # production. Yield ourselves, and trust that in time we will be
        # asked to generate our body.
        yield [self]

    def __repr__(self) -> str:
        return self.name


class AlternativeRule(Rule):
    """A rule that matches if one or another rule matches."""

    def __init__(self, left: Rule, right: Rule):
        self.left = left
        self.right = right

    def flatten(self) -> typing.Generator[FlattenedRule, None, None]:
        yield from self.left.flatten()
        yield from self.right.flatten()


class SequenceRule(Rule):
    """A rule that matches if a first part matches, followed by a second part."""

    def __init__(self, first: Rule, second: Rule):
        self.first = first
        self.second = second

    def flatten(self) -> typing.Generator[FlattenedRule, None, None]:
        for first in self.first.flatten():
            for second in self.second.flatten():
                yield first + second


class NothingRule(Rule):
    """A rule that matches no input. Use the singleton `Nothing`."""

    def flatten(self) -> typing.Generator[FlattenedRule, None, None]:
        yield []


Nothing = NothingRule()


def alt(*args: Rule) -> Rule:
    """A rule that matches one of a series of alternatives."""
    result = args[0]
    for rule in args[1:]:
        result = AlternativeRule(result, rule)
    return result


def seq(*args: Rule) -> Rule:
    """A rule that matches a sequence of rules."""
    result = args[0]
    for rule in args[1:]:
        result = SequenceRule(result, rule)
    return result


def opt(*args: Rule) -> Rule:
    """Mark a sequence as optional."""
    return AlternativeRule(seq(*args), Nothing)


@typing.overload
def rule(f: typing.Callable, /) -> RuleDefinition: ...


@typing.overload
def rule(name: str | None = None) -> typing.Callable[[typing.Callable[[], Rule]], RuleDefinition]: ...


def rule(
    name: str | None | typing.Callable = None,
) -> RuleDefinition | typing.Callable[[typing.Callable[[], Rule]], RuleDefinition]:
    """The decorator that marks a function as a nonterminal rule.

    It can be called with or without arguments. If called with one argument,
    that argument is a name that overrides the name of the nonterminal, which
    defaults to the name of the function.
    """
    if callable(name):
        return rule()(name)

    def wrapper(f: typing.Callable[[], Rule]):
        return RuleDefinition(f, name)

    return wrapper


def gather_rules(start: RuleDefinition) -> list[Production]:
    """Starting from the given rule, gather every rule reachable from it and
    flatten them all into productions. The start rule's productions come
    first.
    """
    # NOTE: A dict as an ordered set, so the start rule stays first.
    rules: dict[RuleDefinition, None] = {}
    terminals: set[Terminal] = set()

    queue: list[RuleDefinition] = [start]
    while len(queue) > 0:
        definition = queue.pop()
        if definition in rules:
            continue
        rules[definition] = None

        for alternative in definition.body:
            for symbol in alternative:
                match symbol:
                    case RuleDefinition():
                        if symbol not in rules:
                            queue.append(symbol)
                    case Terminal():
                        terminals.add(symbol)
                    case Nonterminal():
                        pass
                    case _:
                        typing.assert_never(symbol)

    named_rules: dict[str, RuleDefinition] = {}
    for definition in rules:
        existing = named_rules.get(definition.name)
        if existing is not None:
            raise GrammarError(
                f"""Found more than one rule named {definition.name}:
- {existing.definition_location}
- {definition.definition_location}"""
            )
        named_rules[definition.name] = definition

    for terminal in terminals:
        existing = named_rules.get(terminal.value)
        if existing is not None:
            raise GrammarError(
                f"Found a terminal and a rule both named {terminal.value} "
                f"(the rule was defined at {existing.definition_location})"
            )

    grammar_log.debug("gathered %d rules and %d terminals", len(rules), len(terminals))
    return [
        Production(
            definition.symbol,
            [s.symbol if isinstance(s, RuleDefinition) else s for s in alternative],
        )
        for definition in rules
        for alternative in definition.body
    ]


###############################################################################
# Finally, the grammar class.
###############################################################################
class Grammar:
    """A set of productions and a start symbol, with the productions grouped
    by left-hand side so that prediction is a dictionary lookup.

    Order among the alternatives of a nonterminal is the order they were
    given in. It carries no meaning, but it does make chart traces repeatable.
    """

    start: Nonterminal
    _productions: dict[Nonterminal, list[Production]]

    def __init__(self, productions: typing.Iterable[Production], start: Nonterminal):
        by_lhs: dict[Nonterminal, list[Production]] = {}
        for production in productions:
            by_lhs.setdefault(production.lhs, []).append(production)

        if start not in by_lhs:
            raise GrammarError(f"The start symbol {start} has no productions")

        self.start = start
        self._productions = by_lhs

    @classmethod
    def from_dict(
        cls,
        start: typing.Hashable,
        table: dict[typing.Hashable, list[list[typing.Hashable]]],
    ) -> "Grammar":
        """Build a grammar from the plain table form:

            {
                'E': [['E', '+', 'T'], ['T']],
                'T': [['(', 'E', ')'], ['id']],
            }

        Anything that is a key is a nonterminal; everything else on a
        right-hand side is a terminal.
        """

        def to_symbol(value) -> Symbol:
            if value in table:
                return Nonterminal(value)
            return Terminal(value)

        return cls(
            [
                Production(Nonterminal(lhs), [to_symbol(v) for v in alternative])
                for lhs, alternatives in table.items()
                for alternative in alternatives
            ],
            start=Nonterminal(start),
        )

    @classmethod
    def from_rule(cls, start: RuleDefinition) -> "Grammar":
        """Build a grammar from everything reachable from a `@rule`."""
        return cls(gather_rules(start), start=start.symbol)

    def productions_for(self, nonterminal: Nonterminal) -> list[Production]:
        """All the productions with the given left-hand side.

        A nonterminal with no productions at all can never be matched, and
        means the grammar is broken; that raises GrammarError.
        """
        productions = self._productions.get(nonterminal)
        if productions is None:
            raise GrammarError(f"The nonterminal {nonterminal} has no productions")
        return productions

    def productions(self) -> list[Production]:
        return [p for group in self._productions.values() for p in group]

    def nonterminals(self) -> list[Nonterminal]:
        return list(self._productions.keys())

    def terminals(self) -> list[Terminal]:
        # NOTE: dict, not set, so the order is stable.
        result: dict[Terminal, None] = {}
        for production in self.productions():
            for symbol in production.rhs:
                if isinstance(symbol, Terminal):
                    result[symbol] = None
        return list(result)

    def format(self) -> str:
        return "\n".join(p.format() for p in self.productions())
