# A deliberately ambiguous expression grammar: no precedence, no
# associativity. "1 + 2 * 3" has two parses, "1 + 2 + 3 + 4" has five.
from earley import Grammar, Terminal, alt, rule, seq


@rule("E")
def expression():
    return alt(
        seq(expression, PLUS, expression),
        seq(expression, TIMES, expression),
        seq(LPAREN, expression, RPAREN),
        digit,
    )


@rule("D")
def digit():
    return alt(*[Terminal(str(d)) for d in range(10)])


PLUS = Terminal("+")
TIMES = Terminal("*")
LPAREN = Terminal("(")
RPAREN = Terminal(")")

grammar = Grammar.from_rule(expression)
