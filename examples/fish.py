# The classic "they can fish" grammar. Ask it about
#
#     they can fish in rivers in december
#
# and it will find every way of attaching those prepositional phrases.
from earley import Grammar, Terminal, alt, rule, seq


@rule("S")
def sentence():
    return seq(noun_phrase, verb_phrase)


@rule("NP")
def noun_phrase():
    return noun | seq(noun, prepositional_phrase)


@rule("PP")
def prepositional_phrase():
    return seq(preposition, noun_phrase)


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
    return alt(CAN, FISH, RIVERS, THEY, DECEMBER)


@rule("P")
def preposition():
    return IN


@rule("V")
def verb():
    return CAN | FISH


CAN = Terminal("can")
FISH = Terminal("fish")
RIVERS = Terminal("rivers")
THEY = Terminal("they")
DECEMBER = Terminal("december")
IN = Terminal("in")

grammar = Grammar.from_rule(sentence)
