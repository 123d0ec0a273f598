"""A command-line harness for trying grammars out.

    python harness.py examples/fish.py they can fish in rivers in december

Loads the grammar from the given Python file, parses the remaining arguments
(one token per word), and prints every derivation tree it finds.
"""

import argparse
import importlib.util
import inspect
import logging
import sys
import typing

import earley


class LoadError(Exception):
    pass


def _is_grammar(member) -> bool:
    return isinstance(member, (earley.Grammar, earley.RuleDefinition))


def load_grammar(
    file_name: str,
    member_name: str | None = None,
    start_rule: str | None = None,
) -> earley.Grammar:
    """Import the grammar file and find the grammar in it.

    If `member_name` is None we search the module for the one member that is
    a Grammar (or, failing that, the one `@rule` definition). If `start_rule`
    is given the grammar is rebuilt to start there instead.
    """
    mod_name = inspect.getmodulename(file_name)
    if mod_name is None:
        raise LoadError(f"{file_name} does not seem to be a module")

    spec = importlib.util.spec_from_file_location(mod_name, file_name)
    if spec is None or spec.loader is None:
        raise LoadError(f"Cannot load {file_name}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    if member_name is None:
        members = inspect.getmembers(module, lambda m: isinstance(m, earley.Grammar))
        if len(members) == 0:
            members = inspect.getmembers(module, lambda m: isinstance(m, earley.RuleDefinition))
            if len(members) > 1:
                raise LoadError(
                    f"No Grammar found in {file_name}, and {len(members)} rules to pick "
                    "from; use --grammar-member to say which one is the start"
                )
        if len(members) == 0:
            raise LoadError(f"No grammars found in {file_name}")
        if len(members) > 1:
            raise LoadError(
                f"{len(members)} grammars found in {file_name}: {', '.join(m[0] for m in members)}"
            )
        value = members[0][1]
    else:
        value = getattr(module, member_name, None)
        if value is None:
            raise LoadError(f"Cannot find {member_name} in {file_name}")
        if not _is_grammar(value):
            raise LoadError(f"{member_name} in {file_name} is not a grammar or a rule")

    if isinstance(value, earley.RuleDefinition):
        grammar = earley.Grammar.from_rule(value)
    else:
        grammar = typing.cast(earley.Grammar, value)

    if start_rule is not None:
        grammar = earley.Grammar(grammar.productions(), start=earley.Nonterminal(start_rule))

    return grammar


def run(
    grammar: earley.Grammar,
    tokens: list[str],
    *,
    trace: bool = False,
    draw: bool = False,
    out: typing.TextIO | None = None,
) -> int:
    if out is None:
        out = sys.stdout

    chart = earley.Chart(grammar, tokens, trace=trace).process_all()

    if chart.trace is not None:
        print(chart.trace.format(), file=out)
        print(file=out)

    trees = chart.derivation_trees()
    print(f"{len(trees)} parse{'' if len(trees) == 1 else 's'}", file=out)
    for tree in trees:
        print(file=out)
        print(tree.draw() if draw else tree.format(), file=out)

    return 0 if len(trees) > 0 else 1


def main(args: list[str]) -> int:
    parser = argparse.ArgumentParser(description="Parse some words with an Earley chart")
    parser.add_argument("grammar", help="Path to a python file containing the grammar to load")
    parser.add_argument("words", nargs="*", help="The input, one token per word")
    parser.add_argument(
        "--grammar-member",
        type=str,
        default=None,
        help="The name of the member in the grammar module to load. The default is to search "
        "the module for a Grammar. You should only need to specify this if you have more than "
        "one grammar in your module.",
    )
    parser.add_argument(
        "--start-rule",
        type=str,
        default=None,
        help="The name of the nonterminal to start parsing with. The default is the one "
        "specified by the grammar.",
    )
    parser.add_argument("--trace", action="store_true", help="Print the whole chart as a table")
    parser.add_argument("--draw", action="store_true", help="Draw trees instead of outlining them")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log more (-v for a summary, -vv for every step)",
    )

    parsed = parser.parse_args(args[1:])

    level = logging.WARNING
    if parsed.verbose == 1:
        level = logging.INFO
    elif parsed.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(name)s: %(message)s")

    try:
        grammar = load_grammar(parsed.grammar, parsed.grammar_member, parsed.start_rule)
        return run(grammar, parsed.words, trace=parsed.trace, draw=parsed.draw)
    except (LoadError, earley.GrammarError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main(sys.argv))
