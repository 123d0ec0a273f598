"""An Earley chart parser for arbitrary context-free grammars.

Ambiguous, left-recursive, right-recursive, and empty rules are all fine. The
parser finds every derivation, not just one. See `chart` for how, `grammar`
for writing grammars, and `tree` for what you get back.
"""
from . import chart
from . import grammar
from . import tree

from .chart import Action, Chart, ChartExhausted, Edge, Trace, TraceRow, parse
from .grammar import (
    DottedRule,
    Grammar,
    GrammarError,
    Nonterminal,
    Nothing,
    Production,
    Rule,
    RuleDefinition,
    Symbol,
    Terminal,
    alt,
    opt,
    rule,
    seq,
)
from .tree import DerivationError, Tree, derive
