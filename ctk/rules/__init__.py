"""
CTK rule language - a closed expression language for schema rules.

Schemas written by users are never executed as Python. They are parsed into
a small AST and evaluated by a tree-walking interpreter that can only see
the records it is given and a fixed set of built-in functions.

Example usage:

    from ctk.rules import evaluate

    result = evaluate(records, '''
    fields:
      serviceId: id
      serviceName: name
      primaryCategory: categories[0] or 'Uncategorized'
      hasWebAccess: bool(url)
    ''')

    if result.ok:
        print(result.rows)
    else:
        print(f"{result.error.kind.value}: {result.error}")

    # Whole-set expression
    result = evaluate(records, "group_by_category(records)")
"""

# AST and runtime
from .ast import (
    Budget,
    Scope,
    Node,
    Literal,
    Name,
    ListExpr,
    DictExpr,
    Member,
    Index,
    Call,
    Unary,
    Binary,
    Logical,
    Conditional,
)

# Parser
from .parser import (
    parse_rule,
    tokenize,
    is_identifier,
)

# Built-in functions
from .builtins import BUILTINS, builtin

# Selector compilation
from .compiler import RuleSelector, parse_selector, bind_selector

# Evaluation
from .evaluator import (
    EvaluationResult,
    SchemaProgram,
    SchemaEvaluator,
    compile_schema,
    normalize_result,
    evaluate,
)

__all__ = [
    # AST
    'Budget',
    'Scope',
    'Node',
    'Literal',
    'Name',
    'ListExpr',
    'DictExpr',
    'Member',
    'Index',
    'Call',
    'Unary',
    'Binary',
    'Logical',
    'Conditional',

    # Parser
    'parse_rule',
    'tokenize',
    'is_identifier',

    # Builtins
    'BUILTINS',
    'builtin',

    # Compiler
    'RuleSelector',
    'parse_selector',
    'bind_selector',

    # Evaluation
    'EvaluationResult',
    'SchemaProgram',
    'SchemaEvaluator',
    'compile_schema',
    'normalize_result',
    'evaluate',
]
