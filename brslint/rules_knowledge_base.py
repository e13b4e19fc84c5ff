"""
Lint Rule Knowledge Base

Structured data for the code-flow diagnostics (LINT1xxx variables, LINT2xxx
returns) and the usage diagnostics (LINT4xxx).  Each entry provides the
title, the configuration key that controls its severity, rationale,
flagged / clean examples and a human-readable fix strategy.
"""

from typing import Dict, Optional, List
from dataclasses import dataclass, field

from brslint.config import DEFAULT_RULES
from brslint.diagnostics import CODE_TO_RULE


@dataclass
class LintRule:
    code: str
    title: str
    rule: str                              # config key, e.g. "assign-all-paths"
    rationale: str
    flagged: str                           # code example
    clean: str                             # fixed code example
    fix_strategy: str
    auto_fixable: bool = False
    cross_references: List[str] = field(default_factory=list)

    @property
    def default_severity(self) -> str:
        return DEFAULT_RULES.get(self.rule, "off")


# ═══════════════════════════════════════════════════════════════════════
#  Knowledge Base
# ═══════════════════════════════════════════════════════════════════════

_RULES: Dict[str, LintRule] = {}

def _add(rule: LintRule):
    _RULES[rule.code] = rule

# ───────────────────────────────────────────────────────────────────────
#  LINT1xxx: Variables
# ───────────────────────────────────────────────────────────────────────

_add(LintRule(
    code="LINT1001",
    title="Uninitialised variable",
    rule=CODE_TO_RULE["LINT1001"],
    rationale=(
        "Reading a name that is never assigned in the function and is not a "
        "function, namespace, class, enum or constant visible in the scope "
        "yields `invalid` at runtime, or a crash when it is dereferenced."
    ),
    flagged="""\
sub main()
    print title
end sub""",
    clean="""\
sub main()
    title = "Home"
    print title
end sub""",
    fix_strategy=(
        "Assign the variable before reading it, or declare the function it "
        "refers to in a script included by every scope that loads this file. "
        "Project-wide helpers injected at runtime can be listed in `globals`."
    ),
    cross_references=["LINT1003"],
))

_add(LintRule(
    code="LINT1002",
    title="Unsafe iterator variable",
    rule=CODE_TO_RULE["LINT1002"],
    rationale=(
        "A `for` counter or `for each` item keeps the value of the last "
        "iteration, or is never set when the loop does not run.  Using it "
        "after the loop hides that dependency."
    ),
    flagged="""\
for each item in items
end for
print item""",
    clean="""\
last = invalid
for each item in items
    last = item
end for
print last""",
    fix_strategy="Copy the value into a variable assigned before the loop.",
))

_add(LintRule(
    code="LINT1003",
    title="Not all the code paths assign the variable",
    rule=CODE_TO_RULE["LINT1003"],
    rationale=(
        "A variable assigned in only some branches of an `if`, a loop body "
        "or a `try` is uninitialised on the other paths."
    ),
    flagged="""\
if ready then
    a = 1
end if
print a""",
    clean="""\
a = 0
if ready then
    a = 1
end if
print a""",
    fix_strategy=(
        "Assign a default before the conditional, or assign the variable in "
        "every branch (including an `else`)."
    ),
    cross_references=["LINT1001"],
))

_add(LintRule(
    code="LINT1004",
    title="Variable case mismatch",
    rule=CODE_TO_RULE["LINT1004"],
    rationale=(
        "BrightScript names are case-insensitive, so `userName` and "
        "`username` are the same variable.  Mixed spellings read as "
        "different variables."
    ),
    flagged="""\
userName = "a"
print username""",
    clean="""\
userName = "a"
print userName""",
    fix_strategy="Use the spelling of the first assignment.  `apply_fixes` renames it.",
    auto_fixable=True,
))

_add(LintRule(
    code="LINT1005",
    title="Unused variable",
    rule=CODE_TO_RULE["LINT1005"],
    rationale="A value that is assigned but never read is dead code or a typo.",
    flagged="""\
sub main()
    count = 1
end sub""",
    clean="""\
sub main()
end sub""",
    fix_strategy="Delete the assignment, or use the value.",
    cross_references=["LINT2001"],
))

# ───────────────────────────────────────────────────────────────────────
#  LINT2xxx: Returns
# ───────────────────────────────────────────────────────────────────────

_add(LintRule(
    code="LINT2001",
    title="Unreachable code",
    rule=CODE_TO_RULE["LINT2001"],
    rationale=(
        "Statements after a `return` or `throw` in the same block never run. "
        "They are usually a logic error or leftover code."
    ),
    flagged="""\
function f()
    return 1
    print "done"
end function""",
    clean="""\
function f()
    print "done"
    return 1
end function""",
    fix_strategy="Delete the unreachable statements or move them before the return.",
))

_add(LintRule(
    code="LINT2002",
    title="Return value unexpected",
    rule=CODE_TO_RULE["LINT2002"],
    rationale="A `sub`, or a function declared `as void`, must not return a value.",
    flagged="""\
sub f()
    return 1
end sub""",
    clean="""\
function f() as integer
    return 1
end function""",
    fix_strategy="Remove the value from the `return`, or declare a `function` with a return type.",
    cross_references=["LINT2006"],
))

_add(LintRule(
    code="LINT2004",
    title="Not all code paths return a value",
    rule=CODE_TO_RULE["LINT2004"],
    rationale=(
        "A function declared with a return type, or one that returns a value "
        "somewhere, silently returns `invalid` when a path falls through."
    ),
    flagged="""\
function f(x) as integer
    if x then
        return 1
    end if
end function""",
    clean="""\
function f(x) as integer
    if x then
        return 1
    end if
    return 0
end function""",
    fix_strategy="Add a `return` (or `throw`) at the end of every path.",
    cross_references=["LINT2006"],
))

_add(LintRule(
    code="LINT2006",
    title="Inconsistent return",
    rule=CODE_TO_RULE["LINT2006"],
    rationale="Mixing `return` and `return value` in one function makes the result unpredictable.",
    flagged="""\
function f(x)
    if x then return
    return 1
end function""",
    clean="""\
function f(x)
    if x then return 0
    return 1
end function""",
    fix_strategy="Return a value from every `return` statement.",
    cross_references=["LINT2004"],
))

# ───────────────────────────────────────────────────────────────────────
#  LINT4xxx: Unused code
# ───────────────────────────────────────────────────────────────────────

_add(LintRule(
    code="LINT4001",
    title="Unused component",
    rule=CODE_TO_RULE["LINT4001"],
    rationale=(
        "A component that is never extended, instantiated as a child node, "
        "used as an item component, nor named in a string literal reachable "
        "from `source/main.brs` is never loaded."
    ),
    flagged="""\
<component name="OldScreen" extends="Group" />""",
    clean="""\
' MainScene.xml
<children>
    <OldScreen id="screen" />
</children>""",
    fix_strategy=(
        "Delete the component and its scripts, or reference it from a "
        "reachable component.  Only enabled with `checkUsage`."
    ),
    cross_references=["LINT4002"],
))

_add(LintRule(
    code="LINT4002",
    title="Unused script",
    rule=CODE_TO_RULE["LINT4002"],
    rationale=(
        "A script that is not under `source/`, not included by a reachable "
        "component and not imported is never loaded."
    ),
    flagged="""\
' components/legacy/helpers.brs, included by no component""",
    clean="""\
<script type="text/brightscript" uri="pkg:/components/legacy/helpers.brs" />""",
    fix_strategy="Delete the script, or include it from the component that needs it.",
    cross_references=["LINT4001"],
))


def get_rule(code: str) -> Optional[LintRule]:
    """Look up a single rule by its code (e.g. 'LINT1003') or config key."""
    rule = _RULES.get(code.upper())
    if rule is not None:
        return rule
    for candidate in _RULES.values():
        if candidate.rule == code:
            return candidate
    return None


def get_all_rules() -> Dict[str, LintRule]:
    """Return the entire knowledge base dictionary."""
    return dict(_RULES)


def get_rules_by_family(family: str) -> Dict[str, LintRule]:
    """Return rules whose codes start with 'LINT{family}' (e.g. '1', '2', '4')."""
    prefix = f"LINT{family}"
    return {k: v for k, v in _RULES.items() if k.startswith(prefix)}


def format_rule_explanation(code: str) -> str:
    """Return a rich, human-readable explanation of a rule."""
    rule = get_rule(code)
    if rule is None:
        return f"Unknown rule: {code}"

    explanation = f"""## {rule.code}: {rule.title}
**Rule**: `{rule.rule}` (default: {rule.default_severity})

### Rationale
{rule.rationale}

### Flagged
```brightscript
{rule.flagged}
```

### Clean
```brightscript
{rule.clean}
```

### How to Fix
{rule.fix_strategy}"""

    if rule.auto_fixable:
        explanation += "\n\n*This diagnostic can be fixed automatically.*"
    if rule.cross_references:
        explanation += f"\n\n### Related Rules\n{', '.join(rule.cross_references)}"

    return explanation
