"""Reverse translation of TICKscripts into alert rules.

Rebuilds an AlertRule from a script produced by
``kapalert.engine.generator``. The script is parsed into a syntax tree,
then the ``data`` and ``trigger`` pipelines are walked node by node,
following variable references into their declarations.

Two failure modes are kept apart:

- ``ScriptSyntaxError``: the text is not TICKscript we can parse.
- ``UnsupportedScriptError``: the text parsed but is not an alert shape we
  generate. The error carries the fields extracted before the unsupported
  part was reached.
"""

from __future__ import annotations

import logging
from typing import Any

from kapalert.engine.constants import (
    LEVELS,
    SUPPORTED_FUNCS,
    SUPPORTED_HANDLERS,
    SYMBOL_OPERATORS,
    VALUE_FIELD,
)
from kapalert.exceptions import UnsupportedScriptError
from kapalert.models.rule import (
    AlertHandler,
    AlertRule,
    GroupBy,
    HandlerProperty,
    QueryConfig,
    QueryField,
    TICKScript,
    TriggerCondition,
)
from kapalert.tick.ast import (
    BinaryOp,
    BoolLit,
    Call,
    Chain,
    ChainLink,
    DurationLit,
    Expr,
    Identifier,
    Lambda,
    ListLit,
    NumberLit,
    Program,
    Reference,
    StringLit,
    UnaryOp,
)
from kapalert.tick.parser import parse

logger = logging.getLogger(__name__)

# Alert node properties that carry no rule state.
_PASSIVE_ALERT_PROPERTIES: frozenset[str] = frozenset({
    "stateChangesOnly", "id", "idTag", "levelTag", "messageField",
    "durationField", "all", "noRecoveries", "flapping", "history",
    "topic", "category", "inhibit",
})

_MAX_RESOLVE_DEPTH = 16


class _RuleBuilder:
    """Accumulates rule fields while walking one parsed script."""

    def __init__(self, program: Program, script: str) -> None:
        self._decls = program.declarations()
        self._rule: dict[str, Any] = {"tick_script": script}
        self._query: dict[str, Any] | None = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def partial(self) -> AlertRule:
        fields = dict(self._rule)
        if self._query is not None:
            fields["query"] = QueryConfig(**self._query)
        return AlertRule(**fields)

    def fail(self, message: str) -> UnsupportedScriptError:
        return UnsupportedScriptError(message, partial=self.partial())

    def resolve(self, expr: Expr) -> Expr:
        """Follow identifiers to the value they were declared with."""
        for _ in range(_MAX_RESOLVE_DEPTH):
            if not isinstance(expr, Identifier) or expr.name not in self._decls:
                return expr
            expr = self._decls[expr.name]
        raise self.fail("variable references nest too deeply")

    def string(self, expr: Expr, what: str) -> str:
        value = self.resolve(expr)
        if not isinstance(value, StringLit):
            raise self.fail(f"{what} is not a string")
        return value.value

    def duration(self, expr: Expr, what: str) -> str:
        value = self.resolve(expr)
        if not isinstance(value, DurationLit):
            raise self.fail(f"{what} is not a duration")
        return value.text

    def number(self, expr: Expr, what: str) -> str:
        value = self.resolve(expr)
        if isinstance(value, NumberLit):
            return value.text
        if (
            isinstance(value, UnaryOp)
            and value.op == "-"
            and isinstance(value.operand, NumberLit)
        ):
            return f"-{value.operand.text}"
        raise self.fail(f"{what} is not a number")

    def single_arg(self, link: ChainLink) -> Expr:
        if len(link.args) != 1:
            raise self.fail(f".{link.name}() takes one argument, got {len(link.args)}")
        return link.args[0]

    def declared(self, name: str) -> Expr | None:
        return self._decls.get(name)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def build(self) -> AlertRule:
        self._read_text_vars()
        links = self._read_data_pipeline()
        self._read_field(links)
        self._read_trigger_pipeline()
        return self.partial()

    def _read_text_vars(self) -> None:
        for var, field in (("name", "name"), ("message", "message"), ("details", "details")):
            expr = self.declared(var)
            if expr is not None:
                self._rule[field] = self.string(expr, f"var {var}")

    def _read_data_pipeline(self) -> list[ChainLink]:
        """Read the query from ``var data``; returns the links after the source nodes."""
        data = self.declared("data")
        if not isinstance(data, Chain) or not isinstance(data.source, Identifier):
            raise self.fail("script has no 'data' pipeline")
        source = data.source.name
        nodes = _split_nodes(data.links)
        if not nodes:
            raise self.fail("'data' pipeline has no nodes")

        self._query = {}
        if source == "stream":
            rest = self._read_stream_source(nodes)
        elif source == "batch":
            rest = self._read_batch_source(nodes)
        else:
            raise self.fail(f"'data' pipeline starts from unknown source {source!r}")
        return rest

    def _read_stream_source(self, nodes: list[list[ChainLink]]) -> list[ChainLink]:
        query = self._query
        assert query is not None
        head, *rest = nodes
        if head[0].name != "from":
            raise self.fail(f"stream pipeline starts with |{head[0].name}() instead of |from()")
        for prop in head[1:]:
            if prop.name == "database":
                query["database"] = self.string(self.single_arg(prop), "database")
            elif prop.name == "retentionPolicy":
                query["retention_policy"] = self.string(self.single_arg(prop), "retention policy")
            elif prop.name == "measurement":
                query["measurement"] = self.string(self.single_arg(prop), "measurement")
            elif prop.name == "groupBy":
                query["group_by"] = GroupBy(tags=self._group_by_tags(prop))
            elif prop.name == "where":
                self._read_where(self.single_arg(prop))
            else:
                raise self.fail(f"unsupported |from() property .{prop.name}()")

        every_expr = self.declared("every")
        if every_expr is not None:
            self._rule["every"] = self.duration(every_expr, "var every")

        if rest and rest[0][0].name == "window":
            window, *rest = rest
            for prop in window[1:]:
                if prop.name == "period":
                    query.setdefault("group_by", GroupBy()).time = self.duration(
                        self.single_arg(prop), "window period"
                    )
                elif prop.name == "every":
                    arg = self.single_arg(prop)
                    if not (isinstance(arg, Identifier) and arg.name == "period"):
                        self._rule["every"] = self.duration(arg, "window every")
                elif prop.name != "align":
                    raise self.fail(f"unsupported |window() property .{prop.name}()")
        return [link for node in rest for link in node]

    def _read_batch_source(self, nodes: list[list[ChainLink]]) -> list[ChainLink]:
        query = self._query
        assert query is not None
        head, *rest = nodes
        if head[0].name != "query":
            raise self.fail(f"batch pipeline starts with |{head[0].name}() instead of |query()")
        query["raw_text"] = self.string(self.single_arg(head[0]), "batch query")
        for var, field, what in (
            ("db", "database", "var db"),
            ("rp", "retention_policy", "var rp"),
            ("measurement", "measurement", "var measurement"),
        ):
            expr = self.declared(var)
            if expr is not None:
                query[field] = self.string(expr, what)
        where = self.declared("whereFilter")
        if where is not None:
            self._read_where(where)

        group_by = GroupBy()
        for prop in head[1:]:
            if prop.name == "groupBy":
                group_by.tags = self._group_by_tags(prop)
            elif prop.name == "period":
                arg = self.single_arg(prop)
                if not (isinstance(arg, Identifier) and arg.name == "every"):
                    group_by.time = self.duration(arg, "query period")
            elif prop.name == "every":
                self._rule["every"] = self.duration(self.single_arg(prop), "query every")
            else:
                raise self.fail(f"unsupported |query() property .{prop.name}()")
        query["group_by"] = group_by
        return [link for node in rest for link in node]

    def _group_by_tags(self, prop: ChainLink) -> list[str]:
        args = list(prop.args)
        if len(args) == 1:
            value = self.resolve(args[0])
            if isinstance(value, ListLit):
                args = list(value.items)
        return [self.string(a, "group by tag") for a in args]

    def _read_where(self, expr: Expr) -> None:
        query = self._query
        assert query is not None
        fn = self.resolve(expr)
        if not isinstance(fn, Lambda):
            raise self.fail("where filter is not a lambda")
        if isinstance(fn.body, BoolLit) and fn.body.value:
            query["tags"] = {}
            accepted = self.declared("areTagsAccepted")
            if accepted is not None:
                value = self.resolve(accepted)
                if not isinstance(value, BoolLit):
                    raise self.fail("var areTagsAccepted is not a boolean")
                query["are_tags_accepted"] = value.value
            return

        leaves: list[Expr] = []
        _collect_leaves(fn.body, leaves)
        comparisons = [
            c for c in leaves
            if isinstance(c, BinaryOp)
            and c.op in ("==", "!=")
            and isinstance(c.left, Reference)
            and isinstance(c.right, StringLit)
        ]
        ops = {c.op for c in comparisons}
        if len(comparisons) != len(leaves) or len(ops) != 1:
            raise self.fail("where filter is not a tag selection")
        tags: dict[str, list[str]] = {}
        for c in comparisons:
            tags.setdefault(c.left.name, []).append(c.right.value)
        query["tags"] = tags
        query["are_tags_accepted"] = ops == {"=="}

    def _read_field(self, links: list[ChainLink]) -> None:
        query = self._query
        assert query is not None
        query["fields"] = []
        if not links:
            return
        node, *props = links
        if not node.is_node:
            raise self.fail(f"unexpected property .{node.name}() in 'data' pipeline")
        if node.name in SUPPORTED_FUNCS:
            field = QueryField(name=self.string(self.single_arg(node), "field"), funcs=[node.name])
        elif node.name == "eval":
            fn = self.resolve(self.single_arg(node))
            if not isinstance(fn, Lambda) or not isinstance(fn.body, Reference):
                raise self.fail("field |eval() is not a plain field reference")
            field = QueryField(name=fn.body.name)
        else:
            raise self.fail(f"unsupported node |{node.name}() in 'data' pipeline")
        for prop in props:
            if prop.is_node:
                raise self.fail(f"unsupported node |{prop.name}() after field")
            if prop.name != "as":
                raise self.fail(f"unsupported field property .{prop.name}()")
        query["fields"] = [field]

    def _read_trigger_pipeline(self) -> None:
        trigger = self.declared("trigger")
        if not isinstance(trigger, Chain) or not isinstance(trigger.source, Identifier):
            raise self.fail("script has no 'trigger' pipeline")
        nodes = _split_nodes(trigger.links)
        source = trigger.source.name

        if source == "past":
            self._rule["trigger"] = "relative"
            self._read_shift()
            nodes = self._read_relative_nodes(nodes)
        elif source != "data":
            raise self.fail(f"'trigger' pipeline starts from unknown source {source!r}")

        if len(nodes) != 1:
            raise self.fail("'trigger' pipeline must end in a single alert node")
        alert = nodes[0]
        head = alert[0]
        if head.name == "deadman":
            if source != "data" or len(head.args) != 2:
                raise self.fail("unsupported |deadman() node")
            self._rule["trigger"] = "deadman"
            self._rule["conditions"] = [TriggerCondition(
                level="crit",
                operator="less than",
                value=self.number(head.args[0], "deadman threshold"),
            )]
            self._rule["period"] = self.duration(head.args[1], "deadman period")
        elif head.name == "alert":
            self._rule.setdefault("trigger", "threshold")
            self._rule["conditions"] = []
        else:
            raise self.fail(f"unsupported alert node |{head.name}()")
        self._read_alert_properties(alert[1:], allow_levels=head.name == "alert")

    def _read_shift(self) -> None:
        past = self.declared("past")
        if not (
            isinstance(past, Chain)
            and isinstance(past.source, Identifier)
            and past.source.name == "data"
            and len(past.links) == 1
            and past.links[0].name == "shift"
        ):
            raise self.fail("relative rule has no 'past' shift pipeline")
        self._rule["shift"] = self.duration(self.single_arg(past.links[0]), "shift")

    def _read_relative_nodes(self, nodes: list[list[ChainLink]]) -> list[list[ChainLink]]:
        if len(nodes) < 2 or nodes[0][0].name != "join" or nodes[1][0].name != "eval":
            raise self.fail("relative rule lacks |join() and |eval() nodes")
        fn = self.resolve(self.single_arg(nodes[1][0]))
        if not isinstance(fn, Lambda):
            raise self.fail("relative |eval() is not a lambda")
        if isinstance(fn.body, BinaryOp) and fn.body.op == "*":
            self._rule["change"] = "% change"
        elif isinstance(fn.body, Call) and fn.body.func == "float":
            self._rule["change"] = "change"
        else:
            raise self.fail("relative |eval() is not a change computation")
        return nodes[2:]

    def _read_alert_properties(self, props: list[ChainLink], *, allow_levels: bool) -> None:
        handlers: list[AlertHandler] = []
        conditions: list[TriggerCondition] = self._rule["conditions"]
        for prop in props:
            name = prop.name
            if name in SUPPORTED_HANDLERS:
                handlers.append(AlertHandler(
                    name=name,
                    args=[self.string(a, f".{name}() argument") for a in prop.args],
                ))
            elif handlers:
                handlers[-1].properties.append(HandlerProperty(
                    name=name,
                    args=[self.string(a, f".{name}() argument") for a in prop.args],
                ))
            elif name in LEVELS and allow_levels:
                conditions.append(self._condition(name, self.single_arg(prop)))
            elif name == "message":
                self._rule["message"] = self.string(self.single_arg(prop), "message")
            elif name == "details":
                self._rule["details"] = self.string(self.single_arg(prop), "details")
            elif name not in _PASSIVE_ALERT_PROPERTIES:
                raise self.fail(f"unsupported alert property .{name}()")
        self._rule["handlers"] = handlers
        if not conditions:
            raise self.fail("alert node has no conditions")

    def _condition(self, level: str, expr: Expr) -> TriggerCondition:
        fn = self.resolve(expr)
        if not isinstance(fn, Lambda) or not isinstance(fn.body, BinaryOp):
            raise self.fail(f".{level}() is not a comparison lambda")
        body = fn.body
        if body.op in ("AND", "OR"):
            left, right = body.left, body.right
            expected = (">=", "<=") if body.op == "AND" else ("<", ">")
            if not (
                isinstance(left, BinaryOp)
                and isinstance(right, BinaryOp)
                and (left.op, right.op) == expected
                and _is_value(left.left)
                and _is_value(right.left)
            ):
                raise self.fail(f".{level}() is not a range comparison")
            return TriggerCondition(
                level=level,
                operator="inside range" if body.op == "AND" else "outside range",
                value=self.number(left.right, f"{level} lower bound"),
                range_value=self.number(right.right, f"{level} upper bound"),
            )
        if body.op not in SYMBOL_OPERATORS or not _is_value(body.left):
            raise self.fail(f".{level}() is not a comparison on {VALUE_FIELD!r}")
        return TriggerCondition(
            level=level,
            operator=SYMBOL_OPERATORS[body.op],
            value=self.number(body.right, f"{level} value"),
        )


def _is_value(expr: Expr) -> bool:
    return isinstance(expr, Reference) and expr.name == VALUE_FIELD


def _split_nodes(links: tuple[ChainLink, ...]) -> list[list[ChainLink]]:
    """Group a chain into nodes, each followed by its properties."""
    nodes: list[list[ChainLink]] = []
    for link in links:
        if link.is_node:
            nodes.append([link])
        elif nodes:
            nodes[-1].append(link)
        else:
            # Property applied to the source itself (e.g. "stream.foo()").
            nodes.append([link])
    return nodes


def _collect_leaves(expr: Expr, out: list[Expr]) -> None:
    """In-order leaves of an AND/OR tree."""
    stack = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, BinaryOp) and node.op in ("AND", "OR"):
            stack.append(node.right)
            stack.append(node.left)
        else:
            out.append(node)


class TickscriptReverser:
    """Rebuilds AlertRules from generated TICKscripts."""

    def reverse(self, script: TICKScript | str) -> AlertRule:
        """Rebuild the rule a script was generated from.

        The returned rule has ``tick_script`` set and an empty ``id``; ids
        live in Kapacitor, not in the script.

        Raises:
            ScriptSyntaxError: If the script cannot be parsed at all.
            UnsupportedScriptError: If the script parsed but is not a
                supported alert shape. ``partial`` holds what was read.
        """
        program = parse(script)
        rule = _RuleBuilder(program, script).build()
        logger.debug("Reversed script into %s", rule)
        return rule


_default = TickscriptReverser()


def reverse(script: TICKScript | str) -> AlertRule:
    """Rebuild a rule with the default reverser."""
    return _default.reverse(script)
