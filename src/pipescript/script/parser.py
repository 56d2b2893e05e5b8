"""Recursive-descent parser for pipeline scripts."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from pipescript.errors import ParseError, UnexpectedToken, UnusedKeyword

from . import ast
from .lexer import tokenize
from .tokens import Position, Token, TokenKind

LOGGER = logging.getLogger(__name__)

_BINARY_LEVELS: Sequence[Dict[TokenKind, str]] = (
    {TokenKind.OR: "||"},
    {TokenKind.AND: "&&"},
    {TokenKind.EQ: "==", TokenKind.NE: "!="},
    {TokenKind.LT: "<", TokenKind.LE: "<=", TokenKind.GT: ">", TokenKind.GE: ">="},
    {TokenKind.PLUS: "+", TokenKind.MINUS: "-"},
    {TokenKind.STAR: "*", TokenKind.SLASH: "/", TokenKind.PERCENT: "%"},
)

_STATEMENT_KEYWORDS = frozenset(
    {"let", "fn", "return", "if", "while", "for", "break", "continue", "import"}
)


class Parser:
    """Build a :class:`~pipescript.script.ast.Script` from a token list."""

    def __init__(self, tokens: Sequence[Token], source: str = "") -> None:
        if not tokens or tokens[-1].kind is not TokenKind.EOF:
            raise ParseError("token stream must end with an end of file token")
        self._tokens = list(tokens)
        self._source = source
        self._index = 0
        self._functions: Dict[str, ast.FnDef] = {}
        # Trailing blocks are not allowed inside if/while/for headers so that
        # ``if ready() { ... }`` keeps the block as the branch body.
        self._allow_block = True

    # Entry points -------------------------------------------------------

    def parse_script(self) -> ast.Script:
        body = self._parse_statements(until=TokenKind.EOF)
        self._expect(TokenKind.EOF)
        return ast.Script(body=tuple(body), functions=dict(self._functions), source=self._source)

    def parse_expression(self) -> ast.Expr:
        expr = self._parse_expr()
        self._expect(TokenKind.EOF)
        return expr

    # Token helpers ------------------------------------------------------

    def _peek(self, ahead: int = 0) -> Token:
        index = min(self._index + ahead, len(self._tokens) - 1)
        return self._tokens[index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind is not TokenKind.EOF:
            self._index += 1
        return token

    def _check(self, kind: TokenKind) -> bool:
        return self._peek().kind is kind

    def _match(self, kind: TokenKind) -> Optional[Token]:
        if self._check(kind):
            return self._advance()
        return None

    def _expect(self, kind: TokenKind, expected: str | None = None) -> Token:
        token = self._peek()
        if token.kind is not kind:
            raise UnexpectedToken(token, expected or f"\"{kind.value}\"")
        return self._advance()

    def _expect_identifier(self) -> Token:
        return self._expect(TokenKind.IDENTIFIER, "an identifier")

    # Statements ---------------------------------------------------------

    def _parse_statements(self, until: TokenKind) -> List[ast.Stmt]:
        statements: List[ast.Stmt] = []
        while not self._check(until) and not self._check(TokenKind.EOF):
            statement = self._parse_statement()
            if statement is not None:
                statements.append(statement)
        return statements

    def _parse_block_body(self) -> List[ast.Stmt]:
        self._expect(TokenKind.LBRACE)
        body = self._parse_statements(until=TokenKind.RBRACE)
        self._expect(TokenKind.RBRACE)
        return body

    def _parse_statement(self) -> Optional[ast.Stmt]:
        token = self._peek()
        if token.kind is TokenKind.KEYWORD and token.value in _STATEMENT_KEYWORDS:
            keyword = str(token.value)
            if keyword == "fn":
                self._parse_fn_def()
                return None
            handler = getattr(self, f"_parse_{keyword}")
            return handler()
        if token.kind is TokenKind.KEYWORD and token.value not in {"true", "false"}:
            raise UnusedKeyword(str(token.value), token.position)
        return self._parse_expression_statement()

    def _parse_let(self) -> ast.Let:
        start = self._advance().position
        name = self._expect_identifier()
        self._expect(TokenKind.ASSIGN)
        value = self._parse_expr()
        return ast.Let(str(name.value), value, start.span_to(_position_of(value)))

    def _parse_fn_def(self) -> ast.FnDef:
        start = self._advance().position
        name = self._expect_identifier()
        self._expect(TokenKind.LPAREN)
        params: List[ast.Parameter] = []
        while not self._check(TokenKind.RPAREN):
            param_name = self._expect_identifier()
            declared_type = None
            if self._match(TokenKind.COLON):
                declared_type = str(self._expect_identifier().value)
            params.append(ast.Parameter(str(param_name.value), declared_type))
            if not self._match(TokenKind.COMMA):
                break
        self._expect(TokenKind.RPAREN)
        body = self._parse_block_body()
        fn_def = ast.FnDef(str(name.value), tuple(params), tuple(body), start.span_to(name.position))
        if fn_def.name in self._functions:
            LOGGER.debug("Function %s redefined at line %s", fn_def.name, start.line)
        self._functions[fn_def.name] = fn_def
        return fn_def

    def _parse_return(self) -> ast.Return:
        start = self._advance().position
        following = self._peek()
        if following.kind in (TokenKind.RBRACE, TokenKind.EOF) or (
            following.kind is TokenKind.KEYWORD and following.value in _STATEMENT_KEYWORDS
        ):
            return ast.Return(None, start)
        value = self._parse_expr()
        return ast.Return(value, start.span_to(_position_of(value)))

    def _parse_if(self) -> ast.If:
        start = self._advance().position
        branches = [ast.IfBranch(self._parse_condition(), tuple(self._parse_block_body()))]
        else_body: Optional[List[ast.Stmt]] = None
        while self._peek().is_keyword("else"):
            self._advance()
            if self._peek().is_keyword("if"):
                self._advance()
                branches.append(
                    ast.IfBranch(self._parse_condition(), tuple(self._parse_block_body()))
                )
                continue
            else_body = self._parse_block_body()
            break
        return ast.If(
            tuple(branches),
            tuple(else_body) if else_body is not None else None,
            start,
        )

    def _parse_while(self) -> ast.While:
        start = self._advance().position
        condition = self._parse_condition()
        body = self._parse_block_body()
        return ast.While(condition, tuple(body), start)

    def _parse_for(self) -> ast.ForIn:
        start = self._advance().position
        parenthesized = self._match(TokenKind.LPAREN) is not None
        name = self._expect_identifier()
        in_token = self._peek()
        if not in_token.is_keyword("in"):
            raise UnexpectedToken(in_token, "\"in\"")
        self._advance()
        iterable = self._parse_condition()
        if parenthesized:
            self._expect(TokenKind.RPAREN)
        body = self._parse_block_body()
        return ast.ForIn(str(name.value), iterable, tuple(body), start)

    def _parse_break(self) -> ast.Break:
        return ast.Break(self._advance().position)

    def _parse_continue(self) -> ast.Continue:
        return ast.Continue(self._advance().position)

    def _parse_import(self) -> ast.Import:
        start = self._advance().position
        name = self._expect_identifier()
        return ast.Import(str(name.value), start.span_to(name.position))

    def _parse_expression_statement(self) -> ast.Stmt:
        expr = self._parse_expr()
        position = _position_of(expr)
        if not self._match(TokenKind.ASSIGN):
            return ast.ExprStmt(expr, position)

        value = self._parse_expr()
        span = position.span_to(_position_of(value))
        if isinstance(expr, ast.Variable):
            return ast.Assign(expr.name, value, span)
        if isinstance(expr, ast.Index):
            return ast.IndexAssign(expr.target, expr.index, value, span)
        raise ParseError("invalid assignment target", position)

    def _parse_condition(self) -> ast.Expr:
        previous = self._allow_block
        self._allow_block = False
        try:
            return self._parse_expr()
        finally:
            self._allow_block = previous

    # Expressions --------------------------------------------------------

    def _parse_expr(self) -> ast.Expr:
        return self._parse_binary(0)

    def _parse_binary(self, level: int) -> ast.Expr:
        if level >= len(_BINARY_LEVELS):
            return self._parse_unary()
        operators = _BINARY_LEVELS[level]
        left = self._parse_binary(level + 1)
        while self._peek().kind in operators and self._joins_expression(self._peek()):
            operator = operators[self._advance().kind]
            right = self._parse_binary(level + 1)
            left = ast.Binary(
                operator,
                left,
                right,
                _position_of(left).span_to(_position_of(right)),
            )
        return left

    def _parse_unary(self) -> ast.Expr:
        token = self._peek()
        if token.kind in (TokenKind.NOT, TokenKind.MINUS):
            self._advance()
            operand = self._parse_unary()
            operator = "!" if token.kind is TokenKind.NOT else "-"
            return ast.Unary(operator, operand, token.position.span_to(_position_of(operand)))
        return self._parse_postfix()

    def _joins_expression(self, token: Token) -> bool:
        """A ``-`` at the start of a line begins a new statement rather than a subtraction."""

        return token.kind is not TokenKind.MINUS or self._continues_line(token)

    def _continues_line(self, token: Token) -> bool:
        """Whether ``token`` starts on the line the previous token ends on."""

        previous = self._tokens[self._index - 1] if self._index > 0 else token
        start = previous.position
        spanned = self._source[start.offset:start.offset + start.length].count("\n")
        return token.position.line == start.line + spanned

    def _parse_postfix(self) -> ast.Expr:
        expr = self._parse_primary()
        while True:
            token = self._peek()
            # A call or index must open on the same line, otherwise "(" or "["
            # starts the next statement.
            if token.kind is TokenKind.LPAREN and self._continues_line(token):
                expr = self._finish_call(expr)
            elif token.kind is TokenKind.LBRACKET and self._continues_line(token):
                self._advance()
                index = self._with_blocks(self._parse_expr)
                end = self._expect(TokenKind.RBRACKET)
                expr = ast.Index(expr, index, _position_of(expr).span_to(end.position))
            elif (
                token.kind is TokenKind.LBRACE
                and self._allow_block
                and isinstance(expr, ast.Variable)
            ):
                block = self._parse_block()
                expr = ast.Call(expr, (block,), _position_of(expr).span_to(block.position))
            else:
                return expr

    def _finish_call(self, callee: ast.Expr) -> ast.Call:
        self._expect(TokenKind.LPAREN)
        args: List[ast.Expr] = []
        while not self._check(TokenKind.RPAREN):
            args.append(self._with_blocks(self._parse_expr))
            if not self._match(TokenKind.COMMA):
                break
        end = self._expect(TokenKind.RPAREN, "\")\" or \",\"").position
        if self._allow_block and self._check(TokenKind.LBRACE):
            block = self._parse_block()
            args.append(block)
            end = block.position
        return ast.Call(callee, tuple(args), _position_of(callee).span_to(end))

    def _parse_block(self) -> ast.Block:
        start = self._peek().position
        previous = self._allow_block
        self._allow_block = True
        try:
            self._expect(TokenKind.LBRACE)
            body = self._parse_statements(until=TokenKind.RBRACE)
            end = self._expect(TokenKind.RBRACE).position
        finally:
            self._allow_block = previous
        return ast.Block(tuple(body), start.span_to(end))

    def _with_blocks(self, parse):
        previous = self._allow_block
        self._allow_block = True
        try:
            return parse()
        finally:
            self._allow_block = previous

    def _parse_primary(self) -> ast.Expr:
        token = self._peek()
        kind = token.kind
        if kind in (TokenKind.STRING, TokenKind.INT, TokenKind.FLOAT):
            self._advance()
            return ast.Literal(token.value, token.position)
        if token.is_keyword("true") or token.is_keyword("false"):
            self._advance()
            return ast.Literal(token.value == "true", token.position)
        if kind is TokenKind.IDENTIFIER:
            self._advance()
            return ast.Variable(str(token.value), token.position)
        if kind is TokenKind.LPAREN:
            self._advance()
            expr = self._with_blocks(self._parse_expr)
            self._expect(TokenKind.RPAREN)
            return expr
        if kind is TokenKind.LBRACKET:
            self._advance()
            items: List[ast.Expr] = []
            while not self._check(TokenKind.RBRACKET):
                items.append(self._with_blocks(self._parse_expr))
                if not self._match(TokenKind.COMMA):
                    break
            end = self._expect(TokenKind.RBRACKET, "\"]\" or \",\"")
            return ast.ArrayLiteral(tuple(items), token.position.span_to(end.position))
        if kind is TokenKind.LBRACE and self._allow_block:
            return self._parse_block()
        if kind is TokenKind.KEYWORD:
            raise UnusedKeyword(str(token.value), token.position)
        raise UnexpectedToken(token, "an expression")


def _position_of(node: object) -> Position:
    return getattr(node, "position")


def parse(source: str) -> ast.Script:
    """Tokenize and parse ``source`` into a script."""

    tokens = tokenize(source)
    try:
        return Parser(tokens, source).parse_script()
    except RecursionError:
        raise ParseError("parse failed, script is nested too deeply") from None


def parse_expression(source: str) -> ast.Expr:
    return Parser(tokenize(source), source).parse_expression()


__all__ = ["Parser", "parse", "parse_expression"]
