from typing import List, Optional, Sequence
from sigconf.lexer import Lexer, Token, TokenType, BASE_TOKENS
from sigconf.diagnostics import DiagnosticEngine, DiagnosticKind, SignatureSyntaxError
from sigconf.type_nodes import (
    TypeExpr, Untyped, Base, ClassRef, Singleton, Union, Intersection,
    TupleType, Field, Shape, Literal, TypeVar, OptionalType, Proc,
    Param, Params, Block, Signature,
)

LITERAL_TOKENS = (TokenType.INTEGER, TokenType.STRING, TokenType.SYMBOL, TokenType.TRUE, TokenType.FALSE)

class Parser:
    def __init__(self, tokens: List[Token], diagnostics: DiagnosticEngine, registry, source: str = ""):
        self.tokens = tokens
        self.diagnostics = diagnostics
        self.registry = registry
        self.source = source
        self.current = 0
        self.type_params: List[str] = []  # Type variables in scope

    def parse_method_type(self) -> Signature:
        type_params = self._parse_type_params()
        old_type_params = self._enter_type_param_scope(type_params)

        params = Params()
        if self._check(TokenType.LPAREN):
            params = self._parse_params()

        block = None
        if self._at_block():
            block = self._parse_block()

        self._consume(TokenType.ARROW, "Expected '->' before return type")
        return_type = self._parse_type()
        self._expect_end()

        self._exit_type_param_scope(old_type_params)
        return Signature(params, return_type, block, tuple(type_params), self.source)

    def parse_type_only(self, type_params: Sequence[str] = ()) -> TypeExpr:
        old_type_params = self._enter_type_param_scope(list(type_params))
        result = self._parse_type()
        self._expect_end()
        self._exit_type_param_scope(old_type_params)
        return result

    # --- Parameters ---

    def _parse_type_params(self) -> List[str]:
        # [T, U]
        if not self._match(TokenType.LBRACKET):
            return []

        names = []
        while True:
            token = self._consume(TokenType.IDENTIFIER, "Expected type variable name")
            if token.lexeme in names:
                raise self._error(f"Duplicate type variable '{token.lexeme}'")
            names.append(token.lexeme)
            if not self._match(TokenType.COMMA):
                break

        self._consume(TokenType.RBRACKET, "Expected ']' after type variables")
        return names

    def _parse_params(self) -> Params:
        self._consume(TokenType.LPAREN, "Expected '('")
        required: List[Param] = []
        optional: List[Param] = []
        rest: Optional[Param] = None
        trailing: List[Param] = []
        required_keywords = []
        optional_keywords = []
        rest_keywords: Optional[Param] = None

        if not self._check(TokenType.RPAREN):
            while True:
                if rest_keywords is not None:
                    raise self._error("No parameter may follow '**'")

                if self._match(TokenType.STARSTAR):
                    rest_keywords = self._parse_param()
                elif self._match(TokenType.STAR):
                    if rest is not None:
                        raise self._error("Only one '*' parameter is allowed")
                    if required_keywords or optional_keywords:
                        raise self._error("Positional parameter after keyword parameter")
                    rest = self._parse_param()
                elif self._at_keyword(0):
                    name = self._advance().lexeme
                    self._consume(TokenType.COLON, "Expected ':' after keyword name")
                    self._add_keyword(name, self._parse_param(), required_keywords, optional_keywords, required_keywords)
                elif self._check(TokenType.QUESTION) and self._at_keyword(1):
                    self._advance()
                    name = self._advance().lexeme
                    self._consume(TokenType.COLON, "Expected ':' after keyword name")
                    self._add_keyword(name, self._parse_param(), required_keywords, optional_keywords, optional_keywords)
                else:
                    if required_keywords or optional_keywords:
                        raise self._error("Positional parameter after keyword parameter")
                    if self._match(TokenType.QUESTION):
                        if rest is not None or trailing:
                            raise self._error("Optional parameter after '*' or trailing parameter")
                        optional.append(self._parse_param())
                    elif rest is not None or optional:
                        trailing.append(self._parse_param())
                    else:
                        required.append(self._parse_param())

                if not self._match(TokenType.COMMA):
                    break

        self._consume(TokenType.RPAREN, "Expected ')' after parameters")
        return Params(
            tuple(required), tuple(optional), rest, tuple(trailing),
            tuple(required_keywords), tuple(optional_keywords), rest_keywords,
        )

    def _add_keyword(self, name: str, param: Param, required_keywords, optional_keywords, target):
        if any(key == name for key, _ in required_keywords + optional_keywords):
            raise self._error(f"Duplicate keyword '{name}'")
        target.append((name, param))

    def _parse_param(self) -> Param:
        param_type = self._parse_type()
        name = None
        if self._peek().is_word:
            name = self._advance().lexeme
        return Param(param_type, name)

    def _at_keyword(self, offset: int) -> bool:
        """Lookahead: `name:` starts a keyword parameter or record field."""
        index = self.current + offset
        if index + 1 >= len(self.tokens):
            return False
        return self.tokens[index].is_word and self.tokens[index + 1].type == TokenType.COLON

    def _at_block(self) -> bool:
        if self._check(TokenType.LBRACE):
            return True
        return self._check(TokenType.QUESTION) and self._peek(1).type == TokenType.LBRACE

    def _parse_block(self) -> Block:
        required = not self._match(TokenType.QUESTION)
        self._consume(TokenType.LBRACE, "Expected '{' to open block type")

        params = Params()
        if self._check(TokenType.LPAREN):
            params = self._parse_params()

        # [self: T] binds the block's receiver; it has no runtime counterpart
        if self._match(TokenType.LBRACKET):
            self._consume(TokenType.SELF, "Expected 'self' in block self-type binding")
            self._consume(TokenType.COLON, "Expected ':' after 'self'")
            self._parse_type()
            self._consume(TokenType.RBRACKET, "Expected ']' after block self-type binding")

        self._consume(TokenType.ARROW, "Expected '->' in block type")
        return_type = self._parse_type()
        self._consume(TokenType.RBRACE, "Expected '}' to close block type")
        return Block(Proc(params, return_type), required)

    # --- Types ---

    def _parse_type(self) -> TypeExpr:
        alternatives = [self._parse_intersection()]
        while self._match(TokenType.PIPE):
            alternatives.append(self._parse_intersection())
        if len(alternatives) == 1:
            return alternatives[0]
        return Union(tuple(alternatives))

    def _parse_intersection(self) -> TypeExpr:
        parts = [self._parse_optional()]
        while self._match(TokenType.AMPERSAND):
            parts.append(self._parse_optional())
        if len(parts) == 1:
            return parts[0]
        return Intersection(tuple(parts))

    def _parse_optional(self) -> TypeExpr:
        result = self._primary()
        while self._check(TokenType.QUESTION) and not self._at_keyword(1):
            self._advance()
            result = OptionalType(result)
        return result

    def _primary(self) -> TypeExpr:
        token = self._peek()

        if self._match(TokenType.LPAREN):
            inner = self._parse_type()
            self._consume(TokenType.RPAREN, "Expected ')' after type")
            return inner

        if self._match(TokenType.LBRACKET):
            elements = []
            if not self._check(TokenType.RBRACKET):
                while True:
                    elements.append(self._parse_type())
                    if not self._match(TokenType.COMMA):
                        break
            self._consume(TokenType.RBRACKET, "Expected ']' after tuple elements")
            return TupleType(tuple(elements))

        if self._check(TokenType.LBRACE):
            return self._parse_record()

        if self._match(TokenType.CARET):
            return self._parse_proc()

        if token.type in LITERAL_TOKENS:
            self._advance()
            return self._literal(token)

        if self._match(TokenType.UNTYPED):
            return Untyped()

        if token.type in BASE_TOKENS:
            self._advance()
            return Base(token.lexeme)

        if self._match(TokenType.SINGLETON):
            self._consume(TokenType.LPAREN, "Expected '(' after 'singleton'")
            name = self._parse_name()
            self._consume(TokenType.RPAREN, "Expected ')' after singleton class name")
            return Singleton(name)

        if self._check(TokenType.COLONCOLON) or self._check(TokenType.IDENTIFIER):
            return self._parse_named()

        raise self._error("Expected a type")

    def _literal(self, token: Token) -> Literal:
        if token.type == TokenType.TRUE:
            return Literal(True)
        if token.type == TokenType.FALSE:
            return Literal(False)
        if token.type == TokenType.SYMBOL:
            return Literal(token.value, symbol=True)
        return Literal(token.value)

    def _parse_name(self) -> str:
        """Parse a qualified name: Integer, ::Integer, collections.OrderedDict, Foo::Bar"""
        parts = []
        if self._match(TokenType.COLONCOLON):
            parts.append("::")
        parts.append(self._consume(TokenType.IDENTIFIER, "Expected type name").lexeme)

        while (self._check(TokenType.COLONCOLON) or self._check(TokenType.DOT)) \
                and self._peek(1).type == TokenType.IDENTIFIER:
            parts.append(self._advance().lexeme)
            parts.append(self._advance().lexeme)
        return "".join(parts)

    def _parse_named(self) -> TypeExpr:
        name = self._parse_name()
        bare = name[2:] if name.startswith("::") else name
        last = bare.replace("::", ".").split(".")[-1]

        if bare in self.type_params:
            if self._check(TokenType.LBRACKET):
                raise self._error(f"Type variable '{bare}' cannot take type arguments")
            return TypeVar(bare)

        type_args = self._parse_type_args()
        if last.startswith("_"):
            # Interface type arguments do not change the required capabilities
            return self.registry.interface(bare)
        return ClassRef(name, tuple(type_args))

    def _parse_type_args(self) -> List[TypeExpr]:
        """Parse type arguments: [Integer, String]"""
        if not self._match(TokenType.LBRACKET):
            return []

        args = []
        while True:
            args.append(self._parse_type())
            if not self._match(TokenType.COMMA):
                break

        self._consume(TokenType.RBRACKET, "Expected ']' after type arguments")
        return args

    def _parse_record(self) -> Shape:
        self._consume(TokenType.LBRACE, "Expected '{'")
        fields: List[Field] = []
        extra = None

        if not self._check(TokenType.RBRACE):
            while True:
                if self._match(TokenType.STARSTAR):
                    if extra is not None:
                        raise self._error("Only one '**' entry is allowed in a record")
                    extra = self._parse_type()
                else:
                    required = not self._match(TokenType.QUESTION)
                    if self._at_keyword(0):
                        key = self._advance().lexeme
                        self._advance()  # ':'
                    elif self._peek().type in LITERAL_TOKENS and self._peek(1).type == TokenType.FATARROW:
                        key = self._literal(self._advance()).value
                        self._advance()  # '=>'
                    else:
                        raise self._error("Expected record key")

                    if any(f.key == key for f in fields):
                        raise self._error(f"Duplicate record key {key!r}")
                    fields.append(Field(key, self._parse_type(), required))

                if not self._match(TokenType.COMMA):
                    break

        self._consume(TokenType.RBRACE, "Expected '}' after record fields")
        return Shape(tuple(fields), extra)

    def _parse_proc(self) -> Proc:
        params = Params()
        if self._check(TokenType.LPAREN):
            params = self._parse_params()

        block = None
        if self._at_block():
            block = self._parse_block()

        self._consume(TokenType.ARROW, "Expected '->' in proc type")
        # A proc's return type stops before '|' so `^() -> A | B` stays a union of types
        return_type = self._parse_optional()
        return Proc(params, return_type, block)

    # --- Type variable scope ---

    def _enter_type_param_scope(self, names: List[str]) -> List[str]:
        old_type_params = self.type_params
        self.type_params = old_type_params + [n for n in names if n not in old_type_params]
        return old_type_params

    def _exit_type_param_scope(self, old_type_params: List[str]):
        self.type_params = old_type_params

    # --- Helpers ---

    def _match(self, *types: TokenType) -> bool:
        for type in types:
            if self._check(type):
                self._advance()
                return True
        return False

    def _check(self, type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self.tokens[self.current].type == type

    def _peek(self, offset: int = 0) -> Token:
        index = min(self.current + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _advance(self) -> Token:
        if not self._is_at_end():
            self.current += 1
        return self.tokens[self.current - 1]

    def _is_at_end(self) -> bool:
        return self.tokens[self.current].type == TokenType.EOF

    def _consume(self, type: TokenType, message: str) -> Token:
        if self._check(type):
            return self._advance()
        raise self._error(message)

    def _expect_end(self):
        if not self._is_at_end():
            raise self._error(f"Unexpected '{self._peek().lexeme}' after type")

    def _error(self, message: str) -> Exception:
        token = self.tokens[self.current]
        found = token.lexeme or "end of input"
        self.diagnostics.error(DiagnosticKind.SYNTAX, f"{message} (found '{found}')",
                               signature=self.source, span=token.span)
        return ParseError(message)

class ParseError(Exception):
    pass

def _tokenize(text: str, diagnostics: DiagnosticEngine) -> List[Token]:
    tokens = Lexer(text, diagnostics).tokenize()
    if diagnostics.has_errors:
        raise SignatureSyntaxError(text, diagnostics.diagnostics)
    return tokens

def parse_signature(text: str, registry) -> Signature:
    """Parse method type text such as `[T] (T, ?Integer) { (T) -> void } -> Array[T]`."""
    diagnostics = DiagnosticEngine()
    parser = Parser(_tokenize(text, diagnostics), diagnostics, registry, text)
    try:
        return parser.parse_method_type()
    except ParseError:
        raise SignatureSyntaxError(text, diagnostics.diagnostics) from None

def parse_type(text: str, registry, type_params: Sequence[str] = ()) -> TypeExpr:
    diagnostics = DiagnosticEngine()
    parser = Parser(_tokenize(text, diagnostics), diagnostics, registry, text)
    try:
        return parser.parse_type_only(type_params)
    except ParseError:
        raise SignatureSyntaxError(text, diagnostics.diagnostics) from None
